import jwt
from fastapi import Depends, Header, HTTPException
from typing import Callable
from promotions.app.core.security import ACCESS, ActorClaims, read_token

def get_current_actor(authorization: str | None = Header(default=None)) -> ActorClaims:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing bearer token")
    try:
        return read_token(token.strip(), ACCESS)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid/expired token")

def require_role(*allowed: str) -> Callable:
    def checker(actor: ActorClaims = Depends(get_current_actor)) -> ActorClaims:
        if allowed and actor.role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        return actor
    return checker
