"""Bearer tokens for approvers and admins.

A token names the acting member (`sub`), how they are shown in the audit
trail (`name`), what they may do (`role`) and whether it is an access or a
refresh token (`kind`). Tokens from any other issuer are refused.
"""
import os, jwt
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-prod")
JWT_ALGO = os.getenv("JWT_ALGO", "HS256")
ISSUER = "promotion-approvals"

# Access/refresh lifetimes (minutes)
ACCESS_TTL_MIN = int(os.getenv("JWT_ACCESS_TTL_MIN", "30"))
REFRESH_TTL_MIN = int(os.getenv("JWT_REFRESH_TTL_MIN", "10080"))

ACCESS, REFRESH = "access", "refresh"
_TTL_MIN = {ACCESS: ACCESS_TTL_MIN, REFRESH: REFRESH_TTL_MIN}


@dataclass(frozen=True)
class ActorClaims:
    actor_id: int
    name: str
    role: str = "member"
    kind: str = ACCESS


def issue_token(actor_id: int, name: str, role: str = "member", kind: str = ACCESS) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "iss": ISSUER,
        "sub": str(actor_id),
        "name": name,
        "role": role,
        "kind": kind,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=_TTL_MIN[kind])).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def issue_token_pair(actor_id: int, name: str, role: str = "member") -> Dict[str, object]:
    return {
        "access_token": issue_token(actor_id, name, role, ACCESS),
        "refresh_token": issue_token(actor_id, name, role, REFRESH),
        "token_type": "bearer",
        "expires_in": ACCESS_TTL_MIN * 60,
    }


def read_token(token: str, kind: str = ACCESS) -> ActorClaims:
    """Verify signature, expiry and issuer; raises jwt.InvalidTokenError otherwise."""
    data = jwt.decode(
        token, JWT_SECRET, algorithms=[JWT_ALGO], issuer=ISSUER,
        options={"require": ["exp", "iss", "sub"]},
    )
    if data.get("kind") != kind:
        raise jwt.InvalidTokenError(f"expected a {kind} token, got {data.get('kind')!r}")
    try:
        actor_id = int(data["sub"])
    except (TypeError, ValueError) as e:
        raise jwt.InvalidTokenError("subject is not a member id") from e
    return ActorClaims(actor_id=actor_id, name=data.get("name") or "", role=data.get("role", "member"), kind=kind)
