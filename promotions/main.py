from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.orm import Session
from sqlalchemy import inspect
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime
import jwt, logging, time, uvicorn

from promotions.app.api.promotions import router as promotions_router
from promotions.app.core.database import get_db, engine, Base
from promotions.app.core.errors import MemberNotFound, WorkflowError
from promotions.app.core.security import ACCESS, ACCESS_TTL_MIN, REFRESH, issue_token, issue_token_pair, read_token
from promotions.app.crud.members import member_crud
from promotions.app.deps.auth import require_role
from promotions.app.metrics import init_metrics_zero, request_latency_seconds
from promotions.app.models.member import Member
from promotions.app.models.promotion import PromotionRequest, RequestStatus
from promotions.app.utils.audit_sink import AUDIT_DIR
from promotions.app.utils.policy import get_policy, reload_policy
from promotions.app.utils.runtime_config import set_notify_webhook, describe_notify_webhook

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"

# FastAPI app
app = FastAPI(
    title="Promotion Approvals API",
    description="Hierarchical promotion-approval workflow",
    version=APP_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)

app.include_router(promotions_router)

@app.on_event("startup")
def on_startup():
    logger.info("[startup] engine=%s dialect=%s", engine.url.render_as_string(hide_password=True), engine.name)
    Base.metadata.create_all(bind=engine)
    logger.info("[startup] tables: %s", inspect(engine).get_table_names())
    logger.info("[startup] audit dir: %s", AUDIT_DIR)
    init_metrics_zero()

@app.middleware("http")
async def time_requests(request: Request, call_next):
    start = time.perf_counter()
    try:
        return await call_next(request)
    finally:
        request_latency_seconds.observe(time.perf_counter() - start)

@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        pending = db.query(PromotionRequest).filter(
            PromotionRequest.status == RequestStatus.PENDING_APPROVAL.value
        ).count()
        return {
            "status": "healthy",
            "database": "connected",
            "pending_requests": pending,
            "tables": inspect(engine).get_table_names(),
            "timestamp": datetime.now(),
        }
    except Exception as e:
        logger.warning("[health] database check failed: %s", e)
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
            "timestamp": datetime.now(),
        }

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

@app.get("/public/version", include_in_schema=False)
def public_version():
    return {"name": "promotion-approvals-api", "version": APP_VERSION}


# -------------------------- auth --------------------------

class LoginIn(BaseModel):
    member_id: int
    role: str = "member"

@app.post("/auth/login")
def auth_login(body: LoginIn, db: Session = Depends(get_db)):
    role = body.role.lower()
    if role not in ("member", "admin"):
        raise HTTPException(400, "role must be member|admin")
    member = db.get(Member, body.member_id)
    if not member and role != "admin":
        # admins may log in before the roster is seeded
        raise MemberNotFound(f"Member {body.member_id} not found", member_id=body.member_id)
    name = member.name if member else "admin"
    return {**issue_token_pair(body.member_id, name, role), "role": role, "member_id": body.member_id, "name": name}

class RefreshIn(BaseModel):
    refresh_token: str

@app.post("/auth/refresh")
def auth_refresh(body: RefreshIn):
    try:
        claims = read_token(body.refresh_token, REFRESH)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid/expired refresh token")
    new_access = issue_token(claims.actor_id, claims.name, claims.role, ACCESS)
    return {"access_token": new_access, "token_type": "bearer", "expires_in": ACCESS_TTL_MIN * 60}


# -------------------------- roster seeding --------------------------

class UnitIn(BaseModel):
    name: str
    kind: str = "division"
    parent_id: Optional[int] = None

class UnitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    kind: str
    parent_id: Optional[int] = None

class MemberIn(BaseModel):
    name: str
    unit_id: Optional[int] = None
    position: Optional[str] = None
    current_role: Optional[str] = None

class MemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    unit_id: Optional[int] = None
    position: Optional[str] = None
    current_role: Optional[str] = None
    active_training_role_id: Optional[str] = None

@app.post("/api/units", response_model=UnitOut, status_code=201)
def create_unit(body: UnitIn, db: Session = Depends(get_db), user=Depends(require_role("admin"))):
    return UnitOut.model_validate(member_crud.create_unit(db, body.model_dump()))

@app.post("/api/members", response_model=MemberOut, status_code=201)
def create_member(body: MemberIn, db: Session = Depends(get_db), user=Depends(require_role("admin"))):
    return MemberOut.model_validate(member_crud.create_member(db, body.model_dump()))

@app.get("/api/members", response_model=List[MemberOut])
def get_members(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return [MemberOut.model_validate(m) for m in member_crud.get_members(db, skip=skip, limit=limit)]

@app.get("/api/members/{member_id}", response_model=MemberOut)
def get_member(member_id: int, db: Session = Depends(get_db)):
    return MemberOut.model_validate(member_crud.get_member(db, member_id))


# -------------------------- runtime config --------------------------

class NotifyWebhookIn(BaseModel):
    webhook_url: str

@app.post("/config/notify-webhook", response_model=dict)
def api_set_notify_webhook(body: NotifyWebhookIn, user=Depends(require_role("admin"))):
    url = body.webhook_url.strip()
    if url and not url.startswith(("https://", "http://")):
        raise HTTPException(status_code=400, detail="Invalid webhook URL")
    set_notify_webhook(url)
    return {"saved": True, "configured": bool(url)}

@app.get("/config/notify-webhook", response_model=dict)
def api_get_notify_webhook(user=Depends(require_role("member", "admin"))):
    return describe_notify_webhook()

@app.get("/api/policy", response_model=dict)
def api_policy(user=Depends(require_role("member", "admin"))):
    return get_policy()

@app.post("/api/policy/reload", response_model=dict)
def api_policy_reload(user=Depends(require_role("admin"))):
    return reload_policy()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
