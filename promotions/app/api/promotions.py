from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from promotions.app.core.database import get_db
from promotions.app.core.security import ActorClaims
from promotions.app.crud import requests as store
from promotions.app.crud.approval import Schedule, approve, escalate_approve, reject, submit_request
from promotions.app.crud.lifecycle import cancel, complete
from promotions.app.deps.auth import get_current_actor
from promotions.app.models.audit import AuditLog
from promotions.app.services.directory import SqlDirectory
from promotions.app.services.read_model import (
    PendingView, active_probation, list_history, project, query_closable, query_pending,
)

router = APIRouter()


# -------------------------- schemas --------------------------

class StepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    level: int
    approver_role: str
    approver_actor_id: Optional[int] = None
    approver_name: Optional[str] = None
    status: str
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    decided_by_escalation: bool = False
    escalation_actor_id: Optional[int] = None
    escalation_justification: Optional[str] = None

class RequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    subject_id: int
    subject_name: str
    subject_unit_id: Optional[int] = None
    subject_unit_name: Optional[str] = None
    subject_regional_unit_id: Optional[int] = None
    subject_current_role: Optional[str] = None
    target_role_id: str
    target_tier: str
    start_date: date
    duration_months: int
    expected_end_date: date
    requested_by: int
    requested_by_name: Optional[str] = None
    status: str
    outcome: Optional[str] = None
    closing_note: Optional[str] = None
    closed_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    decided_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    steps: List[StepOut] = []

class PendingOut(BaseModel):
    request: RequestOut
    current_step: Optional[StepOut] = None
    is_nominal_approver: bool
    can_escalate: bool

class SubmitIn(BaseModel):
    subject_id: int
    target_role_id: str
    target_tier: str
    start_date: date
    duration_months: Optional[int] = None

class ReasonIn(BaseModel):
    reason: str = ""

class JustificationIn(BaseModel):
    justification: str = ""

class CompleteIn(BaseModel):
    outcome: str
    observation: Optional[str] = None

class HistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    request_id: int
    target_role_id: Optional[str] = None
    closing_type: str
    observation: Optional[str] = None
    closed_by: Optional[int] = None
    closed_by_name: Optional[str] = None
    closed_at: datetime

class AuditEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    action: str
    request_id: Optional[int] = None
    subject_id: Optional[int] = None
    actor: Optional[str] = None
    details: dict
    created_at: datetime


def _pending_out(view: PendingView) -> PendingOut:
    return PendingOut(
        request=RequestOut.model_validate(view.request),
        current_step=StepOut.model_validate(view.current_step) if view.current_step else None,
        is_nominal_approver=view.is_nominal_approver,
        can_escalate=view.can_escalate,
    )


# -------------------------- requests --------------------------

@router.post("/api/promotions", response_model=RequestOut, status_code=201)
def api_submit(body: SubmitIn, db: Session = Depends(get_db), actor: ActorClaims = Depends(get_current_actor)):
    req = submit_request(
        db, body.subject_id, body.target_role_id, body.target_tier,
        Schedule(start_date=body.start_date, duration_months=body.duration_months),
        requested_by=actor.actor_id,
    )
    return RequestOut.model_validate(req)

@router.get("/api/promotions/closable", response_model=List[RequestOut])
def api_closable(db: Session = Depends(get_db), actor: ActorClaims = Depends(get_current_actor)):
    return [RequestOut.model_validate(r) for r in query_closable(db, actor.actor_id)]

@router.get("/api/promotions/{request_id}", response_model=PendingOut)
def api_get_request(request_id: int, db: Session = Depends(get_db),
                    actor: ActorClaims = Depends(get_current_actor)):
    req = store.get_request(db, request_id)
    return _pending_out(project(req, actor.actor_id, SqlDirectory(db)))

@router.post("/api/promotions/{request_id}/cancel", response_model=RequestOut)
def api_cancel(request_id: int, body: JustificationIn, db: Session = Depends(get_db),
               actor: ActorClaims = Depends(get_current_actor)):
    return RequestOut.model_validate(cancel(db, request_id, actor.actor_id, body.justification))

@router.post("/api/promotions/{request_id}/complete", response_model=RequestOut)
def api_complete(request_id: int, body: CompleteIn, db: Session = Depends(get_db),
                 actor: ActorClaims = Depends(get_current_actor)):
    req = complete(db, request_id, actor.actor_id, body.outcome, body.observation)
    return RequestOut.model_validate(req)

@router.get("/api/promotions/{request_id}/audit", response_model=List[AuditEntry])
def api_request_audit(request_id: int, limit: int = 50, db: Session = Depends(get_db)):
    store.get_request(db, request_id)
    rows = (
        db.query(AuditLog)
        .filter(AuditLog.request_id == request_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
    return [AuditEntry.model_validate(r) for r in rows]


# -------------------------- steps --------------------------

@router.post("/api/steps/{step_id}/approve", response_model=RequestOut)
def api_approve(step_id: int, db: Session = Depends(get_db), actor: ActorClaims = Depends(get_current_actor)):
    return RequestOut.model_validate(approve(db, step_id, actor.actor_id))

@router.post("/api/steps/{step_id}/reject", response_model=RequestOut)
def api_reject(step_id: int, body: ReasonIn, db: Session = Depends(get_db),
               actor: ActorClaims = Depends(get_current_actor)):
    return RequestOut.model_validate(reject(db, step_id, actor.actor_id, body.reason))

@router.post("/api/steps/{step_id}/escalate", response_model=RequestOut)
def api_escalate(step_id: int, body: JustificationIn, db: Session = Depends(get_db),
                 actor: ActorClaims = Depends(get_current_actor)):
    return RequestOut.model_validate(escalate_approve(db, step_id, actor.actor_id, body.justification))


# -------------------------- views --------------------------

@router.get("/api/approvals/pending", response_model=List[PendingOut])
def api_pending(actionable_only: bool = False, db: Session = Depends(get_db),
                actor: ActorClaims = Depends(get_current_actor)):
    views = query_pending(db, actor.actor_id, actionable_only=actionable_only)
    return [_pending_out(v) for v in views]

@router.get("/api/members/{member_id}/history", response_model=List[HistoryOut])
def api_member_history(member_id: int, limit: int = 50, db: Session = Depends(get_db)):
    return [HistoryOut.model_validate(h) for h in list_history(db, member_id, limit)]

@router.get("/api/members/{member_id}/probation", response_model=dict)
def api_member_probation(member_id: int, db: Session = Depends(get_db)):
    return {"member_id": member_id, "active_training_role_id": active_probation(db, member_id)}
