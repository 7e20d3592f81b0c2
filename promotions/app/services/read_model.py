# promotions/app/services/read_model.py
"""
Viewer-specific projection of pending requests.

Nothing here writes. "Current step" is derived from the persisted step rows
every time; callers must not cache it between requests.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from promotions.app.crud import requests as store
from promotions.app.models.history import ProbationHistory
from promotions.app.models.member import Member
from promotions.app.models.promotion import (
    NON_TERMINAL_STATUSES, ApprovalStep, PromotionRequest, RequestStatus, StepStatus,
)
from promotions.app.services.directory import Directory, SqlDirectory


@dataclass
class PendingView:
    request: PromotionRequest
    current_step: Optional[ApprovalStep]
    is_nominal_approver: bool
    can_escalate: bool
    steps: List[ApprovalStep] = field(default_factory=list)


def current_step(steps: Sequence[ApprovalStep]) -> Optional[ApprovalStep]:
    pending = [s for s in steps if s.status == StepStatus.PENDING.value]
    return min(pending, key=lambda s: s.level) if pending else None


def is_nominal_approver(steps: Sequence[ApprovalStep], viewer_id: Optional[int]) -> bool:
    cur = current_step(steps)
    return bool(
        cur is not None
        and viewer_id is not None
        and cur.approver_actor_id is not None
        and cur.approver_actor_id == viewer_id
    )


def can_escalate(
    request: PromotionRequest,
    steps: Sequence[ApprovalStep],
    viewer_id: Optional[int],
    directory: Directory,
) -> bool:
    if viewer_id is None or current_step(steps) is None:
        return False
    if is_nominal_approver(steps, viewer_id):
        return False
    return directory.is_regional_director_of(viewer_id, request.subject_regional_unit_id)


def project(request: PromotionRequest, viewer_id: Optional[int], directory: Directory) -> PendingView:
    steps = sorted(request.steps, key=lambda s: s.level)
    # only a request awaiting approval has an actionable step
    live = request.status == RequestStatus.PENDING_APPROVAL.value
    cur = current_step(steps) if live else None
    return PendingView(
        request=request,
        current_step=cur,
        is_nominal_approver=live and is_nominal_approver(steps, viewer_id),
        can_escalate=live and can_escalate(request, steps, viewer_id, directory),
        steps=steps,
    )


def query_pending(
    db: Session,
    viewer_id: Optional[int],
    directory: Optional[Directory] = None,
    actionable_only: bool = False,
) -> List[PendingView]:
    """All requests awaiting approval, newest first, flagged for `viewer_id`."""
    directory = directory or SqlDirectory(db)
    rows = store.list_by_status(db, [RequestStatus.PENDING_APPROVAL])
    views = [project(r, viewer_id, directory) for r in rows]
    if actionable_only:
        views = [v for v in views if v.is_nominal_approver or v.can_escalate]
    return views


def query_closable(db: Session, viewer_id: int) -> List[PromotionRequest]:
    """Pending or active requests on whose chain the viewer appears."""
    return store.list_for_approver(db, viewer_id, NON_TERMINAL_STATUSES)


def active_probation(db: Session, subject_id: int) -> Optional[str]:
    m = db.get(Member, subject_id)
    return m.active_training_role_id if m else None


def list_history(db: Session, subject_id: int, limit: int = 50) -> List[ProbationHistory]:
    return (
        db.query(ProbationHistory)
        .filter(ProbationHistory.subject_id == subject_id)
        .order_by(ProbationHistory.closed_at.desc(), ProbationHistory.id.desc())
        .limit(limit)
        .all()
    )
