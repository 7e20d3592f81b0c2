# app/crud/requests.py
"""
Request store: persistence of PromotionRequest + its ApprovalSteps.

Every workflow transition runs inside `unit_of_work`, re-reads the request
and its steps with `lock_request*` (row locks where the dialect has them),
and relies on the version columns of both tables so that a writer holding a
stale read fails at flush instead of overwriting a decision.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from promotions.app.core.errors import (
    DuplicateActiveRequest, RequestNotFound, StepAlreadyDecided, StepNotFound, WorkflowError,
)
from promotions.app.metrics import workflow_rejections_total
from promotions.app.models.promotion import (
    NON_TERMINAL_STATUSES, ApprovalStep, PromotionRequest, StepStatus,
)
from promotions.app.services.hierarchy import ChainLink

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session, action: str) -> Iterator[Session]:
    """Commit on success; roll back and count the refusal on any failure."""
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        err = StepAlreadyDecided(
            "The request was changed by a concurrent action; reload it and retry", action=action
        )
        workflow_rejections_total.labels(code=err.code).inc()
        logger.info("[WORKFLOW] %s lost a race: %s", action, e)
        raise err from e
    except WorkflowError as e:
        db.rollback()
        workflow_rejections_total.labels(code=e.code).inc()
        logger.info("[WORKFLOW] %s refused (%s): %s", action, e.code, e.message)
        raise
    except Exception:
        db.rollback()
        logger.exception("[WORKFLOW] %s failed", action)
        raise


# -------------------------- reads --------------------------

def get_request(db: Session, request_id: int) -> PromotionRequest:
    req = db.get(PromotionRequest, request_id)
    if not req:
        raise RequestNotFound(f"Request {request_id} not found", request_id=request_id)
    return req


def lock_request(db: Session, request_id: int) -> Tuple[PromotionRequest, List[ApprovalStep]]:
    """Fresh read of the request and its steps, locked for the rest of the transaction."""
    req = (
        db.query(PromotionRequest)
        .filter(PromotionRequest.id == request_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if not req:
        raise RequestNotFound(f"Request {request_id} not found", request_id=request_id)
    steps = (
        db.query(ApprovalStep)
        .filter(ApprovalStep.request_id == request_id)
        .order_by(ApprovalStep.level.asc())
        .with_for_update()
        .populate_existing()
        .all()
    )
    return req, steps


def lock_request_for_step(db: Session, step_id: int) -> Tuple[PromotionRequest, List[ApprovalStep], ApprovalStep]:
    request_id = db.query(ApprovalStep.request_id).filter(ApprovalStep.id == step_id).scalar()
    if request_id is None:
        raise StepNotFound(f"Approval step {step_id} not found", step_id=step_id)
    req, steps = lock_request(db, request_id)
    step = next((s for s in steps if s.id == step_id), None)
    if step is None:
        raise StepNotFound(f"Approval step {step_id} not found", step_id=step_id)
    return req, steps, step


def find_open_request(db: Session, subject_id: int) -> Optional[PromotionRequest]:
    return (
        db.query(PromotionRequest)
        .filter(
            PromotionRequest.subject_id == subject_id,
            PromotionRequest.status.in_(NON_TERMINAL_STATUSES),
        )
        .with_for_update()
        .first()
    )


def list_by_status(db: Session, statuses: Iterable[str]) -> List[PromotionRequest]:
    return (
        db.query(PromotionRequest)
        .filter(PromotionRequest.status.in_([str(getattr(s, "value", s)) for s in statuses]))
        .order_by(PromotionRequest.created_at.desc(), PromotionRequest.id.desc())
        .all()
    )


def list_for_approver(db: Session, actor_id: int, statuses: Iterable[str]) -> List[PromotionRequest]:
    """Requests whose chain names `actor_id` at any level."""
    ids = db.query(ApprovalStep.request_id).filter(ApprovalStep.approver_actor_id == actor_id)
    return (
        db.query(PromotionRequest)
        .filter(
            PromotionRequest.id.in_(ids),
            PromotionRequest.status.in_([str(getattr(s, "value", s)) for s in statuses]),
        )
        .order_by(PromotionRequest.created_at.desc(), PromotionRequest.id.desc())
        .all()
    )


# -------------------------- writes --------------------------

# sqlite reports the indexed column, postgres the index name
_OPEN_SUBJECT_MARKERS = ("uq_promotion_requests_open_subject", "promotion_requests.subject_id")


def _is_open_subject_violation(e: IntegrityError) -> bool:
    msg = str(e.orig)
    return any(marker in msg for marker in _OPEN_SUBJECT_MARKERS)


def create_request(db: Session, req: PromotionRequest, chain: Sequence[ChainLink]) -> PromotionRequest:
    """Stage the request and its full chain; flushes so ids exist before commit."""
    for link in chain:
        req.steps.append(ApprovalStep(
            level=link.level,
            approver_role=link.approver_role.value,
            approver_actor_id=link.approver_actor_id,
            approver_name=link.approver_name,
            status=StepStatus.PENDING.value,
            decided_by_escalation=False,
        ))
    db.add(req)
    try:
        db.flush()
    except IntegrityError as e:
        if not _is_open_subject_violation(e):
            raise
        raise DuplicateActiveRequest(
            f"Subject {req.subject_id} already has a promotion request in progress",
            subject_id=req.subject_id,
        ) from e
    return req
