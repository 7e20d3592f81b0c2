# app/crud/approval.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from promotions.app.core.errors import (
    DuplicateActiveRequest, InvalidState, MemberNotFound, NotCurrentStep,
    NotEligibleApprover, VacantApprover, WorkflowError, require_text,
)
from promotions.app.crud import requests as store
from promotions.app.metrics import requests_submitted_total
from promotions.app.models.promotion import (
    ApprovalStep, PromotionRequest, RequestStatus, StepStatus, utcnow,
)
from promotions.app.services.audit import record_audit
from promotions.app.services.directory import Directory, SqlDirectory
from promotions.app.services.events import after_commit, event_payload
from promotions.app.services.hierarchy import parse_tier, resolve_chain
from promotions.app.services.read_model import current_step
from promotions.app.utils.policy import min_justification_chars
from promotions.app.utils.schedule import expected_end, resolve_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Schedule:
    start_date: date
    duration_months: Optional[int] = None    # None -> tier default from policy


# -------------------------- submission --------------------------

def submit_request(
    db: Session,
    subject_id: int,
    target_role_id: str,
    target_tier: str,
    schedule: Schedule,
    requested_by: int,
    directory: Optional[Directory] = None,
) -> PromotionRequest:
    """Create a request and its frozen approver chain in one transaction."""
    directory = directory or SqlDirectory(db)

    with store.unit_of_work(db, "submit"):
        tier = parse_tier(target_tier)
        role_id = (target_role_id or "").strip()
        if not role_id:
            raise WorkflowError("target_role_id is required")
        months = resolve_duration(tier.value, schedule.duration_months)

        subject = directory.get_member(subject_id)
        if not subject:
            raise MemberNotFound(f"Member {subject_id} not found", member_id=subject_id)
        requester = directory.get_member(requested_by)

        existing = store.find_open_request(db, subject_id)
        if existing:
            raise DuplicateActiveRequest(
                f"Subject {subject_id} already has request {existing.id} in status '{existing.status}'",
                subject_id=subject_id, request_id=existing.id,
            )

        chain = resolve_chain(tier, subject.unit_id, directory)
        req = PromotionRequest(
            subject_id=subject.id,
            subject_name=subject.name,
            subject_unit_id=subject.unit_id,
            subject_unit_name=directory.unit_name(subject.unit_id),
            subject_regional_unit_id=directory.regional_unit_of(subject.unit_id),
            subject_current_role=subject.current_role,
            target_role_id=role_id,
            target_tier=tier.value,
            start_date=schedule.start_date,
            duration_months=months,
            expected_end_date=expected_end(schedule.start_date, months),
            requested_by=requested_by,
            requested_by_name=requester.name if requester else None,
            status=RequestStatus.PENDING_APPROVAL.value,
        )
        store.create_request(db, req, chain)

        vacant = [link.level for link in chain if link.vacant]
        row = record_audit(db, "REQUEST_SUBMITTED", req.id, req.subject_id, requested_by, {
            "target_role_id": role_id,
            "target_tier": tier.value,
            "duration_months": months,
            "chain": [
                {"level": l.level, "role": l.approver_role.value, "actor_id": l.approver_actor_id}
                for l in chain
            ],
            "vacant_levels": vacant,
        })

    db.refresh(req)
    if vacant:
        logger.warning("[WORKFLOW] request %s created with vacant approver levels %s", req.id, vacant)
    requests_submitted_total.labels(tier=tier.value).inc()
    after_commit([row], "submit", [("submitted", event_payload(req, current_step(req.steps)))])
    return req


# -------------------------- chain transitions --------------------------

def _load_current(db: Session, step_id: int) -> Tuple[PromotionRequest, List[ApprovalStep], ApprovalStep]:
    """Re-read the chain and make sure `step_id` is the one step that may be acted on."""
    req, steps, step = store.lock_request_for_step(db, step_id)
    if req.status != RequestStatus.PENDING_APPROVAL.value:
        raise InvalidState(
            f"Request {req.id} is '{req.status}', not awaiting approval",
            request_id=req.id, status=req.status,
        )
    cur = current_step(steps)
    if cur is None:
        raise InvalidState(f"Request {req.id} has no pending step", request_id=req.id)
    if cur.id != step.id:
        raise NotCurrentStep(
            f"Step {step.id} (level {step.level}) is not the current step; level {cur.level} is",
            step_id=step.id, current_step_id=cur.id, current_level=cur.level,
        )
    return req, steps, step


def _advance(req: PromotionRequest, steps: List[ApprovalStep], directory: Directory, now) -> bool:
    """After a step approval: activate the request when nothing is left pending. True if activated."""
    req.updated_at = now
    if current_step(steps) is not None:
        return False
    req.status = RequestStatus.ACTIVE.value
    req.decided_at = now
    directory.set_active_training_role(req.subject_id, req.target_role_id)
    return True


def _approve_step(
    db: Session,
    step_id: int,
    actor_id: int,
    directory: Directory,
    justification: Optional[str],
) -> PromotionRequest:
    escalated = justification is not None
    action = "escalate" if escalated else "approve"

    with store.unit_of_work(db, action):
        req, steps, step = _load_current(db, step_id)

        if escalated:
            if actor_id is not None and actor_id == step.approver_actor_id:
                raise NotEligibleApprover(
                    "The nominal approver of this step must use a regular approval",
                    step_id=step.id, actor_id=actor_id,
                )
            if not directory.is_regional_director_of(actor_id, req.subject_regional_unit_id):
                raise NotEligibleApprover(
                    f"Actor {actor_id} is not Regional Director of the subject's regional unit",
                    step_id=step.id, actor_id=actor_id, regional_unit_id=req.subject_regional_unit_id,
                )
            text = require_text("justification", justification, min_justification_chars())
        else:
            if step.approver_actor_id is None:
                raise VacantApprover(
                    f"Step {step.id} ({step.approver_role}) has no approver; escalate to the Regional Director",
                    step_id=step.id, approver_role=step.approver_role,
                )
            if actor_id != step.approver_actor_id:
                raise NotEligibleApprover(
                    f"Actor {actor_id} is not the approver of step {step.id}",
                    step_id=step.id, actor_id=actor_id,
                )

        now = utcnow()
        step.status = StepStatus.APPROVED.value
        step.decided_at = now
        if escalated:
            step.decided_by_escalation = True
            step.escalation_actor_id = actor_id
            step.escalation_justification = text
        activated = _advance(req, steps, directory, now)

        rows = [record_audit(db, "STEP_ESCALATED" if escalated else "STEP_APPROVED", req.id, req.subject_id, actor_id, {
            "step_id": step.id,
            "level": step.level,
            "approver_role": step.approver_role,
            "nominal_approver": step.approver_actor_id,
            **({"justification": text} if escalated else {}),
        })]
        if activated:
            rows.append(record_audit(db, "REQUEST_ACTIVATED", req.id, req.subject_id, actor_id, {
                "target_role_id": req.target_role_id,
            }))

    db.refresh(req)
    events = [("escalated" if escalated else "approved", event_payload(req, step, actor_id=actor_id))]
    if activated:
        events.append(("activated", event_payload(req, actor_id=actor_id)))
    after_commit(rows, action, events)
    return req


def approve(db: Session, step_id: int, actor_id: int, directory: Optional[Directory] = None) -> PromotionRequest:
    """Approve the current step as its nominal approver."""
    return _approve_step(db, step_id, actor_id, directory or SqlDirectory(db), None)


def escalate_approve(
    db: Session,
    step_id: int,
    actor_id: int,
    justification: str,
    directory: Optional[Directory] = None,
) -> PromotionRequest:
    """Approve the current step out of turn as the subject's Regional Director."""
    return _approve_step(db, step_id, actor_id, directory or SqlDirectory(db), justification or "")


def reject(
    db: Session,
    step_id: int,
    actor_id: int,
    reason: str,
    directory: Optional[Directory] = None,
) -> PromotionRequest:
    """Reject the current step; the whole request ends here."""
    directory = directory or SqlDirectory(db)

    with store.unit_of_work(db, "reject"):
        req, steps, step = _load_current(db, step_id)
        if step.approver_actor_id is None:
            raise VacantApprover(
                f"Step {step.id} ({step.approver_role}) has no approver to reject it",
                step_id=step.id, approver_role=step.approver_role,
            )
        if actor_id != step.approver_actor_id:
            raise NotEligibleApprover(
                f"Actor {actor_id} is not the approver of step {step.id}",
                step_id=step.id, actor_id=actor_id,
            )
        text = require_text("reason", reason, min_justification_chars())

        now = utcnow()
        step.status = StepStatus.REJECTED.value
        step.decided_at = now
        step.rejection_reason = text
        # later levels stay pending; the request being terminal makes them inert
        req.status = RequestStatus.REJECTED.value
        req.decided_at = now
        req.updated_at = now
        directory.set_active_training_role(req.subject_id, None)

        row = record_audit(db, "REQUEST_REJECTED", req.id, req.subject_id, actor_id, {
            "step_id": step.id,
            "level": step.level,
            "reason": text,
        })

    db.refresh(req)
    after_commit([row], "reject", [("rejected", event_payload(req, step, actor_id=actor_id, reason=text))])
    return req
