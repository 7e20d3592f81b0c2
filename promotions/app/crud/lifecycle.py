# app/crud/lifecycle.py
from __future__ import annotations
from typing import Optional

from sqlalchemy.orm import Session

from promotions.app.core.errors import InvalidOutcome, InvalidState, require_text
from promotions.app.crud import requests as store
from promotions.app.models.history import ProbationHistory
from promotions.app.models.promotion import Outcome, PromotionRequest, RequestStatus, utcnow
from promotions.app.services.audit import record_audit
from promotions.app.services.directory import Directory, SqlDirectory
from promotions.app.services.events import after_commit, event_payload
from promotions.app.utils.policy import min_justification_chars

# outcomes that may be recorded without an observation
OUTCOMES_WITHOUT_NOTE = {Outcome.COMPLETED_WITH_CREDIT}


def parse_outcome(value) -> Outcome:
    try:
        return Outcome(value)
    except ValueError:
        raise InvalidOutcome(
            f"Invalid outcome '{value}'. Must be one of {sorted(o.value for o in Outcome)}.",
            outcome=value,
        )


def _closer_name(directory: Directory, actor_id: Optional[int]) -> Optional[str]:
    m = directory.get_member(actor_id) if actor_id is not None else None
    return m.name if m else None


def cancel(
    db: Session,
    request_id: int,
    actor_id: int,
    justification: str,
    directory: Optional[Directory] = None,
) -> PromotionRequest:
    """Withdraw a request that is still awaiting approval. Steps are kept as they are."""
    directory = directory or SqlDirectory(db)

    with store.unit_of_work(db, "cancel"):
        req, _steps = store.lock_request(db, request_id)
        if req.status != RequestStatus.PENDING_APPROVAL.value:
            raise InvalidState(
                f"Only requests awaiting approval can be cancelled; request {req.id} is '{req.status}'",
                request_id=req.id, status=req.status,
            )
        text = require_text("justification", justification, min_justification_chars())

        now = utcnow()
        req.status = RequestStatus.CANCELLED.value
        req.closing_note = text
        req.closed_by = actor_id
        req.closed_at = now
        req.updated_at = now
        directory.set_active_training_role(req.subject_id, None)

        db.add(ProbationHistory(
            subject_id=req.subject_id,
            request_id=req.id,
            target_role_id=None,
            closing_type=RequestStatus.CANCELLED.value,
            observation=text,
            closed_by=actor_id,
            closed_by_name=_closer_name(directory, actor_id),
            closed_at=now,
        ))
        row = record_audit(db, "REQUEST_CANCELLED", req.id, req.subject_id, actor_id, {"justification": text})

    db.refresh(req)
    after_commit([row], "cancel", [("cancelled", event_payload(req, actor_id=actor_id, justification=text))])
    return req


def complete(
    db: Session,
    request_id: int,
    actor_id: int,
    outcome: str,
    observation: Optional[str] = None,
    directory: Optional[Directory] = None,
) -> PromotionRequest:
    """Close a running probation with a typed outcome and release the subject's role reference."""
    directory = directory or SqlDirectory(db)

    with store.unit_of_work(db, "complete"):
        kind = parse_outcome(outcome)
        req, _steps = store.lock_request(db, request_id)
        if req.status != RequestStatus.ACTIVE.value:
            raise InvalidState(
                f"Only active probations can be completed; request {req.id} is '{req.status}'",
                request_id=req.id, status=req.status,
            )
        if kind in OUTCOMES_WITHOUT_NOTE:
            note = (observation or "").strip() or None
        else:
            note = require_text("observation", observation, min_justification_chars())

        now = utcnow()
        req.status = RequestStatus.COMPLETED.value
        req.outcome = kind.value
        req.closing_note = note
        req.closed_by = actor_id
        req.closed_at = now
        req.updated_at = now
        directory.set_active_training_role(req.subject_id, None)

        db.add(ProbationHistory(
            subject_id=req.subject_id,
            request_id=req.id,
            target_role_id=req.target_role_id,
            closing_type=kind.value,
            observation=note,
            closed_by=actor_id,
            closed_by_name=_closer_name(directory, actor_id),
            closed_at=now,
        ))
        row = record_audit(db, "PROBATION_COMPLETED", req.id, req.subject_id, actor_id, {
            "outcome": kind.value,
            "observation": note,
        })

    db.refresh(req)
    after_commit([row], "complete", [("completed", event_payload(req, actor_id=actor_id, outcome=kind.value))])
    return req
