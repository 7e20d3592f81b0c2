"""
Failure kinds raised by the promotion workflow.

Everything derives from ValueError so callers that only know about
"bad input" (and the app-wide ValueError handler) keep working.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class WorkflowError(ValueError):
    code = "workflow_error"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "detail": self.message}
        if self.details:
            out["context"] = self.details
        return out


class InvalidTier(WorkflowError):
    code = "invalid_tier"


class InvalidOutcome(WorkflowError):
    code = "invalid_outcome"


class InvalidSchedule(WorkflowError):
    code = "invalid_schedule"


class JustificationTooShort(WorkflowError):
    code = "justification_too_short"

    def __init__(self, field: str, minimum: int, actual: int):
        super().__init__(
            f"{field} must have at least {minimum} characters (got {actual})",
            field=field, minimum=minimum, actual=actual,
        )


class DuplicateActiveRequest(WorkflowError):
    code = "duplicate_active_request"
    status_code = 409


class NotCurrentStep(WorkflowError):
    code = "not_current_step"
    status_code = 409


class StepAlreadyDecided(WorkflowError):
    code = "step_already_decided"
    status_code = 409


class InvalidState(WorkflowError):
    code = "invalid_state"
    status_code = 409


class VacantApprover(WorkflowError):
    code = "vacant_approver"
    status_code = 409


class NotEligibleApprover(WorkflowError):
    code = "not_eligible_approver"
    status_code = 403


class NotFound(WorkflowError):
    code = "not_found"
    status_code = 404


class RequestNotFound(NotFound):
    code = "request_not_found"


class StepNotFound(NotFound):
    code = "step_not_found"


class MemberNotFound(NotFound):
    code = "member_not_found"


def require_text(field: str, text: Optional[str], minimum: int) -> str:
    """Trim `text` and enforce the minimum-length policy; returns the trimmed value."""
    value = (text or "").strip()
    if len(value) < minimum:
        raise JustificationTooShort(field, minimum, len(value))
    return value
