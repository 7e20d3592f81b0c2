from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

from promotions.app.metrics import workflow_transitions_total
from promotions.app.models.audit import AuditLog
from promotions.app.models.promotion import ApprovalStep, PromotionRequest
from promotions.app.services import notify
from promotions.app.services.audit import mirror_audit


def event_payload(req: PromotionRequest, step: Optional[ApprovalStep] = None, **extra: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "request_id": req.id,
        "subject_id": req.subject_id,
        "subject_name": req.subject_name,
        "target_role_id": req.target_role_id,
        "target_tier": req.target_tier,
        "status": req.status,
    }
    if step is not None:
        out.update({
            "step_id": step.id,
            "level": step.level,
            "approver_role": step.approver_role,
            "approver_actor_id": step.approver_actor_id,
        })
    out.update(extra)
    return out


def after_commit(rows: List[AuditLog], action: str, events: List[Tuple[str, Dict[str, Any]]]) -> None:
    """Side effects of a committed transition. None of them can undo it."""
    workflow_transitions_total.labels(action=action).inc()
    for row in rows:
        mirror_audit(row)
    for event, payload in events:
        notify.dispatch_later(event, payload)
