from __future__ import annotations
import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from promotions.app.models.audit import AuditLog
from promotions.app.models.promotion import utcnow
from promotions.app.utils.audit_sink import write_event

logger = logging.getLogger(__name__)

def record_audit(
    db: Session,
    action: str,
    request_id: Optional[int],
    subject_id: Optional[int],
    actor: Optional[Any],
    details: Dict[str, Any],
) -> AuditLog:
    """
    Stage an audit row in the caller's transaction. The caller commits it
    together with the change it describes, then calls `mirror_audit`.
    """
    row = AuditLog(
        action=action,
        request_id=request_id,
        subject_id=subject_id,
        actor=str(actor) if actor is not None else None,
        details=details,
    )
    db.add(row)
    return row

def mirror_audit(row: AuditLog) -> None:
    """Mirror a committed audit row to the filesystem as JSONL; a failing sink is only logged."""
    try:
        write_event({
            "id": row.id,
            "action": row.action,
            "request_id": row.request_id,
            "subject_id": row.subject_id,
            "actor": row.actor,
            "details": row.details or {},
            "created_at": row.created_at.isoformat() if row.created_at else utcnow().isoformat(),
        })
    except Exception as e:
        logger.warning("[AUDIT] file sink failed for %s: %s", row.action, e)
