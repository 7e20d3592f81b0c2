from sqlalchemy import Column, Integer, String, DateTime, JSON

from promotions.app.core.database import Base
from promotions.app.models.promotion import utcnow

class AuditLog(Base):
    __tablename__ = "audit_log"
    id = Column(Integer, primary_key=True)
    action = Column(String(128), index=True)             # e.g., REQUEST_SUBMITTED, STEP_APPROVED, REQUEST_ACTIVATED
    request_id = Column(Integer, index=True, nullable=True)
    subject_id = Column(Integer, index=True, nullable=True)
    actor = Column(String(255), nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
