from __future__ import annotations
from sqlalchemy import Column, DateTime, Integer, String, Text

from promotions.app.core.database import Base
from promotions.app.models.promotion import utcnow


class ProbationHistory(Base):
    __tablename__ = "probation_history"
    id = Column(Integer, primary_key=True)
    subject_id = Column(Integer, index=True, nullable=False)
    request_id = Column(Integer, index=True, nullable=False)
    target_role_id = Column(String(64), nullable=True)      # None for cancelled requests
    closing_type = Column(String(64), nullable=False)       # "cancelled" | Outcome value
    observation = Column(Text, nullable=True)
    closed_by = Column(Integer, nullable=True)
    closed_by_name = Column(String(255), nullable=True)
    closed_at = Column(DateTime, default=utcnow, nullable=False)
