from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from promotions.app.core.database import Base


def utcnow() -> datetime:
    # naive UTC, matching what DateTime columns hand back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TargetTier(str, enum.Enum):
    TIER_A = "tier_a"        # senior internship grade
    TIER_B = "tier_b"        # mid internship grade
    TRAINING = "training"    # standard training request


class ApproverRole(str, enum.Enum):
    UNIT_DIRECTOR = "unit_director"
    REGIONAL_DELEGATE = "regional_delegate"
    REGIONAL_DIRECTOR = "regional_director"


class RequestStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Outcome(str, enum.Enum):
    COMPLETED_WITH_CREDIT = "completed_with_credit"
    COMPLETED_WITHOUT_CREDIT = "completed_without_credit"
    CLOSED_FOR_NEW_PROBATION = "closed_for_new_probation"


NON_TERMINAL_STATUSES = (RequestStatus.PENDING_APPROVAL.value, RequestStatus.ACTIVE.value)
_OPEN_SUBJECT_WHERE = text("status IN ('pending_approval', 'active')")


class PromotionRequest(Base):
    __tablename__ = "promotion_requests"

    id = Column(Integer, primary_key=True)

    # subject snapshot, frozen at submission
    subject_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    subject_name = Column(String(255), nullable=False)
    subject_unit_id = Column(Integer, nullable=True)
    subject_unit_name = Column(String(255), nullable=True)
    subject_regional_unit_id = Column(Integer, nullable=True, index=True)
    subject_current_role = Column(String(255), nullable=True)

    target_role_id = Column(String(64), nullable=False)
    target_tier = Column(String(32), nullable=False)                 # TargetTier

    start_date = Column(Date, nullable=False)
    duration_months = Column(Integer, nullable=False)
    expected_end_date = Column(Date, nullable=False)

    requested_by = Column(Integer, nullable=False)
    requested_by_name = Column(String(255), nullable=True)

    status = Column(String(32), nullable=False, default=RequestStatus.PENDING_APPROVAL.value, index=True)
    outcome = Column(String(64), nullable=True)                      # Outcome, only when completed
    closing_note = Column(Text, nullable=True)
    closed_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    decided_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    steps = relationship(
        "ApprovalStep",
        back_populates="request",
        order_by="ApprovalStep.level",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # one pending/active process per subject
        Index(
            "uq_promotion_requests_open_subject",
            "subject_id",
            unique=True,
            sqlite_where=_OPEN_SUBJECT_WHERE,
            postgresql_where=_OPEN_SUBJECT_WHERE,
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status not in NON_TERMINAL_STATUSES


class ApprovalStep(Base):
    __tablename__ = "approval_steps"

    id = Column(Integer, primary_key=True)
    request_id = Column(Integer, ForeignKey("promotion_requests.id"), nullable=False, index=True)
    level = Column(Integer, nullable=False)
    approver_role = Column(String(32), nullable=False)               # ApproverRole
    approver_actor_id = Column(Integer, nullable=True, index=True)   # None while the role is vacant
    approver_name = Column(String(255), nullable=True)

    status = Column(String(16), nullable=False, default=StepStatus.PENDING.value)
    decided_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    decided_by_escalation = Column(Boolean, nullable=False, default=False)
    escalation_actor_id = Column(Integer, nullable=True)
    escalation_justification = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    request = relationship("PromotionRequest", back_populates="steps")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("request_id", "level", name="uq_approval_steps_request_level"),
    )
