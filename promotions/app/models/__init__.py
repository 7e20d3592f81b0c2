from .member import Member, OrgUnit, UnitKind
from .promotion import (
    ApprovalStep, ApproverRole, Outcome, PromotionRequest, RequestStatus, StepStatus, TargetTier,
)
from .history import ProbationHistory
from .audit import AuditLog
