# promotions/app/services/hierarchy.py
"""
Role hierarchy resolver: which approver roles a tier needs, in order, and who
holds each of them right now for a given subject unit.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from promotions.app.core.errors import InvalidTier
from promotions.app.models.promotion import ApproverRole, TargetTier
from promotions.app.services.directory import Directory

# approval order per tier
CHAIN_TOPOLOGY: Dict[TargetTier, Tuple[ApproverRole, ...]] = {
    TargetTier.TIER_A: (ApproverRole.REGIONAL_DIRECTOR,),
    TargetTier.TIER_B: (
        ApproverRole.UNIT_DIRECTOR,
        ApproverRole.REGIONAL_DELEGATE,
        ApproverRole.REGIONAL_DIRECTOR,
    ),
    TargetTier.TRAINING: (
        ApproverRole.UNIT_DIRECTOR,
        ApproverRole.REGIONAL_DELEGATE,
        ApproverRole.REGIONAL_DIRECTOR,
    ),
}

# roles looked up in the subject's own unit; everything else lives at the regional unit
_UNIT_SCOPED = {ApproverRole.UNIT_DIRECTOR}


@dataclass(frozen=True)
class ChainLink:
    level: int
    approver_role: ApproverRole
    approver_actor_id: Optional[int]
    approver_name: Optional[str] = None

    @property
    def vacant(self) -> bool:
        return self.approver_actor_id is None


def parse_tier(value) -> TargetTier:
    try:
        return TargetTier(value)
    except ValueError:
        raise InvalidTier(
            f"Invalid tier '{value}'. Must be one of {sorted(t.value for t in TargetTier)}.",
            tier=value,
        )


def roles_for(target_tier) -> Tuple[ApproverRole, ...]:
    return CHAIN_TOPOLOGY[parse_tier(target_tier)]


def resolve_chain(target_tier, subject_unit_id: Optional[int], directory: Directory) -> List[ChainLink]:
    roles = roles_for(target_tier)
    regional_unit_id = directory.regional_unit_of(subject_unit_id)

    chain: List[ChainLink] = []
    for level, role in enumerate(roles, start=1):
        scope = subject_unit_id if role in _UNIT_SCOPED else regional_unit_id
        holder = directory.find_role_holder(role, scope)
        chain.append(ChainLink(
            level=level,
            approver_role=role,
            approver_actor_id=holder.id if holder else None,
            approver_name=holder.name if holder else None,
        ))
    return chain
