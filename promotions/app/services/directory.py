"""
Member-directory collaborator.

The promotion engine only talks to the roster through the `Directory`
protocol below. `SqlDirectory` is the default implementation, backed by the
local `members` / `org_units` mirror and bound to the caller's session, so
`set_active_training_role` lands in the same transaction as the request
write that triggered it.
"""
from __future__ import annotations
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from promotions.app.core.errors import MemberNotFound
from promotions.app.models.member import Member, OrgUnit, UnitKind
from promotions.app.models.promotion import ApproverRole


class Directory(Protocol):
    def get_member(self, member_id: int) -> Optional[Member]: ...

    def find_role_holder(self, role: ApproverRole, unit_id: Optional[int]) -> Optional[Member]: ...

    def regional_unit_of(self, unit_id: Optional[int]) -> Optional[int]: ...

    def unit_name(self, unit_id: Optional[int]) -> Optional[str]: ...

    def is_regional_director_of(self, actor_id: int, regional_unit_id: Optional[int]) -> bool: ...

    def set_active_training_role(self, subject_id: int, role_id: Optional[str]) -> None: ...


class SqlDirectory:
    def __init__(self, db: Session):
        self.db = db

    def get_member(self, member_id: int) -> Optional[Member]:
        return self.db.get(Member, member_id)

    def find_role_holder(self, role: ApproverRole, unit_id: Optional[int]) -> Optional[Member]:
        if unit_id is None:
            return None
        return (
            self.db.query(Member)
            .filter(Member.unit_id == unit_id, Member.position == ApproverRole(role).value)
            .order_by(Member.id.asc())
            .first()
        )

    def regional_unit_of(self, unit_id: Optional[int]) -> Optional[int]:
        if unit_id is None:
            return None
        unit = self.db.get(OrgUnit, unit_id)
        if not unit:
            return None
        if unit.kind == UnitKind.REGIONAL.value or unit.parent_id is None:
            return unit.id
        return unit.parent_id

    def unit_name(self, unit_id: Optional[int]) -> Optional[str]:
        if unit_id is None:
            return None
        unit = self.db.get(OrgUnit, unit_id)
        return unit.name if unit else None

    def is_regional_director_of(self, actor_id: int, regional_unit_id: Optional[int]) -> bool:
        if actor_id is None or regional_unit_id is None:
            return False
        m = self.db.get(Member, actor_id)
        return bool(
            m
            and m.position == ApproverRole.REGIONAL_DIRECTOR.value
            and m.unit_id == regional_unit_id
        )

    def set_active_training_role(self, subject_id: int, role_id: Optional[str]) -> None:
        m = self.db.get(Member, subject_id)
        if not m:
            if role_id is None:
                return  # nothing to clear
            raise MemberNotFound(f"Member {subject_id} not found", member_id=subject_id)
        m.active_training_role_id = role_id
