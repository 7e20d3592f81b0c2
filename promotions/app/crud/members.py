from sqlalchemy.orm import Session
from promotions.app.core.errors import MemberNotFound, NotFound, WorkflowError
from promotions.app.models.member import Member, OrgUnit, UnitKind
from promotions.app.models.promotion import ApproverRole

class MemberCRUD:
    def create_unit(self, db: Session, unit_data):
        kind = unit_data.get("kind", UnitKind.DIVISION.value)
        if kind not in {k.value for k in UnitKind}:
            raise WorkflowError(f"Invalid unit kind '{kind}'", kind=kind)
        parent_id = unit_data.get("parent_id")
        if parent_id is not None and not db.get(OrgUnit, parent_id):
            raise NotFound(f"Unit {parent_id} not found", unit_id=parent_id)
        unit = OrgUnit(name=unit_data["name"], kind=kind, parent_id=parent_id)
        db.add(unit)
        db.commit()
        db.refresh(unit)
        return unit

    def create_member(self, db: Session, member_data):
        position = member_data.get("position")
        if position is not None and position not in {r.value for r in ApproverRole}:
            raise WorkflowError(f"Invalid position '{position}'", position=position)
        unit_id = member_data.get("unit_id")
        if unit_id is not None and not db.get(OrgUnit, unit_id):
            raise NotFound(f"Unit {unit_id} not found", unit_id=unit_id)
        member = Member(
            name=member_data["name"],
            unit_id=unit_id,
            position=position,
            current_role=member_data.get("current_role"),
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    def get_members(self, db: Session, skip: int = 0, limit: int = 100):
        return db.query(Member).order_by(Member.id.asc()).offset(skip).limit(limit).all()

    def get_member(self, db: Session, member_id: int):
        member = db.get(Member, member_id)
        if not member:
            raise MemberNotFound(f"Member {member_id} not found", member_id=member_id)
        return member

# Create instance
member_crud = MemberCRUD()
