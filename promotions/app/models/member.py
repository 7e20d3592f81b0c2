from sqlalchemy import Column, Integer, String, ForeignKey
import enum

from promotions.app.core.database import Base


class UnitKind(str, enum.Enum):
    DIVISION = "division"
    REGIONAL = "regional"


class OrgUnit(Base):
    __tablename__ = "org_units"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(16), nullable=False, default=UnitKind.DIVISION.value)   # division | regional
    parent_id = Column(Integer, ForeignKey("org_units.id"), nullable=True)     # regional unit of a division


class Member(Base):
    __tablename__ = "members"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    unit_id = Column(Integer, ForeignKey("org_units.id"), nullable=True, index=True)
    position = Column(String(32), nullable=True, index=True)        # ApproverRole held in unit_id, if any
    current_role = Column(String(255), nullable=True)               # display rank, e.g. "Grade VII"
    active_training_role_id = Column(String(64), nullable=True)     # "currently training for"
