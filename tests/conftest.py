import os
import tempfile
from pathlib import Path
from types import SimpleNamespace

# must be in place before anything under promotions is imported
_TMP = Path(tempfile.mkdtemp(prefix="promotions-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP / 'app.db'}")
os.environ.setdefault("AUDIT_DIR", str(_TMP / "audit"))
os.environ["NOTIFY_WEBHOOK_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from promotions.main import app
from promotions.app.core.database import Base, get_db, make_engine
from promotions.app.core.security import issue_token
from promotions.app.models.member import Member, OrgUnit, UnitKind
from promotions.app.models.promotion import ApproverRole
from promotions.app.services import notify
from promotions.app.utils import policy
from promotions.app.utils.runtime_config import set_notify_webhook


@pytest.fixture(autouse=True)
def _fresh_policy_and_webhook():
    policy._POLICY = None
    set_notify_webhook("")
    yield
    notify.wait_idle()
    policy._POLICY = None
    set_notify_webhook("")


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'promotions.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


def _member(db, name, unit, position=None, current_role=None):
    m = Member(name=name, unit_id=unit.id, position=position, current_role=current_role)
    db.add(m)
    db.flush()
    return m


@pytest.fixture
def org(db):
    """
    One regional unit with one division under it:
      division: unit director A, subject S
      regional: delegate B, regional director C
    plus a second region with its own director X.
    """
    region = OrgUnit(name="North Region", kind=UnitKind.REGIONAL.value)
    other_region = OrgUnit(name="South Region", kind=UnitKind.REGIONAL.value)
    db.add_all([region, other_region])
    db.flush()
    division = OrgUnit(name="Harbour Division", kind=UnitKind.DIVISION.value, parent_id=region.id)
    db.add(division)
    db.flush()

    ns = SimpleNamespace(region=region, other_region=other_region, division=division)
    ns.a = _member(db, "Ana Unit-Director", division, ApproverRole.UNIT_DIRECTOR.value)
    ns.b = _member(db, "Bruno Delegate", region, ApproverRole.REGIONAL_DELEGATE.value)
    ns.c = _member(db, "Carla Regional-Director", region, ApproverRole.REGIONAL_DIRECTOR.value)
    ns.x = _member(db, "Xavier Other-Director", other_region, ApproverRole.REGIONAL_DIRECTOR.value)
    ns.s = _member(db, "Sofia Subject", division, current_role="Grade VII")
    ns.t = _member(db, "Tomas Second-Subject", division, current_role="Grade VI")
    db.commit()
    return ns


@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth():
    def _headers(member, role="member"):
        return {"Authorization": f"Bearer {issue_token(member.id, member.name, role)}"}
    return _headers


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {issue_token(0, 'admin', 'admin')}"}


@pytest.fixture
def reason():
    # exactly 40 characters
    return "Insufficient field hours this last year."
