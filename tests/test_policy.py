from datetime import date
from pathlib import Path

import pytest

from promotions.app.core.errors import InvalidSchedule, JustificationTooShort
from promotions.app.crud.approval import Schedule, reject, submit_request
from promotions.app.utils import policy
from promotions.app.utils.schedule import expected_end, resolve_duration


def test_shipped_policy_defaults():
    p = policy.reload_policy()
    assert p["min_justification_chars"] == 30
    assert p["default_duration_months"] == {"tier_a": 9, "tier_b": 6, "training": 3}
    assert policy.max_duration_months() == 24


def test_partial_file_falls_back_to_defaults(tmp_path, monkeypatch):
    f = tmp_path / "workflow.yaml"
    f.write_text("min_justification_chars: 10\ndefault_duration_months:\n  training: 4\n", encoding="utf-8")
    monkeypatch.setattr(policy, "POLICY_PATH", f)
    policy.reload_policy()
    assert policy.min_justification_chars() == 10
    assert policy.default_duration_months("training") == 4
    assert policy.default_duration_months("tier_a") == 9


def test_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.setattr(policy, "POLICY_PATH", tmp_path / "nope.yaml")
    assert policy.reload_policy() == policy.DEFAULT_POLICY


def test_minimum_length_comes_from_policy(db, org, tmp_path, monkeypatch):
    f = tmp_path / "workflow.yaml"
    f.write_text("min_justification_chars: 50\n", encoding="utf-8")
    monkeypatch.setattr(policy, "POLICY_PATH", f)
    policy.reload_policy()

    req = submit_request(db, org.s.id, "ROLE-3", "tier_b", Schedule(date(2026, 4, 1)), requested_by=org.a.id)
    with pytest.raises(JustificationTooShort) as exc:
        reject(db, req.steps[0].id, org.a.id, "q" * 49)
    assert exc.value.details["minimum"] == 50
    reject(db, req.steps[0].id, org.a.id, "q" * 50)


def test_duration_bounds():
    assert resolve_duration("tier_b", None) == 6
    assert resolve_duration("tier_b", 24) == 24
    with pytest.raises(InvalidSchedule):
        resolve_duration("tier_b", 25)


@pytest.mark.parametrize("start,months,end", [
    (date(2026, 1, 31), 1, date(2026, 2, 28)),
    (date(2028, 1, 31), 1, date(2028, 2, 29)),
    (date(2026, 8, 15), 9, date(2027, 5, 15)),
])
def test_expected_end(start, months, end):
    assert expected_end(start, months) == end


def test_default_policy_file_is_found_from_any_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    shipped = Path(policy.__file__).resolve().parents[2] / "policies" / "workflow.yaml"
    assert policy._DEFAULT_PATH == shipped
    assert shipped.is_file()
    monkeypatch.setattr(policy, "POLICY_PATH", policy._DEFAULT_PATH)
    assert policy.reload_policy()["default_duration_months"]["tier_a"] == 9
