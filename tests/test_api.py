import jwt
import pytest

from promotions.app.core import security


def _submit(client, org, auth, tier="tier_b", subject=None, **extra):
    body = {
        "subject_id": (subject or org.s).id,
        "target_role_id": "ROLE-42",
        "target_tier": tier,
        "start_date": "2026-03-01",
        **extra,
    }
    return client.post("/api/promotions", json=body, headers=auth(org.a))


def test_submit_and_walk_the_chain(client, org, auth):
    r = _submit(client, org, auth)
    assert r.status_code == 201, r.text
    req = r.json()
    assert req["status"] == "pending_approval"
    assert req["requested_by"] == org.a.id
    steps = req["steps"]
    assert [s["approver_actor_id"] for s in steps] == [org.a.id, org.b.id, org.c.id]

    for actor, step in zip((org.a, org.b, org.c), steps):
        r = client.post(f"/api/steps/{step['id']}/approve", headers=auth(actor))
        assert r.status_code == 200, r.text
    assert r.json()["status"] == "active"

    r = client.get(f"/api/members/{org.s.id}/probation")
    assert r.json()["active_training_role_id"] == "ROLE-42"

    r = client.post(f"/api/promotions/{req['id']}/complete", json={"outcome": "completed_with_credit"},
                    headers=auth(org.c))
    assert r.status_code == 200
    assert r.json()["outcome"] == "completed_with_credit"

    r = client.get(f"/api/members/{org.s.id}/history")
    assert [h["closing_type"] for h in r.json()] == ["completed_with_credit"]

    r = client.get(f"/api/promotions/{req['id']}/audit")
    actions = {e["action"] for e in r.json()}
    assert {"REQUEST_SUBMITTED", "STEP_APPROVED", "REQUEST_ACTIVATED", "PROBATION_COMPLETED"} <= actions


def test_error_codes_map_to_http(client, org, auth, reason):
    req = _submit(client, org, auth).json()
    first, second, _ = req["steps"]

    r = client.post(f"/api/steps/{second['id']}/approve", headers=auth(org.b))
    assert r.status_code == 409
    assert r.json()["code"] == "not_current_step"

    r = client.post(f"/api/steps/{first['id']}/approve", headers=auth(org.b))
    assert r.status_code == 403
    assert r.json()["code"] == "not_eligible_approver"

    r = client.post(f"/api/steps/{first['id']}/reject", json={"reason": "too short"}, headers=auth(org.a))
    assert r.status_code == 400
    assert r.json()["code"] == "justification_too_short"
    assert r.json()["context"]["minimum"] == 30

    r = _submit(client, org, auth)
    assert r.status_code == 409
    assert r.json()["code"] == "duplicate_active_request"

    r = client.post(f"/api/steps/{first['id']}/reject", json={"reason": reason}, headers=auth(org.a))
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"

    r = client.post(f"/api/steps/{second['id']}/approve", headers=auth(org.b))
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"

    r = client.post("/api/steps/99999/approve", headers=auth(org.a))
    assert r.status_code == 404


def test_bad_input_is_400(client, org, auth):
    r = _submit(client, org, auth, tier="gold")
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_tier"

    r = _submit(client, org, auth, duration_months=30)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_schedule"


def test_pending_view_for_viewer(client, org, auth):
    req = _submit(client, org, auth).json()

    r = client.get("/api/approvals/pending", headers=auth(org.c))
    [view] = r.json()
    assert view["request"]["id"] == req["id"]
    assert view["current_step"]["level"] == 1
    assert view["is_nominal_approver"] is False
    assert view["can_escalate"] is True

    r = client.get("/api/approvals/pending", params={"actionable_only": True}, headers=auth(org.x))
    assert r.json() == []

    r = client.get(f"/api/promotions/{req['id']}", headers=auth(org.a))
    assert r.json()["is_nominal_approver"] is True


def test_escalate_and_cancel_over_http(client, org, auth):
    req = _submit(client, org, auth).json()
    first = req["steps"][0]

    r = client.post(f"/api/steps/{first['id']}/escalate",
                    json={"justification": "Unit director unreachable for weeks."}, headers=auth(org.c))
    assert r.status_code == 200, r.text
    assert r.json()["steps"][0]["decided_by_escalation"] is True

    r = client.get("/api/promotions/closable", headers=auth(org.b))
    assert [x["id"] for x in r.json()] == [req["id"]]

    r = client.post(f"/api/promotions/{req['id']}/cancel",
                    json={"justification": "Budget for the position has been frozen."}, headers=auth(org.b))
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"


def test_token_checks(client, org, auth):
    r = client.get("/api/approvals/pending", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    r = client.post("/auth/login", json={"member_id": org.b.id})
    assert r.status_code == 200
    tokens = r.json()
    assert tokens["name"] == org.b.name

    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    r = client.get("/api/approvals/pending", headers={"Authorization": f"Bearer {r.json()['access_token']}"})
    assert r.status_code == 200

    r = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert r.status_code == 401

    r = client.post("/auth/login", json={"member_id": 5555})
    assert r.status_code == 404


def test_roster_seeding_is_admin_only(client, org, auth, admin_headers):
    r = client.post("/api/units", json={"name": "East Region", "kind": "regional"}, headers=auth(org.a))
    assert r.status_code == 403

    r = client.post("/api/units", json={"name": "East Region", "kind": "regional"}, headers=admin_headers)
    assert r.status_code == 201
    region_id = r.json()["id"]

    r = client.post("/api/members", json={
        "name": "Eva East-Director", "unit_id": region_id, "position": "regional_director",
    }, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["position"] == "regional_director"

    r = client.post("/api/members", json={"name": "Nobody", "position": "emperor"}, headers=admin_headers)
    assert r.status_code == 400


def test_notify_webhook_config(client, org, auth, admin_headers):
    r = client.get("/config/notify-webhook", headers=auth(org.a))
    assert r.json()["configured"] is False

    r = client.post("/config/notify-webhook", json={"webhook_url": "https://hooks.example.com/T000/B000"},
                    headers=admin_headers)
    assert r.json()["saved"] is True

    r = client.get("/config/notify-webhook", headers=auth(org.a))
    assert r.json()["configured"] is True

    r = client.post("/config/notify-webhook", json={"webhook_url": "ftp://nope"}, headers=admin_headers)
    assert r.status_code == 400


def test_token_claims_and_foreign_issuer(client, org):
    pair = security.issue_token_pair(org.b.id, org.b.name)
    claims = security.read_token(pair["access_token"])
    assert claims == security.ActorClaims(org.b.id, org.b.name, "member", security.ACCESS)
    with pytest.raises(jwt.InvalidTokenError):
        security.read_token(pair["access_token"], security.REFRESH)

    foreign = jwt.encode({"iss": "someone-else", "sub": str(org.b.id), "role": "admin", "kind": "access",
                          "exp": 4102444800}, security.JWT_SECRET, algorithm=security.JWT_ALGO)
    r = client.get("/api/approvals/pending", headers={"Authorization": f"Bearer {foreign}"})
    assert r.status_code == 401
