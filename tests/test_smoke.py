def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert "tables" in r.json()

def test_metrics_exposed(client):
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "workflow_transitions_total" in r.text

def test_version(client):
    r = client.get("/public/version")
    assert r.json()["name"] == "promotion-approvals-api"

def test_pending_requires_auth(client):
    r = client.get("/api/approvals/pending")
    assert r.status_code == 401
