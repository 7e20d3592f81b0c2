from types import SimpleNamespace

from prometheus_client import REGISTRY
from promotions.app.services import notify
from promotions.app.utils.runtime_config import set_notify_webhook

PAYLOAD = {"request_id": 7, "subject_name": "Sofia Subject", "target_tier": "tier_b", "status": "pending_approval"}


def _failed():
    return REGISTRY.get_sample_value("notifications_failed_total") or 0.0


def test_render_includes_link():
    text = notify.render("submitted", PAYLOAD)
    assert "#7" in text and "Sofia Subject" in text
    assert text.endswith("/api/promotions/7>")


def test_render_survives_missing_fields():
    text = notify.render("completed", {"request_id": 3})
    assert "completed" in text


def test_no_webhook_means_no_post(monkeypatch):
    calls = []
    monkeypatch.setattr(notify.requests, "post", lambda *a, **k: calls.append(a))
    monkeypatch.delenv("NOTIFY_WEBHOOK_URL", raising=False)
    assert notify.dispatch("submitted", PAYLOAD) is True
    assert calls == []


def test_webhook_post(monkeypatch):
    sent = []

    def fake_post(url, json=None, timeout=None):
        sent.append((url, json))
        return SimpleNamespace(status_code=200, text="ok")

    monkeypatch.setattr(notify.requests, "post", fake_post)
    set_notify_webhook("https://hooks.example.com/abc")
    assert notify.dispatch("submitted", PAYLOAD) is True
    [(url, body)] = sent
    assert url == "https://hooks.example.com/abc"
    assert body["event"] == "submitted"
    assert body["data"]["request_id"] == 7


def test_failures_are_counted_not_raised(monkeypatch):
    def fake_post(url, json=None, timeout=None):
        return SimpleNamespace(status_code=500, text="upstream error")

    monkeypatch.setattr(notify.requests, "post", fake_post)
    set_notify_webhook("https://hooks.example.com/abc")
    before = _failed()
    assert notify.dispatch("rejected", {**PAYLOAD, "level": 2}) is False
    assert _failed() == before + 1
