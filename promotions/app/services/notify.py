"""
Notification dispatch. Fire-and-forget: called after a transition has been
committed, and nothing raised here may reach the caller.
"""
from __future__ import annotations
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Dict, List

import requests

from promotions.app.metrics import notifications_failed_total
from promotions.app.utils.runtime_config import get_notify_webhook

logger = logging.getLogger(__name__)

APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/")

# one worker keeps events for a request in the order they were committed
_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notify")

_MESSAGES = {
    "submitted": "New promotion request #{request_id} for {subject_name} ({target_tier}) awaits approval.",
    "approved": "Step {level} of request #{request_id} for {subject_name} approved.",
    "escalated": "Step {level} of request #{request_id} for {subject_name} approved by escalation.",
    "activated": "Request #{request_id}: {subject_name} is now in probation for role {target_role_id}.",
    "rejected": "Request #{request_id} for {subject_name} was rejected at step {level}.",
    "cancelled": "Request #{request_id} for {subject_name} was cancelled.",
    "completed": "Probation of {subject_name} (request #{request_id}) closed: {outcome}.",
}

# in-process subscribers (e.g. e-mail bridge); each one is isolated from the others
_listeners: List[Callable[[str, Dict[str, Any]], None]] = []


def add_listener(fn: Callable[[str, Dict[str, Any]], None]) -> None:
    _listeners.append(fn)


def remove_listener(fn: Callable[[str, Dict[str, Any]], None]) -> None:
    if fn in _listeners:
        _listeners.remove(fn)


def render(event: str, payload: Dict[str, Any]) -> str:
    template = _MESSAGES.get(event, "Promotion workflow event: " + event)
    try:
        text = template.format(**payload)
    except (KeyError, IndexError):
        text = f"Promotion workflow event '{event}' for request #{payload.get('request_id')}"
    link = payload.get("request_id")
    if link is not None:
        text += f" <{APP_BASE_URL}/api/promotions/{link}>"
    return text


def _webhook_send(payload: dict) -> None:
    """Slack-compatible POST. Resolves the webhook dynamically each call."""
    url = (get_notify_webhook() or os.getenv("NOTIFY_WEBHOOK_URL", "")).strip()
    if not url:
        logger.debug("[NOTIFY] webhook not set; skipping send")
        return
    r = requests.post(url, json=payload, timeout=10)
    logger.info("[NOTIFY] POST status=%s", r.status_code)
    if r.status_code >= 300:
        raise RuntimeError(f"webhook answered {r.status_code}: {r.text[:300]}")


def dispatch(event: str, payload: Dict[str, Any]) -> bool:
    """Deliver one event. Returns False when any sink failed; never raises."""
    ok = True
    text = render(event, payload)
    logger.info("[NOTIFY] %s", text)
    try:
        _webhook_send({"text": text, "event": event, "data": payload})
    except Exception as e:
        ok = False
        notifications_failed_total.inc()
        logger.warning("[NOTIFY] webhook send failed for %s: %s", event, e)
    for fn in list(_listeners):
        try:
            fn(event, payload)
        except Exception as e:
            ok = False
            notifications_failed_total.inc()
            logger.warning("[NOTIFY] listener %r failed for %s: %s", fn, event, e)
    return ok


def dispatch_later(event: str, payload: Dict[str, Any]) -> Future:
    """Queue `dispatch` on the notification worker; the caller never waits on a sink."""
    return _executor.submit(dispatch, event, dict(payload))


def wait_idle(timeout: float = 10.0) -> bool:
    """Block until everything queued so far has been delivered (or given up on)."""
    try:
        _executor.submit(lambda: None).result(timeout=timeout)
    except FutureTimeout:
        return False
    return True
