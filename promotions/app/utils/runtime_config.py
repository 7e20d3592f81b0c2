import os
from threading import RLock
from typing import Dict, Optional

_lock = RLock()
# notification target; seeded from the environment, replaceable at runtime by an admin
_webhook: Dict[str, str] = {"url": os.getenv("NOTIFY_WEBHOOK_URL", "").strip()}

def set_notify_webhook(url: Optional[str]) -> None:
    with _lock:
        _webhook["url"] = (url or "").strip()

def get_notify_webhook() -> str:
    with _lock:
        return _webhook["url"]

def describe_notify_webhook() -> Dict[str, object]:
    url = get_notify_webhook()
    return {"configured": bool(url), "webhook_url_preview": (url[:20] + "…") if url else None}
