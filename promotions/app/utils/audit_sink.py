"""
Append-only JSONL mirror of committed workflow audit rows, one file per UTC
day. The database row stays authoritative; this copy is for log shipping.
"""
from __future__ import annotations
import os, json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterator, Optional

# Default: promotions/var/audit (override with env AUDIT_DIR)
_DEFAULT_DIR = Path(__file__).resolve().parents[2] / "var" / "audit"
AUDIT_DIR = Path(os.getenv("AUDIT_DIR", str(_DEFAULT_DIR)))

# approvers act from several worker threads; keep lines whole
_write_lock = Lock()


def _day_file(day: str) -> Path:
    return AUDIT_DIR / f"workflow-{day}.jsonl"


def write_event(event: Dict[str, Any]) -> Path:
    day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    fp = _day_file(day)
    line = json.dumps(event, ensure_ascii=False, default=str)
    with _write_lock:
        AUDIT_DIR.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
    return fp


def iter_events(request_id: Optional[int] = None, day: Optional[str] = None) -> Iterator[Dict[str, Any]]:
    """Replay mirrored events, oldest file first, optionally for one request or one day."""
    if not AUDIT_DIR.exists():
        return
    files = [_day_file(day)] if day else sorted(AUDIT_DIR.glob("workflow-*.jsonl"))
    for fp in files:
        if not fp.exists():
            continue
        with fp.open("r", encoding="utf-8") as fh:
            for raw in fh:
                if not raw.strip():
                    continue
                event = json.loads(raw)
                if request_id is None or event.get("request_id") == request_id:
                    yield event
