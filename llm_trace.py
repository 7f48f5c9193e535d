"""Per-request trace of what was sent to the provider and what came back.

Each event is its own JSON file::

    <data_dir>/llm_traces/<YYYY-MM-DD>/<request_id>/<HHMMSS.mmm>_<stage>_<id>.json

Day directories older than the retention window are removed, at most once
every ``PRUNE_EVERY`` seconds per trace root. A trace that cannot be written
is logged and dropped; generation never depends on it.
"""

import json
import logging
import os
import re
import shutil
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

log = logging.getLogger("story")

TRACE_DIRNAME = "llm_traces"
SCHEMA_VERSION = 1
PRUNE_EVERY = 600
DEFAULT_RETENTION_DAYS = 14

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")

_prune_lock = threading.Lock()
_last_prune_by_root: dict[str, float] = {}


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def _path_token(value: str | None, fallback: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", (value or "").strip()).strip("._-")
    return cleaned or fallback


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------

def _expired_days(root: str, cutoff):
    """Yield day directories under ``root`` dated strictly before ``cutoff``."""
    for name in sorted(os.listdir(root)):
        try:
            day = datetime.strptime(name, "%Y-%m-%d").date()
        except ValueError:
            continue
        path = os.path.join(root, name)
        if day < cutoff and os.path.isdir(path):
            yield path


def prune(root: str, retention_days: int, now: datetime) -> int:
    """Delete expired day directories. Returns how many were removed."""
    if retention_days <= 0 or not os.path.isdir(root):
        return 0
    cutoff = (now - timedelta(days=retention_days)).date()
    removed = 0
    for path in _expired_days(root, cutoff):
        shutil.rmtree(path, ignore_errors=True)
        removed += 1
    if removed:
        log.info("    llm_trace: pruned %d day dir(s) under %s", removed, root)
    return removed


def _prune_due(root: str, now: datetime) -> bool:
    ts = now.timestamp()
    with _prune_lock:
        if ts - _last_prune_by_root.get(root, 0.0) < PRUNE_EVERY:
            return False
        _last_prune_by_root[root] = ts
        return True


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

def write_trace(
    *,
    data_dir: str,
    request_id: str,
    stage: str,
    payload: Any,
    provider: str = "",
    tags: dict | None = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    now_utc: datetime | None = None,
) -> str | None:
    """Write one trace event and return its path (None when skipped or failed)."""
    if not (data_dir and request_id and stage):
        return None

    now = now_utc or datetime.now(timezone.utc)
    root = os.path.join(data_dir, TRACE_DIRNAME)
    if _prune_due(root, now):
        try:
            prune(root, retention_days, now)
        except OSError as e:
            log.warning("    llm_trace: cannot prune %s — %s", root, e)

    event_dir = os.path.join(root, now.strftime("%Y-%m-%d"), _path_token(request_id, "request"))
    filename = "{}_{}_{}.json".format(
        now.strftime("%H%M%S.%f")[:-3], _path_token(stage, "stage"), uuid.uuid4().hex[:8],
    )
    path = os.path.join(event_dir, filename)
    event = {
        "schema_version": SCHEMA_VERSION,
        "created_at": now.isoformat(),
        "request_id": request_id,
        "stage": stage,
        "provider": provider,
        "tags": tags or {},
        "payload": payload,
    }

    tmp = path + ".tmp"
    try:
        os.makedirs(event_dir, exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(event, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except (OSError, TypeError) as e:
        log.warning("    llm_trace: cannot write %s — %s", path, e)
        return None
    return path
