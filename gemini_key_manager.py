"""Gemini API key pool with rate-limit cooldown tracking."""

import logging
import threading
import time

from llm_config import ProviderConfig

log = logging.getLogger("story")

_lock = threading.Lock()
_cooldowns: dict[str, float] = {}  # api_key -> cooldown_expires_at

COOLDOWN_SECONDS = 60


def load_keys(config: ProviderConfig) -> list[dict]:
    """Return the key pool as ``[{"key": ..., "tier": ...}, ...]``.

    A lone ``api_key`` is treated as a single free-tier key.
    """
    keys = [dict(k) for k in config.api_keys if k.get("key")]
    if not keys and config.api_key:
        keys = [{"key": config.api_key, "tier": "free"}]
    return keys


def get_available_keys(config: ProviderConfig) -> list[dict]:
    """Return keys not in cooldown, ordered: free keys first, paid last."""
    keys = load_keys(config)
    now = time.time()
    with _lock:
        available = [k for k in keys if _cooldowns.get(k["key"], 0) <= now]
    available.sort(key=lambda k: 0 if k.get("tier") == "free" else 1)
    return available


def mark_rate_limited(api_key: str, cooldown: int = COOLDOWN_SECONDS):
    """Mark a key as rate-limited for `cooldown` seconds."""
    with _lock:
        _cooldowns[api_key] = time.time() + cooldown
    log.info("    gemini_key_mgr: key ...%s rate-limited for %ds", api_key[-6:], cooldown)
