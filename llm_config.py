"""Provider and pipeline configuration.

Values come from three layers, later ones winning:
defaults, ``llm_config.json`` (auto-reloads on file change, written by
``POST /api/config``), then environment variables.
The result is a pair of frozen dataclasses handed explicitly to the
bridges and the pipeline.
"""

import json
import logging
import os
from dataclasses import dataclass, field

log = logging.getLogger("story")

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_PATH = os.path.join(BASE_DIR, "llm_config.json")
DATA_DIR = os.path.join(BASE_DIR, "data")

PROVIDERS = ("anthropic", "openai", "huggingface", "replicate", "gemini", "stub")

DEFAULT_PROVIDER = "anthropic"

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-5",
    "openai": "gpt-4o-mini",
    "huggingface": "mistralai/Mistral-7B-Instruct-v0.2",
    "replicate": "meta/meta-llama-3-70b-instruct",
    "gemini": "gemini-2.0-flash",
    "stub": "stub",
}

BASE_URLS = {
    "anthropic": "https://api.anthropic.com/v1",
    "openai": "https://api.openai.com/v1",
    "huggingface": "https://api-inference.huggingface.co/models",
    "replicate": "https://api.replicate.com/v1",
    "gemini": "https://generativelanguage.googleapis.com/v1beta",
    "stub": "",
}

KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "huggingface": "HF_API_TOKEN",
    "replicate": "REPLICATE_API_TOKEN",
    "gemini": "GEMINI_API_KEY",
}

DEFAULT_PORT = 3000


@dataclass(frozen=True)
class ProviderConfig:
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODELS[DEFAULT_PROVIDER]
    api_key: str = ""
    # Gemini key pool: [{"key": "...", "tier": "free"|"paid"}, ...]
    api_keys: tuple = ()
    base_url: str = BASE_URLS[DEFAULT_PROVIDER]
    timeout: float = 120.0
    poll_interval: float = 2.0
    max_polls: int = 150

    def has_credential(self) -> bool:
        if self.provider == "stub":
            return True
        return bool(self.api_key or self.api_keys)


@dataclass(frozen=True)
class PipelineSettings:
    max_attempts: int = 3
    backoff_base: float = 1.0
    parallel: bool = False
    inter_call_delay: float = 0.0
    trace: bool = False
    data_dir: str = field(default=DATA_DIR)


# ---------------------------------------------------------------------------
# llm_config.json (auto-reload on file change)
# ---------------------------------------------------------------------------

_config_cache: dict | None = None
_config_mtime: float = 0
_config_cache_path: str | None = None


def read_config_file(path: str | None = None) -> dict:
    """Return the parsed config file, re-reading it only when its mtime changes."""
    global _config_cache, _config_mtime, _config_cache_path
    path = path or CONFIG_PATH
    try:
        mtime = os.path.getmtime(path)
    except OSError:
        return {}
    if _config_cache is None or mtime != _config_mtime or path != _config_cache_path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                _config_cache = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.warning("llm_config: cannot read %s — %s", path, e)
            return {}
        _config_mtime = mtime
        _config_cache_path = path
        log.info("llm_config: loaded config — provider=%s", _config_cache.get("provider"))
    return _config_cache


def write_config_file(cfg: dict, path: str | None = None):
    path = path or CONFIG_PATH
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(cfg, f, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------

def _env_bool(env: dict, name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(env: dict, name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        log.warning("llm_config: ignoring invalid %s=%r", name, raw)
        return default


def _str_value(value) -> str:
    """Stripped string, or "" for anything that is not a string (hand-edited file)."""
    return value.strip() if isinstance(value, str) else ""


def _gemini_keys(section: dict, env_value: str) -> tuple:
    keys = list(section.get("api_keys", []))
    if section.get("api_key"):
        keys.append({"key": section["api_key"], "tier": "free"})
    for k in env_value.split(","):
        k = k.strip()
        if k and all(existing.get("key") != k for existing in keys):
            keys.append({"key": k, "tier": "free"})
    return tuple(keys)


def load_config(env: dict | None = None, path: str | None = None) -> tuple[ProviderConfig, PipelineSettings]:
    """Build the provider config and pipeline settings for one request."""
    env = os.environ if env is None else env
    cfg = read_config_file(path)

    provider = _str_value(env.get("STORY_PROVIDER")) or _str_value(cfg.get("provider")) or DEFAULT_PROVIDER
    provider = provider.lower()
    if provider not in PROVIDERS:
        log.warning("llm_config: unknown provider %r, falling back to %s", provider, DEFAULT_PROVIDER)
        provider = DEFAULT_PROVIDER

    section = cfg.get(provider, {}) if isinstance(cfg.get(provider), dict) else {}
    model = (_str_value(env.get("STORY_MODEL")) or _str_value(section.get("model"))
             or DEFAULT_MODELS[provider])
    key_env = KEY_ENV.get(provider, "")
    api_key = env.get(key_env, "") if key_env else ""
    if not api_key:
        api_key = section.get("api_key", "")
    api_keys: tuple = ()
    if provider == "gemini":
        api_keys = _gemini_keys(section, env.get(key_env, ""))
        api_key = ""

    provider_cfg = ProviderConfig(
        provider=provider,
        model=model,
        api_key=api_key,
        api_keys=api_keys,
        base_url=section.get("base_url") or BASE_URLS[provider],
        timeout=_env_number(env, "STORY_TIMEOUT", float(section.get("timeout", 120.0)), float),
        poll_interval=float(section.get("poll_interval", 2.0)),
        max_polls=int(section.get("max_polls", 150)),
    )

    pipeline = cfg.get("pipeline", {}) if isinstance(cfg.get("pipeline"), dict) else {}
    settings = PipelineSettings(
        max_attempts=_env_number(env, "STORY_MAX_ATTEMPTS", int(pipeline.get("max_attempts", 3)), int),
        backoff_base=_env_number(env, "STORY_BACKOFF_BASE", float(pipeline.get("backoff_base", 1.0)), float),
        parallel=_env_bool(env, "STORY_PARALLEL", bool(pipeline.get("parallel", False))),
        inter_call_delay=_env_number(
            env, "STORY_INTER_CALL_DELAY", float(pipeline.get("inter_call_delay", 0.0)), float),
        trace=_env_bool(env, "STORY_TRACE", bool(pipeline.get("trace", False))),
        data_dir=env.get("STORY_DATA_DIR") or DATA_DIR,
    )
    return provider_cfg, settings


def get_port(env: dict | None = None) -> int:
    env = os.environ if env is None else env
    return _env_number(env, "PORT", DEFAULT_PORT, int)
