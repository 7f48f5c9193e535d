"""Bridge to Google Gemini generateContent, rotating over a key pool."""

import logging
import time

from errors import MalformedResponseError, ProviderError
from gemini_key_manager import get_available_keys, mark_rate_limited
from llm_config import ProviderConfig
from provider_http import post_json
from story_models import GenerationParams

log = logging.getLogger("story")


def _make_request_body(system_prompt: str | None, user_prompt: str, params: GenerationParams) -> dict:
    body: dict = {
        "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
        "generationConfig": {
            "temperature": params.temperature,
            "topP": params.top_p,
            "maxOutputTokens": params.max_tokens,
        },
    }
    if system_prompt:
        body["system_instruction"] = {"parts": [{"text": system_prompt}]}
    return body


def _extract_text(response_data: dict) -> str:
    candidates = response_data.get("candidates")
    if not candidates:
        block_reason = response_data.get("promptFeedback", {}).get("blockReason", "")
        raise MalformedResponseError("gemini", f"no candidates (blockReason={block_reason or 'none'})")

    candidate = candidates[0]
    if candidate.get("finishReason") == "SAFETY":
        raise MalformedResponseError("gemini", "candidate blocked by safety filter")

    parts = candidate.get("content", {}).get("parts")
    if not parts:
        raise MalformedResponseError("gemini", "missing candidates[0].content.parts")
    if candidate.get("finishReason") == "MAX_TOKENS":
        log.warning("    gemini_bridge: response truncated (MAX_TOKENS)")
    return "".join(p.get("text", "") for p in parts).strip()


def _is_key_error(error: ProviderError) -> bool:
    """HTTP errors meaning "this key is unusable right now, try the next one"."""
    if error.status in (401, 403, 429):
        return True
    return error.status == 400 and "api key" in error.body.lower()


class GeminiClient:
    name = "gemini"

    def __init__(self, config: ProviderConfig):
        self.config = config

    def complete(self, system_prompt: str | None, user_prompt: str, params: GenerationParams) -> str:
        keys = get_available_keys(self.config)
        if not keys:
            raise ProviderError(429, "no Gemini API key available (missing or cooling down)", self.name)

        body = _make_request_body(system_prompt, user_prompt, params)
        url = f"{self.config.base_url}/models/{self.config.model}:generateContent"

        log.info("    gemini_bridge: calling API model=%s keys=%d", self.config.model, len(keys))
        t0 = time.time()
        last_err = None
        for key_info in keys:
            api_key = key_info["key"]
            try:
                data = post_json(url, body, {"x-goog-api-key": api_key},
                                 provider=self.name, timeout=self.config.timeout)
            except ProviderError as e:
                if _is_key_error(e):
                    mark_rate_limited(api_key)
                    log.info("    gemini_bridge: HTTP %d on key ...%s, trying next", e.status, api_key[-6:])
                    last_err = e
                    continue
                raise
            text = _extract_text(data)
            log.info("    gemini_bridge: OK in %.1fs response_len=%d", time.time() - t0, len(text))
            return text

        raise last_err
