"""Bridge to the Anthropic Messages API."""

import logging
import time

from errors import MalformedResponseError, ProviderError
from llm_config import ProviderConfig
from provider_http import post_json
from story_models import GenerationParams

log = logging.getLogger("story")

ANTHROPIC_VERSION = "2023-06-01"


def _extract_text(data: dict) -> str:
    blocks = data.get("content")
    if not isinstance(blocks, list):
        raise MalformedResponseError("anthropic", "missing 'content' list")
    texts = [b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text"]
    if not texts:
        raise MalformedResponseError("anthropic", "no text block in 'content'")
    return "".join(texts).strip()


class AnthropicClient:
    name = "anthropic"

    def __init__(self, config: ProviderConfig):
        self.config = config

    def complete(self, system_prompt: str | None, user_prompt: str, params: GenerationParams) -> str:
        if not self.config.api_key:
            raise ProviderError(401, "ANTHROPIC_API_KEY not configured", self.name)

        body = {
            "model": self.config.model,
            "max_tokens": params.max_tokens,
            # Messages API accepts temperature or top_p, not both
            "temperature": params.temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt:
            body["system"] = system_prompt
        headers = {
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

        log.info("    anthropic_bridge: calling API model=%s prompt_len=%d", self.config.model, len(user_prompt))
        t0 = time.time()
        data = post_json(f"{self.config.base_url}/messages", body, headers,
                         provider=self.name, timeout=self.config.timeout)
        text = _extract_text(data)
        usage = data.get("usage") or {}
        log.info("    anthropic_bridge: OK in %.1fs response_len=%d in=%s out=%s",
                 time.time() - t0, len(text), usage.get("input_tokens"), usage.get("output_tokens"))
        if data.get("stop_reason") == "max_tokens":
            log.warning("    anthropic_bridge: response truncated (max_tokens)")
        return text
