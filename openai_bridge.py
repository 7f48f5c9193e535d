"""Bridge to the OpenAI Chat Completions API."""

import logging
import time

from errors import MalformedResponseError, ProviderError
from llm_config import ProviderConfig
from provider_http import post_json
from story_models import GenerationParams

log = logging.getLogger("story")


def _extract_text(data: dict) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise MalformedResponseError("openai", "missing choices[0].message.content")
    if not isinstance(content, str):
        raise MalformedResponseError("openai", "message content is not text")
    return content.strip()


class OpenAIClient:
    name = "openai"

    def __init__(self, config: ProviderConfig):
        self.config = config

    def complete(self, system_prompt: str | None, user_prompt: str, params: GenerationParams) -> str:
        if not self.config.api_key:
            raise ProviderError(401, "OPENAI_API_KEY not configured", self.name)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        body = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
        }

        log.info("    openai_bridge: calling API model=%s messages=%d", self.config.model, len(messages))
        t0 = time.time()
        data = post_json(f"{self.config.base_url}/chat/completions", body,
                         {"Authorization": f"Bearer {self.config.api_key}"},
                         provider=self.name, timeout=self.config.timeout)
        text = _extract_text(data)
        log.info("    openai_bridge: OK in %.1fs response_len=%d", time.time() - t0, len(text))
        return text
