"""Bridge to the Hugging Face Inference API (text-generation task)."""

import logging
import time

from errors import MalformedResponseError, ProviderError
from llm_config import ProviderConfig
from provider_http import post_json
from story_models import GenerationParams

log = logging.getLogger("story")


def build_prompt(system_prompt: str | None, user_prompt: str) -> str:
    """Instruction-tuned models on the Inference API take a single string."""
    if system_prompt:
        return f"<s>[INST] {system_prompt}\n\n{user_prompt} [/INST]"
    return f"<s>[INST] {user_prompt} [/INST]"


def _extract_text(data) -> str:
    # The API answers either [{"generated_text": ...}] or {"generated_text": ...}
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        if "error" in data:
            raise MalformedResponseError("huggingface", str(data["error"])[:300])
        text = data.get("generated_text")
        if isinstance(text, str):
            return text.strip()
    raise MalformedResponseError("huggingface", "missing generated_text")


class HuggingFaceClient:
    name = "huggingface"

    def __init__(self, config: ProviderConfig):
        self.config = config

    def complete(self, system_prompt: str | None, user_prompt: str, params: GenerationParams) -> str:
        if not self.config.api_key:
            raise ProviderError(401, "HF_API_TOKEN not configured", self.name)

        body = {
            "inputs": build_prompt(system_prompt, user_prompt),
            "parameters": {
                "max_new_tokens": params.max_tokens,
                "temperature": params.temperature,
                "top_p": params.top_p,
                "return_full_text": False,
            },
            "options": {"wait_for_model": True},
        }

        log.info("    huggingface_bridge: calling API model=%s", self.config.model)
        t0 = time.time()
        data = post_json(f"{self.config.base_url}/{self.config.model}", body,
                         {"Authorization": f"Bearer {self.config.api_key}"},
                         provider=self.name, timeout=self.config.timeout)
        text = _extract_text(data)
        log.info("    huggingface_bridge: OK in %.1fs response_len=%d", time.time() - t0, len(text))
        return text
