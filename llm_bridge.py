"""LLM Bridge — builds the client for the configured provider.

Every client exposes the same capability::

    complete(system_prompt: str | None, user_prompt: str, params: GenerationParams) -> str

Supported providers: "anthropic", "openai", "huggingface", "replicate",
"gemini", and "stub" (offline canned text).
"""

import logging

from llm_config import ProviderConfig
from story_models import GenerationParams

log = logging.getLogger("story")


class StubClient:
    """Offline client returning canned text; each reply ends with two options."""

    name = "stub"

    def __init__(self, config: ProviderConfig | None = None):
        self.config = config
        self.calls = 0

    def complete(self, system_prompt: str | None, user_prompt: str, params: GenerationParams) -> str:
        self.calls += 1
        n = self.calls
        return (
            f"Passage {n} de l'histoire : le héros avance sur son chemin.\n"
            f"Option A : explorer la forêt {n}\n"
            f"Option B : traverser la rivière {n}"
        )


def make_client(config: ProviderConfig):
    """Return a provider client for ``config.provider``."""
    provider = config.provider
    log.info("llm_bridge: provider=%s model=%s", provider, config.model)

    if provider == "anthropic":
        from anthropic_bridge import AnthropicClient
        return AnthropicClient(config)
    if provider == "openai":
        from openai_bridge import OpenAIClient
        return OpenAIClient(config)
    if provider == "huggingface":
        from huggingface_bridge import HuggingFaceClient
        return HuggingFaceClient(config)
    if provider == "replicate":
        from replicate_bridge import ReplicateClient
        return ReplicateClient(config)
    if provider == "gemini":
        from gemini_bridge import GeminiClient
        return GeminiClient(config)
    if provider == "stub":
        return StubClient(config)
    raise ValueError(f"unknown provider: {provider}")


def describe(config: ProviderConfig) -> dict:
    """Sanitized view of a provider config (no keys)."""
    return {
        "provider": config.provider,
        "model": config.model,
        "has_credential": config.has_credential(),
        "key_count": len(config.api_keys) if config.api_keys else int(bool(config.api_key)),
    }
