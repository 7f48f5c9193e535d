"""Bridge to Replicate — asynchronous prediction job plus a bounded poll loop."""

import logging
import time

from errors import MalformedResponseError, ProviderError, ProviderTimeoutError
from llm_config import ProviderConfig
from provider_http import get_json, post_json
from story_models import GenerationParams

log = logging.getLogger("story")

FINAL_FAILURE = ("failed", "canceled")


def _output_text(prediction: dict) -> str:
    output = prediction.get("output")
    if isinstance(output, list):
        return "".join(str(part) for part in output).strip()
    if isinstance(output, str):
        return output.strip()
    raise MalformedResponseError("replicate", "prediction succeeded without output")


class ReplicateClient:
    name = "replicate"

    def __init__(self, config: ProviderConfig, sleep=time.sleep):
        self.config = config
        self._sleep = sleep

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def complete(self, system_prompt: str | None, user_prompt: str, params: GenerationParams) -> str:
        if not self.config.api_key:
            raise ProviderError(401, "REPLICATE_API_TOKEN not configured", self.name)

        job_input = {
            "prompt": user_prompt,
            "max_new_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
        }
        if system_prompt:
            job_input["system_prompt"] = system_prompt

        log.info("    replicate_bridge: creating prediction model=%s", self.config.model)
        t0 = time.time()
        prediction = post_json(
            f"{self.config.base_url}/models/{self.config.model}/predictions",
            {"input": job_input}, self._headers(),
            provider=self.name, timeout=self.config.timeout,
        )
        prediction = self._wait(prediction)
        text = _output_text(prediction)
        log.info("    replicate_bridge: OK in %.1fs response_len=%d", time.time() - t0, len(text))
        return text

    def _wait(self, prediction: dict) -> dict:
        """Poll until the job reaches a final status or ``max_polls`` is spent."""
        polls = 0
        while True:
            status = prediction.get("status")
            if status == "succeeded":
                return prediction
            if status in FINAL_FAILURE:
                raise ProviderError(500, str(prediction.get("error") or status), self.name)

            poll_url = (prediction.get("urls") or {}).get("get")
            if not poll_url:
                raise MalformedResponseError(self.name, "prediction without urls.get")
            if polls >= self.config.max_polls:
                log.warning("    replicate_bridge: gave up after %d polls", polls)
                raise ProviderTimeoutError(self.name, polls)

            self._sleep(self.config.poll_interval)
            polls += 1
            prediction = get_json(poll_url, self._headers(), provider=self.name,
                                  timeout=self.config.timeout)
            log.debug("    replicate_bridge: poll %d status=%s", polls, prediction.get("status"))
