"""Story Assembler — the fixed binary tree of prompts.

    INTRO -> PAGE1 -> {PAGE2A, PAGE2B} -> {ENDING_A1, ENDING_A2, ENDING_B1, ENDING_B2}

Each stage is one LLM call wrapped in ``with_retry``. Sibling stages run
either sequentially (optionally throttled by a fixed delay) or concurrently
on a thread pool; results are always placed by position.
"""

import logging
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import llm_trace
from errors import GenerationError
from llm_config import PipelineSettings
from prompts import (
    ENDING_PARAMS,
    END_MARKER,
    INTRO_PARAMS,
    PAGE_PARAMS,
    SIMPLE_PARAMS,
    SYSTEM_PROMPT,
    build_continue_prompt,
    build_ending_prompt,
    build_intro_prompt,
    build_page1_prompt,
    build_page2_prompt,
    build_simple_prompt,
)
from retry import with_retry
from story_models import Choice, GenerationParams, Story, StoryNode, StoryRequest
from story_parser import extract_choices, extract_title, strip_choices

log = logging.getLogger("story")

BRANCHES = ("A", "B")

# End marker alone on the last line, any case, optional punctuation/markdown
_TRAILING_END_RE = re.compile(rf"(?:\A|\n)[ \t*_]*{re.escape(END_MARKER)}[ \t.!*_]*\Z", re.IGNORECASE)


def _with_end_marker(text: str) -> str:
    text = text.rstrip()
    if _TRAILING_END_RE.search(text):
        return text
    return f"{text}\n\n{END_MARKER}"


class StoryPipeline:
    """Runs the stages of one story against one provider client."""

    def __init__(self, client, settings: PipelineSettings | None = None,
                 request_id: str | None = None, sleep=time.sleep):
        self.client = client
        self.settings = settings or PipelineSettings()
        self.request_id = request_id or llm_trace.new_request_id()
        self._sleep = sleep
        self._calls = 0
        self._calls_lock = threading.Lock()

    # ----------------- single stage -----------------

    def _trace(self, stage: str, payload):
        if not self.settings.trace:
            return
        llm_trace.write_trace(
            data_dir=self.settings.data_dir,
            request_id=self.request_id,
            stage=stage,
            payload=payload,
            provider=getattr(self.client, "name", ""),
        )

    def _throttle(self):
        if self.settings.parallel or self.settings.inter_call_delay <= 0:
            return
        with self._calls_lock:
            first = self._calls == 0
            self._calls += 1
        if not first:
            self._sleep(self.settings.inter_call_delay)

    def generate(self, stage: str, prompt: str, params: GenerationParams) -> str:
        """One stage = one retried completion. Raises GenerationError."""
        self._throttle()
        self._trace(f"{stage}_request", {"system": SYSTEM_PROMPT, "prompt": prompt})
        t0 = time.time()
        try:
            text = with_retry(
                lambda: self.client.complete(SYSTEM_PROMPT, prompt, params),
                max_attempts=self.settings.max_attempts,
                backoff_base=self.settings.backoff_base,
                sleep=self._sleep,
                label=stage,
            )
        except Exception as e:
            log.warning("  stage %s FAILED after %.1fs — %s", stage, time.time() - t0, e)
            self._trace(f"{stage}_error", {"error": str(e), "type": type(e).__name__})
            raise GenerationError(stage, e) from e
        log.info("  stage %s: %.1fs len=%d", stage, time.time() - t0, len(text))
        self._trace(f"{stage}_response", {"text": text})
        return text

    def generate_batch(self, jobs: list[tuple[str, str, GenerationParams]]) -> list[str]:
        """Run sibling stages; output order matches ``jobs`` order."""
        if not self.settings.parallel or len(jobs) < 2:
            return [self.generate(stage, prompt, params) for stage, prompt, params in jobs]

        with ThreadPoolExecutor(max_workers=len(jobs)) as executor:
            futures = [executor.submit(self.generate, stage, prompt, params)
                       for stage, prompt, params in jobs]
            return [f.result() for f in futures]

    # ----------------- full tree -----------------

    def assemble(self, request: StoryRequest) -> Story:
        t_start = time.time()
        log.info("pipeline %s START style=%s parallel=%s", self.request_id, request.style, self.settings.parallel)

        intro = strip_choices(self.generate("intro", build_intro_prompt(request), INTRO_PARAMS))

        page1_raw = self.generate("page1", build_page1_prompt(request, intro), PAGE_PARAMS)
        page1 = strip_choices(page1_raw)
        first_choices = extract_choices(page1_raw, BRANCHES)

        page2_raw = self.generate_batch([
            (f"page2{b}", build_page2_prompt(request, intro, page1, choice, b), PAGE_PARAMS)
            for b, choice in zip(BRANCHES, first_choices)
        ])
        page2_text = [strip_choices(raw) for raw in page2_raw]
        second_choices = [
            extract_choices(raw, (f"{b}1", f"{b}2")) for b, raw in zip(BRANCHES, page2_raw)
        ]

        ending_jobs = []
        for b, text, choices in zip(BRANCHES, page2_text, second_choices):
            for i, choice in enumerate(choices, 1):
                leaf = f"{b}{i}"
                ending_jobs.append((f"ending{leaf}", build_ending_prompt(request, text, choice, leaf), ENDING_PARAMS))
        endings = self.generate_batch(ending_jobs)

        nodes = [
            StoryNode("intro", intro),
            StoryNode("page1", page1, tuple(
                Choice(label, f"page2{b}") for b, label in zip(BRANCHES, first_choices))),
        ]
        for b, text, choices in zip(BRANCHES, page2_text, second_choices):
            nodes.append(StoryNode(f"page2{b}", text, tuple(
                Choice(label, f"ending{b}{i}") for i, label in enumerate(choices, 1))))
        for (stage, _, _), text in zip(ending_jobs, endings):
            nodes.append(StoryNode(stage, _with_end_marker(strip_choices(text))))

        title = request.title or extract_title(intro)
        log.info("pipeline %s DONE nodes=%d total=%.1fs", self.request_id, len(nodes), time.time() - t_start)
        return Story(title=title, subtitle=request.subtitle, nodes=tuple(nodes))

    # ----------------- other variants -----------------

    def simple(self, request: StoryRequest) -> Story:
        text = self.generate("story", build_simple_prompt(request), SIMPLE_PARAMS)
        text = _with_end_marker(strip_choices(text))
        title = request.title or extract_title(text)
        return Story(title=title, subtitle=request.subtitle, nodes=(StoryNode("story", text),))

    def continue_from(self, previous_part: str, choice_made: str) -> tuple[str, list[str]]:
        raw = self.generate("continue", build_continue_prompt(previous_part, choice_made), PAGE_PARAMS)
        return strip_choices(raw), list(extract_choices(raw, BRANCHES))


def assemble_story(request: StoryRequest, client, settings: PipelineSettings | None = None,
                   request_id: str | None = None, sleep=time.sleep) -> Story:
    """Generate the full 8-node story. Raises GenerationError on any stage failure."""
    return StoryPipeline(client, settings, request_id, sleep).assemble(request)


def generate_simple_story(request: StoryRequest, client, settings: PipelineSettings | None = None,
                          request_id: str | None = None, sleep=time.sleep) -> Story:
    """Single-node variant: one prompt, one terminal node."""
    return StoryPipeline(client, settings, request_id, sleep).simple(request)


def continue_story(previous_part: str, choice_made: str, client,
                   settings: PipelineSettings | None = None, sleep=time.sleep) -> tuple[str, list[str]]:
    """Interactive variant: next page plus its two choices."""
    return StoryPipeline(client, settings, sleep=sleep).continue_from(previous_part, choice_made)
