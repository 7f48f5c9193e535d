"""Shared test fixtures for the story generator tests."""

import re
import threading

import pytest

from story_models import StoryRequest


# ---------------------------------------------------------------------------
# Sample data constants
# ---------------------------------------------------------------------------

SAMPLE_PAYLOAD = {
    "headline": "Title",
    "subheadline": "Sub",
    "mainText": "Léo aime le foot",
    "style": "aventure",
}

STAGE_REPLIES = {
    "intro": "INTRO-TEXT Il était une fois un petit garçon nommé Léo.",
    "page1": "PAGE1-TEXT Un ballon magique tombe du ciel.\nOption A : suivre le ballon\nOption B : appeler ses amis",
    "page2A": "PAGE2A-TEXT Le ballon file vers le stade.\nOption A1 : tirer au but\nOption A2 : faire une passe",
    "page2B": "PAGE2B-TEXT Les amis arrivent en courant.\nOption B1 : organiser un match\nOption B2 : construire une cabane",
    "endingA1": "ENDINGA1-TEXT Léo marque le plus beau but.\nFIN",
    "endingA2": "ENDINGA2-TEXT La passe fait gagner l'équipe.\nFIN",
    "endingB1": "ENDINGB1-TEXT Tout le monde joue ensemble.\nFIN",
    "endingB2": "ENDINGB2-TEXT La cabane devient leur repaire.\nFIN",
    "story": "STORY-TEXT Léo vit une grande aventure.\nFIN",
    "continue": "CONTINUE-TEXT Léo court vers la forêt.\nOption A : grimper à l'arbre\nOption B : suivre le ruisseau",
}

FULL_STAGE_ORDER = ["intro", "page1", "page2A", "page2B", "endingA1", "endingA2", "endingB1", "endingB2"]


def stage_of(prompt: str) -> str:
    """Recover the pipeline stage from the user prompt it sent."""
    if "Écris l'introduction" in prompt:
        return "intro"
    m = re.search(r"Écris la page (1|2[AB])\b", prompt)
    if m:
        return f"page{m.group(1)}"
    m = re.search(r"Écris la fin ([AB][12])\b", prompt)
    if m:
        return f"ending{m.group(1)}"
    if "Écris une histoire complète" in prompt:
        return "story"
    if "Écris la suite" in prompt:
        return "continue"
    raise AssertionError(f"unrecognised prompt: {prompt[:80]}")


class ScriptedClient:
    """Provider stand-in: deterministic reply per stage, optional failures.

    ``failures`` maps a stage to a list of exceptions raised on successive
    calls for that stage; once the list is empty the stage succeeds.
    """

    name = "scripted"

    def __init__(self, replies=None, failures=None):
        self.replies = dict(STAGE_REPLIES if replies is None else replies)
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: list[str] = []
        self.prompts: list[tuple] = []
        self._lock = threading.Lock()

    def complete(self, system_prompt, user_prompt, params):
        stage = stage_of(user_prompt)
        with self._lock:
            self.calls.append(stage)
            self.prompts.append((stage, system_prompt, user_prompt, params))
            pending = self.failures.get(stage)
            if pending:
                raise pending.pop(0)
        return self.replies[stage]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_payload():
    return dict(SAMPLE_PAYLOAD)


@pytest.fixture
def sample_request():
    return StoryRequest.from_payload(SAMPLE_PAYLOAD)


@pytest.fixture
def scripted_client():
    return ScriptedClient()


@pytest.fixture
def sleeps():
    """Recorded sleep durations; pass ``sleeps.append`` as the sleep function."""
    return []


@pytest.fixture(autouse=True)
def clean_story_env(monkeypatch):
    """Keep the developer's shell configuration out of the tests."""
    for name in (
        "STORY_PROVIDER", "STORY_MODEL", "STORY_MAX_ATTEMPTS", "STORY_BACKOFF_BASE",
        "STORY_PARALLEL", "STORY_INTER_CALL_DELAY", "STORY_TRACE", "STORY_TIMEOUT",
        "STORY_DATA_DIR", "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "HF_API_TOKEN",
        "REPLICATE_API_TOKEN", "GEMINI_API_KEY", "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
