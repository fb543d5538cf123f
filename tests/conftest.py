"""
Shared fixtures: settings, a scripted generation client and a recording sleep.
"""
import json
from typing import Dict, List, Optional, Union

import pytest

from sakubun.core.config import Settings
from sakubun.core.retry import RetryPolicy
from sakubun.services.evaluation.prompt_builder import PromptBuilder
from sakubun.utils.prompt_loader import PromptLoader

SAMPLE_QUESTION = "Do you like dogs? Write about 20 words."
SAMPLE_TEXT = "I have dog. It is cute!\n\nMy dog runs fast. So I am happy."
SAMPLE_NUMBERED = "¶1 [S1] I have dog. [S2] It is cute!\n\n¶2 [S3] My dog runs fast. [S4] So I am happy."

EXPRESSION_JSON = json.dumps({
    "type": "expression",
    "items": {"C-1": "d", "C-2": "o"},
    "details": {"C-1_incorrect": 2},
    "notes": ["two article errors"],
})
CONTENT_JSON = "Here is the result:\n" + json.dumps({
    "type": "content",
    "items": {"D-1": "o", "D-2": "d"},
    "details": {"D-2_leaps": 1},
    "notes": [],
}) + "\nDone."
EXPRESSION_IMPROVEMENTS_JSON = json.dumps({
    "type": "expression_improvements",
    "items": [{
        "s": "S1",
        "cat": "1. Grammar and usage",
        "error": "missing article",
        "before": "I have dog.",
        "after": "I have a dog.",
        "reason": "A singular noun needs an article.",
    }],
})
CONTENT_IMPROVEMENTS_JSON = "```json\n" + json.dumps({
    "type": "content_improvements",
    "items": [{
        "s": "S3→S4",
        "cat": "2. Logical development",
        "error": "the reason is missing",
        "before": "",
        "after": "Add why running fast makes you happy.",
        "reason": "Readers need the link between ideas.",
    }],
}, ensure_ascii=False) + "\n```"
REQUIREMENT_LINE = "Requirements: Your answer has 14 words and meets the conditions.\nextra commentary"

Scripted = Union[str, Exception]


class ScriptedClient:
    """Generation client that replays canned replies per call name.

    Each name maps to a list of replies consumed in order; the last one repeats.
    An Exception instance in the list is raised instead of returned.
    """

    def __init__(self, scripts: Optional[Dict[str, List[Scripted]]] = None):
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.calls: List[dict] = []

    async def generate(self, prompt_text, model_id, max_output_tokens=512, *, name=None):
        self.calls.append({
            "prompt": prompt_text,
            "model": model_id,
            "max_output_tokens": max_output_tokens,
            "name": name,
        })
        replies = self.scripts.get(name)
        if not replies:
            raise AssertionError(f"no scripted reply for {name}")
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def names(self) -> List[str]:
        return [c["name"] for c in self.calls]


def default_scripts(**overrides: List[Scripted]) -> Dict[str, List[Scripted]]:
    scripts: Dict[str, List[Scripted]] = {
        "expression_evaluation": [EXPRESSION_JSON],
        "content_evaluation": [CONTENT_JSON],
        "expression_improvements": [EXPRESSION_IMPROVEMENTS_JSON],
        "content_improvements": [CONTENT_IMPROVEMENTS_JSON],
        "requirement": [REQUIREMENT_LINE],
        "followup": ["Try adding one reason after each opinion."],
    }
    scripts.update(overrides)
    return scripts


class RecordingSleep:
    """Stands in for asyncio.sleep; records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings() -> Settings:
    return Settings(GEMINI_API_KEY="test-key", GEMINI_API_BASE="https://gemini.test/v1beta")


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.8, overloaded_delay=2.0, sleep=recording_sleep)


@pytest.fixture(scope="session")
def loader() -> PromptLoader:
    return PromptLoader(version="v1.0.0")


@pytest.fixture
def builder(loader) -> PromptBuilder:
    return PromptBuilder(loader)


@pytest.fixture
def scripted_client():
    def _make(**overrides: List[Scripted]) -> ScriptedClient:
        return ScriptedClient(default_scripts(**overrides))
    return _make
