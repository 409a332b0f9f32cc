"""
Shared fixtures: in-memory stand-ins for the chat and embedding services.
"""
import asyncio
from typing import Any, Callable

import pytest

from interview_matrix.ai_llm import StructuredCompletion, TokenUsage
from interview_matrix.models import Window
from interview_matrix.retry import CallError, Err, ErrorKind, Ok


class FakeChat:
    """Chat client returning canned JSON objects.

    `responder` gets (system_prompt, user_content) and returns either the
    parsed JSON value or an `Err`.
    """

    def __init__(self, responder: Callable[[str, str], Any], tokens: int = 42, delay: float = 0.0):
        self.responder = responder
        self.tokens = tokens
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.peak_active = 0

    async def complete_structured(self, system_prompt, user_content, *, temperature=0.1, json_mode=True):
        self.calls.append((system_prompt, user_content))
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            value = self.responder(system_prompt, user_content)
        finally:
            self.active -= 1

        if isinstance(value, Err):
            return value
        return Ok(StructuredCompletion(data=value, usage=TokenUsage(total_tokens=self.tokens), raw=str(value)))


class FakeEmbedder:
    """Embedding client mapping texts to vectors via a function."""

    def __init__(self, vectorize: Callable[[str], list[float]]):
        self.vectorize = vectorize
        self.single_calls: list[str] = []
        self.batch_calls: list[list[str]] = []

    async def embed(self, text):
        self.single_calls.append(text)
        return self.vectorize(text)

    async def embed_batch(self, texts):
        self.batch_calls.append(list(texts))
        return [self.vectorize(t) for t in texts]


class RecordingSleep:
    """Async no-op sleep that records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay):
        self.delays.append(float(delay))


def make_window(window_id: str, text: str, chunk_id: str = "doc_c00", start: int = 0) -> Window:
    return Window(
        id=window_id,
        chunk_id=chunk_id,
        text=text,
        start_offset=start,
        end_offset=start + len(text),
        token_count=len(text) // 4,
    )


def retryable(message: str = "boom") -> Err:
    return Err(CallError(ErrorKind.RETRYABLE, message))


@pytest.fixture
def fake_chat():
    return FakeChat


@pytest.fixture
def fake_embedder():
    return FakeEmbedder


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def window_factory():
    return make_window


@pytest.fixture
def nurse_answer():
    return {
        "quote": "I am a nurse in the ER.",
        "summary": "The respondent works as a nurse in the emergency room.",
        "theme": "Role/Unit",
        "supported_by_quote": True,
        "confidence": 0.9,
    }
