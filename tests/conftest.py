"""Pytest configuration and fixtures."""

import asyncio
import json
import tempfile
from pathlib import Path
from typing import Optional

import pytest

from draftsmith.config import Config
from draftsmith.events import CHUNK, DONE, ERROR, topic
from draftsmith.llm import Completion
from draftsmith.utils.ignore import IgnoreRules


def word_estimator(text: str) -> int:
    """One token per whitespace-separated word."""
    return len(text.split())


def tok_estimator(text: str) -> int:
    """Counts only the word ``tok``, so prose in messages costs nothing."""
    return text.split().count("tok")


class ScriptedBackend:
    """Stands in for the LLM: emits scripted stream events on the bus.

    Args:
        text: Final text for the done event
        chunks: Chunk texts emitted before the terminal event
        error: If set, emit an error event with this reason instead of done
        exc: If set, raise this from ``stream`` after the chunks
        gate: If set, wait on this event before emitting the terminal event
        duplicate_done: Emit the done event twice
    """

    def __init__(
        self,
        text: str = "Generated text",
        chunks: Optional[list[str]] = None,
        error: Optional[str] = None,
        exc: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
        duplicate_done: bool = False,
        input_tokens: int = 1000,
        output_tokens: int = 500,
        model: str = "claude-sonnet-4-5-20250929",
    ):
        self.text = text
        self.chunks = chunks if chunks is not None else [text]
        self.error = error
        self.exc = exc
        self.gate = gate
        self.duplicate_done = duplicate_done
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.model = model
        self.requests = []
        self.started = asyncio.Event()
        self.subscribers_at_send: dict[str, int] = {}

    async def stream(self, bus, plan_id, request):
        self.requests.append(request)
        self.subscribers_at_send = {
            kind: bus.subscriber_count(topic(kind, plan_id)) for kind in (CHUNK, DONE, ERROR)
        }
        self.started.set()

        for chunk in self.chunks:
            bus.emit(topic(CHUNK, plan_id), {"text": chunk})
            await asyncio.sleep(0)

        if self.exc is not None:
            raise self.exc

        if self.gate is not None:
            await self.gate.wait()

        if self.error is not None:
            bus.emit(topic(ERROR, plan_id), {"reason": self.error})
            return

        payload = {
            "full_text": self.text,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "model": self.model,
        }
        bus.emit(topic(DONE, plan_id), payload)
        if self.duplicate_done:
            bus.emit(topic(DONE, plan_id), dict(payload, full_text="duplicate"))

    async def complete(self, request):
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return Completion(
            text=self.text,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model=self.model,
        )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def test_project(temp_dir):
    """Create a test writing project."""
    (temp_dir / "overview").mkdir()
    (temp_dir / "overview" / "overview.md").write_text(
        "# Harbor Lights\n\nA lighthouse keeper finds letters from a drowned town.\n"
    )

    book = temp_dir / "books" / "harbor"
    (book / "phase-1-seed").mkdir(parents=True)
    (book / "phase-1-seed" / "story-foundation.md").write_text(
        "Mara returns to the harbor after twenty years.\n"
    )
    (book / "book.json").write_text(json.dumps({
        "genre": "literary mystery",
        "settings": {"pov": "first person", "tense": "present"},
    }))
    (book / "chapters" / "ch1").mkdir(parents=True)
    (book / "chapters" / "ch1" / "outline.md").write_text("Mara arrives at dusk.\n")

    (temp_dir / "characters").mkdir()
    (temp_dir / "characters" / "mara.md").write_text("Mara Voss, 41, cartographer.\n")

    (temp_dir / "notes").mkdir()
    (temp_dir / "notes" / "ideas.md").write_text("Letters in bottles.\n")

    yield temp_dir


@pytest.fixture
def mock_config():
    """Create a mock configuration."""
    return Config(
        anthropic_api_key="test_key",
        default_model="anthropic:claude-sonnet-4-5",
        stream_timeout=5,
    )


@pytest.fixture
def ignore_rules(temp_dir):
    """Create ignore rules for temp directory."""
    return IgnoreRules(temp_dir)
