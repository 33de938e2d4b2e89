"""Tests for the Anthropic backend, using a fake client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from draftsmith.events import CHUNK, DONE, ERROR, EventBus, topic
from draftsmith.llm import LLM, InferenceRequest


def text_delta(text):
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=text))


def final_message(text, model="claude-sonnet-4-5-20250929"):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=120, output_tokens=40),
        model=model,
    )


class FakeStream:
    def __init__(self, events, message, error=None):
        self.events = events
        self.message = message
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error

    async def get_final_message(self):
        return self.message


def make_client(stream=None, response=None):
    client = MagicMock()
    client.messages.stream = MagicMock(return_value=stream)
    client.messages.create = AsyncMock(return_value=response)
    return client


def collect(bus, plan_id):
    events = []
    for kind in (CHUNK, DONE, ERROR):
        bus.subscribe(topic(kind, plan_id), lambda payload, kind=kind: events.append((kind, payload)))
    return events


@pytest.fixture
def request_():
    return InferenceRequest(
        model="anthropic:claude-sonnet-4-5",
        system=[{"type": "text", "text": "You are a writer."}],
        messages=[
            {"role": "user", "content": "Hello"},
            {"role": "system", "content": "dropped"},
            {"role": "assistant", "content": ""},
        ],
        temperature=0.8,
    )


@pytest.mark.asyncio
async def test_stream_emits_chunks_then_done(request_):
    stream = FakeStream([text_delta("Hel"), SimpleNamespace(type="message_start"), text_delta("lo")], final_message("Hello"))
    client = make_client(stream=stream)
    bus = EventBus()
    events = collect(bus, "p1")

    await LLM("key", client=client).stream(bus, "p1", request_)

    assert events == [
        (CHUNK, {"text": "Hel"}),
        (CHUNK, {"text": "lo"}),
        (DONE, {
            "full_text": "Hello",
            "input_tokens": 120,
            "output_tokens": 40,
            "model": "claude-sonnet-4-5-20250929",
        }),
    ]
    kwargs = client.messages.stream.call_args.kwargs
    assert kwargs["model"] == "claude-sonnet-4-5-20250929"
    assert kwargs["messages"] == [{"role": "user", "content": "Hello"}]
    assert kwargs["temperature"] == 0.8
    assert kwargs["system"] == request_.system


@pytest.mark.asyncio
async def test_stream_api_error_becomes_error_event(request_):
    error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com"))
    client = make_client(stream=FakeStream([text_delta("Hel")], None, error=error))
    bus = EventBus()
    events = collect(bus, "p1")

    await LLM("key", client=client).stream(bus, "p1", request_)

    assert [kind for kind, _ in events] == [CHUNK, ERROR]
    assert "Claude API error" in events[-1][1]["reason"]


@pytest.mark.asyncio
async def test_complete(request_):
    client = make_client(response=final_message("Done."))

    completion = await LLM("key", client=client).complete(request_)

    assert completion.text == "Done."
    assert completion.input_tokens == 120
    assert completion.output_tokens == 40


def test_parse_model_string():
    assert LLM.parse_model_string("anthropic:claude-haiku-4-5").name == "claude-haiku-4-5-20251001"
    assert LLM.parse_model_string("claude-3-7-sonnet-latest").name == "claude-3-7-sonnet-latest"

    with pytest.raises(ValueError):
        LLM.parse_model_string("openai:gpt-4o")


def test_list_models():
    assert "anthropic:claude-sonnet-4-5" in LLM.list_models()
