"""Tests for the event bus."""

from draftsmith.events import EventBus, topic


def test_topic_name():
    assert topic("done", "abc") == "done:abc"


def test_emit_reaches_subscribers():
    bus = EventBus()
    received = []
    bus.subscribe("chunk:1", received.append)

    assert bus.emit("chunk:1", {"text": "hi"}) == 1
    assert bus.emit("chunk:2", {"text": "other"}) == 0
    assert received == [{"text": "hi"}]


def test_unsubscribe_twice_is_harmless():
    bus = EventBus()
    unsubscribe = bus.subscribe("done:1", lambda payload: None)

    unsubscribe()
    unsubscribe()

    assert bus.subscriber_count("done:1") == 0


def test_handler_may_unsubscribe_during_emit():
    bus = EventBus()
    calls = []

    def handler(payload):
        calls.append(payload)
        unsubscribe()

    unsubscribe = bus.subscribe("done:1", handler)
    bus.emit("done:1", {"n": 1})
    bus.emit("done:1", {"n": 2})

    assert calls == [{"n": 1}]
