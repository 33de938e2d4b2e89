"""Tests for conversation history."""

import pytest

from draftsmith.conversation import ConversationContext


def test_history_order():
    conversation = ConversationContext()
    conversation.record_exchange("Who is Mara?", "A cartographer.")

    assert conversation.to_history() == [
        {"role": "user", "content": "Who is Mara?"},
        {"role": "assistant", "content": "A cartographer."},
    ]


def test_history_is_a_copy():
    conversation = ConversationContext()
    conversation.add_message("user", "Hi")

    conversation.to_history()[0]["content"] = "changed"

    assert conversation.messages[0]["content"] == "Hi"


def test_trims_to_recent_pairs():
    conversation = ConversationContext(max_history=2)
    for i in range(5):
        conversation.record_exchange(f"q{i}", f"a{i}")

    history = conversation.to_history()
    assert [m["content"] for m in history] == ["q3", "a3", "q4", "a4"]


def test_trimmed_history_starts_with_user():
    conversation = ConversationContext(max_history=2)
    conversation.add_message("user", "q0")
    conversation.add_message("assistant", "a0")
    conversation.add_message("assistant", "a0 continued")
    conversation.add_message("user", "q1")
    conversation.add_message("assistant", "a1")

    assert [m["content"] for m in conversation.to_history()] == ["q1", "a1"]


def test_rejects_system_role():
    with pytest.raises(ValueError):
        ConversationContext().add_message("system", "You are...")


def test_clear():
    conversation = ConversationContext()
    conversation.record_exchange("q", "a")
    conversation.update_plan({"id": "p1", "skill": "draft"})

    assert "p1" in conversation.get_context_summary()

    conversation.clear()

    assert conversation.to_history() == []
    assert conversation.get_context_summary() == "No recent context"
