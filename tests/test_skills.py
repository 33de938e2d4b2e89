"""Tests for skills and system prompt rendering."""

import pytest

from draftsmith.skills import get_skill, list_skills, resolve_skill
from draftsmith.system_prompt import SystemPromptBuilder


def test_default_skill():
    assert get_skill(None).name == "brainstorm"
    assert get_skill("").name == "brainstorm"


def test_unknown_skill():
    with pytest.raises(ValueError, match="Unknown skill"):
        get_skill("poetry")


def test_include_patterns_depend_on_book():
    skill = get_skill("brainstorm")

    assert "books/{book}/phase-1-seed/*.md" not in skill.include_patterns(has_book=False)
    assert skill.include_patterns(has_book=True)[:2] == [
        "overview/*.md",
        "books/{book}/phase-1-seed/*.md",
    ]


def test_resolve_skill_model_order():
    assert resolve_skill("draft", {"draft": {"model": "claude-x"}}, "claude-default").default_model == "claude-x"
    assert resolve_skill("draft", {"draft": {"model": "auto"}}, "claude-default").default_model == "claude-default"
    assert resolve_skill("quick_edit").default_model == "anthropic:claude-haiku-4-5"


def test_resolve_skill_budget():
    assert resolve_skill("draft", {"draft": {"max_context_tokens": 1234}}).max_context_tokens == 1234
    assert resolve_skill("draft").max_context_tokens == get_skill("draft").max_context_tokens


def test_list_skills():
    assert [s.name for s in list_skills()] == ["brainstorm", "characters", "draft", "outline", "quick_edit"]


def test_render_without_book(test_project):
    prompt = SystemPromptBuilder(test_project).render_template(get_skill("brainstorm"))

    assert "Project overview:" in prompt
    assert "third person limited" in prompt
    assert "{" not in prompt


def test_render_with_book(test_project):
    prompt = SystemPromptBuilder(test_project).render_template(get_skill("quick_edit"), "harbor")

    assert "Keep first person and present tense." in prompt


def test_render_with_broken_book_json(test_project):
    (test_project / "books" / "harbor" / "book.json").write_text("{oops")

    prompt = SystemPromptBuilder(test_project).render_template(get_skill("draft"), "harbor")

    assert "third person limited, past tense" in prompt


def test_render_with_non_object_book_json(test_project):
    (test_project / "books" / "harbor" / "book.json").write_text("[]")

    prompt = SystemPromptBuilder(test_project).render_template(get_skill("draft"), "harbor")

    assert "third person limited, past tense" in prompt


def test_system_messages_cache_blocks(test_project):
    builder = SystemPromptBuilder(test_project)

    assert len(builder.build_system_messages("Prompt")) == 1

    blocks = builder.build_system_messages("Prompt", "## notes/ideas.md\n\nLetters.")
    assert blocks[1]["text"].startswith("# Project Context")
    assert all(b["cache_control"] == {"type": "ephemeral"} for b in blocks)
