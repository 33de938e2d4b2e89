"""Tests for ignore rules."""

from draftsmith.utils.ignore import IgnoreRules


def test_builtin_ignores(test_project):
    """Test that built-in patterns are ignored."""
    rules = IgnoreRules(test_project)

    assert rules.should_ignore(test_project / ".git" / "config")
    assert rules.should_ignore(test_project / ".draftsmith" / "runs" / "x" / "events.ndjson")
    assert rules.should_ignore(test_project / "characters" / ".drafts" / "2025-01-01.md")
    assert rules.should_ignore(test_project / ".context_settings.json")
    assert rules.should_ignore(test_project / ".ai_cost.json")
    assert rules.should_ignore(test_project / "overview" / "cover.png")


def test_gitignore_respected(test_project):
    """Test that .gitignore is respected."""
    (test_project / ".gitignore").write_text("*.log\nexports/\n")

    rules = IgnoreRules(test_project)

    assert rules.should_ignore(test_project / "debug.log")
    assert rules.should_ignore(test_project / "exports" / "book.md")
    assert not rules.should_ignore(test_project / "overview" / "overview.md")


def test_draftsmithignore_respected(test_project):
    """Test that .draftsmithignore is respected."""
    (test_project / ".draftsmithignore").write_text("# spoilers\nsecrets/\n")

    rules = IgnoreRules(test_project)

    assert rules.should_ignore(test_project / "secrets" / "ending.md")
    assert not rules.should_ignore(test_project / "characters" / "mara.md")


def test_outside_root_ignored(test_project):
    rules = IgnoreRules(test_project)

    assert rules.should_ignore(test_project.parent / "other.md")


def test_normal_files_not_ignored(test_project):
    """Test that normal files are not ignored."""
    rules = IgnoreRules(test_project)

    assert not rules.should_ignore(test_project / "overview" / "overview.md")
    assert not rules.should_ignore(test_project / "books" / "harbor" / "book.json")
    assert not rules.should_ignore(test_project / "notes" / "ideas.md")
