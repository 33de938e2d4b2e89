"""Tests for context scoping and plan creation."""

import pytest

from conftest import tok_estimator, word_estimator
from draftsmith.cost import CostAccountant
from draftsmith.errors import ScopeResolutionError
from draftsmith.tools.file_index import FileIndex
from draftsmith.tools.overrides import ContextOverrides, InclusionMode
from draftsmith.tools.planner import ContextScope, ContextScopePlanner, select_context
from draftsmith.utils.ignore import IgnoreRules


def make_planner(root, estimator=word_estimator, **kwargs):
    return ContextScopePlanner(
        root,
        FileIndex(root, IgnoreRules(root)),
        CostAccountant(),
        estimator,
        **kwargs,
    )


@pytest.fixture
def budget_project(temp_dir):
    """Three overview files of 500, 2000 and 100 tokens."""
    (temp_dir / "overview").mkdir()
    for name, tokens in (("a.md", 500), ("b.md", 2000), ("c.md", 100)):
        (temp_dir / "overview" / name).write_text("tok " * tokens)
    return temp_dir


def test_select_context_exclude():
    entries = [(500, InclusionMode.AUTO), (2000, InclusionMode.EXCLUDE), (100, InclusionMode.AUTO)]

    assert select_context(entries, 1000) == [0, 2]


def test_select_context_skips_overflow_and_continues():
    entries = [(500, InclusionMode.AUTO), (2000, InclusionMode.AUTO), (100, InclusionMode.AUTO)]

    assert select_context(entries, 1000) == [0, 2]


def test_select_context_force_exceeds_budget():
    entries = [(500, InclusionMode.AUTO), (2000, InclusionMode.FORCE), (100, InclusionMode.AUTO)]

    # The forced file uses up the budget, so nothing else fits
    assert select_context(entries, 1000) == [1]


def test_exclude_scenario(budget_project):
    """[500, 2000, 100] with #2 excluded and budget 1000 totals 600."""
    overrides = ContextOverrides(budget_project)
    overrides.set("overview/b.md", InclusionMode.EXCLUDE)
    overrides.save()

    planner = make_planner(
        budget_project,
        estimator=tok_estimator,
        skill_overrides={"brainstorm": {"max_context_tokens": 1000}},
    )
    plan = planner.create_plan(ContextScope(project_root=budget_project), "Ideas please")

    assert [f.path for f in plan.context_files] == ["overview/a.md", "overview/c.md"]
    assert plan.total_tokens_estimate == 600
    assert plan.message_tokens == 0


def test_force_overrides_budget(budget_project):
    overrides = ContextOverrides(budget_project)
    overrides.set("overview/b.md", InclusionMode.FORCE)
    overrides.save()

    planner = make_planner(
        budget_project,
        estimator=tok_estimator,
        skill_overrides={"brainstorm": {"max_context_tokens": 1000}},
    )
    plan = planner.create_plan(ContextScope(project_root=budget_project), "Ideas")

    assert [(f.path, f.inclusion) for f in plan.context_files] == [("overview/b.md", "force")]
    assert plan.total_tokens_estimate == 2000


def test_forced_file_outside_skill_patterns(test_project):
    overrides = ContextOverrides(test_project)
    overrides.set("characters/mara.md", InclusionMode.FORCE)
    overrides.save()

    plan = make_planner(test_project).create_plan(ContextScope(project_root=test_project), "Ideas")

    assert "characters/mara.md" in [f.path for f in plan.context_files]


def test_forced_file_ignores_gitignore_and_extension(test_project):
    (test_project / ".gitignore").write_text("notes/\n")
    (test_project / "notes" / "timeline.csv").write_text("1901,storm\n")
    overrides = ContextOverrides(test_project)
    overrides.set("notes/ideas.md", InclusionMode.FORCE)
    overrides.set("notes/timeline.csv", InclusionMode.FORCE)
    overrides.save()

    plan = make_planner(test_project).create_plan(ContextScope(project_root=test_project), "Ideas")

    forced = {f.path: f.inclusion for f in plan.context_files if f.path.startswith("notes/")}
    assert forced == {"notes/ideas.md": "force", "notes/timeline.csv": "force"}


def test_forced_internal_files_stay_out(test_project):
    (test_project / ".draftsmith").mkdir()
    (test_project / ".draftsmith" / "notes.md").write_text("internal")
    (test_project / ".ai_cost.json").write_text('{"total": 1.0}')
    overrides = ContextOverrides(test_project)
    overrides.set(".draftsmith/notes.md", InclusionMode.FORCE)
    overrides.set(".ai_cost.json", InclusionMode.FORCE)
    overrides.save()

    plan = make_planner(test_project).create_plan(ContextScope(project_root=test_project), "Ideas")

    paths = [f.path for f in plan.context_files]
    assert ".draftsmith/notes.md" not in paths
    assert ".ai_cost.json" not in paths


def test_message_tokens_included(test_project):
    planner = make_planner(test_project)

    plan = planner.create_plan(ContextScope(project_root=test_project), "three word message")

    context_tokens = sum(f.tokens_estimate for f in plan.context_files)
    assert plan.message_tokens == 3
    assert plan.total_tokens_estimate == context_tokens + 3


def test_book_scope_candidates(test_project):
    planner = make_planner(test_project)

    plan = planner.create_plan(
        ContextScope(project_root=test_project, book="harbor", chapter="ch1"), "Draft it", "draft"
    )

    paths = [f.path for f in plan.context_files]
    assert paths[0] == "overview/overview.md"
    assert "books/harbor/phase-1-seed/story-foundation.md" in paths
    assert "books/harbor/chapters/ch1/outline.md" in paths
    assert "characters/mara.md" in paths


def test_ignored_files_never_candidates(test_project):
    (test_project / "overview" / "secret.md").write_text("spoilers")
    (test_project / ".draftsmithignore").write_text("overview/secret.md\n")

    plan = make_planner(test_project).create_plan(ContextScope(project_root=test_project), "x")

    paths = [f.path for f in plan.context_files]
    assert "overview/overview.md" in paths
    assert "overview/secret.md" not in paths


def test_cost_display(budget_project):
    planner = make_planner(budget_project, estimator=tok_estimator)

    plan = planner.create_plan(ContextScope(project_root=budget_project), "Ideas")

    # 2600 tokens at $3 per million
    assert plan.estimated_cost == pytest.approx(0.0078)
    assert plan.estimated_cost_display == "~$0.0078"


def test_unknown_model_display(budget_project):
    planner = make_planner(budget_project, estimator=tok_estimator, default_model="mystery-model")

    plan = planner.create_plan(ContextScope(project_root=budget_project), "Ideas")

    assert plan.model == "mystery-model"
    assert plan.estimated_cost is None
    assert plan.estimated_cost_display == "~$?"


def test_skill_override_model(test_project):
    planner = make_planner(
        test_project,
        skill_overrides={"draft": {"model": "anthropic:claude-opus-4-1"}},
        default_model="anthropic:claude-sonnet-4-5",
    )

    draft = planner.create_plan(ContextScope(project_root=test_project), "x", "draft")
    brainstorm = planner.create_plan(ContextScope(project_root=test_project), "x", "brainstorm")

    assert draft.model == "anthropic:claude-opus-4-1"
    assert brainstorm.model == "anthropic:claude-sonnet-4-5"


def test_plan_ids_unique(test_project):
    planner = make_planner(test_project)
    scope = ContextScope(project_root=test_project)

    ids = {planner.create_plan(scope, "x").id for _ in range(20)}

    assert len(ids) == 20


def test_missing_root_fails(test_project):
    missing = test_project / "nope"
    planner = make_planner(missing)

    with pytest.raises(ScopeResolutionError):
        planner.create_plan(ContextScope(project_root=missing), "x")


def test_missing_book_fails(test_project):
    planner = make_planner(test_project)

    with pytest.raises(ScopeResolutionError):
        planner.create_plan(ContextScope(project_root=test_project, book="unknown"), "x")


def test_path_like_ids_rejected(test_project):
    planner = make_planner(test_project)

    with pytest.raises(ScopeResolutionError):
        planner.create_plan(ContextScope(project_root=test_project, book="../harbor"), "x")


def test_foreign_scope_rejected(test_project):
    other = test_project / "books"
    planner = make_planner(test_project)

    with pytest.raises(ScopeResolutionError):
        planner.create_plan(ContextScope(project_root=other), "x")


def test_prepare_system_prompt(test_project):
    planner = make_planner(test_project)

    state = planner.prepare(
        ContextScope(project_root=test_project, book="harbor"), "Draft", "draft"
    )

    assert "first person" in state.system_prompt
    assert "present tense" in state.system_prompt
    assert "literary mystery" in state.system_prompt
    assert "Mara returns to the harbor" in state.system_prompt
    assert "## overview/overview.md" in state.context_block


def test_estimate_context_tokens(budget_project):
    planner = make_planner(budget_project, estimator=tok_estimator)

    estimate = planner.estimate_context_tokens(ContextScope(project_root=budget_project))

    assert estimate["context_tokens"] == 2600
    assert estimate["total_tokens"] == estimate["system_tokens"] + 2600
    assert estimate["estimated_cost"].startswith("~$")
