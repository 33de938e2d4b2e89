"""Tests for the overwrite guard and version naming."""

import pytest

from draftsmith.errors import PersistenceGuardRejection
from draftsmith.utils.versions import (
    check_overwrite,
    decide_write,
    is_blank,
    next_version_name,
    versioned_name,
)


def test_is_blank():
    assert is_blank(None)
    assert is_blank("")
    assert is_blank(" \n\t ")
    assert not is_blank("Hello world")


def test_guard_rejects_blank_over_populated():
    with pytest.raises(PersistenceGuardRejection):
        check_overwrite("Hello world", "   ")


def test_guard_allows_other_combinations():
    check_overwrite(None, "")
    check_overwrite("", "")
    check_overwrite("Hello world", "New text")
    check_overwrite("", "New text")


def test_versioned_name():
    assert versioned_name("elena.md", 2) == "elena_v2.md"
    assert versioned_name("outline", 3) == "outline_v3"


def test_next_version_starts_at_two():
    assert next_version_name("elena.md", ["elena.md"]) == "elena_v2.md"


def test_next_version_fills_lowest_gap():
    names = ["elena.md", "elena_v2.md", "elena_v4.md", "elena_v2.txt", "other_v3.md"]

    assert next_version_name("elena.md", names) == "elena_v3.md"


def test_decide_free_slot():
    decision = decide_write("elena.md", [], None, "Profile")

    assert decision.target_name == "elena.md"
    assert not decision.versioned
    assert not decision.overwrites


def test_decide_occupied_slot_versions():
    decision = decide_write("elena.md", ["elena.md"], "Hello world", "New profile")

    assert decision.target_name == "elena_v2.md"
    assert decision.versioned


def test_decide_overwrite():
    decision = decide_write("elena.md", ["elena.md"], "Hello world", "New", overwrite=True)

    assert decision.target_name == "elena.md"
    assert decision.overwrites


def test_guard_runs_before_allocation():
    with pytest.raises(PersistenceGuardRejection):
        decide_write("elena.md", ["elena.md"], "Hello world", "")

    with pytest.raises(PersistenceGuardRejection):
        decide_write("elena.md", ["elena.md"], "Hello world", "", overwrite=True)


def test_blank_into_free_slot_allowed():
    assert decide_write("elena.md", [], None, "").target_name == "elena.md"
