"""Overwrite guard and version-name allocation.

Both are pure functions of the existing slot content, the candidate content
and the directory listing, so they can be tested without touching disk.
"""

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable, Optional

from draftsmith.errors import PersistenceGuardRejection

VERSION_SEPARATOR = "_v"
FIRST_VERSION = 2


def is_blank(content: Optional[str]) -> bool:
    """True for None, empty or whitespace-only content."""
    return content is None or not content.strip()


def check_overwrite(existing: Optional[str], candidate: str, path: str = "") -> None:
    """Refuse to replace populated content with empty content.

    Args:
        existing: Current body of the slot (None if the slot is free)
        candidate: Body about to be written
        path: Slot path, for the error message

    Raises:
        PersistenceGuardRejection: If existing is non-empty and candidate is blank
    """
    if not is_blank(existing) and is_blank(candidate):
        raise PersistenceGuardRejection(path)


def versioned_name(canonical_name: str, version: int) -> str:
    """Build ``<stem>_v<n><suffix>`` for a canonical filename."""
    path = PurePath(canonical_name)
    return f"{path.stem}{VERSION_SEPARATOR}{version}{path.suffix}"


def next_version_name(canonical_name: str, existing_names: Iterable[str]) -> str:
    """Lowest unused versioned alternate of ``canonical_name``, starting at 2.

    Args:
        canonical_name: Canonical filename, e.g. ``elena.md``
        existing_names: Filenames already present in the slot directory

    Returns:
        Free versioned filename, e.g. ``elena_v2.md``
    """
    path = PurePath(canonical_name)
    pattern = re.compile(
        rf"^{re.escape(path.stem)}{re.escape(VERSION_SEPARATOR)}(\d+){re.escape(path.suffix)}$"
    )
    taken = set()
    for name in existing_names:
        match = pattern.match(name)
        if match:
            taken.add(int(match.group(1)))

    version = FIRST_VERSION
    while version in taken:
        version += 1
    return versioned_name(canonical_name, version)


@dataclass(frozen=True)
class WriteDecision:
    """Where a write should land, and whether it replaces the canonical file."""

    target_name: str
    overwrites: bool
    versioned: bool


def decide_write(
    canonical_name: str,
    existing_names: Iterable[str],
    existing_content: Optional[str],
    candidate: str,
    overwrite: bool = False,
) -> WriteDecision:
    """Choose the target filename for a write.

    The guard runs first: a blank candidate never lands over a populated
    canonical slot, whichever path is taken.

    Args:
        canonical_name: Canonical filename in the slot directory
        existing_names: Current directory listing
        existing_content: Body of the canonical file (None if absent)
        candidate: Body to write
        overwrite: Replace the canonical file instead of versioning

    Returns:
        WriteDecision

    Raises:
        PersistenceGuardRejection: If the guard refuses the write
    """
    names = set(existing_names)
    occupied = canonical_name in names

    if occupied:
        check_overwrite(existing_content, candidate, canonical_name)

    if not occupied:
        return WriteDecision(target_name=canonical_name, overwrites=False, versioned=False)

    if overwrite:
        return WriteDecision(target_name=canonical_name, overwrites=True, versioned=False)

    return WriteDecision(
        target_name=next_version_name(canonical_name, names),
        overwrites=False,
        versioned=True,
    )
