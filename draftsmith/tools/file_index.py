"""Candidate document discovery for a generation scope."""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

from draftsmith.constants import (
    CONTEXT_SETTINGS_FILE,
    COST_FILE,
    DRAFTS_DIR,
    INTERNAL_DIR,
    TEXT_EXTENSIONS,
)
from draftsmith.utils.ignore import IgnoreRules

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass
class CandidateDocument:
    """A project document that may be used as context."""

    path: str  # Relative to project root, POSIX separators
    abs_path: Path
    size: int


def fill_pattern(pattern: str, values: Mapping[str, Optional[str]]) -> Optional[str]:
    """Substitute ``{name}`` placeholders; None if any value is missing."""
    missing = False

    def _sub(match: re.Match) -> str:
        nonlocal missing
        value = values.get(match.group(1))
        if not value:
            missing = True
            return ""
        return value

    filled = _PLACEHOLDER.sub(_sub, pattern)
    return None if missing else filled


class FileIndex:
    """Finds text documents under a project root by glob pattern."""

    def __init__(
        self,
        project_root: Path,
        ignore_rules: IgnoreRules,
        max_file_size_mb: int = 8,
    ):
        """Initialize file indexer.

        Args:
            project_root: Root directory to search
            ignore_rules: Ignore rules to apply
            max_file_size_mb: Maximum file size to consider (in MB)
        """
        self.project_root = project_root
        self.ignore_rules = ignore_rules
        self.max_file_size = max_file_size_mb * 1024 * 1024

    def expand(
        self, patterns: Iterable[str], values: Mapping[str, Optional[str]]
    ) -> list[CandidateDocument]:
        """Expand include patterns into documents, in pattern order.

        Within a pattern, matches are sorted by path. A document matched by
        several patterns keeps its first position.

        Args:
            patterns: Glob patterns relative to the project root
            values: Placeholder values from the scope

        Returns:
            Ordered, de-duplicated candidates
        """
        seen: set[Path] = set()
        documents = []

        for pattern in patterns:
            filled = fill_pattern(pattern, values)
            if filled is None:
                continue

            for path in sorted(self.project_root.glob(filled)):
                document = self.describe(path)
                if document is None or document.abs_path in seen:
                    continue
                seen.add(document.abs_path)
                documents.append(document)

        return documents

    def describe(self, path: Path) -> Optional[CandidateDocument]:
        """Describe a path if it is an eligible text document.

        Returns:
            CandidateDocument, or None for directories, ignored, oversized,
            non-text, or out-of-project paths
        """
        located = self._locate(path)
        if located is None:
            return None
        resolved, rel_path = located

        if self.ignore_rules.should_ignore(rel_path):
            return None

        if resolved.suffix.lower() not in TEXT_EXTENSIONS:
            return None

        try:
            size = resolved.stat().st_size
        except OSError:
            return None  # Skip files we can't stat
        if size > self.max_file_size:
            return None

        return CandidateDocument(path=rel_path.as_posix(), abs_path=resolved, size=size)

    def describe_forced(self, path: Path) -> Optional[CandidateDocument]:
        """Describe a path the user forced into context.

        Ignore rules, extension and size limits do not apply. The path must
        still be a file inside the project and not one of Draftsmith's own
        state files.
        """
        located = self._locate(path)
        if located is None:
            return None
        resolved, rel_path = located

        if INTERNAL_DIR in rel_path.parts or DRAFTS_DIR in rel_path.parts:
            return None
        if rel_path.name in (CONTEXT_SETTINGS_FILE, COST_FILE):
            return None

        try:
            size = resolved.stat().st_size
        except OSError:
            return None
        return CandidateDocument(path=rel_path.as_posix(), abs_path=resolved, size=size)

    def _locate(self, path: Path) -> Optional[tuple[Path, Path]]:
        if not path.is_absolute():
            path = self.project_root / path

        try:
            resolved = path.resolve()
            rel_path = resolved.relative_to(self.project_root.resolve())
        except (OSError, ValueError):
            return None

        if not resolved.is_file():
            return None
        return resolved, rel_path

    def read_text(self, document: CandidateDocument) -> str:
        """Read a candidate's text; unreadable files read as empty."""
        try:
            return document.abs_path.read_text(encoding="utf-8")
        except (IOError, UnicodeDecodeError):
            return ""
