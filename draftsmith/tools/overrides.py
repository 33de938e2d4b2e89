"""Per-document inclusion overrides for context selection."""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Union

from draftsmith.constants import CONTEXT_SETTINGS_FILE


class InclusionMode(str, Enum):
    """How a document participates in context selection."""

    AUTO = "auto"
    EXCLUDE = "exclude"
    FORCE = "force"


def normalize_path(path: Union[str, Path], project_root: Path) -> str:
    """Normalize a document path to the key used in the settings file.

    Relative paths are taken from the project root; separators and case are
    normalized the way the host filesystem compares them.
    """
    p = Path(path)
    if not p.is_absolute():
        p = project_root / p
    return os.path.normcase(os.path.normpath(str(p.resolve())))


class ContextOverrides:
    """Mapping of normalized absolute path -> exclude|force for one project.

    Stored in ``.context_settings.json`` at the project root. Absent paths
    are ``auto``.
    """

    def __init__(self, project_root: Path, overrides: dict[str, InclusionMode] = None):
        self.project_root = project_root
        self.overrides: dict[str, InclusionMode] = {}
        for path, mode in (overrides or {}).items():
            self.set(path, mode)

    @classmethod
    def load(cls, project_root: Path) -> "ContextOverrides":
        """Load overrides from the project's settings file.

        Unknown modes and an unreadable file are ignored.
        """
        settings_path = project_root / CONTEXT_SETTINGS_FILE
        raw: dict = {}
        if settings_path.exists():
            try:
                with open(settings_path) as f:
                    raw = json.load(f)
            except (json.JSONDecodeError, IOError):
                raw = {}

        overrides = cls(project_root)
        if isinstance(raw, dict):
            for path, mode in raw.items():
                try:
                    overrides.set(path, InclusionMode(mode))
                except ValueError:
                    continue
        return overrides

    def save(self) -> None:
        settings_path = self.project_root / CONTEXT_SETTINGS_FILE
        with open(settings_path, "w") as f:
            json.dump({path: mode.value for path, mode in self.overrides.items()}, f, indent=2)

    def mode_for(self, path: Union[str, Path]) -> InclusionMode:
        return self.overrides.get(normalize_path(path, self.project_root), InclusionMode.AUTO)

    def set(self, path: Union[str, Path], mode: Union[InclusionMode, str]) -> None:
        """Set a path's mode; ``auto`` removes the entry."""
        mode = InclusionMode(mode)
        key = normalize_path(path, self.project_root)
        if mode is InclusionMode.AUTO:
            self.overrides.pop(key, None)
        else:
            self.overrides[key] = mode

    def forced_paths(self) -> list[str]:
        return sorted(path for path, mode in self.overrides.items() if mode is InclusionMode.FORCE)
