"""Context ignore rules handling using pathspec."""

from pathlib import Path

import pathspec

from draftsmith.constants import BUILTIN_IGNORES


class IgnoreRules:
    """Decides which project files may never be offered as context.

    Combines built-in patterns with ``.gitignore`` and ``.draftsmithignore``.
    """

    def __init__(self, project_root: Path):
        """Initialize ignore rules.

        Args:
            project_root: Root directory to search for ignore files
        """
        self.project_root = project_root
        self.spec = self._build_spec()

    def _build_spec(self) -> pathspec.PathSpec:
        """Build combined PathSpec from all ignore sources."""
        patterns = list(BUILTIN_IGNORES)

        for name in (".gitignore", ".draftsmithignore"):
            ignore_path = self.project_root / name
            if ignore_path.exists():
                try:
                    with open(ignore_path) as f:
                        patterns.extend(f.read().splitlines())
                except IOError:
                    pass  # Unreadable ignore files add nothing

        # Filter out empty lines and comments
        patterns = [p.strip() for p in patterns if p.strip() and not p.strip().startswith("#")]

        return pathspec.PathSpec.from_lines("gitwildmatch", patterns)

    def should_ignore(self, path: Path) -> bool:
        """Check if a path should be ignored.

        Args:
            path: Path to check (absolute or relative to project root)

        Returns:
            True if the path should be ignored
        """
        try:
            if path.is_absolute():
                rel_path = path.relative_to(self.project_root)
            else:
                rel_path = path
        except ValueError:
            # Path is outside project root
            return True

        return self.spec.match_file(rel_path.as_posix())
