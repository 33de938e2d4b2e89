"""Document store primitives: read, list, write and draft snapshots."""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from draftsmith.constants import DRAFTS_DIR


@dataclass
class DraftSnapshot:
    """A saved copy of a document taken before it was overwritten."""

    name: str
    path: str
    created: str
    word_count: int


class DocumentStore:
    """Handles document I/O inside a project with safety checks."""

    def __init__(
        self,
        project_root: Path,
        max_read_mb: int = 8,
        max_write_mb: int = 2,
    ):
        """Initialize the store.

        Args:
            project_root: Project root directory
            max_read_mb: Maximum file size to read (MB)
            max_write_mb: Maximum file size to write (MB)
        """
        self.project_root = project_root
        self.max_read_bytes = max_read_mb * 1024 * 1024
        self.max_write_bytes = max_write_mb * 1024 * 1024

    def read(self, path: str) -> tuple[bool, Optional[str], Optional[str]]:
        """Read a text document.

        Args:
            path: Relative or absolute path to file

        Returns:
            Tuple of (success, content, error)
        """
        file_path = self.resolve(path)

        if not self.is_safe_path(file_path):
            return False, None, f"Path outside project root: {path}"

        if not file_path.exists():
            return False, None, f"File not found: {path}"

        if not file_path.is_file():
            return False, None, f"Not a file: {path}"

        try:
            size = file_path.stat().st_size
            if size > self.max_read_bytes:
                size_mb = size / (1024 * 1024)
                max_mb = self.max_read_bytes / (1024 * 1024)
                return False, None, f"File too large: {size_mb:.2f} MB (max: {max_mb} MB)"
        except OSError as e:
            return False, None, f"Cannot stat file: {e}"

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                content = f.read()
            return True, content, None
        except UnicodeDecodeError:
            return False, None, "File is not valid UTF-8 text"
        except IOError as e:
            return False, None, f"Cannot read file: {e}"

    def exists(self, path: str) -> bool:
        file_path = self.resolve(path)
        return self.is_safe_path(file_path) and file_path.is_file()

    def list_names(self, directory: str) -> list[str]:
        """List file names in a directory (empty if it does not exist).

        Args:
            directory: Relative or absolute directory path

        Returns:
            Sorted file names
        """
        dir_path = self.resolve(directory)
        if not self.is_safe_path(dir_path) or not dir_path.is_dir():
            return []
        return sorted(entry.name for entry in dir_path.iterdir() if entry.is_file())

    def write(self, path: str, content: str) -> tuple[bool, Optional[str]]:
        """Write content to a file.

        Args:
            path: Relative or absolute path to file
            content: Content to write

        Returns:
            Tuple of (success, error)
        """
        file_path = self.resolve(path)

        if not self.is_safe_path(file_path):
            return False, f"Path outside project root: {path}"

        content_bytes = len(content.encode("utf-8"))
        if content_bytes > self.max_write_bytes:
            size_mb = content_bytes / (1024 * 1024)
            max_mb = self.max_write_bytes / (1024 * 1024)
            return False, f"Content too large: {size_mb:.2f} MB (max: {max_mb} MB)"

        file_path.parent.mkdir(parents=True, exist_ok=True)

        # Write atomically (temp file + rename)
        temp_path = file_path.with_suffix(file_path.suffix + ".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(content)
            temp_path.replace(file_path)
            return True, None
        except IOError as e:
            if temp_path.exists():
                temp_path.unlink()
            return False, f"Cannot write file: {e}"

    def snapshot(self, path: str) -> tuple[bool, Optional[str], Optional[str]]:
        """Copy a document into its directory's ``.drafts`` folder.

        Args:
            path: Document to snapshot

        Returns:
            Tuple of (success, snapshot_name, error); snapshot_name is None
            when there was nothing to snapshot
        """
        file_path = self.resolve(path)
        if not file_path.exists():
            return True, None, None

        success, content, error = self.read(path)
        if not success:
            return False, None, error

        drafts_dir = file_path.parent / DRAFTS_DIR
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        snapshot_name = f"{stamp}{file_path.suffix or '.md'}"

        success, error = self.write(str(drafts_dir / snapshot_name), content)
        if not success:
            return False, None, error
        return True, snapshot_name, None

    def list_drafts(self, directory: str) -> list[DraftSnapshot]:
        """List snapshots for a directory, newest first."""
        drafts_dir = self.resolve(directory) / DRAFTS_DIR
        if not drafts_dir.is_dir():
            return []

        snapshots = []
        for entry in drafts_dir.iterdir():
            if not entry.is_file():
                continue
            success, content, _ = self.read(str(entry))
            created = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
            snapshots.append(DraftSnapshot(
                name=entry.name,
                path=str(entry),
                created=created.isoformat(),
                word_count=len(content.split()) if success else 0,
            ))

        return sorted(snapshots, key=lambda s: s.name, reverse=True)

    def restore_draft(
        self, path: str, snapshot_name: str
    ) -> tuple[bool, Optional[str], Optional[str]]:
        """Restore a snapshot over a document, snapshotting the current one first.

        Args:
            path: Document to restore
            snapshot_name: Name of the snapshot in the document's ``.drafts``

        Returns:
            Tuple of (success, restored_content, error)
        """
        file_path = self.resolve(path)
        snapshot_path = file_path.parent / DRAFTS_DIR / snapshot_name

        success, content, error = self.read(str(snapshot_path))
        if not success:
            return False, None, f"Snapshot not found: {snapshot_name} ({error})"

        success, _, error = self.snapshot(path)
        if not success:
            return False, None, error

        success, error = self.write(path, content)
        if not success:
            return False, None, error
        return True, content, None

    def resolve(self, path: str) -> Path:
        """Resolve a path string to an absolute Path."""
        p = Path(path)
        if p.is_absolute():
            return p
        return (self.project_root / p).resolve()

    def is_safe_path(self, path: Path) -> bool:
        """Check if a path is within project root."""
        try:
            path.resolve().relative_to(self.project_root.resolve())
            return True
        except ValueError:
            return False
