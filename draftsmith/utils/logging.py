"""Session audit logging."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from draftsmith.constants import INTERNAL_DIR


class SessionLogger:
    """Writes the audit trail for a Draftsmith session.

    Layout under ``.draftsmith/runs/<run_id>/``: ``transcript.ndjson`` for
    conversation turns, ``plans/<plan_id>.json`` for plan snapshots and
    ``events.ndjson`` for executions, costs, writes and cancellations.
    """

    def __init__(self, project_root: Path, run_id: Optional[str] = None):
        """Initialize session logger.

        Args:
            project_root: Project root directory
            run_id: Optional run ID (generated if not provided)
        """
        self.project_root = project_root
        self.run_id = run_id or datetime.now().strftime("%Y%m%d_%H%M%S")

        self.log_dir = project_root / INTERNAL_DIR / "runs" / self.run_id
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.transcript_path = self.log_dir / "transcript.ndjson"
        self.events_path = self.log_dir / "events.ndjson"
        self.plans_dir = self.log_dir / "plans"
        self.plans_dir.mkdir(exist_ok=True)

    def log_message(self, role: str, content: str) -> None:
        """Log a conversation message."""
        self._append(self.transcript_path, {
            "ts": datetime.now().isoformat(),
            "role": role,
            "content": content,
        })

    def log_event(self, kind: str, **fields: Any) -> None:
        """Log a pipeline event (execution, cost, write, cancel...)."""
        self._append(self.events_path, {
            "ts": datetime.now().isoformat(),
            "event": kind,
            **fields,
        })

    def save_plan(self, plan: dict) -> None:
        """Save a plan snapshot to disk."""
        plan_path = self.plans_dir / f"{plan['id']}.json"
        with open(plan_path, "w") as f:
            json.dump(plan, f, indent=2, default=str)

    def read_events(self) -> list[dict]:
        """Read back the logged events, oldest first."""
        if not self.events_path.exists():
            return []
        with open(self.events_path) as f:
            return [json.loads(line) for line in f if line.strip()]

    def get_log_path(self) -> str:
        """Get the absolute path to the log directory."""
        return str(self.log_dir.absolute())

    @staticmethod
    def _append(path: Path, entry: dict) -> None:
        with open(path, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")
