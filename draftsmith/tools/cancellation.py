"""Advisory, epoch-tagged cancellation of running executions."""

import asyncio
import threading
from typing import Optional

from draftsmith.errors import CancellationRace


class CancellationController:
    """Maps live plan ids to abortable executions.

    Every plan carries an epoch. An execution records the epoch it started
    under; ``cancel`` bumps it. A terminal result is only acted on while its
    starting epoch is still current, which is what suppresses a ``done``
    event that was already in flight when the user cancelled.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._epochs: dict[str, int] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def register(self, plan_id: str) -> None:
        """Track a newly created plan (no-op if already tracked)."""
        with self._lock:
            self._epochs.setdefault(plan_id, 0)

    def begin(self, plan_id: str, task: Optional[asyncio.Task] = None) -> int:
        """Mark an execution as started.

        Args:
            plan_id: Plan being executed
            task: Task to abort on cancel

        Returns:
            Epoch the execution started under
        """
        with self._lock:
            epoch = self._epochs.setdefault(plan_id, 0)
            if task is not None:
                self._tasks[plan_id] = task
            return epoch

    def cancel(self, plan_id: str) -> bool:
        """Cancel a plan; safe to call at any time and any number of times.

        Returns:
            True if the plan was live (its epoch advanced), False otherwise
        """
        with self._lock:
            if plan_id not in self._epochs:
                return False
            self._epochs[plan_id] += 1
            task = self._tasks.pop(plan_id, None)

        if task is not None and not task.done():
            task.cancel()
        return True

    def current_epoch(self, plan_id: str) -> Optional[int]:
        with self._lock:
            return self._epochs.get(plan_id)

    def is_current(self, plan_id: str, epoch: int) -> bool:
        with self._lock:
            return self._epochs.get(plan_id) == epoch

    def ensure_current(self, plan_id: str, epoch: int) -> None:
        """Raise if the plan was cancelled since ``epoch``.

        Raises:
            CancellationRace: If the epoch has advanced
        """
        with self._lock:
            current = self._epochs.get(plan_id)
        if current != epoch:
            raise CancellationRace(plan_id, epoch, current if current is not None else -1)

    def finish(self, plan_id: str) -> None:
        """Forget a plan once its execution is over; later cancels are no-ops."""
        with self._lock:
            self._epochs.pop(plan_id, None)
            self._tasks.pop(plan_id, None)

    def is_live(self, plan_id: str) -> bool:
        with self._lock:
            return plan_id in self._epochs
