"""Exception types raised by the generation pipeline."""

from typing import Optional


class DraftsmithError(Exception):
    """Base class for all Draftsmith errors."""


class ScopeResolutionError(DraftsmithError):
    """The scope root could not be read; plan creation is aborted."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot resolve scope {path}: {reason}")


class PlanNotFoundError(DraftsmithError):
    """A plan id is unknown, already executed, or cancelled."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan {plan_id} not found - it may have expired")


class StreamError(DraftsmithError):
    """The inference stream ended with an error event or failed to start."""

    def __init__(self, plan_id: str, reason: str):
        self.plan_id = plan_id
        self.reason = reason
        super().__init__(f"Generation failed for plan {plan_id}: {reason}")


class CancellationRace(DraftsmithError):
    """A terminal event arrived for an execution that was cancelled meanwhile."""

    def __init__(self, plan_id: str, started_epoch: int, current_epoch: int):
        self.plan_id = plan_id
        self.started_epoch = started_epoch
        self.current_epoch = current_epoch
        super().__init__(
            f"Discarding stale result for plan {plan_id} "
            f"(epoch {started_epoch}, now {current_epoch})"
        )


class PersistenceGuardRejection(DraftsmithError):
    """A write would replace non-empty content with empty content."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Refusing to overwrite non-empty {path} with empty content")


class UnknownModelPricing(DraftsmithError):
    """The pricing table has no entry for a model."""

    def __init__(self, model: str):
        self.model = model
        super().__init__(f"No pricing known for model: {model}")


class PartialBatchExtraction(DraftsmithError):
    """Some requested entities were missing from a batch response."""

    def __init__(self, missing: list[int], requested: int, message: Optional[str] = None):
        self.missing = missing
        self.requested = requested
        super().__init__(
            message
            or f"{len(missing)} of {requested} entities missing from response: "
            + ", ".join(str(n) for n in missing)
        )
