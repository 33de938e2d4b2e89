"""State models for LangGraph."""

from typing import Any, Annotated, Optional, TypedDict
from operator import add


class CommitState(TypedDict, total=False):
    """The state passed through the post-execution commit graph.

    Attributes:
        plan_id: Plan whose execution is being committed
        plan: The Plan (model, context files) that was executed
        result: ExecutionResult assembled from the done event
        batch: Optional BatchTarget naming the entities to extract
        output: Optional OutputTarget for a single-document write
        cost: CostEntry recorded for the execution
        totals: (session_total, project_total) after recording
        extraction: BatchExtraction, when a batch was requested
        writes: WriteResults, appended by each persisting node
    """

    plan_id: str
    plan: Any
    result: Any
    batch: Optional[Any]
    output: Optional[Any]
    cost: Optional[Any]
    totals: Optional[tuple[float, float]]
    extraction: Optional[Any]
    writes: Annotated[list[Any], add]
