"""Plan -> confirm -> stream -> commit orchestration."""

import asyncio
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional

from langgraph.graph import StateGraph, END

from draftsmith.config import Config
from draftsmith.constants import MAX_PENDING_PLANS
from draftsmith.cost import CostAccountant, CostEntry, PricingTable
from draftsmith.errors import CancellationRace, PlanNotFoundError, StreamError
from draftsmith.events import EventBus
from draftsmith.llm import LLM, InferenceRequest
from draftsmith.state import CommitState
from draftsmith.system_prompt import SystemPromptBuilder
from draftsmith.tools.artifacts import ArtifactMetadata, VersionedArtifactWriter, WriteResult
from draftsmith.tools.batch import BatchExtraction, BatchResponseParser
from draftsmith.tools.cancellation import CancellationController
from draftsmith.tools.executor import ChunkCallback, ExecutionResult, StreamingExecutor
from draftsmith.tools.file_index import FileIndex
from draftsmith.tools.planner import ContextScope, ContextScopePlanner, Plan, PlanState
from draftsmith.tools.quick import QuickActionExecutor, QuickResult
from draftsmith.tools.read_write import DocumentStore
from draftsmith.utils.ignore import IgnoreRules
from draftsmith.utils.logging import SessionLogger
from draftsmith.utils.slug import slugify
from draftsmith.utils.tokens import TiktokenEstimator, TokenEstimator


@dataclass
class BatchItem:
    """One entity requested in a batch and where its document goes."""

    number: int
    label: str
    slot_dir: str
    canonical_name: str
    metadata: ArtifactMetadata


@dataclass
class BatchTarget:
    """Entities to extract from one response, keyed by header number."""

    items: list[BatchItem]
    keyword: str = "ENTITY"

    def requested(self) -> list[tuple[int, str]]:
        return [(item.number, item.label) for item in self.items]

    def item(self, number: int) -> BatchItem:
        for item in self.items:
            if item.number == number:
                return item
        raise KeyError(number)


def build_batch_target(
    keyword: str,
    entities: list[tuple[int, str]],
    book: Optional[str] = None,
) -> BatchTarget:
    """Lay out where each entity of a batch response is written.

    ``CHARACTER`` entities go to ``characters/<slug>.md`` and ``CHAPTER``
    entities to ``books/<book>/chapters/chapter-NN/outline.md``; anything
    else lands in ``generated/<keyword>/<slug>.md``.

    Args:
        keyword: Header keyword the response uses
        entities: Ordered (number, label) pairs
        book: Book id, required for chapters
    """
    keyword = keyword.upper()
    items = []
    for number, label in entities:
        if keyword == "CHARACTER":
            slot_dir, name, kind, scope_id = "characters", f"{slugify(label)}.md", "character", slugify(label)
        elif keyword == "CHAPTER":
            if not book:
                raise ValueError("Chapter batches need a book in scope")
            chapter = f"chapter-{number:02d}"
            slot_dir, name, kind, scope_id = f"books/{book}/chapters/{chapter}", "outline.md", "outline", chapter
        else:
            kind = keyword.lower()
            slot_dir, name, scope_id = f"generated/{kind}", f"{slugify(label, fallback=str(number))}.md", book or "project"

        items.append(BatchItem(
            number=number,
            label=label,
            slot_dir=slot_dir,
            canonical_name=name,
            metadata=ArtifactMetadata(
                type=kind, scope_id=scope_id, status="ai_suggestion", extra={"title": label}
            ),
        ))
    return BatchTarget(items=items, keyword=keyword)


@dataclass
class OutputTarget:
    """Single document destination for a non-batch execution."""

    slot_dir: str
    canonical_name: str
    metadata: ArtifactMetadata
    regenerate: bool = False


@dataclass
class GenerationOutcome:
    """What happened to one executed plan."""

    plan_id: str
    status: Literal["completed", "cancelled"]
    result: Optional[ExecutionResult] = None
    cost: Optional[CostEntry] = None
    writes: list[WriteResult] = field(default_factory=list)
    extraction: Optional[BatchExtraction] = None

    @property
    def written_count(self) -> int:
        return sum(1 for write in self.writes if write.success)

    @property
    def requested_count(self) -> int:
        if self.extraction is not None:
            return self.extraction.requested_count
        return len(self.writes)

    def summary(self) -> str:
        if self.status == "cancelled":
            return "Cancelled"
        parts = []
        if self.cost is not None:
            parts.append(f"cost {self.cost.display()}")
        if self.requested_count:
            parts.append(f"wrote {self.written_count}/{self.requested_count}")
        return "Completed" + (f" ({', '.join(parts)})" if parts else "")


class GenerationPipeline:
    """Wires the planner, executor, cancellation, cost and persistence together.

    Plans live in an in-memory registry from ``create_plan`` until they are
    executed, cancelled or evicted as one of the oldest unconfirmed plans;
    each is consumed at most once. The commit stage that
    follows a successful execution (record cost, then extract and persist)
    runs as a LangGraph workflow.
    """

    def __init__(
        self,
        project_root: Path,
        config: Config,
        backend: Optional[Any] = None,
        estimator: Optional[TokenEstimator] = None,
        logger: Optional[SessionLogger] = None,
        bus: Optional[EventBus] = None,
    ):
        """Initialize the pipeline.

        Args:
            project_root: Project root directory
            config: Configuration object
            backend: Object with async ``stream(bus, plan_id, request)`` and
                ``complete(request)``; an ``LLM`` is built when omitted
            estimator: Token estimator (tiktoken when omitted)
            logger: Session audit logger
            bus: Event bus shared with the backend
        """
        self.project_root = project_root
        self.config = config
        self.logger = logger
        self.bus = bus or EventBus()

        if backend is None:
            if not config.anthropic_api_key:
                raise ValueError("No Anthropic API key found. Set ANTHROPIC_API_KEY in .env")
            backend = LLM(config.anthropic_api_key, config.max_output_tokens)
        self.backend = backend

        table = PricingTable.load(Path(config.models_file)) if config.models_file else None
        self.accountant = CostAccountant(table, project_root)

        # Initialize tools
        self.ignore_rules = IgnoreRules(project_root)
        self.file_index = FileIndex(project_root, self.ignore_rules, config.max_read_mb)
        self.store = DocumentStore(project_root, config.max_read_mb, config.max_write_mb)
        self.writer = VersionedArtifactWriter(self.store)
        self.prompt_builder = SystemPromptBuilder(project_root)

        self.planner = ContextScopePlanner(
            project_root,
            self.file_index,
            self.accountant,
            estimator or TiktokenEstimator(),
            skill_overrides=config.effective_skill_overrides(),
            default_model=config.default_model,
        )
        self.executor = StreamingExecutor(
            self.bus, self._transport, timeout=config.stream_timeout_seconds
        )
        self.controller = CancellationController()
        self.quick = QuickActionExecutor(self.planner, self.backend.complete, self.accountant)

        self._lock = threading.Lock()
        self._pending: dict[str, PlanState] = {}
        self._running: dict[str, PlanState] = {}
        self.max_pending_plans = MAX_PENDING_PLANS

        self.commit_graph = self.build_commit_graph()

    def scope(self, **ids: Optional[str]) -> ContextScope:
        """Build a scope for this project (book, chapter, scene, character)."""
        return ContextScope(project_root=self.project_root, **ids)

    def create_plan(
        self, scope: ContextScope, message: str, skill: Optional[str] = None
    ) -> Plan:
        """Create, register and log a priced plan.

        Raises:
            ScopeResolutionError: If the scope cannot be resolved
        """
        state = self.planner.prepare(scope, message, skill)
        plan = state.plan

        with self._lock:
            self._pending[plan.id] = state
            evicted = list(self._pending)[: max(0, len(self._pending) - self.max_pending_plans)]
            for old_id in evicted:
                del self._pending[old_id]
        self.controller.register(plan.id)

        # Never confirmed; drop them like a cancel
        for old_id in evicted:
            self.controller.finish(old_id)
            self._log("plan_evicted", plan_id=old_id)

        if self.logger:
            self.logger.save_plan(plan.model_dump(mode="json"))
        return plan

    def pending_plan(self, plan_id: str) -> Optional[Plan]:
        with self._lock:
            state = self._pending.get(plan_id)
        return state.plan if state else None

    async def execute(
        self,
        plan_id: str,
        history: Optional[list[dict]] = None,
        on_chunk: Optional[ChunkCallback] = None,
        batch: Optional[BatchTarget] = None,
        output: Optional[OutputTarget] = None,
    ) -> GenerationOutcome:
        """Execute a confirmed plan and commit its result.

        A cancelled execution, including one whose terminal event raced the
        cancel, produces a ``cancelled`` outcome with no cost and no writes.

        Args:
            plan_id: Plan returned by ``create_plan``
            history: Prior conversation messages ({role, content})
            on_chunk: Optional progress callback for streamed text
            batch: Entities to extract and write from the response
            output: Single document to write the response to

        Raises:
            PlanNotFoundError: If the plan is unknown, executed or cancelled
            StreamError: If the inference stream fails
        """
        state = self._take(plan_id)
        with self._lock:
            self._running[plan_id] = state

        task = asyncio.create_task(self.executor.execute(plan_id, history or [], on_chunk))
        epoch = self.controller.begin(plan_id, task)

        try:
            try:
                result = await task
            except asyncio.CancelledError:
                if task.cancelled() and not self.controller.is_current(plan_id, epoch):
                    self._log("cancelled", plan_id=plan_id, stage="streaming")
                    return GenerationOutcome(plan_id=plan_id, status="cancelled")
                raise
            except StreamError as e:
                self._log("execution_failed", plan_id=plan_id, reason=e.reason)
                raise

            try:
                self.controller.ensure_current(plan_id, epoch)
            except CancellationRace:
                self._log("cancelled", plan_id=plan_id, stage="terminal", discarded=True)
                return GenerationOutcome(plan_id=plan_id, status="cancelled")

            self._log(
                "execution_completed",
                plan_id=plan_id,
                model=result.model,
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
            )

            final = await self.commit_graph.ainvoke({
                "plan_id": plan_id,
                "plan": state.plan,
                "result": result,
                "batch": batch,
                "output": output,
                "writes": [],
            })
        finally:
            with self._lock:
                self._running.pop(plan_id, None)
            self.controller.finish(plan_id)

        return GenerationOutcome(
            plan_id=plan_id,
            status="completed",
            result=result,
            cost=final.get("cost"),
            writes=list(final.get("writes", [])),
            extraction=final.get("extraction"),
        )

    async def regenerate_one(
        self,
        plan_id: str,
        output: OutputTarget,
        history: Optional[list[dict]] = None,
        on_chunk: Optional[ChunkCallback] = None,
        confirmed: bool = False,
    ) -> GenerationOutcome:
        """Execute a plan and overwrite the canonical document with the result.

        Raises:
            ValueError: If the overwrite was not confirmed (nothing is sent)
            PlanNotFoundError: If the plan is unknown, executed or cancelled
        """
        if not confirmed:
            raise ValueError("Regenerating over an existing file requires confirmation")
        target = OutputTarget(
            slot_dir=output.slot_dir,
            canonical_name=output.canonical_name,
            metadata=output.metadata,
            regenerate=True,
        )
        return await self.execute(plan_id, history, on_chunk, output=target)

    def cancel(self, plan_id: str) -> None:
        """Cancel a pending or running plan; unknown ids are a no-op."""
        with self._lock:
            pending = self._pending.pop(plan_id, None)

        live = self.controller.cancel(plan_id)
        if pending is not None:
            # Never started, so nothing else will clear it
            self.controller.finish(plan_id)
        if pending is not None or live:
            self._log("cancel_requested", plan_id=plan_id, pending=pending is not None)

    async def quick_complete(
        self,
        scope: ContextScope,
        selection_text: Optional[str],
        action_id: str,
        prompt_message: str,
    ) -> QuickResult:
        """Run a quick action (no plan, no write) and record its cost."""
        result = await self.quick.quick_complete(scope, selection_text, action_id, prompt_message)
        self._log(
            "quick_action",
            action=action_id,
            model=result.model,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            cost=result.cost,
            cost_known=result.cost_known,
        )
        return result

    def build_commit_graph(self):
        """Build the LangGraph commit workflow.

        Returns:
            Compiled StateGraph
        """
        workflow = StateGraph(CommitState)

        workflow.add_node("record_cost", self.record_cost_node)
        workflow.add_node("extract_batch", self.extract_batch_node)
        workflow.add_node("persist_batch", self.persist_batch_node)
        workflow.add_node("persist_output", self.persist_output_node)

        workflow.set_entry_point("record_cost")
        workflow.add_conditional_edges(
            "record_cost",
            self._route_after_cost,
            {"extract_batch": "extract_batch", "persist_output": "persist_output", END: END},
        )
        workflow.add_edge("extract_batch", "persist_batch")
        workflow.add_edge("persist_batch", END)
        workflow.add_edge("persist_output", END)

        return workflow.compile()

    async def record_cost_node(self, state: CommitState) -> dict:
        result: ExecutionResult = state["result"]
        entry = self.accountant.cost(
            result.model or state["plan"].model, result.input_tokens, result.output_tokens
        )
        totals = self.accountant.record(entry)
        self._log(
            "cost_recorded",
            plan_id=state["plan_id"],
            model=entry.model,
            tier=entry.tier,
            amount=entry.amount,
            known=entry.known,
            session_total=totals[0],
            project_total=totals[1],
        )
        return {"cost": entry, "totals": totals}

    async def extract_batch_node(self, state: CommitState) -> dict:
        batch: BatchTarget = state["batch"]
        parser = BatchResponseParser(batch.keyword)
        extraction = parser.extract(state["result"].full_text, batch.requested())
        if extraction.missing:
            self._log(
                "batch_partial",
                plan_id=state["plan_id"],
                missing=extraction.missing,
                found=extraction.summary(),
            )
        return {"extraction": extraction}

    async def persist_batch_node(self, state: CommitState) -> dict:
        batch: BatchTarget = state["batch"]
        sources = self._sources(state["plan"])
        writes = []
        for entry in state["extraction"].entries:
            item = batch.item(entry.entity_number)
            metadata = self._with_sources(item.metadata, sources)
            write = await self.writer.write_artifact(
                item.slot_dir, item.canonical_name, metadata, entry.raw_content
            )
            self._log_write(state["plan_id"], write)
            writes.append(write)
        return {"writes": writes}

    async def persist_output_node(self, state: CommitState) -> dict:
        output: OutputTarget = state["output"]
        metadata = self._with_sources(output.metadata, self._sources(state["plan"]))
        content = state["result"].full_text.strip()
        if output.regenerate:
            write = await self.writer.regenerate_artifact(
                output.slot_dir, output.canonical_name, metadata, content, confirmed=True
            )
        else:
            write = await self.writer.write_artifact(
                output.slot_dir, output.canonical_name, metadata, content
            )
        self._log_write(state["plan_id"], write)
        return {"writes": [write]}

    @staticmethod
    def _route_after_cost(state: CommitState) -> str:
        if state.get("batch") is not None:
            return "extract_batch"
        if state.get("output") is not None:
            return "persist_output"
        return END

    async def _transport(self, plan_id: str, history: list[dict]) -> None:
        with self._lock:
            state = self._running.get(plan_id)
        if state is None:
            raise PlanNotFoundError(plan_id)

        request = InferenceRequest(
            model=state.plan.model,
            system=self.prompt_builder.build_system_messages(state.system_prompt, state.context_block),
            messages=list(history) + [{"role": "user", "content": state.message}],
            temperature=state.temperature,
        )
        await self.backend.stream(self.bus, plan_id, request)

    def _take(self, plan_id: str) -> PlanState:
        with self._lock:
            state = self._pending.pop(plan_id, None)
        if state is None:
            raise PlanNotFoundError(plan_id)
        return state

    @staticmethod
    def _sources(plan: Plan) -> list[str]:
        return [info.path for info in plan.context_files]

    @staticmethod
    def _with_sources(metadata: ArtifactMetadata, sources: list[str]) -> ArtifactMetadata:
        if metadata.sources:
            return metadata
        return metadata.model_copy(update={"sources": sources})

    def _log_write(self, plan_id: str, write: WriteResult) -> None:
        self._log(
            "artifact_write",
            plan_id=plan_id,
            status=write.status,
            path=write.path,
            canonical_path=write.canonical_path,
            snapshot=write.snapshot,
            error=write.error,
        )

    def _log(self, kind: str, **fields: Any) -> None:
        if self.logger:
            self.logger.log_event(kind, **fields)
