"""Context scoping and plan creation."""

import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from draftsmith.cost import CostAccountant
from draftsmith.errors import ScopeResolutionError
from draftsmith.skills import SkillDefinition, resolve_skill
from draftsmith.system_prompt import SystemPromptBuilder
from draftsmith.tools.file_index import CandidateDocument, FileIndex
from draftsmith.tools.overrides import ContextOverrides, InclusionMode
from draftsmith.utils.tokens import TokenEstimator


class ContextScope(BaseModel):
    """Which part of a project a request is about."""

    model_config = ConfigDict(frozen=True)

    project_root: Path = Field(description="Project directory")
    book: Optional[str] = Field(None, description="Book id under books/")
    chapter: Optional[str] = Field(None, description="Chapter id within the book")
    scene: Optional[str] = Field(None, description="Scene id within the chapter")
    character: Optional[str] = Field(None, description="Character id under characters/")

    @property
    def scope_id(self) -> str:
        """Most specific identifier in the scope."""
        return self.character or self.scene or self.chapter or self.book or "project"

    def placeholders(self) -> dict[str, Optional[str]]:
        return {
            "book": self.book,
            "chapter": self.chapter,
            "scene": self.scene,
            "character": self.character,
        }


class ContextFileInfo(BaseModel):
    """A document selected as context, with its token estimate."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Path relative to project root")
    tokens_estimate: int = Field(description="Estimated tokens for the document")
    inclusion: str = Field("auto", description="auto or force")


class Plan(BaseModel):
    """A priced, scoped proposal for one generation request."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique plan id, never reused")
    scope: ContextScope
    skill: str = Field(description="Skill the request runs under")
    model: str = Field(description="Model the request will use")
    context_files: tuple[ContextFileInfo, ...] = Field(default_factory=tuple)
    message_tokens: int = 0
    total_tokens_estimate: int = 0
    estimated_cost: Optional[float] = Field(None, description="Input-only cost; None if unpriced")
    estimated_cost_display: str = "~$?"
    approach: str = ""


@dataclass(frozen=True)
class PlanState:
    """What an execution needs beyond the public plan."""

    plan: Plan
    system_prompt: str
    context_block: str
    temperature: float
    message: str


def select_context(
    entries: list[tuple[int, InclusionMode]], max_tokens: int
) -> list[int]:
    """Choose which candidates to include.

    Forced entries are always taken and count against the budget. Auto
    entries are then taken in priority order while they fit; an entry that
    does not fit is skipped and later, smaller ones may still be taken.
    Excluded entries are never taken.

    Args:
        entries: (tokens, mode) per candidate, in priority order
        max_tokens: Context budget

    Returns:
        Indices of selected entries, ascending
    """
    selected = [i for i, (_, mode) in enumerate(entries) if mode is InclusionMode.FORCE]
    used = sum(entries[i][0] for i in selected)

    for i, (tokens, mode) in enumerate(entries):
        if mode is not InclusionMode.AUTO:
            continue
        if used + tokens <= max_tokens:
            selected.append(i)
            used += tokens

    return sorted(selected)


class ContextScopePlanner:
    """Resolves a scope into a budgeted context selection and a priced Plan."""

    def __init__(
        self,
        project_root: Path,
        file_index: FileIndex,
        accountant: CostAccountant,
        estimator: TokenEstimator,
        skill_overrides: Optional[dict[str, dict]] = None,
        default_model: Optional[str] = None,
    ):
        """Initialize planner.

        Args:
            project_root: Project root directory
            file_index: Candidate document finder
            accountant: Prices the estimate
            estimator: Text -> token count
            skill_overrides: Per-skill model/budget overrides from config
            default_model: Configured default model
        """
        self.project_root = project_root
        self.file_index = file_index
        self.accountant = accountant
        self.estimator = estimator
        self.skill_overrides = skill_overrides or {}
        self.default_model = default_model
        self.prompt_builder = SystemPromptBuilder(project_root)

    def create_plan(self, scope: ContextScope, message: str, skill: Optional[str] = None) -> Plan:
        """Create a priced plan for a request.

        Raises:
            ScopeResolutionError: If the scope root cannot be read
        """
        return self.prepare(scope, message, skill).plan

    def prepare(
        self, scope: ContextScope, message: str, skill: Optional[str] = None
    ) -> PlanState:
        """Create a plan plus the prompt material its execution needs.

        Raises:
            ScopeResolutionError: If the scope root cannot be read
        """
        self._check_scope(scope)
        skill_def = resolve_skill(skill, self.skill_overrides, self.default_model)

        documents, modes = self._candidates(scope, skill_def)
        texts = [self.file_index.read_text(doc) for doc in documents]
        tokens = [self.estimator(text) for text in texts]

        selected = select_context(list(zip(tokens, modes)), skill_def.max_context_tokens)

        context_files = tuple(
            ContextFileInfo(
                path=documents[i].path,
                tokens_estimate=tokens[i],
                inclusion=modes[i].value,
            )
            for i in selected
        )
        context_block = "\n\n".join(
            f"## {documents[i].path}\n\n{texts[i].strip()}" for i in selected
        )

        message_tokens = self.estimator(message)
        total = sum(tokens[i] for i in selected) + message_tokens

        # Preview only: no output tokens are assumed
        estimate = self.accountant.cost(skill_def.default_model, total, 0)

        plan = Plan(
            id=str(uuid.uuid4()),
            scope=scope,
            skill=skill_def.name,
            model=skill_def.default_model,
            context_files=context_files,
            message_tokens=message_tokens,
            total_tokens_estimate=total,
            estimated_cost=estimate.amount if estimate.known else None,
            estimated_cost_display=f"~{estimate.display()}",
            approach=f"Using {skill_def.display_name} skill to process: {message}",
        )

        return PlanState(
            plan=plan,
            system_prompt=self.prompt_builder.render_template(skill_def, scope.book),
            context_block=context_block,
            temperature=skill_def.temperature,
            message=message,
        )

    def estimate_context_tokens(self, scope: ContextScope, skill: Optional[str] = None) -> dict:
        """Estimate prompt size for a scope without creating a plan.

        Returns:
            Dict with system_tokens, context_tokens, total_tokens, estimated_cost
        """
        state = self.prepare(scope, "", skill)
        system_tokens = self.estimator(state.system_prompt)
        context_tokens = state.plan.total_tokens_estimate
        total = system_tokens + context_tokens
        estimate = self.accountant.cost(state.plan.model, total, 0)
        return {
            "system_tokens": system_tokens,
            "context_tokens": context_tokens,
            "total_tokens": total,
            "estimated_cost": f"~{estimate.display()}",
        }

    def _candidates(
        self, scope: ContextScope, skill: SkillDefinition
    ) -> tuple[list[CandidateDocument], list[InclusionMode]]:
        overrides = ContextOverrides.load(self.project_root)

        documents = self.file_index.expand(
            skill.include_patterns(has_book=bool(scope.book)),
            scope.placeholders(),
        )

        # Forced documents join even when the skill would not look at them
        known = {doc.abs_path for doc in documents}
        for forced in overrides.forced_paths():
            doc = self.file_index.describe_forced(Path(forced))
            if doc is not None and doc.abs_path not in known:
                known.add(doc.abs_path)
                documents.append(doc)

        modes = [overrides.mode_for(doc.abs_path) for doc in documents]
        return documents, modes

    def _check_scope(self, scope: ContextScope) -> None:
        root = Path(scope.project_root)

        if Path(self.project_root).resolve() != root.resolve():
            raise ScopeResolutionError(str(root), "scope belongs to a different project")

        if not root.is_dir():
            raise ScopeResolutionError(str(root), "not a directory")

        if not os.access(root, os.R_OK | os.X_OK):
            raise ScopeResolutionError(str(root), "permission denied")

        try:
            next(root.iterdir(), None)
        except OSError as e:
            raise ScopeResolutionError(str(root), str(e)) from e

        for name, value in scope.placeholders().items():
            if value and (value in (".", "..") or "/" in value or "\\" in value):
                raise ScopeResolutionError(str(root), f"invalid {name} id: {value!r}")

        if scope.book and not (root / "books" / scope.book).is_dir():
            raise ScopeResolutionError(str(root / "books" / scope.book), "book not found")
