"""Token-usage pricing and running cost totals."""

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from draftsmith.constants import COST_FILE, LONG_CONTEXT_THRESHOLD, SUPPORTED_MODELS
from draftsmith.errors import UnknownModelPricing


@dataclass(frozen=True)
class PricingTier:
    """USD per million tokens."""

    input: float
    output: float


@dataclass(frozen=True)
class ModelPricing:
    """Pricing tiers for one model."""

    standard: PricingTier
    long_context: Optional[PricingTier] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ModelPricing":
        long_context = data.get("long_context")
        return cls(
            standard=PricingTier(**data["standard"]),
            long_context=PricingTier(**long_context) if long_context else None,
        )


@dataclass(frozen=True)
class CostEntry:
    """Priced token usage for a single execution."""

    model: str
    input_tokens: int
    output_tokens: int
    tier: str
    amount: float
    known: bool = True

    def display(self) -> str:
        return format_cost(self.amount if self.known else None)


def format_cost(amount: Optional[float]) -> str:
    """Format a USD amount; sub-cent amounts keep four decimals."""
    if amount is None:
        return "$?"
    if amount < 0.01:
        return f"${amount:.4f}"
    return f"${amount:.2f}"


class PricingTable:
    """Model id -> pricing lookup.

    Lookup accepts exact ids, provider-qualified ids (``anthropic:...``) and
    dated variants whose name starts with a known id.
    """

    def __init__(self, models: dict[str, ModelPricing]):
        self.models = dict(models)

    @classmethod
    def default(cls) -> "PricingTable":
        """Build the table from the built-in model descriptors."""
        models = {}
        for model_str, descriptor in SUPPORTED_MODELS.items():
            alias = model_str.split(":", 1)[-1]
            models[alias] = ModelPricing.from_dict(descriptor["pricing"])
        return cls(models)

    @classmethod
    def load(cls, path: Path) -> "PricingTable":
        """Load a pricing table from a JSON file.

        The file holds ``{"models": [{"id": ..., "pricing": {...}}, ...]}``.
        """
        with open(path) as f:
            data = json.load(f)
        return cls({
            entry["id"]: ModelPricing.from_dict(entry["pricing"])
            for entry in data.get("models", [])
        })

    def lookup(self, model: str) -> ModelPricing:
        """Find pricing for a model.

        Raises:
            UnknownModelPricing: If no entry matches
        """
        model_id = model.split(":", 1)[-1]
        if model_id in self.models:
            return self.models[model_id]

        # Longest prefix wins so "claude-sonnet-4-5" beats "claude-sonnet-4"
        matches = [key for key in self.models if model_id.startswith(key)]
        if matches:
            return self.models[max(matches, key=len)]

        raise UnknownModelPricing(model)


def calculate_cost(
    table: PricingTable, model: str, input_tokens: int, output_tokens: int
) -> CostEntry:
    """Price token usage against the table.

    Raises:
        UnknownModelPricing: If the model has no pricing entry
        ValueError: If a token count is negative
    """
    if input_tokens < 0 or output_tokens < 0:
        raise ValueError("Token counts must be non-negative")

    pricing = table.lookup(model)
    tier_name = "standard"
    tier = pricing.standard
    if input_tokens + output_tokens > LONG_CONTEXT_THRESHOLD and pricing.long_context:
        tier_name = "long_context"
        tier = pricing.long_context

    amount = input_tokens / 1_000_000 * tier.input + output_tokens / 1_000_000 * tier.output
    return CostEntry(
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        tier=tier_name,
        amount=amount,
    )


class CostAccountant:
    """Prices executions and keeps session and project totals.

    Totals only grow through ``record`` and only shrink through the explicit
    reset methods. All mutations happen under one lock so concurrent
    executions can record safely.
    """

    def __init__(self, table: Optional[PricingTable] = None, project_root: Optional[Path] = None):
        """Initialize accountant.

        Args:
            table: Pricing table (defaults to the built-in models)
            project_root: Project directory for the persisted project total
        """
        self.table = table or PricingTable.default()
        self.project_root = project_root
        self._lock = threading.Lock()
        self._session_total = 0.0
        self._project_total = self._load_project_total()
        self._recorded = 0

    def cost(self, model: str, input_tokens: int, output_tokens: int) -> CostEntry:
        """Price token usage; unknown models price at zero with ``known=False``."""
        try:
            return calculate_cost(self.table, model, input_tokens, output_tokens)
        except UnknownModelPricing:
            return CostEntry(
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                tier="unknown",
                amount=0.0,
                known=False,
            )

    def record(self, entry: CostEntry) -> tuple[float, float]:
        """Add an entry to both totals.

        Returns:
            Tuple of (session_total, project_total) after the increment
        """
        with self._lock:
            self._session_total += entry.amount
            self._project_total += entry.amount
            self._recorded += 1
            totals = (self._session_total, self._project_total)
            self._save_project_total(self._project_total)
        return totals

    @property
    def session_total(self) -> float:
        with self._lock:
            return self._session_total

    @property
    def project_total(self) -> float:
        with self._lock:
            return self._project_total

    @property
    def recorded_count(self) -> int:
        with self._lock:
            return self._recorded

    def reset_session(self) -> None:
        with self._lock:
            self._session_total = 0.0

    def reset_project(self) -> None:
        with self._lock:
            self._project_total = 0.0
            self._save_project_total(0.0)

    def _cost_path(self) -> Optional[Path]:
        if self.project_root is None:
            return None
        return self.project_root / COST_FILE

    def _load_project_total(self) -> float:
        path = self._cost_path()
        if path is None or not path.exists():
            return 0.0
        try:
            with open(path) as f:
                return float(json.load(f).get("total", 0.0))
        except (json.JSONDecodeError, IOError, TypeError, ValueError):
            return 0.0  # Corrupt totals start over

    def _save_project_total(self, total: float) -> None:
        path = self._cost_path()
        if path is None:
            return
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with open(temp_path, "w") as f:
            json.dump({"total": total}, f, indent=2)
        temp_path.replace(path)
