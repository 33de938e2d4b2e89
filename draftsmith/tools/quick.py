"""Single-shot completions for small inline edits."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from draftsmith.cost import CostAccountant
from draftsmith.llm import Completion, InferenceRequest
from draftsmith.system_prompt import SystemPromptBuilder
from draftsmith.tools.planner import ContextScope, ContextScopePlanner

QUICK_SKILL = "quick_edit"

Completer = Callable[[InferenceRequest], Awaitable[Completion]]


@dataclass
class QuickResult:
    """A completion the caller may accept or discard."""

    text: str
    input_tokens: int
    output_tokens: int
    model: str
    cost: float
    cost_known: bool = True


def build_quick_message(action_id: str, selection_text: Optional[str], prompt_message: str) -> str:
    """Compose the user turn for a quick action."""
    message = f"Action: {action_id}\n"
    if selection_text:
        message += f"\nSelected text:\n{selection_text}\n"
    message += f"\n{prompt_message}"
    return message


class QuickActionExecutor:
    """Runs a quick action without a plan, confirmation or artifact write.

    Errors from the completer propagate unchanged.
    """

    def __init__(
        self,
        planner: ContextScopePlanner,
        completer: Completer,
        accountant: CostAccountant,
        skill: str = QUICK_SKILL,
    ):
        """Initialize quick executor.

        Args:
            planner: Used for the (small) context selection
            completer: Coroutine function performing the completion
            accountant: Prices and records the usage
            skill: Skill to run quick actions under
        """
        self.planner = planner
        self.completer = completer
        self.accountant = accountant
        self.skill = skill
        self.prompt_builder = SystemPromptBuilder(planner.project_root)

    async def quick_complete(
        self,
        scope: ContextScope,
        selection_text: Optional[str],
        action_id: str,
        prompt_message: str,
    ) -> QuickResult:
        """Complete a quick action and record its cost."""
        message = build_quick_message(action_id, selection_text, prompt_message)
        state = self.planner.prepare(scope, message, self.skill)

        request = InferenceRequest(
            model=state.plan.model,
            system=self.prompt_builder.build_system_messages(state.system_prompt, state.context_block),
            messages=[{"role": "user", "content": message}],
            temperature=state.temperature,
        )
        completion = await self.completer(request)

        entry = self.accountant.cost(
            completion.model or state.plan.model,
            completion.input_tokens,
            completion.output_tokens,
        )
        self.accountant.record(entry)

        return QuickResult(
            text=completion.text,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            model=completion.model,
            cost=entry.amount,
            cost_known=entry.known,
        )
