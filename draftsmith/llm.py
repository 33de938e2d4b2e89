"""LLM abstraction layer for Anthropic Claude models."""

from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

import anthropic
from anthropic import AsyncAnthropic

from draftsmith.constants import SUPPORTED_MODELS
from draftsmith.events import CHUNK, DONE, ERROR, EventBus, topic

SystemPrompt = Union[str, list[dict]]


@dataclass
class ModelDescriptor:
    """Descriptor for an LLM model."""

    provider: Literal["anthropic"]
    name: str
    max_output_tokens: int
    temperature: float = 0.7


@dataclass
class Completion:
    """A finished single-shot completion."""

    text: str
    input_tokens: int
    output_tokens: int
    model: str


@dataclass
class InferenceRequest:
    """Everything the backend needs to run one request."""

    model: str
    system: SystemPrompt
    messages: list[dict]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class LLM:
    """Anthropic Claude interface publishing stream events on an EventBus."""

    def __init__(self, api_key: str, max_output_tokens: int = 8192, client: Any = None):
        """Initialize LLM client.

        Args:
            api_key: Anthropic API key
            max_output_tokens: Default output cap for requests that set none
            client: Pre-built AsyncAnthropic-compatible client
        """
        self.api_key = api_key
        self.max_output_tokens = max_output_tokens
        self.client = client or AsyncAnthropic(api_key=api_key)

    async def stream(self, bus: EventBus, plan_id: str, request: InferenceRequest) -> None:
        """Stream a request, emitting chunk events then exactly one terminal event.

        API failures become an ``error`` event rather than an exception.

        Args:
            bus: Event bus to publish on
            plan_id: Plan id used in topic names
            request: Request to send
        """
        descriptor = self.parse_model_string(request.model)
        kwargs = self._build_kwargs(descriptor, request)

        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "content_block_delta" and event.delta.type == "text_delta":
                        bus.emit(topic(CHUNK, plan_id), {"text": event.delta.text})

                final_message = await stream.get_final_message()
        except anthropic.APIError as e:
            bus.emit(topic(ERROR, plan_id), {"reason": self._describe_error(e)})
            return

        bus.emit(topic(DONE, plan_id), {
            "full_text": self._text_of(final_message),
            "input_tokens": final_message.usage.input_tokens,
            "output_tokens": final_message.usage.output_tokens,
            "model": final_message.model,
        })

    async def complete(self, request: InferenceRequest) -> Completion:
        """Generate a single-shot completion.

        Raises:
            anthropic.APIError: Propagated unchanged
        """
        descriptor = self.parse_model_string(request.model)
        response = await self.client.messages.create(**self._build_kwargs(descriptor, request))
        return Completion(
            text=self._text_of(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
        )

    def _build_kwargs(self, descriptor: ModelDescriptor, request: InferenceRequest) -> dict[str, Any]:
        # Only user/assistant turns go in messages; the system prompt is separate
        messages = [
            {"role": m["role"], "content": m["content"]}
            for m in request.messages
            if m.get("role") in ("user", "assistant") and m.get("content")
        ]

        kwargs: dict[str, Any] = {
            "model": descriptor.name,
            "messages": messages,
            "max_tokens": request.max_tokens or min(descriptor.max_output_tokens, self.max_output_tokens),
            "temperature": request.temperature if request.temperature is not None else descriptor.temperature,
        }
        if request.system:
            kwargs["system"] = request.system
        return kwargs

    @staticmethod
    def _text_of(message: Any) -> str:
        return "".join(block.text for block in message.content if block.type == "text")

    @staticmethod
    def _describe_error(error: anthropic.APIError) -> str:
        status = getattr(error, "status_code", None)
        if status:
            return f"Claude API error {status}: {error.message}"
        return f"Claude API error: {error.message}"

    @classmethod
    def parse_model_string(cls, model_str: str) -> ModelDescriptor:
        """Parse model string into ModelDescriptor.

        Known aliases (``anthropic:claude-sonnet-4-5``) map to their dated
        API names; any other ``claude-*`` name passes through unchanged.

        Raises:
            ValueError: If model string is not a Claude model
        """
        if model_str in SUPPORTED_MODELS:
            model_config = SUPPORTED_MODELS[model_str]
            return ModelDescriptor(
                provider=model_config["provider"],
                name=model_config["name"],
                max_output_tokens=model_config["max_output_tokens"],
            )

        name = model_str.split(":", 1)[-1]
        if model_str.startswith("anthropic:") or name.startswith("claude-"):
            return ModelDescriptor(provider="anthropic", name=name, max_output_tokens=8192)

        raise ValueError(
            f"Unsupported model: {model_str}. "
            f"Supported: {', '.join(SUPPORTED_MODELS.keys())}"
        )

    @classmethod
    def list_models(cls) -> list[str]:
        """List all supported model strings."""
        return list(SUPPORTED_MODELS.keys())
