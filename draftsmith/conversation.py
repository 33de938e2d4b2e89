"""Conversation context management."""

from typing import Optional

ROLES = ("user", "assistant")


class ConversationContext:
    """Keeps the ordered user/assistant history sent with each execution."""

    def __init__(self, max_history: int = 10):
        """Initialize conversation context.

        Args:
            max_history: Maximum number of message pairs to keep
        """
        self.messages: list[dict] = []
        self.current_plan: Optional[dict] = None
        self.max_history = max_history

    def add_message(self, role: str, content: str) -> None:
        """Add a message to the conversation.

        Args:
            role: Message role (user or assistant)
            content: Message content

        Raises:
            ValueError: If the role is not user or assistant
        """
        if role not in ROLES:
            raise ValueError(f"Unsupported role: {role}")

        self.messages.append({"role": role, "content": content})

        # Trim history if too long
        if len(self.messages) > self.max_history * 2:
            self.messages = self.messages[-(self.max_history * 2):]
            # History sent to the model must open with a user turn
            while self.messages and self.messages[0]["role"] != "user":
                self.messages.pop(0)

    def record_exchange(self, user_message: str, assistant_message: str) -> None:
        """Append a completed request/response pair."""
        self.add_message("user", user_message)
        self.add_message("assistant", assistant_message)

    def to_history(self) -> list[dict]:
        """Copy of the history in ``{role, content}`` form."""
        return [dict(m) for m in self.messages]

    def update_plan(self, plan: Optional[dict]) -> None:
        """Update the current plan.

        Args:
            plan: Plan dictionary or None
        """
        self.current_plan = plan

    def get_context_summary(self) -> str:
        """Generate a summary of recent context.

        Returns:
            Summary string
        """
        parts = []

        if self.current_plan:
            parts.append(
                f"Current plan: {self.current_plan.get('id', 'N/A')} "
                f"({self.current_plan.get('skill', 'N/A')})"
            )

        if self.messages:
            parts.append(f"History: {len(self.messages)} messages")

        return "\n".join(parts) if parts else "No recent context"

    def clear(self) -> None:
        """Clear conversation history."""
        self.messages = []
        self.current_plan = None
