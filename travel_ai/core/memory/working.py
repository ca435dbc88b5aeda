"""Context window: the token-budgeted slice of a conversation sent to providers.

Handles the message cap and the token budget of a session's history.
"""

from __future__ import annotations

import math

from travel_ai.core.types import Message, Role


def estimate_tokens(message: Message) -> int:
    """Rough token estimate for one message.

    Uses ~4 chars per token as a simple heuristic.
    Not accurate but deterministic, which is all budgeting needs.
    """
    return math.ceil(len(message.content or "") / 4)


class ContextWindow:
    """Sliding window over a conversation, bounded by count and token budget."""

    def __init__(self, max_messages: int = 50, max_context_tokens: int = 8000) -> None:
        """Initialize the window.

        Args:
            max_messages: Maximum number of messages stored per session.
                          Oldest messages are dropped when exceeded.
            max_context_tokens: Token budget of the history sent to providers.
        """
        self.max_messages = max_messages
        self.max_context_tokens = max_context_tokens

    def trim(self, messages: list[Message]) -> list[Message]:
        """Keep only the most recent `max_messages` messages."""
        if len(messages) <= self.max_messages:
            return messages
        return messages[-self.max_messages:]

    def optimize(self, messages: list[Message]) -> list[Message]:
        """Fit a history into the token budget.

        Keeps the first system message, then the longest run of most recent
        non-system messages whose estimated cost fits in what is left. Stops
        at the first message that does not fit; order is preserved and no
        message is cut.
        """
        if not messages:
            return []

        system_message = next((m for m in messages if m.role == Role.SYSTEM), None)
        others = [m for m in messages if m.role != Role.SYSTEM]

        total = estimate_tokens(system_message) if system_message else 0
        kept: list[Message] = []

        for msg in reversed(others):
            cost = estimate_tokens(msg)
            if total + cost > self.max_context_tokens:
                break
            kept.append(msg)
            total += cost

        kept.reverse()
        return [system_message, *kept] if system_message else kept

    def count_tokens(self, messages: list[Message]) -> int:
        """Estimated token cost of a message list."""
        return sum(estimate_tokens(m) for m in messages)
