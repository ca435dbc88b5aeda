"""Conversation memory: bounded session store and token-budgeted context."""

from travel_ai.core.memory.manager import ConversationMemory, SessionSummary
from travel_ai.core.memory.store import SessionStore
from travel_ai.core.memory.working import ContextWindow, estimate_tokens

__all__ = ["ConversationMemory", "SessionSummary", "SessionStore", "ContextWindow", "estimate_tokens"]
