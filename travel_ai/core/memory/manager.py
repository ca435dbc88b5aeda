"""Conversation memory: per-session history, context window and preferences.

Owns every mutation of conversation sessions. Sessions live in a bounded
SessionStore; each mutation reads the session, changes it and writes it back
without yielding to the event loop, so concurrent requests never observe a
half-applied update.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from travel_ai.config import MemoryConfig
from travel_ai.core.memory.store import SessionStore
from travel_ai.core.memory.working import ContextWindow
from travel_ai.core.types import (
    ConversationContext,
    ConversationSession,
    Message,
    Role,
    UserPreferences,
)

logger = structlog.get_logger()

KNOWN_DESTINATIONS = (
    "istanbul",
    "cappadocia",
    "antalya",
    "bodrum",
    "izmir",
    "fethiye",
    "pamukkale",
)

KNOWN_INTERESTS = (
    "beach",
    "history",
    "culture",
    "adventure",
    "luxury",
    "budget",
    "family",
    "romantic",
)

# User messages at or below this length are not logged as searches
MIN_SEARCH_LENGTH = 10


@dataclass
class SessionSummary:
    """Aggregate view of one session."""

    message_count: int = 0
    duration: int = 0  # ms between creation and last activity
    topics: list[str] = field(default_factory=list)
    user_engagement: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "messageCount": self.message_count,
            "duration": self.duration,
            "topics": list(self.topics),
            "userEngagement": self.user_engagement,
        }


class ConversationMemory:
    """Session-scoped conversation memory with a token-budgeted context."""

    def __init__(
        self,
        max_sessions: int = 1000,
        max_messages_per_session: int = 50,
        max_context_tokens: int = 8000,
        session_ttl_seconds: float = 3600.0,
        store: SessionStore | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if store is None:
            store_kwargs: dict[str, Any] = {}
            if clock is not None:
                store_kwargs["clock"] = clock
            store = SessionStore(max_sessions, session_ttl_seconds, **store_kwargs)
        self.store = store
        self.window = ContextWindow(max_messages_per_session, max_context_tokens)

    @classmethod
    def from_config(cls, config: MemoryConfig) -> ConversationMemory:
        return cls(
            max_sessions=config.max_sessions,
            max_messages_per_session=config.max_messages_per_session,
            max_context_tokens=config.max_context_tokens,
            session_ttl_seconds=config.session_ttl_seconds,
        )

    # --- Session lifecycle ---

    def create_session(
        self,
        session_id: str,
        user_id: str | None = None,
        locale: str = "en",
        preferences: UserPreferences | dict[str, Any] | None = None,
    ) -> ConversationSession:
        """Create a fresh session, replacing any existing one with that id."""
        session = ConversationSession(session_id=session_id, user_id=user_id)
        session.context = ConversationContext(
            session_id=session_id,
            user_id=user_id,
            locale=locale,
            user_preferences=_as_preferences(preferences),
        )

        self.store.set(session_id, session)
        logger.info("session_created", session_id=session_id, user_id=user_id)
        return session

    def get_or_create_session(
        self,
        session_id: str,
        user_id: str | None = None,
        locale: str = "en",
        preferences: UserPreferences | dict[str, Any] | None = None,
    ) -> ConversationSession:
        """Return the existing session (refreshed) or create a new one.

        Preferences supplied for an existing session are merged into it.
        """
        existing = self.store.get(session_id)
        if existing is None:
            return self.create_session(session_id, user_id, locale, preferences)

        existing.touch()
        update = _as_preferences(preferences)
        if update is not None:
            self._merge_preferences(existing, update)

        self.store.set(session_id, existing)
        return existing

    def clear_session(self, session_id: str) -> None:
        self.store.delete(session_id)
        logger.info("session_cleared", session_id=session_id)

    # --- Messages ---

    def add_message(
        self,
        session_id: str,
        message: Message,
        update_context: bool = True,
    ) -> None:
        """Append a message, creating the session if needed.

        The message list is capped at the configured maximum (oldest first
        out). With `update_context`, the message also joins the context
        history, which is then re-fitted into the token budget. Otherwise the
        message is stored but not sent back to providers. The history only
        ever holds messages still present in the capped list.
        """
        session = self.store.get(session_id)
        if session is None:
            logger.warning("session_not_found_creating", session_id=session_id)
            session = self.create_session(session_id)

        session.messages.append(message)
        session.touch()
        session.messages = self.window.trim(session.messages)

        in_context = {id(m) for m in session.context.conversation_history}
        if update_context:
            in_context.add(id(message))
        history = [m for m in session.messages if id(m) in in_context]
        session.context.conversation_history = self.window.optimize(history)

        self.store.set(session_id, session)

    def get_messages(self, session_id: str) -> list[Message]:
        session = self.store.get(session_id)
        return list(session.messages) if session else []

    def get_context(self, session_id: str) -> ConversationContext | None:
        session = self.store.get(session_id)
        return session.context if session else None

    def get_session(self, session_id: str) -> ConversationSession | None:
        return self.store.get(session_id)

    # --- Preferences & metadata ---

    def update_user_preferences(
        self,
        session_id: str,
        preferences: UserPreferences | dict[str, Any],
    ) -> None:
        """Shallow-merge preferences into a session. No-op for unknown ids.

        Each field given replaces the stored one; lists are not unioned.
        """
        session = self.store.get(session_id)
        if session is None:
            return

        update = _as_preferences(preferences)
        if update is not None:
            self._merge_preferences(session, update)
        session.touch()
        self.store.set(session_id, session)
        logger.debug("preferences_updated", session_id=session_id)

    def add_metadata(self, session_id: str, key: str, value: Any) -> None:
        session = self.store.get(session_id)
        if session is None:
            return

        session.metadata[key] = value
        session.touch()
        self.store.set(session_id, session)

    def extract_preferences_from_history(self, session_id: str) -> UserPreferences:
        """Guess destinations and interests from what the user wrote.

        Case-insensitive substring match against fixed vocabularies. Every
        substantive user message is also returned verbatim as search history.
        """
        session = self.store.get(session_id)
        if session is None:
            return UserPreferences()

        destinations: list[str] = []
        interests: list[str] = []
        searches: list[str] = []

        for msg in session.messages:
            if msg.role != Role.USER:
                continue
            lower = msg.content.lower()

            for dest in KNOWN_DESTINATIONS:
                if dest in lower and dest not in destinations:
                    destinations.append(dest)

            for interest in KNOWN_INTERESTS:
                if interest in lower and interest not in interests:
                    interests.append(interest)

            if len(msg.content) > MIN_SEARCH_LENGTH:
                searches.append(msg.content)

        return UserPreferences(
            interests=interests,
            destinations=destinations,
            search_history=searches,
        )

    # --- Views ---

    def get_summary(self, session_id: str) -> SessionSummary:
        session = self.store.get(session_id)
        if session is None:
            return SessionSummary()

        elapsed = session.last_activity_at - session.created_at
        message_count = len(session.messages)
        user_count = sum(1 for m in session.messages if m.role == Role.USER)

        prefs = session.context.user_preferences
        topics = list(dict.fromkeys(prefs.destinations or [])) if prefs else []

        return SessionSummary(
            message_count=message_count,
            duration=int(elapsed.total_seconds() * 1000),
            topics=topics,
            user_engagement=user_count / message_count if message_count else 0.0,
        )

    def export_session(self, session_id: str) -> dict[str, Any] | None:
        """Serializable snapshot of a session, or None if it does not exist."""
        session = self.store.get(session_id)
        if session is None:
            return None

        return {
            "sessionId": session.session_id,
            "userId": session.user_id,
            "createdAt": session.created_at.isoformat(),
            "lastActivityAt": session.last_activity_at.isoformat(),
            "messageCount": len(session.messages),
            "messages": [
                {**m.to_dict(), "timestamp": m.timestamp.isoformat()}
                for m in session.messages
            ],
            "context": session.context.to_dict(),
            "metadata": dict(session.metadata),
            "summary": self.get_summary(session_id).to_dict(),
        }

    def session_count(self) -> int:
        return self.store.size()

    def active_session_ids(self) -> list[str]:
        return self.store.keys()

    @staticmethod
    def _merge_preferences(session: ConversationSession, update: UserPreferences) -> None:
        current = session.context.user_preferences
        session.context.user_preferences = current.merged(update) if current else update


def _as_preferences(
    value: UserPreferences | dict[str, Any] | None,
) -> UserPreferences | None:
    if value is None or isinstance(value, UserPreferences):
        return value
    return UserPreferences.from_dict(value)
