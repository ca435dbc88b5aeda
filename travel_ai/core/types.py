"""Shared data types for the travel assistant core."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A single message in the conversation."""

    role: Role
    content: str
    name: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a provider-ready message dict."""
        msg: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name:
            msg["name"] = self.name
        return msg

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Message:
        return cls(
            role=Role(raw["role"]),
            content=raw.get("content") or "",
            name=raw.get("name"),
        )


# === User preferences ===


@dataclass
class Budget:
    min: float = 0
    max: float = 0
    currency: str = "USD"


@dataclass
class TravelDates:
    start: str = ""
    end: str = ""
    flexible: bool = False


@dataclass
class Travelers:
    adults: int = 1
    children: int = 0
    infants: int = 0


# camelCase keys accepted from API payloads
_PREFERENCE_ALIASES = {
    "travelDates": "travel_dates",
    "searchHistory": "search_history",
}


@dataclass
class UserPreferences:
    """Per-user travel preferences.

    Every field is optional. Merging is shallow per key: a field set in the
    update replaces the stored value outright, lists included.
    """

    budget: Budget | None = None
    travel_dates: TravelDates | None = None
    travelers: Travelers | None = None
    interests: list[str] | None = None
    destinations: list[str] | None = None
    search_history: list[str] | None = None

    def merged(self, partial: UserPreferences) -> UserPreferences:
        """Return a copy with every non-None field of `partial` applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for f in fields(partial):
            value = getattr(partial, f.name)
            if value is not None:
                values[f.name] = value
        return UserPreferences(**values)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> UserPreferences:
        data = {_PREFERENCE_ALIASES.get(k, k): v for k, v in raw.items()}
        budget = data.get("budget")
        dates = data.get("travel_dates")
        travelers = data.get("travelers")
        return cls(
            budget=Budget(**budget) if isinstance(budget, dict) else budget,
            travel_dates=TravelDates(**dates) if isinstance(dates, dict) else dates,
            travelers=Travelers(**travelers) if isinstance(travelers, dict) else travelers,
            interests=_copy_list(data.get("interests")),
            destinations=_copy_list(data.get("destinations")),
            search_history=_copy_list(data.get("search_history")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.budget is not None:
            out["budget"] = {
                "min": self.budget.min,
                "max": self.budget.max,
                "currency": self.budget.currency,
            }
        if self.travel_dates is not None:
            out["travelDates"] = {
                "start": self.travel_dates.start,
                "end": self.travel_dates.end,
                "flexible": self.travel_dates.flexible,
            }
        if self.travelers is not None:
            out["travelers"] = {
                "adults": self.travelers.adults,
                "children": self.travelers.children,
                "infants": self.travelers.infants,
            }
        if self.interests is not None:
            out["interests"] = list(self.interests)
        if self.destinations is not None:
            out["destinations"] = list(self.destinations)
        if self.search_history is not None:
            out["searchHistory"] = list(self.search_history)
        return out


def _copy_list(value: Any) -> list[str] | None:
    return list(value) if value is not None else None


# === Sessions ===


@dataclass
class ConversationContext:
    """The slice of a session sent to providers."""

    session_id: str
    user_id: str | None = None
    locale: str = "en"
    conversation_history: list[Message] = field(default_factory=list)
    user_preferences: UserPreferences | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "locale": self.locale,
            "conversationHistory": [m.to_dict() for m in self.conversation_history],
            "userPreferences": (
                self.user_preferences.to_dict() if self.user_preferences else None
            ),
            "metadata": dict(self.metadata),
        }


@dataclass
class ConversationSession:
    """A conversation session held by the session store."""

    session_id: str
    user_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    last_activity_at: datetime = field(default_factory=_utcnow)
    messages: list[Message] = field(default_factory=list)
    context: ConversationContext | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.context is None:
            self.context = ConversationContext(
                session_id=self.session_id, user_id=self.user_id
            )

    def touch(self) -> None:
        """Mark activity now."""
        self.last_activity_at = _utcnow()


# === Provider I/O ===


@dataclass
class ChatOptions:
    """Generation options forwarded to a provider."""

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: list[str] | None = None


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ProviderResponse:
    """Response from a provider chat call."""

    content: str
    provider: str
    model: str
    finish_reason: FinishReason = FinishReason.STOP
    usage: Usage = field(default_factory=Usage)


@dataclass(frozen=True)
class StreamChunk:
    """One increment of a streamed reply. `done` is set on the last chunk only."""

    delta: str
    accumulated: str
    done: bool = False


@dataclass
class ProviderHealth:
    """The provider manager's view of one provider."""

    provider: str
    healthy: bool = True
    latency_ms: float | None = None
    last_checked: datetime = field(default_factory=_utcnow)
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "healthy": self.healthy,
            "latency": self.latency_ms,
            "lastChecked": self.last_checked.isoformat(),
            "errorCount": self.error_count,
        }
