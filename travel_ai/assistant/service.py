"""Travel assistant: the entry point the rest of the application talks to.

Builds provider-ready prompts from session memory, calls the provider
manager, writes the exchange back into memory and shapes the raw reply into
a structured response.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, AsyncIterator

import structlog

from travel_ai.assistant.prompts import (
    Action,
    build_context_prompt,
    build_itinerary_prompt,
    build_recommendation_prompt,
    extract_actions,
    generate_suggestions,
    get_system_prompt,
)
from travel_ai.config import AssistantConfig
from travel_ai.core.errors import TravelAIError
from travel_ai.core.memory.manager import ConversationMemory
from travel_ai.core.providers.manager import ProviderManager
from travel_ai.core.types import (
    ChatOptions,
    ConversationContext,
    FinishReason,
    Message,
    ProviderResponse,
    Role,
    StreamChunk,
    UserPreferences,
)

logger = structlog.get_logger()

CHAT_OPTIONS = ChatOptions(temperature=0.7, max_tokens=2048)
ITINERARY_OPTIONS = ChatOptions(temperature=0.8, max_tokens=3000)
RECOMMENDATION_OPTIONS = ChatOptions(temperature=0.5, max_tokens=1024)

BASE_CONFIDENCE = 0.8
LONG_REPLY_CHARS = 100

# Chat messages containing any of these get recommendations attached
RECOMMENDATION_TRIGGERS = ("recommend", "suggest", "öner", "best")

DEFAULT_TIPS = [
    "Book attractions in advance",
    "Learn basic local phrases",
    "Check visa requirements",
]
DEFAULT_PACKING_LIST = [
    "Comfortable walking shoes",
    "Weather-appropriate clothing",
    "Travel adapter",
    "Essential medications",
]

_DAY_HEADING = re.compile(r"^[#* \t]*day\s+(\d+)\b[^\n]*$", re.IGNORECASE | re.MULTILINE)
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+\.)\s+(.+)$")
_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


@dataclass
class ChatRequest:
    message: str
    session_id: str
    user_id: str | None = None
    locale: str | None = None
    user_preferences: UserPreferences | dict[str, Any] | None = None
    stream: bool = False


@dataclass
class ChatResponse:
    message: str
    confidence: float
    suggestions: list[str]
    actions: list[Action]
    session_id: str
    metadata: dict[str, Any] = field(default_factory=dict)
    recommendations: list[Recommendation] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "confidence": self.confidence,
            "suggestions": list(self.suggestions),
            "actions": [a.to_dict() for a in self.actions],
            "sessionId": self.session_id,
            "metadata": dict(self.metadata),
            "recommendations": (
                [r.to_dict() for r in self.recommendations]
                if self.recommendations is not None
                else None
            ),
        }


@dataclass
class Recommendation:
    name: str
    type: str = "destination"
    score: float = 0.0
    reason: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "score": self.score,
            "reason": self.reason,
            "data": dict(self.data),
        }


@dataclass
class ItineraryParams:
    destination: str
    start_date: str
    end_date: str
    budget: float | None = None
    interests: list[str] | None = None
    adults: int = 1
    children: int = 0
    locale: str = "en"


@dataclass
class ItineraryDay:
    day: int
    date: str = ""
    title: str = ""
    activities: list[str] = field(default_factory=list)


@dataclass
class Itinerary:
    destination: str
    days: list[ItineraryDay]
    raw_text: str
    tips: list[str] = field(default_factory=list)
    what_to_pack: list[str] = field(default_factory=list)


class TravelAssistant:
    """Facade over conversation memory and the provider manager.

    Holds references to both; every session change goes through the
    memory's own methods.
    """

    def __init__(
        self,
        memory: ConversationMemory,
        providers: ProviderManager,
        config: AssistantConfig | None = None,
    ) -> None:
        self.memory = memory
        self.providers = providers
        self.config = config or AssistantConfig()

    # --- Chat ---

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Answer one user message within its session.

        Raises:
            AllProvidersFailedError: no provider could answer.
        """
        started = time.perf_counter()
        locale = request.locale or self.config.default_locale
        session = self.memory.get_or_create_session(
            request.session_id,
            request.user_id,
            locale,
            request.user_preferences,
        )

        messages = self.build_messages(request.message, session.context, locale)
        response = await self.providers.chat(messages, CHAT_OPTIONS)

        self.memory.add_message(request.session_id, Message(Role.USER, request.message))
        self.memory.add_message(request.session_id, Message(Role.ASSISTANT, response.content))

        recommendations = await self._relevant_recommendations(
            request.message, session.context, locale
        )

        latency = int((time.perf_counter() - started) * 1000)
        logger.info(
            "chat_completed",
            session_id=request.session_id,
            provider=response.provider,
            tokens=response.usage.total_tokens,
            latency_ms=latency,
        )

        return ChatResponse(
            message=response.content,
            confidence=self.calculate_confidence(response),
            suggestions=generate_suggestions(response.content),
            actions=extract_actions(response.content),
            session_id=request.session_id,
            metadata={
                "provider": response.provider,
                "model": response.model,
                "tokens": response.usage.total_tokens,
                "latency": latency,
                "finishReason": response.finish_reason.value,
            },
            recommendations=recommendations,
        )

    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream the reply to one user message.

        The user message is stored before streaming starts; the assistant
        reply is stored only when the final chunk arrives, so an abandoned
        stream leaves no partial reply in memory.
        """
        locale = request.locale or self.config.default_locale
        session = self.memory.get_or_create_session(
            request.session_id,
            request.user_id,
            locale,
            request.user_preferences,
        )
        messages = self.build_messages(request.message, session.context, locale)

        self.memory.add_message(request.session_id, Message(Role.USER, request.message))

        async for chunk in self.providers.stream_chat(messages, CHAT_OPTIONS):
            if chunk.done:
                self.memory.add_message(
                    request.session_id, Message(Role.ASSISTANT, chunk.accumulated)
                )
                logger.info("stream_chat_completed", session_id=request.session_id)
            yield chunk

    async def _relevant_recommendations(
        self,
        user_message: str,
        context: ConversationContext,
        locale: str,
    ) -> list[Recommendation] | None:
        """Recommendations for messages asking for them, when preferences are known.

        A failed lookup yields an empty list rather than failing the chat.
        """
        lower = user_message.lower()
        if not any(trigger in lower for trigger in RECOMMENDATION_TRIGGERS):
            return None
        prefs = context.user_preferences
        if prefs is None or prefs.is_empty():
            return None

        try:
            return await self.get_recommendations(prefs, locale=locale)
        except TravelAIError as e:
            logger.warning("recommendations_failed", session_id=context.session_id, error=str(e))
            return []

    def build_messages(
        self,
        user_message: str,
        context: ConversationContext,
        locale: str,
    ) -> list[Message]:
        """System prompt, optional preference context, recent history, new message."""
        messages = [Message(Role.SYSTEM, get_system_prompt(locale))]

        context_prompt = build_context_prompt(context.user_preferences)
        if context_prompt:
            messages.append(Message(Role.SYSTEM, context_prompt))

        window = self.config.history_window
        if window > 0:
            messages.extend(context.conversation_history[-window:])
        messages.append(Message(Role.USER, user_message))
        return messages

    def calculate_confidence(self, response: ProviderResponse) -> float:
        confidence = BASE_CONFIDENCE
        if response.finish_reason == FinishReason.STOP:
            confidence += 0.1
        if len(response.content) > LONG_REPLY_CHARS:
            confidence += 0.05
        if response.provider == self.providers.primary:
            confidence += 0.05
        return min(round(confidence, 4), 1.0)

    # --- Convenience wrappers ---

    async def answer_question(
        self,
        question: str,
        session_id: str,
        locale: str = "en",
    ) -> str:
        """One-off answer using the last few messages of a session as context."""
        session = self.memory.get_or_create_session(session_id, locale=locale)

        window = self.config.question_history_window
        history = session.context.conversation_history[-window:] if window > 0 else []
        messages = [
            Message(Role.SYSTEM, get_system_prompt(locale)),
            *history,
            Message(Role.USER, question),
        ]

        response = await self.providers.chat(messages)
        return response.content

    async def get_recommendations(
        self,
        preferences: UserPreferences | dict[str, Any] | None,
        limit: int = 5,
        locale: str = "en",
    ) -> list[Recommendation]:
        """Ask the model for destination recommendations matching preferences."""
        if isinstance(preferences, dict):
            preferences = UserPreferences.from_dict(preferences)

        messages = [
            Message(Role.SYSTEM, get_system_prompt(locale)),
            Message(Role.USER, build_recommendation_prompt(preferences, limit)),
        ]
        response = await self.providers.chat(messages, RECOMMENDATION_OPTIONS)
        return parse_recommendations(response.content)[:limit]

    async def plan_itinerary(self, params: ItineraryParams) -> Itinerary:
        """Generate a day-by-day itinerary."""
        prompt = build_itinerary_prompt(
            params.destination,
            params.start_date,
            params.end_date,
            budget=params.budget,
            interests=params.interests,
            adults=params.adults,
            children=params.children,
        )
        messages = [
            Message(Role.SYSTEM, get_system_prompt(params.locale)),
            Message(Role.USER, prompt),
        ]

        response = await self.providers.chat(messages, ITINERARY_OPTIONS)
        return parse_itinerary(response.content, params)

    # --- Pass-through ---

    def clear_session(self, session_id: str) -> None:
        self.memory.clear_session(session_id)

    def export_conversation(self, session_id: str) -> dict[str, Any] | None:
        return self.memory.export_session(session_id)


# === Reply parsing ===


def parse_recommendations(text: str) -> list[Recommendation]:
    """Read a JSON array of recommendations, falling back to bullet lines."""
    match = _JSON_ARRAY.search(text)
    if match:
        try:
            items = json.loads(match.group(0))
        except json.JSONDecodeError:
            items = None
        if isinstance(items, list):
            recs = []
            for item in items:
                if isinstance(item, str):
                    recs.append(Recommendation(name=item))
                elif isinstance(item, dict) and item.get("name"):
                    recs.append(Recommendation(
                        name=str(item["name"]),
                        type=str(item.get("type") or "destination"),
                        score=_as_score(item.get("score")),
                        reason=str(item.get("reason") or ""),
                        data=item,
                    ))
            return recs

    recs = []
    for line in text.splitlines():
        bullet = _BULLET.match(line)
        if bullet:
            name, _, reason = bullet.group(1).partition(" - ")
            recs.append(Recommendation(name=name.strip(" *"), reason=reason.strip()))
    return recs


def _as_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(score, 1.0))


def parse_itinerary(text: str, params: ItineraryParams) -> Itinerary:
    """Split a free-text itinerary into days at its 'Day N' headings."""
    try:
        start = date.fromisoformat(params.start_date)
    except ValueError:
        start = None

    headings = list(_DAY_HEADING.finditer(text))
    days: list[ItineraryDay] = []
    for i, heading in enumerate(headings):
        end = headings[i + 1].start() if i + 1 < len(headings) else len(text)
        body = text[heading.end():end]
        number = int(heading.group(1))
        title = heading.group(0).strip(" #*\t").partition(":")[2].strip(" *")
        activities = [
            m.group(1).strip()
            for m in (_BULLET.match(line) for line in body.splitlines())
            if m
        ]
        days.append(ItineraryDay(
            day=number,
            date=(start + timedelta(days=number - 1)).isoformat() if start else "",
            title=title,
            activities=activities,
        ))

    return Itinerary(
        destination=params.destination,
        days=days,
        raw_text=text,
        tips=list(DEFAULT_TIPS),
        what_to_pack=list(DEFAULT_PACKING_LIST),
    )
