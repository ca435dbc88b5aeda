"""Tests for the travel assistant facade and its prompt helpers."""

from __future__ import annotations

import pytest

from travel_ai.assistant.prompts import (
    GENERIC_SUGGESTIONS,
    SYSTEM_PROMPTS,
    build_context_prompt,
    build_itinerary_prompt,
    extract_actions,
    generate_suggestions,
    get_system_prompt,
)
from travel_ai.assistant.service import (
    ChatRequest,
    ItineraryParams,
    TravelAssistant,
    parse_itinerary,
    parse_recommendations,
)
from travel_ai.config import AssistantConfig
from travel_ai.core.errors import AllProvidersFailedError, ProviderError
from travel_ai.core.providers.manager import ProviderManager
from travel_ai.core.types import (
    Budget,
    FinishReason,
    Message,
    Role,
    TravelDates,
    UserPreferences,
)

from tests.fakes import FakeProvider

ITINERARY_TEXT = """Here is your plan.

**Day 1: Old City**
- Hagia Sophia
- Blue Mosque

## Day 2: Bosphorus
* Ferry ride
* Fish sandwich in Eminonu

Enjoy!
"""


def _assistant(memory, *providers: FakeProvider, config: AssistantConfig | None = None):
    names = [p.name for p in providers]
    manager = ProviderManager(
        {p.name: p for p in providers},
        primary=names[0],
        fallbacks=names[1:],
    )
    return TravelAssistant(memory, manager, config)


# =============================================================
# chat()
# =============================================================

class TestChat:
    @pytest.mark.asyncio
    async def test_basic_exchange_is_persisted(self, memory):
        provider = FakeProvider("groq", reply="Istanbul is lovely in May.")
        assistant = _assistant(memory, provider)

        response = await assistant.chat(ChatRequest(message="Where to go?", session_id="s1"))

        assert response.message == "Istanbul is lovely in May."
        assert response.session_id == "s1"
        assert [(m.role, m.content) for m in memory.get_messages("s1")] == [
            (Role.USER, "Where to go?"),
            (Role.ASSISTANT, "Istanbul is lovely in May."),
        ]
        assert response.metadata["provider"] == "groq"
        assert response.metadata["model"] == "groq-model"
        assert response.metadata["tokens"] == 15
        assert response.metadata["finishReason"] == "stop"
        assert response.metadata["latency"] >= 0

    @pytest.mark.asyncio
    async def test_messages_sent_to_provider(self, memory):
        provider = FakeProvider("groq", reply="Merhaba")
        assistant = _assistant(memory, provider)

        await assistant.chat(ChatRequest(message="first", session_id="s1", locale="tr"))
        await assistant.chat(ChatRequest(message="second", session_id="s1", locale="tr"))

        sent = provider.calls[-1]
        assert sent[0].role == Role.SYSTEM
        assert sent[0].content == SYSTEM_PROMPTS["tr"]
        assert [m.content for m in sent[1:]] == ["first", "Merhaba", "second"]

    @pytest.mark.asyncio
    async def test_preferences_become_context_prompt(self, memory):
        provider = FakeProvider("groq")
        assistant = _assistant(memory, provider)

        await assistant.chat(ChatRequest(
            message="Plan something",
            session_id="s1",
            user_preferences={"budget": {"min": 500, "max": 1500, "currency": "USD"}},
        ))

        sent = provider.calls[-1]
        assert [m.role for m in sent] == [Role.SYSTEM, Role.SYSTEM, Role.USER]
        assert "Budget: 500-1500 USD" in sent[1].content

    @pytest.mark.asyncio
    async def test_history_window(self, memory):
        provider = FakeProvider("groq")
        assistant = _assistant(memory, provider, config=AssistantConfig(history_window=2))
        for i in range(6):
            memory.add_message("s1", Message(Role.USER, f"m{i}"))

        await assistant.chat(ChatRequest(message="now", session_id="s1"))

        assert [m.content for m in provider.calls[-1][1:]] == ["m4", "m5", "now"]

    @pytest.mark.asyncio
    async def test_failure_propagates_and_stores_nothing(self, memory):
        assistant = _assistant(memory, FakeProvider("a", fail=True), FakeProvider("b", fail=True))

        with pytest.raises(AllProvidersFailedError):
            await assistant.chat(ChatRequest(message="hello?", session_id="s1"))

        assert memory.get_messages("s1") == []

    @pytest.mark.asyncio
    async def test_suggestions_and_actions(self, memory):
        reply = "Cappadocia is magical. You can book a balloon ride and check the map."
        assistant = _assistant(memory, FakeProvider("groq", reply=reply))

        response = await assistant.chat(ChatRequest(message="ideas", session_id="s1"))

        assert response.suggestions[0] == "Hot air balloon tour prices"
        assert [a.type for a in response.actions] == ["book", "navigate"]
        assert response.to_dict()["actions"][0]["label"] == "Book Now"


class TestChatRecommendations:
    REPLY = '[{"name": "Bodrum", "score": 0.9, "reason": "Beaches"}]'

    @pytest.mark.asyncio
    async def test_attached_when_asked_with_known_preferences(self, memory):
        provider = FakeProvider("groq", reply=self.REPLY)
        assistant = _assistant(memory, provider)

        response = await assistant.chat(ChatRequest(
            message="Can you recommend a beach town?",
            session_id="s1",
            user_preferences={"interests": ["beach"]},
        ))

        assert [r.name for r in response.recommendations] == ["Bodrum"]
        assert response.to_dict()["recommendations"][0]["score"] == 0.9
        assert len(provider.calls) == 2
        assert "Interests: beach" in provider.calls[-1][-1].content

    @pytest.mark.asyncio
    async def test_turkish_trigger(self, memory):
        assistant = _assistant(memory, FakeProvider("groq", reply=self.REPLY))
        memory.create_session("s1", preferences={"destinations": ["bodrum"]})

        response = await assistant.chat(ChatRequest(message="Bir otel öner", session_id="s1"))

        assert response.recommendations is not None

    @pytest.mark.asyncio
    async def test_not_attached_without_trigger(self, memory):
        provider = FakeProvider("groq", reply=self.REPLY)
        assistant = _assistant(memory, provider)

        response = await assistant.chat(ChatRequest(
            message="What is the weather like?",
            session_id="s1",
            user_preferences={"interests": ["beach"]},
        ))

        assert response.recommendations is None
        assert response.to_dict()["recommendations"] is None
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_not_attached_without_preferences(self, memory):
        provider = FakeProvider("groq", reply=self.REPLY)
        assistant = _assistant(memory, provider)

        response = await assistant.chat(ChatRequest(message="Best hotels?", session_id="s1"))

        assert response.recommendations is None
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_failed_lookup_does_not_fail_chat(self, memory):
        class FailsSecondCall(FakeProvider):
            async def chat(self, messages, options=None):
                if self.calls:
                    self.calls.append(list(messages))
                    raise ProviderError(self.name, "rate limited", status_code=429)
                return await super().chat(messages, options)

        assistant = _assistant(memory, FailsSecondCall("groq", reply="Try Bodrum."))

        response = await assistant.chat(ChatRequest(
            message="Suggest somewhere sunny",
            session_id="s1",
            user_preferences={"interests": ["beach"]},
        ))

        assert response.message == "Try Bodrum."
        assert response.recommendations == []
        assert [m.content for m in memory.get_messages("s1")] == [
            "Suggest somewhere sunny",
            "Try Bodrum.",
        ]


class TestConfidence:
    @pytest.mark.asyncio
    async def test_primary_stop_short(self, memory):
        assistant = _assistant(memory, FakeProvider("groq", reply="Sure."))
        response = await assistant.chat(ChatRequest(message="hi", session_id="s1"))
        assert response.confidence == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_long_reply_is_capped(self, memory):
        assistant = _assistant(memory, FakeProvider("groq", reply="x" * 150))
        response = await assistant.chat(ChatRequest(message="hi", session_id="s1"))
        assert response.confidence == 1.0

    @pytest.mark.asyncio
    async def test_fallback_truncated_reply(self, memory):
        assistant = _assistant(
            memory,
            FakeProvider("groq", fail=True),
            FakeProvider("openai", reply="cut", finish_reason=FinishReason.LENGTH),
        )
        response = await assistant.chat(ChatRequest(message="hi", session_id="s1"))
        assert response.confidence == pytest.approx(0.8)


# =============================================================
# stream_chat()
# =============================================================

class TestStreamChat:
    @pytest.mark.asyncio
    async def test_reply_persisted_on_completion(self, memory):
        assistant = _assistant(memory, FakeProvider("groq", chunks=["Bod", "rum"]))

        chunks = [c async for c in assistant.stream_chat(
            ChatRequest(message="Beach town?", session_id="s1", stream=True)
        )]

        assert chunks[-1].done
        assert chunks[-1].accumulated == "Bodrum"
        assert [m.content for m in memory.get_messages("s1")] == ["Beach town?", "Bodrum"]

    @pytest.mark.asyncio
    async def test_abandoned_stream_keeps_only_user_message(self, memory):
        assistant = _assistant(memory, FakeProvider("groq", chunks=["a", "b", "c"]))

        stream = assistant.stream_chat(ChatRequest(message="tell me", session_id="s1"))
        await stream.__anext__()
        await stream.aclose()

        assert [m.role for m in memory.get_messages("s1")] == [Role.USER]

    @pytest.mark.asyncio
    async def test_failure_propagates(self, memory):
        assistant = _assistant(memory, FakeProvider("groq", fail=True))
        with pytest.raises(AllProvidersFailedError):
            async for _ in assistant.stream_chat(ChatRequest(message="hi", session_id="s1")):
                pass


# =============================================================
# Convenience wrappers
# =============================================================

class TestConvenience:
    @pytest.mark.asyncio
    async def test_answer_question_uses_short_history(self, memory):
        provider = FakeProvider("groq", reply="Yes, visas on arrival.")
        assistant = _assistant(memory, provider)
        for i in range(8):
            memory.add_message("s1", Message(Role.USER, f"m{i}"))

        answer = await assistant.answer_question("Do I need a visa?", "s1")

        assert answer == "Yes, visas on arrival."
        sent = provider.calls[-1]
        assert len(sent) == 1 + 5 + 1
        assert sent[-1].content == "Do I need a visa?"
        assert len(memory.get_messages("s1")) == 8

    @pytest.mark.asyncio
    async def test_recommendations_from_json(self, memory):
        reply = (
            'Here you go: [{"name": "Bodrum", "type": "destination", "score": 0.9, '
            '"reason": "Beaches"}, {"name": "Kas", "score": 3}, "Izmir"]'
        )
        provider = FakeProvider("groq", reply=reply)
        assistant = _assistant(memory, provider)

        recs = await assistant.get_recommendations({"interests": ["beach"]}, limit=2)

        assert [r.name for r in recs] == ["Bodrum", "Kas"]
        assert recs[0].score == pytest.approx(0.9)
        assert recs[1].score == 1.0
        assert "beach" in provider.calls[-1][-1].content
        assert provider.options[-1].temperature == 0.5

    @pytest.mark.asyncio
    async def test_plan_itinerary(self, memory):
        provider = FakeProvider("groq", reply=ITINERARY_TEXT)
        assistant = _assistant(memory, provider)

        itinerary = await assistant.plan_itinerary(ItineraryParams(
            destination="Istanbul",
            start_date="2025-06-01",
            end_date="2025-06-02",
            interests=["history"],
        ))

        assert itinerary.destination == "Istanbul"
        assert [d.day for d in itinerary.days] == [1, 2]
        assert itinerary.days[0].title == "Old City"
        assert itinerary.days[1].date == "2025-06-02"
        assert itinerary.days[1].activities == ["Ferry ride", "Fish sandwich in Eminonu"]
        assert itinerary.raw_text == ITINERARY_TEXT
        assert itinerary.tips
        assert provider.options[-1].max_tokens == 3000

    @pytest.mark.asyncio
    async def test_export_and_clear(self, memory):
        assistant = _assistant(memory, FakeProvider("groq"))
        await assistant.chat(ChatRequest(message="hello", session_id="s1"))

        exported = assistant.export_conversation("s1")
        assert exported["messageCount"] == 2

        assistant.clear_session("s1")
        assert assistant.export_conversation("s1") is None


# =============================================================
# Reply parsing & prompt helpers
# =============================================================

class TestParsing:
    def test_recommendations_from_bullets(self):
        recs = parse_recommendations("Try these:\n- Bodrum - great beaches\n2. Kas - diving\n")
        assert [(r.name, r.reason) for r in recs] == [
            ("Bodrum", "great beaches"),
            ("Kas", "diving"),
        ]

    def test_recommendations_from_nothing(self):
        assert parse_recommendations("I am not sure.") == []

    def test_itinerary_without_headings(self):
        params = ItineraryParams(destination="Izmir", start_date="soon", end_date="later")
        itinerary = parse_itinerary("Just relax by the sea.", params)
        assert itinerary.days == []
        assert itinerary.raw_text == "Just relax by the sea."

    def test_itinerary_with_unparseable_start_date(self):
        params = ItineraryParams(destination="Istanbul", start_date="next June", end_date="")
        itinerary = parse_itinerary(ITINERARY_TEXT, params)
        assert [d.date for d in itinerary.days] == ["", ""]


class TestPrompts:
    def test_unknown_locale_falls_back_to_english(self):
        assert get_system_prompt("xx") == SYSTEM_PROMPTS["en"]
        assert get_system_prompt("de") == SYSTEM_PROMPTS["de"]

    def test_empty_preferences_give_no_context(self):
        assert build_context_prompt(None) == ""
        assert build_context_prompt(UserPreferences()) == ""
        assert build_context_prompt(UserPreferences(interests=[])) == ""

    def test_context_prompt_lists_known_fields(self):
        prompt = build_context_prompt(UserPreferences(
            budget=Budget(100, 500, "EUR"),
            travel_dates=TravelDates("2025-06-01", "2025-06-07", flexible=True),
            interests=["food", "history"],
        ))
        assert "Budget: 100-500 EUR" in prompt
        assert "2025-06-01 to 2025-06-07 (flexible)" in prompt
        assert "Interests: food, history" in prompt
        assert "Travelers" not in prompt

    def test_itinerary_prompt_defaults(self):
        prompt = build_itinerary_prompt("Antalya", "2025-07-01", "2025-07-05")
        assert "Antalya" in prompt
        assert "Flexible" in prompt
        assert "General sightseeing" in prompt

    def test_actions_once_per_type(self):
        actions = extract_actions("Search hotels, then find tours. Book early!")
        assert [a.type for a in actions] == ["search", "book"]
        assert extract_actions("Have a nice trip") == []

    def test_suggestions(self):
        assert generate_suggestions("ok") == GENERIC_SUGGESTIONS
        merged = generate_suggestions("Istanbul then Antalya")
        assert len(merged) == 4
        assert merged[0] == "Best time to visit Istanbul"
