"""Prompt templates and reply heuristics for the travel assistant."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from travel_ai.core.types import UserPreferences

SYSTEM_PROMPTS: dict[str, str] = {
    "en": (
        "You are AILYDIAN Travel AI, an expert travel assistant specializing in "
        "Turkish tourism and global travel planning.\n\n"
        "**Your Expertise:**\n"
        "- Deep knowledge of Turkey's destinations (Istanbul, Cappadocia, Antalya, Bodrum, etc.)\n"
        "- Hotel recommendations and comparisons\n"
        "- Tour packages and activity planning\n"
        "- Budget optimization and price comparisons\n"
        "- Cultural insights and local experiences\n"
        "- Multi-day itinerary creation\n\n"
        "**Response Guidelines:**\n"
        "1. Always provide specific, actionable recommendations\n"
        "2. Include pricing information when available\n"
        "3. Offer multiple options at different price points\n"
        "4. Mention practical tips (best time to visit, what to bring, etc.)\n"
        "5. Ask clarifying questions when needed\n"
        "6. Structure responses with clear sections using markdown\n\n"
        "**Safety & Ethics:**\n"
        "- Never make up information - admit if you don't know\n"
        "- Warn about tourist scams or safety concerns\n"
        "- Respect cultural sensitivities"
    ),
    "tr": (
        "Sen AILYDIAN Travel AI'sın, Türkiye turizmi ve global seyahat planlaması "
        "konusunda uzman bir seyahat asistanısın.\n\n"
        "**Uzmanlık Alanların:**\n"
        "- Türkiye'nin destinasyonları hakkında derin bilgi (İstanbul, Kapadokya, Antalya, Bodrum, vb.)\n"
        "- Otel önerileri ve karşılaştırmaları\n"
        "- Tur paketleri ve aktivite planlaması\n"
        "- Bütçe optimizasyonu ve fiyat karşılaştırmaları\n\n"
        "**Yanıt Kuralları:**\n"
        "1. Her zaman spesifik, uygulanabilir öneriler sun\n"
        "2. Mevcut olduğunda fiyat bilgisi ekle\n"
        "3. Farklı fiyat noktalarında birden fazla seçenek sun\n"
        "4. Gerektiğinde açıklayıcı sorular sor\n"
        "5. Markdown kullanarak net bölümler oluştur\n\n"
        "**Güvenlik & Etik:**\n"
        "- Bilmediğin bilgiyi asla uydurma\n"
        "- Kültürel hassasiyetlere saygı göster"
    ),
    "de": (
        "Du bist AILYDIAN Travel AI, ein Expertenreiseassistent, spezialisiert auf "
        "türkischen Tourismus und globale Reiseplanung.\n\n"
        "**Deine Expertise:**\n"
        "- Tiefes Wissen über türkische Reiseziele (Istanbul, Kappadokien, Antalya, Bodrum, etc.)\n"
        "- Hotelempfehlungen und -vergleiche\n"
        "- Tourpakete und Aktivitätenplanung\n\n"
        "**Antwortrichtlinien:**\n"
        "1. Immer spezifische, umsetzbare Empfehlungen geben\n"
        "2. Preisinformationen wenn verfügbar\n"
        "3. Bei Bedarf klärende Fragen stellen\n"
        "4. Antworten mit klaren Abschnitten strukturieren"
    ),
    "ru": (
        "Ты AILYDIAN Travel AI, эксперт-консультант по путешествиям, "
        "специализирующийся на турецком туризме и планировании международных поездок.\n\n"
        "**Твоя экспертиза:**\n"
        "- Глубокие знания о направлениях Турции (Стамбул, Каппадокия, Анталья, Бодрум и др.)\n"
        "- Рекомендации отелей и сравнения\n"
        "- Туристические пакеты и планирование активностей\n\n"
        "**Рекомендации по ответам:**\n"
        "1. Всегда предоставляй конкретные рекомендации\n"
        "2. Включай информацию о ценах\n"
        "3. Задавай уточняющие вопросы\n"
        "4. Структурируй ответы с четкими разделами"
    ),
}

GENERIC_SUGGESTIONS = [
    "Popular destinations in Turkey",
    "Budget travel tips",
    "Best hotels for families",
    "Create custom itinerary",
]

DESTINATION_SUGGESTIONS: list[tuple[tuple[str, ...], list[str]]] = [
    (("istanbul",), [
        "Best time to visit Istanbul",
        "Istanbul 3-day itinerary",
        "Top hotels in Sultanahmet",
    ]),
    (("cappadocia", "kapadokya"), [
        "Hot air balloon tour prices",
        "Cave hotel recommendations",
        "Cappadocia photography tips",
    ]),
    (("antalya",), [
        "All-inclusive resorts in Antalya",
        "Antalya beach clubs",
        "Day trips from Antalya",
    ]),
]

MAX_SUGGESTIONS = 4

# (action type, button label, keywords); Turkish keywords included
ACTION_RULES: list[tuple[str, str, tuple[str, ...]]] = [
    ("search", "Search Now", ("search", "find", "ara")),
    ("book", "Book Now", ("book", "reserve", "rezervasyon")),
    ("navigate", "View on Map", ("map", "location", "harita")),
]


@dataclass
class Action:
    type: str
    label: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "label": self.label, "data": dict(self.data)}


def get_system_prompt(locale: str = "en") -> str:
    """System prompt for a locale, English when the locale is unknown."""
    return SYSTEM_PROMPTS.get(locale, SYSTEM_PROMPTS["en"])


def build_context_prompt(preferences: UserPreferences | None) -> str:
    """Describe known user preferences, or return "" when there are none."""
    if preferences is None or preferences.is_empty():
        return ""

    parts = ["**User Context:**"]

    if preferences.budget:
        b = preferences.budget
        parts.append(f"- Budget: {b.min:g}-{b.max:g} {b.currency}")

    if preferences.travel_dates:
        d = preferences.travel_dates
        flexible = " (flexible)" if d.flexible else ""
        parts.append(f"- Travel Dates: {d.start} to {d.end}{flexible}")

    if preferences.travelers:
        t = preferences.travelers
        parts.append(
            f"- Travelers: {t.adults} adults, {t.children} children, {t.infants} infants"
        )

    if preferences.interests:
        parts.append(f"- Interests: {', '.join(preferences.interests)}")

    if preferences.destinations:
        parts.append(f"- Interested in: {', '.join(preferences.destinations)}")

    if len(parts) == 1:
        return ""
    return "\n".join(parts)


def build_itinerary_prompt(
    destination: str,
    start_date: str,
    end_date: str,
    budget: float | None = None,
    interests: list[str] | None = None,
    adults: int = 1,
    children: int = 0,
) -> str:
    budget_text = f"{budget:g} USD" if budget else "Flexible"
    interests_text = ", ".join(interests) if interests else "General sightseeing"
    return (
        "Create a detailed travel itinerary for:\n\n"
        f"**Destination:** {destination}\n"
        f"**Dates:** {start_date} to {end_date}\n"
        f"**Budget:** {budget_text}\n"
        f"**Travelers:** {adults} adults, {children} children\n"
        f"**Interests:** {interests_text}\n\n"
        "Please provide:\n"
        "1. Day-by-day schedule with morning, afternoon, and evening activities\n"
        "2. Recommended accommodation for each night\n"
        "3. Meal suggestions with estimated costs\n"
        "4. Transportation tips\n"
        "5. Total estimated cost breakdown\n"
        "6. Packing list\n"
        "7. Local tips and insider knowledge\n\n"
        "Start each day with a heading of the form 'Day N:'."
    )


def build_recommendation_prompt(preferences: UserPreferences | None, limit: int = 5) -> str:
    context = build_context_prompt(preferences) or "No stated preferences."
    return (
        f"Recommend up to {limit} travel destinations for this traveler.\n\n"
        f"{context}\n\n"
        "Reply with a JSON array only. Each item must be an object with the keys "
        '"name" (string), "type" (one of "destination", "hotel", "tour", "activity"), '
        '"score" (number between 0 and 1) and "reason" (one sentence).'
    )


def extract_actions(reply: str) -> list[Action]:
    """Actionable intents mentioned in a reply, at most one per type."""
    lower = reply.lower()
    return [
        Action(type=action_type, label=label)
        for action_type, label, keywords in ACTION_RULES
        if any(k in lower for k in keywords)
    ]


def generate_suggestions(reply: str) -> list[str]:
    """Follow-up questions based on destinations named in the reply."""
    lower = reply.lower()
    suggestions: list[str] = []
    for keywords, follow_ups in DESTINATION_SUGGESTIONS:
        if any(k in lower for k in keywords):
            suggestions.extend(follow_ups)

    if not suggestions:
        suggestions = list(GENERIC_SUGGESTIONS)

    return suggestions[:MAX_SUGGESTIONS]
