"""Tests for application wiring."""

from __future__ import annotations

import pytest

from travel_ai.config import ProviderConfig, ProvidersConfig, TravelAIConfig
from travel_ai.main import async_health_main, build_application


def _ollama_only() -> TravelAIConfig:
    return TravelAIConfig(
        providers=ProvidersConfig(
            primary="ollama",
            fallbacks=[],
            entries={"ollama": ProviderConfig(model="llama3.1")},
            health_check_interval=3600,
        ),
    )


class TestBuildApplication:
    def test_components_share_memory_and_providers(self):
        app = build_application(_ollama_only())

        assert app.assistant.memory is app.memory
        assert app.assistant.providers is app.providers
        assert app.providers.providers == ["ollama"]
        assert app.memory.store.max_sessions == app.config.memory.max_sessions

    def test_no_configured_providers(self, monkeypatch):
        for var in ("GROQ_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
            monkeypatch.delenv(var, raising=False)
        app = build_application(TravelAIConfig())
        assert app.providers.providers == []

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self):
        app = build_application(_ollama_only())
        await app.start()
        assert app.providers.is_running
        await app.shutdown()
        assert not app.providers.is_running

    @pytest.mark.asyncio
    async def test_health_main_with_nothing_configured(self, monkeypatch, capsys):
        for var in ("GROQ_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
            monkeypatch.delenv(var, raising=False)

        code = await async_health_main(TravelAIConfig())

        assert code == 1
        assert "No providers configured." in capsys.readouterr().out
