"""Configuration management for the travel assistant.

Loads settings from YAML config file with Pydantic validation, then applies
environment overrides.
Config file location: ~/.travel_ai/config.yaml
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field


# === Default paths ===

def get_travel_ai_home() -> Path:
    """Get the data directory (~/.travel_ai)."""
    return Path(os.environ.get("TRAVEL_AI_HOME", Path.home() / ".travel_ai"))


# === Configuration Models ===


class ProviderConfig(BaseModel):
    """Configuration for a single LLM provider."""

    api_key_env: str | None = None  # Environment variable name for API key
    api_key: str | None = None  # Direct API key (not recommended)
    model: str = ""  # Default model id, without the provider prefix
    fallback_model: str | None = None  # Tried on the same provider if `model` fails
    base_url: str | None = None  # Custom base URL (e.g., for Ollama)
    timeout: float = 30.0  # seconds, per request

    def get_api_key(self) -> str | None:
        """Resolve API key from env var or direct value."""
        if self.api_key_env:
            key = os.environ.get(self.api_key_env)
            if key:
                return key
        return self.api_key


class ProvidersConfig(BaseModel):
    """Provider routing configuration."""

    primary: str = "groq"
    fallbacks: list[str] = Field(default_factory=lambda: ["openai", "anthropic"])
    entries: dict[str, ProviderConfig] = Field(default_factory=lambda: {
        "groq": ProviderConfig(
            api_key_env="GROQ_API_KEY",
            model="llama-3.3-70b-versatile",
            fallback_model="llama-3.1-8b-instant",
        ),
        "openai": ProviderConfig(
            api_key_env="OPENAI_API_KEY",
            model="gpt-4o-mini",
        ),
        "anthropic": ProviderConfig(
            api_key_env="ANTHROPIC_API_KEY",
            model="claude-3-5-haiku-latest",
        ),
        "gemini": ProviderConfig(
            api_key_env="GEMINI_API_KEY",
            model="gemini-2.0-flash",
        ),
        "ollama": ProviderConfig(model="llama3.1"),
    })
    health_check_interval: float = 60.0  # seconds
    temperature: float = 0.7
    max_tokens: int = 2048

    @property
    def priority(self) -> list[str]:
        """Primary first, then fallbacks in order, without duplicates."""
        order: list[str] = []
        for name in [self.primary, *self.fallbacks]:
            if name and name not in order:
                order.append(name)
        return order


class MemoryConfig(BaseModel):
    """Conversation memory limits."""

    max_sessions: int = 1000
    session_ttl_seconds: float = 3600.0  # idle time before a session expires
    max_messages_per_session: int = 50
    max_context_tokens: int = 8000


class AssistantConfig(BaseModel):
    """Travel assistant facade settings."""

    default_locale: str = "en"
    history_window: int = 10  # recent history messages sent with chat()
    question_history_window: int = 5  # recent history messages sent with answer_question()


class TravelAIConfig(BaseModel):
    """Root configuration."""

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)


# === Config Loading ===


def apply_env_overrides(config: TravelAIConfig) -> TravelAIConfig:
    """Apply TRAVEL_AI_* and <PROVIDER>_MODEL environment variables in place."""
    env = os.environ

    if env.get("TRAVEL_AI_PRIMARY_PROVIDER"):
        config.providers.primary = env["TRAVEL_AI_PRIMARY_PROVIDER"].strip().lower()

    if "TRAVEL_AI_FALLBACK_PROVIDERS" in env:
        config.providers.fallbacks = [
            name.strip().lower()
            for name in env["TRAVEL_AI_FALLBACK_PROVIDERS"].split(",")
            if name.strip()
        ]

    if env.get("TRAVEL_AI_HEALTH_CHECK_INTERVAL"):
        config.providers.health_check_interval = float(env["TRAVEL_AI_HEALTH_CHECK_INTERVAL"])
    if env.get("TRAVEL_AI_MAX_SESSIONS"):
        config.memory.max_sessions = int(env["TRAVEL_AI_MAX_SESSIONS"])
    if env.get("TRAVEL_AI_MAX_MESSAGES"):
        config.memory.max_messages_per_session = int(env["TRAVEL_AI_MAX_MESSAGES"])
    if env.get("TRAVEL_AI_MAX_CONTEXT_TOKENS"):
        config.memory.max_context_tokens = int(env["TRAVEL_AI_MAX_CONTEXT_TOKENS"])

    for name, provider_cfg in config.providers.entries.items():
        model = env.get(f"{name.upper()}_MODEL")
        if model:
            provider_cfg.model = model

    return config


def load_config(config_path: Path | None = None) -> TravelAIConfig:
    """Load configuration from YAML file.

    Falls back to defaults if the config file doesn't exist.
    """
    if config_path is None:
        config_path = get_travel_ai_home() / "config.yaml"

    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        config = TravelAIConfig(**raw)
    else:
        config = TravelAIConfig()

    return apply_env_overrides(config)


def save_default_config(config_path: Path | None = None) -> Path:
    """Save the default configuration to a YAML file.

    Creates parent directories if needed. Returns the path.
    """
    if config_path is None:
        config_path = get_travel_ai_home() / "config.yaml"

    config_path.parent.mkdir(parents=True, exist_ok=True)

    config = TravelAIConfig()
    data = config.model_dump()

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    return config_path
