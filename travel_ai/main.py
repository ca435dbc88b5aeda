"""Travel AI - multi-provider travel assistant.

Entry point for the application.
Usage:
    python -m travel_ai.main                   # Start interactive chat
    python -m travel_ai.main --init            # Write default config
    python -m travel_ai.main --health          # Probe providers once and exit
    python -m travel_ai.main --config my.yaml  # Use a specific config file
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import structlog

from travel_ai.assistant.service import TravelAssistant
from travel_ai.config import TravelAIConfig, get_travel_ai_home, load_config, save_default_config
from travel_ai.core.memory.manager import ConversationMemory
from travel_ai.core.providers.manager import ProviderManager

logger = structlog.get_logger()


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _load_env() -> None:
    """Load .env files from the working directory and ~/.travel_ai/."""
    from dotenv import load_dotenv

    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    home_env = get_travel_ai_home() / ".env"
    if home_env.exists():
        load_dotenv(home_env)


@dataclass
class Application:
    """Components built once at startup and passed to request handlers."""

    config: TravelAIConfig
    memory: ConversationMemory
    providers: ProviderManager
    assistant: TravelAssistant

    async def start(self) -> None:
        await self.providers.start()

    async def shutdown(self) -> None:
        await self.providers.destroy()


def build_application(config: TravelAIConfig) -> Application:
    """Build memory, provider manager and assistant from config."""
    memory = ConversationMemory.from_config(config.memory)
    providers = ProviderManager.from_config(config.providers)
    assistant = TravelAssistant(memory, providers, config.assistant)

    if not providers.providers:
        logger.warning("no_providers_configured", priority=config.providers.priority)

    return Application(config=config, memory=memory, providers=providers, assistant=assistant)


async def async_health_main(config: TravelAIConfig) -> int:
    """Run one health-check round and print the result."""
    app = build_application(config)
    results = await app.providers.run_health_checks()
    for record in app.providers.get_health_status():
        status = "ok" if results.get(record.provider) else "FAILED"
        latency = f"{record.latency_ms:.0f} ms" if record.latency_ms is not None else "-"
        print(f"{record.provider:<10} {status:<7} {latency}")
    if not results:
        print("No providers configured.")
    return 0 if results and all(results.values()) else 1


async def async_main(config: TravelAIConfig) -> None:
    """Async entry point for interactive chat."""
    from travel_ai.ui.cli import CLI

    app = build_application(config)
    await app.start()
    try:
        await CLI(app).run()
    finally:
        await app.shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(description="Travel AI assistant")
    parser.add_argument("--config", type=str, help="Path to config.yaml")
    parser.add_argument("--init", action="store_true", help="Write the default config file")
    parser.add_argument("--health", action="store_true", help="Check provider health and exit")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    if args.init:
        config_path = save_default_config(Path(args.config) if args.config else None)
        print(f"Default config saved to: {config_path}")
        return

    _load_env()
    config = load_config(Path(args.config) if args.config else None)

    try:
        if args.health:
            sys.exit(asyncio.run(async_health_main(config)))
        asyncio.run(async_main(config))
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == "__main__":
    main()
