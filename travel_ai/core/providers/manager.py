"""Provider manager: priority routing with automatic fallback.

Holds one primary and any number of fallback providers. Every request walks
the priority list, skipping providers that are unconfigured or report a
recent error burst, and returns the first success. Health records are kept
per provider and refreshed by a background probe loop.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import AsyncIterator, Mapping

import structlog

from travel_ai.config import ProvidersConfig
from travel_ai.core.errors import (
    AllProvidersFailedError,
    ProviderError,
    StreamInterruptedError,
)
from travel_ai.core.providers.base import BaseProvider
from travel_ai.core.providers.litellm_provider import ProviderKind, create_provider
from travel_ai.core.types import (
    ChatOptions,
    Message,
    ProviderHealth,
    ProviderResponse,
    StreamChunk,
)

logger = structlog.get_logger()

# Consecutive failures (live or probe) that mark a provider unhealthy
UNHEALTHY_AFTER_FAILURES = 3


class ProviderManager:
    """Routes chat requests across providers in priority order."""

    def __init__(
        self,
        providers: Mapping[str, BaseProvider],
        primary: str,
        fallbacks: list[str] | None = None,
        health_check_interval: float = 60.0,
        default_options: ChatOptions | None = None,
    ) -> None:
        self._providers: dict[str, BaseProvider] = dict(providers)
        self.priority: list[str] = []
        for name in [primary, *(fallbacks or [])]:
            if name not in self.priority:
                self.priority.append(name)

        self.health_check_interval = health_check_interval
        self.default_options = default_options or ChatOptions()
        self._health: dict[str, ProviderHealth] = {
            name: ProviderHealth(provider=name) for name in self._providers
        }
        self._health_task: asyncio.Task | None = None

        logger.info(
            "provider_manager_initialized",
            priority=self.priority,
            configured=list(self._providers),
        )

    @classmethod
    def from_config(cls, config: ProvidersConfig) -> ProviderManager:
        """Build adapters for every provider in the priority list that is configured."""
        providers: dict[str, BaseProvider] = {}
        for name in config.priority:
            provider_cfg = config.entries.get(name)
            if provider_cfg is None:
                logger.warning("provider_not_in_config", provider=name)
                continue
            try:
                provider = create_provider(ProviderKind(name), provider_cfg)
            except ValueError:
                logger.warning("provider_kind_unknown", provider=name)
                continue
            if not provider.is_configured():
                logger.info("provider_not_configured", provider=name)
                continue
            providers[name] = provider

        return cls(
            providers,
            primary=config.primary,
            fallbacks=config.fallbacks,
            health_check_interval=config.health_check_interval,
            default_options=ChatOptions(
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            ),
        )

    @property
    def primary(self) -> str:
        return self.priority[0] if self.priority else ""

    @property
    def providers(self) -> list[str]:
        """Names of configured providers, in priority order."""
        return [name for name in self.priority if name in self._providers]

    def get_provider(self, name: str) -> BaseProvider | None:
        return self._providers.get(name)

    def _options(self, options: ChatOptions | None) -> ChatOptions:
        if options is None:
            return self.default_options
        defaults = self.default_options
        return replace(
            options,
            temperature=options.temperature if options.temperature is not None else defaults.temperature,
            max_tokens=options.max_tokens if options.max_tokens is not None else defaults.max_tokens,
        )

    def _candidates(self, skipped: list[str]) -> list[tuple[str, BaseProvider]]:
        """Providers eligible for this request, in priority order."""
        candidates = []
        for name in self.priority:
            provider = self._providers.get(name)
            if provider is None or not provider.is_configured():
                skipped.append(name)
                continue
            if not provider.is_healthy():
                logger.info("provider_skipped_unhealthy", provider=name)
                skipped.append(name)
                continue
            candidates.append((name, provider))
        return candidates

    # --- Requests ---

    async def chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> ProviderResponse:
        """Send a chat request to the first provider that succeeds.

        Raises:
            AllProvidersFailedError: every provider was skipped or failed.
        """
        opts = self._options(options)
        errors: dict[str, ProviderError] = {}
        skipped: list[str] = []

        for name, provider in self._candidates(skipped):
            started = time.perf_counter()
            try:
                response = await provider.chat(messages, opts)
            except Exception as e:
                errors[name] = self._as_provider_error(name, e)
                self._mark_failure(name, errors[name])
                continue

            self._mark_success(name, (time.perf_counter() - started) * 1000)
            return response

        logger.error(
            "all_providers_failed",
            tried=list(errors),
            skipped=skipped,
        )
        raise AllProvidersFailedError(errors=errors, skipped=skipped)

    async def stream_chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a reply from the first provider that starts producing text.

        Falls back to the next provider only while nothing has been yielded.
        Once chunks are out, a failure ends the stream with
        StreamInterruptedError instead of splicing another provider in.
        Closing the generator stops consumption; the upstream call is
        abandoned.
        """
        opts = self._options(options)
        errors: dict[str, ProviderError] = {}
        skipped: list[str] = []

        for name, provider in self._candidates(skipped):
            started = time.perf_counter()
            delivered = False
            try:
                async for chunk in provider.stream_chat(messages, opts):
                    delivered = True
                    yield chunk
            except Exception as e:
                errors[name] = self._as_provider_error(name, e)
                self._mark_failure(name, errors[name])
                if delivered:
                    raise StreamInterruptedError(
                        errors=errors,
                        skipped=skipped,
                        message=f"Stream from {name} was interrupted",
                    ) from e
                continue

            self._mark_success(name, (time.perf_counter() - started) * 1000)
            return

        logger.error(
            "all_providers_failed",
            tried=list(errors),
            skipped=skipped,
            stream=True,
        )
        raise AllProvidersFailedError(errors=errors, skipped=skipped)

    # --- Health ---

    def _mark_success(self, name: str, latency_ms: float | None = None) -> None:
        record = self._health.setdefault(name, ProviderHealth(provider=name))
        record.healthy = True
        record.error_count = 0
        record.last_checked = datetime.now(timezone.utc)
        if latency_ms is not None:
            record.latency_ms = round(latency_ms, 2)

    def _mark_failure(self, name: str, error: ProviderError | None = None) -> None:
        record = self._health.setdefault(name, ProviderHealth(provider=name))
        record.error_count += 1
        record.last_checked = datetime.now(timezone.utc)
        if record.error_count >= UNHEALTHY_AFTER_FAILURES:
            record.healthy = False

        if error is not None:
            logger.warning(
                "provider_failed",
                provider=name,
                status_code=error.status_code,
                retryable=error.retryable,
                error_count=record.error_count,
                error=str(error),
            )

    @staticmethod
    def _as_provider_error(name: str, exc: Exception) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc
        return ProviderError(name, str(exc) or exc.__class__.__name__, cause=exc)

    async def _check_one(self, name: str, provider: BaseProvider) -> bool:
        started = time.perf_counter()
        try:
            ok = await provider.health_check()
        except Exception as e:
            logger.warning("health_check_error", provider=name, error=str(e))
            ok = False

        if ok:
            self._mark_success(name, (time.perf_counter() - started) * 1000)
        else:
            self._mark_failure(name)
            logger.info("health_check_failed", provider=name)
        return ok

    async def run_health_checks(self) -> dict[str, bool]:
        """Probe every configured provider concurrently."""
        names = list(self._providers)
        results = await asyncio.gather(
            *(self._check_one(name, self._providers[name]) for name in names)
        )
        return dict(zip(names, results))

    def get_health_status(self) -> list[ProviderHealth]:
        """Snapshot of all health records; never touches the network."""
        return [replace(record) for record in self._health.values()]

    async def start(self) -> None:
        """Start the periodic background health check."""
        if self._health_task is not None and not self._health_task.done():
            logger.warning("health_checks_already_running")
            return
        self._health_task = asyncio.create_task(self._health_loop())
        logger.info("health_checks_started", interval=self.health_check_interval)

    async def _health_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.health_check_interval)
                await self.run_health_checks()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("health_loop_error", error=str(e))

    async def destroy(self) -> None:
        """Stop the background health check."""
        if self._health_task is not None:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None
        logger.info("provider_manager_stopped")

    @property
    def is_running(self) -> bool:
        return self._health_task is not None and not self._health_task.done()
