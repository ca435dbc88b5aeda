"""Base provider interface for language-model backends.

Every concrete provider implements chat, streaming chat and a health probe,
and keeps a rolling count of its own recent errors.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable

from travel_ai.core.types import ChatOptions, Message, ProviderResponse, StreamChunk

# A provider with more than this many errors, the latest within the cooldown,
# reports itself unhealthy.
MAX_RECENT_ERRORS = 5
ERROR_COOLDOWN_SECONDS = 60.0


class BaseProvider(ABC):
    """Abstract base class for language-model providers.

    Subclasses must implement:
    - chat(): one request, one complete reply
    - stream_chat(): async generator of StreamChunk
    - health_check(): minimal live request
    """

    name: str = "base"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.error_count = 0
        self.last_error_at: float | None = None

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> ProviderResponse:
        """Send messages and return the full reply.

        Raises:
            ProviderError: on any upstream failure.
        """
        ...

    @abstractmethod
    def stream_chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream the reply as chunks in production order.

        The last chunk, and only the last, has ``done=True``.

        Raises:
            ProviderError: on any upstream failure.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Issue a minimal request. Resets the error count on success."""
        ...

    def is_configured(self) -> bool:
        """Whether the provider has what it needs (e.g. an API key) to be called."""
        return True

    def is_healthy(self) -> bool:
        """Local judgment, no network: unhealthy only during a recent error burst."""
        if self.error_count <= MAX_RECENT_ERRORS or self.last_error_at is None:
            return True
        return self._clock() - self.last_error_at > ERROR_COOLDOWN_SECONDS

    def record_error(self) -> None:
        self.error_count += 1
        self.last_error_at = self._clock()

    def reset_errors(self) -> None:
        self.error_count = 0
        self.last_error_at = None
