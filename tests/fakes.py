"""Scripted fakes shared by the tests."""

from __future__ import annotations

from typing import AsyncIterator

from travel_ai.core.errors import ProviderError
from travel_ai.core.providers.base import BaseProvider
from travel_ai.core.types import (
    ChatOptions,
    FinishReason,
    Message,
    ProviderResponse,
    StreamChunk,
    Usage,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(BaseProvider):
    """In-memory provider with scripted behaviour."""

    def __init__(
        self,
        name: str,
        reply: str = "ok",
        fail: bool = False,
        chunks: list[str] | None = None,
        fail_after_chunks: int | None = None,
        healthy_probe: bool = True,
        finish_reason: FinishReason = FinishReason.STOP,
        clock: FakeClock | None = None,
    ) -> None:
        super().__init__(**({"clock": clock} if clock else {}))
        self.name = name
        self.reply = reply
        self.fail = fail
        self.chunks = chunks if chunks is not None else [reply]
        self.fail_after_chunks = fail_after_chunks
        self.healthy_probe = healthy_probe
        self.finish_reason = finish_reason
        self.calls: list[list[Message]] = []
        self.options: list[ChatOptions | None] = []
        self.health_checks = 0

    async def chat(self, messages, options=None):
        self.calls.append(list(messages))
        self.options.append(options)
        if self.fail:
            self.record_error()
            raise ProviderError(self.name, "boom", status_code=500)
        return ProviderResponse(
            content=self.reply,
            provider=self.name,
            model=f"{self.name}-model",
            finish_reason=self.finish_reason,
            usage=Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )

    async def stream_chat(self, messages, options=None) -> AsyncIterator[StreamChunk]:
        self.calls.append(list(messages))
        if self.fail:
            self.record_error()
            raise ProviderError(self.name, "stream boom", status_code=503)
        accumulated = ""
        for i, piece in enumerate(self.chunks):
            if self.fail_after_chunks is not None and i >= self.fail_after_chunks:
                self.record_error()
                raise ProviderError(self.name, "connection reset")
            accumulated += piece
            yield StreamChunk(delta=piece, accumulated=accumulated)
        yield StreamChunk(delta="", accumulated=accumulated, done=True)

    async def health_check(self) -> bool:
        self.health_checks += 1
        if self.healthy_probe:
            self.reset_errors()
        return self.healthy_probe


