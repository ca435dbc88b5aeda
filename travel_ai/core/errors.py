"""Error types raised by the provider layer."""

from __future__ import annotations


class TravelAIError(Exception):
    """Base class for travel assistant errors."""


class ProviderError(TravelAIError):
    """A single provider failed a request.

    Authentication and authorization failures are not retryable; anything
    else may succeed on another provider or a later attempt.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        retryable: bool = True,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable
        self.cause = cause


class AllProvidersFailedError(TravelAIError):
    """Every provider in the priority list was skipped or failed."""

    user_message = "The AI service is temporarily unavailable. Please try again later."

    def __init__(
        self,
        errors: dict[str, ProviderError] | None = None,
        skipped: list[str] | None = None,
        message: str | None = None,
    ) -> None:
        self.errors = errors or {}
        self.skipped = skipped or []
        if message is None:
            tried = ", ".join(self.errors) or "none"
            message = f"All AI providers failed (tried: {tried}; skipped: {len(self.skipped)})"
        super().__init__(message)


class StreamInterruptedError(AllProvidersFailedError):
    """A stream broke after chunks were delivered; no other provider is tried."""
