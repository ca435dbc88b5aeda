"""LiteLLM-backed providers.

One adapter class per supported backend (Groq, OpenAI, Anthropic, Gemini,
Ollama), all talking through LiteLLM. Which class serves a configured
provider is decided by its ProviderKind tag, never by inspecting objects.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, AsyncIterator

import litellm
import structlog

from travel_ai.config import ProviderConfig
from travel_ai.core.errors import ProviderError
from travel_ai.core.providers.base import BaseProvider
from travel_ai.core.types import (
    ChatOptions,
    FinishReason,
    Message,
    ProviderResponse,
    Role,
    StreamChunk,
    Usage,
)

logger = structlog.get_logger()

# Suppress LiteLLM's verbose logging
litellm.suppress_debug_info = True

NON_RETRYABLE_STATUS = (401, 403)

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "end_turn": FinishReason.STOP,
    "tool_calls": FinishReason.STOP,
    "function_call": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "max_tokens": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
}


class ProviderKind(str, Enum):
    """Supported provider backends."""

    GROQ = "groq"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OLLAMA = "ollama"


class LiteLLMProvider(BaseProvider):
    """Provider that routes calls through ``litellm.acompletion``."""

    kind: ProviderKind
    requires_api_key: bool = True
    default_base_url: str | None = None

    def __init__(self, config: ProviderConfig, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.config = config
        self.name = self.kind.value

    def is_configured(self) -> bool:
        if not self.config.model:
            return False
        if self.requires_api_key:
            return bool(self.config.get_api_key())
        return True

    def _models_to_try(self, options: ChatOptions) -> list[str]:
        if options.model:
            return [options.model]
        models = [self.config.model]
        if self.config.fallback_model and self.config.fallback_model != self.config.model:
            models.append(self.config.fallback_model)
        return models

    def _build_kwargs(
        self,
        model: str,
        messages: list[Message],
        options: ChatOptions,
        stream: bool,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": f"{self.kind.value}/{model}",
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
            "timeout": self.config.timeout,
        }

        api_key = self.config.get_api_key()
        if api_key:
            kwargs["api_key"] = api_key
        base_url = self.config.base_url or self.default_base_url
        if base_url:
            kwargs["api_base"] = base_url

        optional = {
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
            "stop": options.stop,
        }
        kwargs.update({k: v for k, v in optional.items() if v is not None})
        return kwargs

    def _wrap_error(self, exc: Exception) -> ProviderError:
        """Convert an upstream exception into a ProviderError."""
        status_code = getattr(exc, "status_code", None)
        if not isinstance(status_code, int):
            status_code = None
        retryable = not (
            isinstance(exc, litellm.AuthenticationError)
            or status_code in NON_RETRYABLE_STATUS
        )
        return ProviderError(
            self.name,
            str(exc) or exc.__class__.__name__,
            status_code=status_code,
            retryable=retryable,
            cause=exc,
        )

    async def chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> ProviderResponse:
        """Send a completion request.

        Tries the configured model, then the provider's fallback model.
        An authentication failure ends the attempt immediately.
        """
        options = options or ChatOptions()
        last_error: ProviderError | None = None

        for model in self._models_to_try(options):
            try:
                logger.debug("provider_request", provider=self.name, model=model)
                response = await litellm.acompletion(
                    **self._build_kwargs(model, messages, options, stream=False)
                )
                return self._parse_response(response, model)
            except Exception as e:
                last_error = self._wrap_error(e)
                logger.warning(
                    "provider_model_failed",
                    provider=self.name,
                    model=model,
                    status_code=last_error.status_code,
                    error=str(e),
                )
                if not last_error.retryable:
                    break

        self.record_error()
        raise last_error from last_error.cause

    async def stream_chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion, yielding chunks as text arrives.

        The fallback model is only tried if the first model fails before
        producing any text.
        """
        options = options or ChatOptions()
        last_error: ProviderError | None = None

        for model in self._models_to_try(options):
            accumulated = ""
            started = False
            try:
                response = await litellm.acompletion(
                    **self._build_kwargs(model, messages, options, stream=True)
                )
                async for raw in response:
                    delta = raw.choices[0].delta if raw.choices else None
                    text = getattr(delta, "content", None) if delta else None
                    if not text:
                        continue
                    started = True
                    accumulated += text
                    yield StreamChunk(delta=text, accumulated=accumulated)
            except Exception as e:
                last_error = self._wrap_error(e)
                logger.warning(
                    "provider_stream_failed",
                    provider=self.name,
                    model=model,
                    started=started,
                    error=str(e),
                )
                if started or not last_error.retryable:
                    break
                continue

            yield StreamChunk(delta="", accumulated=accumulated, done=True)
            return

        self.record_error()
        raise last_error from last_error.cause

    async def health_check(self) -> bool:
        """Ping the provider with a one-token completion."""
        if not self.is_configured():
            return False
        try:
            await litellm.acompletion(
                **self._build_kwargs(
                    self.config.model,
                    [Message(role=Role.USER, content="ping")],
                    ChatOptions(max_tokens=1),
                    stream=False,
                )
            )
        except Exception as e:
            logger.debug("provider_health_check_failed", provider=self.name, error=str(e))
            return False

        self.reset_errors()
        return True

    def _parse_response(self, response: Any, model: str) -> ProviderResponse:
        """Parse a LiteLLM response into ProviderResponse."""
        choice = response.choices[0] if response.choices else None
        if choice is None:
            return ProviderResponse(
                content="",
                provider=self.name,
                model=model,
                finish_reason=FinishReason.ERROR,
            )

        usage = Usage()
        if getattr(response, "usage", None):
            usage = Usage(
                prompt_tokens=getattr(response.usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(response.usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(response.usage, "total_tokens", 0) or 0,
            )

        return ProviderResponse(
            content=choice.message.content or "",
            provider=self.name,
            model=model,
            finish_reason=_FINISH_REASONS.get(
                getattr(choice, "finish_reason", None) or "stop", FinishReason.STOP
            ),
            usage=usage,
        )


class GroqProvider(LiteLLMProvider):
    kind = ProviderKind.GROQ


class OpenAIProvider(LiteLLMProvider):
    kind = ProviderKind.OPENAI


class AnthropicProvider(LiteLLMProvider):
    kind = ProviderKind.ANTHROPIC


class GeminiProvider(LiteLLMProvider):
    kind = ProviderKind.GEMINI


class OllamaProvider(LiteLLMProvider):
    kind = ProviderKind.OLLAMA
    requires_api_key = False
    default_base_url = "http://localhost:11434"


PROVIDER_CLASSES: dict[ProviderKind, type[LiteLLMProvider]] = {
    ProviderKind.GROQ: GroqProvider,
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.ANTHROPIC: AnthropicProvider,
    ProviderKind.GEMINI: GeminiProvider,
    ProviderKind.OLLAMA: OllamaProvider,
}


def create_provider(kind: ProviderKind | str, config: ProviderConfig, **kwargs: Any) -> LiteLLMProvider:
    """Build the adapter for a provider kind.

    Raises:
        ValueError: if the kind is not a supported backend.
    """
    return PROVIDER_CLASSES[ProviderKind(kind)](config, **kwargs)
