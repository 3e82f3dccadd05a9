"""Thin async wrapper around an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping, Union, cast

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIError, APIStatusError, RateLimitError
from openai.types.chat import ChatCompletionMessageParam
from openai.types.chat.completion_create_params import ResponseFormat
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

LOGGER = logging.getLogger(__name__)

TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    APIError,
    APIStatusError,
    APIConnectionError,
    RateLimitError,
    httpx.HTTPError,
)

Message = Union[Mapping[str, Any], ChatCompletionMessageParam]


@dataclass(slots=True)
class ClientSettings:
    """Connection and retry options for :class:`AIClient`."""

    base_url: str
    api_key: str
    model: str
    fast_model: str | None = None
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False

    def resolve_model(self, tier: str = "draft") -> str:
        """Return the model for ``tier``: ``draft`` (quality) or ``fast``."""

        if tier == "fast" and self.fast_model:
            return self.fast_model
        return self.model


@dataclass(slots=True)
class AIStreamEvent:
    """One normalized event from a streamed completion."""

    type: str
    content: str | None = None
    parsed: Any | None = None


@dataclass(slots=True)
class _ChatRequest:
    model: str
    messages: List[ChatCompletionMessageParam]
    temperature: float | None = None
    max_tokens: int | None = None
    response_format: ResponseFormat | None = None
    metadata: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model, "messages": self.messages}
        optional = {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": self.response_format,
            "metadata": self.metadata or None,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        payload.update(self.extra)
        return payload


def _as_message(message: Message) -> ChatCompletionMessageParam:
    try:
        return cast(ChatCompletionMessageParam, dict(message))
    except (TypeError, ValueError) as exc:
        raise TypeError(f"Chat messages must be mappings, got {type(message).__name__}") from exc


def _delta_event(event: Any) -> AIStreamEvent | None:
    delta = getattr(event, "delta", None)
    return AIStreamEvent(type="content.delta", content=str(delta)) if delta else None


def _done_event(event: Any) -> AIStreamEvent:
    return AIStreamEvent(
        type="content.done",
        content=getattr(event, "content", None),
        parsed=getattr(event, "parsed", None),
    )


def _refusal_event(event: Any) -> AIStreamEvent:
    return AIStreamEvent(type="refusal.done", content=getattr(event, "refusal", None))


_STREAM_EVENT_HANDLERS: Mapping[str, Callable[[Any], AIStreamEvent | None]] = {
    "content.delta": _delta_event,
    "content.done": _done_event,
    "refusal.done": _refusal_event,
}


class AIClient:
    """Single-shot and streaming chat calls with optional transport retries.

    The SDK's own retry loop is disabled; ``max_retries`` counts total attempts
    made through tenacity, so the default of one means no retry at all.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client if client is not None else self._connect(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete(
        self,
        messages: Iterable[Message],
        *,
        model: str | None = None,
        response_format: ResponseFormat | None = None,
        temperature: float | None = 0.2,
        max_tokens: int | None = None,
        metadata: Mapping[str, str] | None = None,
        **extra_params: Any,
    ) -> str:
        """Return the first choice's text, or ``""`` when it is empty or refused."""

        request = self._request(messages, model, temperature, max_tokens, metadata, extra_params)
        request.response_format = response_format
        payload = self._prepare(request, streamed=False)

        response: Any = None
        async for attempt in self._attempts():
            with attempt:
                response = await self._client.chat.completions.create(**payload)
        return _first_choice_text(response)

    async def stream_chat(
        self,
        messages: Iterable[Message],
        *,
        model: str | None = None,
        temperature: float | None = 0.2,
        max_tokens: int | None = None,
        metadata: Mapping[str, str] | None = None,
        **extra_params: Any,
    ) -> AsyncIterator[AIStreamEvent]:
        """Yield delta, done and refusal events as the completion streams in.

        Transport errors are retried only until the first event is yielded. A
        failure after that propagates, since a restarted stream would replay
        text the caller already consumed.
        """

        request = self._request(messages, model, temperature, max_tokens, metadata, extra_params)
        payload = self._prepare(request, streamed=True)

        yielded = False
        async for attempt in self._attempts(retryable=lambda: not yielded):
            with attempt:
                async with self._client.chat.completions.stream(**payload) as stream:
                    async for raw_event in stream:
                        handler = _STREAM_EVENT_HANDLERS.get(getattr(raw_event, "type", ""))
                        event = handler(raw_event) if handler else None
                        if event is not None:
                            yielded = True
                            yield event

    async def aclose(self) -> None:
        """Release the HTTP connection pool."""

        await self._client.close()

    def _request(
        self,
        messages: Iterable[Message],
        model: str | None,
        temperature: float | None,
        max_tokens: int | None,
        metadata: Mapping[str, str] | None,
        extra: Mapping[str, Any],
    ) -> _ChatRequest:
        coerced = [_as_message(message) for message in messages]
        if not coerced:
            raise ValueError("At least one message is required to start a chat")
        return _ChatRequest(
            model=model or self._settings.model,
            messages=coerced,
            temperature=temperature,
            max_tokens=max_tokens,
            metadata={**(self._settings.metadata or {}), **(metadata or {})},
            extra=dict(extra),
        )

    def _prepare(self, request: _ChatRequest, *, streamed: bool) -> Dict[str, Any]:
        payload = request.to_payload()
        LOGGER.debug(
            "%s chat completion: model=%s messages=%d",
            "Streaming" if streamed else "Requesting",
            request.model,
            len(request.messages),
        )
        if self._settings.debug_logging:
            try:
                LOGGER.debug("Chat payload:\n%s", json.dumps(payload, ensure_ascii=False, indent=2))
            except (TypeError, ValueError):
                LOGGER.debug("Chat payload (not JSON serializable): %r", payload)
        return payload

    def _attempts(self, *, retryable: Callable[[], bool] = lambda: True) -> AsyncRetrying:
        settings = self._settings
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, settings.max_retries)),
            wait=wait_exponential(multiplier=settings.retry_min_seconds, max=settings.retry_max_seconds),
            retry=retry_if_exception(lambda exc: isinstance(exc, TRANSPORT_ERRORS) and retryable()),
            reraise=True,
        )

    @staticmethod
    def _connect(settings: ClientSettings) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=dict(settings.default_headers or {}) or None,
        )


def _first_choice_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        LOGGER.debug("Chat completion returned no choices")
        return ""
    message = getattr(choices[0], "message", None)
    if getattr(message, "refusal", None):
        LOGGER.info("Chat completion was refused by the model")
        return ""
    reason = getattr(choices[0], "finish_reason", None)
    if reason not in (None, "stop"):
        LOGGER.debug("Chat completion finished early: %s", reason)
    return getattr(message, "content", None) or ""


__all__ = ["AIClient", "AIStreamEvent", "ClientSettings", "TRANSPORT_ERRORS"]
