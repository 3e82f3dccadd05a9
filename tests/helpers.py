"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Iterable, Mapping

import httpx

from inkwell.ai.client import AIStreamEvent, ClientSettings


def transport_error(message: str = "connection reset") -> httpx.HTTPError:
    return httpx.ConnectError(message, request=httpx.Request("POST", "http://local/chat/completions"))


def scan_payload(*items: Mapping[str, str]) -> str:
    return json.dumps({"suggestions": list(items)})


class StubBackend:
    """In-memory completion backend recording every request.

    ``responses`` are returned in order; once exhausted, "" is returned. An
    ``error`` is raised instead of answering; a ``stream_error`` is raised
    after the streamed chunks.

    Example:
        from tests.helpers import StubBackend
        from inkwell.ai.generation import GenerationClient

        client = GenerationClient(StubBackend(["# Draft"]))
    """

    def __init__(
        self,
        responses: Iterable[str] = (),
        *,
        api_key: str = "test-key",
        error: BaseException | None = None,
        stream_chunks: Iterable[str] = (),
        stream_error: BaseException | None = None,
    ) -> None:
        self.settings = ClientSettings(
            base_url="http://local",
            api_key=api_key,
            model="draft-model",
            fast_model="fast-model",
        )
        self.responses = list(responses)
        self.error = error
        self.stream_chunks = list(stream_chunks)
        self.stream_error = stream_error
        self.stream_closed = False
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def complete(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        model: str | None = None,
        response_format: Any | None = None,
        temperature: float | None = None,
        **_: Any,
    ) -> str:
        self.calls.append(
            {
                "messages": list(messages),
                "model": model,
                "response_format": response_format,
                "temperature": temperature,
            }
        )
        await self._before_reply()
        if self.error is not None:
            raise self.error
        if not self.responses:
            return ""
        return self.responses.pop(0)

    async def stream_chat(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        **_: Any,
    ) -> AsyncIterator[AIStreamEvent]:
        self.calls.append({"messages": list(messages), "model": model, "stream": True})
        await self._before_reply()
        if self.error is not None:
            raise self.error
        try:
            for chunk in self.stream_chunks:
                yield AIStreamEvent(type="content.delta", content=chunk)
            if self.stream_error is not None:
                raise self.stream_error
            yield AIStreamEvent(type="content.done", content="".join(self.stream_chunks))
        finally:
            self.stream_closed = True

    async def aclose(self) -> None:
        self.closed = True

    async def _before_reply(self) -> None:
        return None

    @property
    def last_prompt(self) -> str:
        """Concatenated text parts of the most recent request."""

        parts: list[str] = []
        for message in self.calls[-1]["messages"]:
            content = message["content"]
            if isinstance(content, str):
                parts.append(content)
                continue
            parts.extend(part["text"] for part in content if part.get("type") == "text")
        return "\n".join(parts)


class GatedBackend(StubBackend):
    """Backend whose replies block until :meth:`release` is called."""

    def __init__(self, responses: Iterable[str] = (), **kwargs: Any) -> None:
        super().__init__(responses, **kwargs)
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    async def _before_reply(self) -> None:
        self.started.set()
        await self._gate.wait()


class EventRecorder:
    """Collects every event published for the subscribed types."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]
