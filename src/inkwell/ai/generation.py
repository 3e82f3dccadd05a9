"""Draft, refine and scan operations over a hosted language model.

The client is stateless: each operation is one request/response exchange and
nothing is cached between calls. It is constructed explicitly and handed to
the session controller so tests can swap in a stub backend.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable, Mapping, Protocol, Sequence

import httpx
from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match
from openai import OpenAIError

from ..editor.document_model import Attachment, Suggestion
from . import prompts
from .client import AIClient, AIStreamEvent, ClientSettings
from .errors import ConfigError, GenerationError, ScanParseError

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)

SCAN_MIN_CHARS = 50
SCAN_MAX_SUGGESTIONS = 3

_BACKEND_ERRORS: tuple[type[BaseException], ...] = (OpenAIError, httpx.HTTPError)
_CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(?P<body>.*?)\s*```$", re.DOTALL)
_QUOTE_PAIRS = {'"': '"', "'": "'", "“": "”", "‘": "’"}
_SUGGESTION_LIST_VALIDATOR = Draft202012Validator(
    {"type": "array", "items": prompts.suggestion_item_schema(strict=False)}
)


class CompletionBackend(Protocol):
    """Transport used by :class:`GenerationClient`; :class:`AIClient` implements it."""

    @property
    def settings(self) -> ClientSettings:
        ...

    async def complete(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        model: str | None = None,
        response_format: Any | None = None,
        temperature: float | None = None,
    ) -> str:
        ...

    def stream_chat(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[AIStreamEvent]:
        ...


@dataclass(slots=True)
class RefinementResult:
    """Outcome of a refinement.

    On failure ``text`` is the untouched selection and ``error`` explains why,
    so "unchanged because it failed" is distinguishable from "unchanged
    because the model returned the same text".
    """

    text: str
    original: str
    error: GenerationError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def changed(self) -> bool:
        return not self.failed and self.text != self.original


class GenerationClient:
    """Stateless facade exposing draft generation, refinement and scanning."""

    def __init__(
        self,
        backend: CompletionBackend,
        *,
        temperature: float | None = 0.7,
        scan_min_chars: int = SCAN_MIN_CHARS,
        scan_max_suggestions: int = SCAN_MAX_SUGGESTIONS,
        context_char_limit: int = prompts.CONTEXT_CHAR_LIMIT,
    ) -> None:
        self._backend = backend
        self._temperature = temperature
        self._scan_min_chars = max(0, int(scan_min_chars))
        self._scan_max_suggestions = max(1, int(scan_max_suggestions))
        self._context_char_limit = max(1, int(context_char_limit))

    @classmethod
    def from_settings(cls, settings: "Settings", *, debug_logging: bool = False) -> "GenerationClient":
        """Build the default OpenAI-backed client; raises :class:`ConfigError` without a key."""

        if not (settings.api_key or "").strip():
            raise ConfigError()
        client_settings = ClientSettings(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            fast_model=settings.fast_model,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=settings.default_headers,
            metadata=settings.metadata,
            debug_logging=debug_logging or settings.debug_logging,
        )
        return cls(
            AIClient(client_settings),
            temperature=settings.temperature,
            scan_min_chars=settings.scan_min_chars,
            scan_max_suggestions=settings.scan_max_suggestions,
            context_char_limit=settings.context_char_limit,
        )

    @property
    def backend(self) -> CompletionBackend:
        return self._backend

    @property
    def scan_min_chars(self) -> int:
        return self._scan_min_chars

    async def generate_draft(self, instructions: str, attachments: Sequence[Attachment] = ()) -> str:
        """Return a Markdown draft, or "" when the model produced nothing."""

        messages = self._draft_messages(instructions, attachments)
        LOGGER.info("Generating draft (%d attachment(s))", len(attachments))
        try:
            text = await self._backend.complete(
                messages,
                model=self._model("draft"),
                temperature=self._temperature,
            )
        except _BACKEND_ERRORS as exc:
            LOGGER.error("Draft generation failed: %s", exc)
            raise GenerationError(message=f"Draft generation failed: {exc}", operation="draft") from exc
        return text or ""

    async def stream_draft(self, instructions: str, attachments: Sequence[Attachment] = ()) -> AsyncIterator[str]:
        """Yield draft text deltas as they arrive."""

        messages = self._draft_messages(instructions, attachments)
        events = self._backend.stream_chat(messages, model=self._model("draft"), temperature=self._temperature)
        try:
            async with aclosing(events):
                async for event in events:
                    if event.type == "content.delta" and event.content:
                        yield event.content
        except _BACKEND_ERRORS as exc:
            LOGGER.error("Streamed draft generation failed: %s", exc)
            raise GenerationError(message=f"Draft generation failed: {exc}", operation="draft") from exc

    async def refine_selection(
        self,
        selection: str,
        instruction: str,
        document_context: str,
        *,
        selection_start: int | None = None,
    ) -> RefinementResult:
        """Rewrite ``selection`` per ``instruction``; never raises for backend failures."""

        self._require_credentials()
        anchor = None
        if selection_start is not None:
            anchor = selection_start + len(selection) // 2
        messages = prompts.build_refine_messages(
            selection,
            instruction,
            prompts.excerpt_context(document_context, anchor=anchor, limit=self._context_char_limit),
        )
        try:
            raw = await self._backend.complete(
                messages,
                model=self._model("fast"),
                temperature=self._temperature,
            )
        except _BACKEND_ERRORS as exc:
            LOGGER.warning("Refinement failed; keeping original selection: %s", exc)
            error = GenerationError(message=f"Refinement failed: {exc}", operation="refine")
            error.__cause__ = exc
            return RefinementResult(text=selection, original=selection, error=error)
        rewritten = _strip_wrapping_quotes((raw or "").strip(), selection)
        if not rewritten:
            error = GenerationError(message="The model returned an empty rewrite", operation="refine")
            return RefinementResult(text=selection, original=selection, error=error)
        return RefinementResult(text=rewritten, original=selection)

    async def scan_for_improvements(self, document: str) -> list[Suggestion]:
        """Return at most ``scan_max_suggestions`` suggestions anchored in ``document``."""

        if not document or len(document) < self._scan_min_chars:
            LOGGER.debug("Skipping scan for %d-character document", len(document or ""))
            return []
        self._require_credentials()
        messages = prompts.build_scan_messages(document, max_suggestions=self._scan_max_suggestions)
        try:
            raw = await self._backend.complete(
                messages,
                model=self._model("fast"),
                response_format=prompts.scan_response_format(self._scan_max_suggestions),
                temperature=self._temperature,
            )
        except _BACKEND_ERRORS as exc:
            LOGGER.warning("Improvement scan failed: %s", exc)
            raise GenerationError(message=f"Improvement scan failed: {exc}", operation="scan") from exc
        return parse_suggestions(raw, document, limit=self._scan_max_suggestions)

    async def aclose(self) -> None:
        close = getattr(self._backend, "aclose", None)
        if close is not None:
            await close()

    def _draft_messages(self, instructions: str, attachments: Sequence[Attachment]) -> list[dict[str, Any]]:
        if not (instructions or "").strip() and not attachments:
            raise ValueError("Draft generation requires instructions or at least one attachment")
        self._require_credentials()
        return prompts.build_draft_messages(instructions, attachments)

    def _model(self, tier: str) -> str:
        return self._backend.settings.resolve_model(tier)

    def _require_credentials(self) -> None:
        if not (self._backend.settings.api_key or "").strip():
            raise ConfigError()


def parse_suggestions(raw: str | None, document: str, *, limit: int = SCAN_MAX_SUGGESTIONS) -> list[Suggestion]:
    """Validate the scan payload and keep suggestions that match ``document`` literally.

    Any structural problem raises :class:`ScanParseError`; partially valid
    payloads are rejected as a whole.
    """

    text = (raw or "").strip()
    if not text:
        return []
    fenced = _CODE_FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group("body")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScanParseError(message=f"Scan response is not valid JSON: {exc.msg}", raw_response=raw) from exc

    if isinstance(payload, Mapping):
        items = payload.get("suggestions")
    else:
        items = payload
    if not isinstance(items, list):
        raise ScanParseError(message="Scan response does not contain a suggestion list", raw_response=raw)

    issue = best_match(_SUGGESTION_LIST_VALIDATOR.iter_errors(items))
    if issue is not None:
        location = "/".join(str(part) for part in issue.absolute_path)
        message = f"Suggestion {location}: {issue.message}" if location else issue.message
        raise ScanParseError(message=message, raw_response=raw)
    validated = [{name: item[name] for name in prompts.SUGGESTION_FIELDS} for item in items]

    suggestions: list[Suggestion] = []
    seen_ids: set[str] = set()
    for entry in validated:
        original = entry["originalText"]
        if not original or original not in document:
            LOGGER.debug("Dropping suggestion whose original text is not in the document")
            continue
        suggestion_id = entry["id"].strip()
        if not suggestion_id or suggestion_id in seen_ids:
            suggestion_id = uuid.uuid4().hex[:8]
        seen_ids.add(suggestion_id)
        suggestions.append(
            Suggestion(
                id=suggestion_id,
                original_text=original,
                suggested_text=entry["suggestedText"],
                reason=entry["reason"],
            )
        )
        if len(suggestions) >= max(1, limit):
            break
    return suggestions


def _strip_wrapping_quotes(text: str, selection: str) -> str:
    if len(text) < 2:
        return text
    closing = _QUOTE_PAIRS.get(text[0])
    if closing is None or text[-1] != closing:
        return text
    stripped_selection = selection.strip()
    if stripped_selection[:1] == text[0] and stripped_selection[-1:] == closing:
        return text
    return text[1:-1].strip()


__all__ = [
    "CompletionBackend",
    "GenerationClient",
    "RefinementResult",
    "SCAN_MAX_SUGGESTIONS",
    "SCAN_MIN_CHARS",
    "parse_suggestions",
]
