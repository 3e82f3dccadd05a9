"""Editor session controller.

Owns the document, the selection, the single in-flight request slot and the
pending suggestion batch, and wires the generation client, conversion bridge
and stores together. Every state change is published on the event bus; no
failure escapes as an exception once it reaches this boundary.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from typing import Sequence

from ..ai.errors import ConfigError, InkwellError, ScanParseError, StaleSuggestion
from ..ai.generation import GenerationClient, RefinementResult
from ..editor.conversion import ConversionBridge, StructuredDocument, render_document, split_front_matter
from ..editor.document_model import (
    PLACEHOLDER_TEXT,
    Attachment,
    DocumentState,
    EditorMode,
    RequestKind,
    RequestState,
    Suggestion,
    ViewMode,
)
from ..editor.patches import PatchApplyError, replace_span
from ..editor.selection import ActiveSelection, AnchorPoint, SelectionTracker, SelectionTrackerState
from ..editor.suggestions import SuggestionStore
from .events import (
    DocumentModified,
    DraftChunkReceived,
    EventBus,
    HighlightChanged,
    ModeChanged,
    NoticePosted,
    RequestStateChanged,
    SelectionChanged,
    SuggestionRetired,
    SuggestionsLoaded,
    ViewModeChanged,
)

LOGGER = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class PendingRequest:
    """Token stamped on a generative call while it holds the in-flight slot."""

    token: str
    kind: RequestKind
    version_id: int


class EditorSessionController:
    """Orchestrates draft, refine and scan against a single document.

    Events Emitted:
        - ModeChanged: When the session leaves the welcome screen
        - DocumentModified: After every committed mutation
        - RequestStateChanged: When the in-flight slot is taken or released
        - SelectionChanged: When the refine toolbar should show or hide
        - SuggestionsLoaded / SuggestionRetired: Suggestion batch lifecycle
        - HighlightChanged: When the highlighted passage changes
        - NoticePosted: For every user-visible message, including errors
    """

    def __init__(
        self,
        client: GenerationClient | None,
        bus: EventBus | None = None,
        *,
        bridge: ConversionBridge | None = None,
        view_mode: ViewMode = ViewMode.MARKDOWN,
    ) -> None:
        self._client = client
        self._bus = bus or EventBus()
        self._bridge = bridge or ConversionBridge()
        self._document = DocumentState()
        self._mode = EditorMode.WELCOME
        self._view_mode = view_mode
        self._selection = SelectionTracker(listener=self._on_selection_state)
        self._suggestions = SuggestionStore()
        self._highlight: str | None = None
        self._pending: PendingRequest | None = None
        self._structured_live = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def client(self) -> GenerationClient | None:
        return self._client

    @property
    def document(self) -> DocumentState:
        return self._document

    @property
    def text(self) -> str:
        return self._document.text

    @property
    def mode(self) -> EditorMode:
        return self._mode

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    @property
    def selection(self) -> SelectionTracker:
        return self._selection

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        return self._suggestions.items()

    @property
    def highlight(self) -> str | None:
        return self._highlight

    @property
    def request_state(self) -> RequestState:
        return RequestState.IN_FLIGHT if self._pending is not None else RequestState.IDLE

    @property
    def pending(self) -> PendingRequest | None:
        return self._pending

    @property
    def structured_live(self) -> bool:
        """True while the rich-text view holds uncommitted cursor-local state."""

        return self._structured_live

    def is_busy(self) -> bool:
        return self._pending is not None

    # ------------------------------------------------------------------
    # Generative operations
    # ------------------------------------------------------------------

    async def generate_draft(
        self,
        instructions: str = "",
        attachments: Sequence[Attachment] = (),
        *,
        stream: bool = False,
    ) -> str | None:
        """Replace the document with a fresh draft; returns the draft or ``None``.

        With no instructions and no attachments nothing is sent: the first
        time out of the welcome screen the document becomes a placeholder,
        afterwards the call is a no-op.
        """

        if not (instructions or "").strip() and not attachments:
            if self._mode is EditorMode.WELCOME:
                self._commit_text(PLACEHOLDER_TEXT, source="placeholder")
                self._enter_editing()
            return None

        request = self._begin(RequestKind.DRAFT)
        if request is None:
            return None

        error: InkwellError | None = None
        text = ""
        try:
            text = await self._request_draft(request, instructions, attachments, stream=stream)
        except InkwellError as exc:
            error = exc
        finally:
            current = self._release(request)

        if not current:
            LOGGER.info("Discarding draft response for retired request %s", request.token)
            return None
        if error is not None:
            self._report(error)
            return None
        if not text.strip():
            self._notice("The model returned an empty draft; the document was left unchanged.", level="warning")
            return None

        self._suggestions.clear()
        self._publish_suggestions()
        self.set_highlight(None)
        self._commit_text(text, source="draft")
        self._enter_editing()
        return text

    async def refine_selection(self, instruction: str) -> RefinementResult | None:
        """Rewrite the active selection in place; failures leave the document untouched."""

        if self._view_mode is not ViewMode.MARKDOWN:
            self._notice("Switch to the Markdown view to refine a selection.")
            return None
        selection = self._selection.selection
        if selection is None:
            self._notice("Select some text to refine first.")
            return None
        if not (instruction or "").strip():
            self._notice("Enter an instruction for the selected text.")
            return None

        request = self._begin(RequestKind.REFINE)
        if request is None:
            return None

        error: InkwellError | None = None
        result: RefinementResult | None = None
        try:
            result = await self._client.refine_selection(  # type: ignore[union-attr]
                selection.text,
                instruction,
                self._document.text,
                selection_start=selection.start,
            )
        except InkwellError as exc:
            error = exc
        finally:
            current = self._release(request)

        if not current:
            LOGGER.info("Discarding refinement for retired request %s", request.token)
            return None
        self._selection.clear()
        if error is not None:
            self._report(error)
            return None
        assert result is not None
        if result.failed:
            self._report(result.error)  # type: ignore[arg-type]
            return result
        if self._document.version_id != request.version_id:
            self._notice("The document changed while refining; the rewrite was discarded.", level="warning")
            return None
        if not result.changed:
            self._notice("The model returned the selection unchanged.")
            return result

        try:
            patch = replace_span(
                self._document.text,
                selection.start,
                selection.end,
                result.text,
                match_text=selection.text,
            )
        except PatchApplyError as exc:
            LOGGER.warning("Refinement could not be applied: %s", exc)
            self._notice("The selected text moved; the rewrite was discarded.", level="warning")
            return None
        self._commit_text(patch.text, source="refine")
        return result

    async def scan(self) -> list[Suggestion] | None:
        """Replace the suggestion batch with a fresh scan of the document."""

        request = self._begin(RequestKind.SCAN)
        if request is None:
            return None

        error: InkwellError | None = None
        batch: list[Suggestion] = []
        try:
            batch = await self._client.scan_for_improvements(self._document.text)  # type: ignore[union-attr]
        except InkwellError as exc:
            error = exc
        finally:
            current = self._release(request)

        if not current:
            LOGGER.info("Discarding scan results for retired request %s", request.token)
            return None
        if isinstance(error, ScanParseError):
            self._suggestions.clear()
            self._publish_suggestions()
            self._report(error)
            return []
        if error is not None:
            self._report(error)
            return None

        self._suggestions.load(batch)
        self._publish_suggestions()
        if not len(self._suggestions):
            self._notice("No suggestions for this document.")
        return list(self._suggestions)

    def cancel_pending(self) -> bool:
        """Retire the in-flight request; its response will be ignored when it lands."""

        request = self._pending
        if request is None:
            return False
        LOGGER.info("Cancelling %s request %s", request.kind.value, request.token)
        self._release(request)
        self._notice(f"Cancelled the pending {request.kind.value} request.")
        return True

    # ------------------------------------------------------------------
    # Suggestions & highlight
    # ------------------------------------------------------------------

    def apply_suggestion(self, suggestion_id: str) -> bool:
        suggestion = self._suggestions.get(suggestion_id)
        if suggestion is None:
            self._notice(f"Unknown suggestion '{suggestion_id}'.", level="warning")
            return False
        if self._highlight == suggestion.original_text:
            self.set_highlight(None)
        try:
            updated = self._suggestions.apply(suggestion_id, self._document.text)
        except StaleSuggestion as exc:
            self._bus.publish(SuggestionRetired(suggestion_id=suggestion_id, applied=False))
            self._report(exc)
            return False
        self._commit_text(updated, source="suggestion")
        self._bus.publish(SuggestionRetired(suggestion_id=suggestion_id, applied=True))
        return True

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        suggestion = self._suggestions.dismiss(suggestion_id)
        if suggestion is None:
            return False
        if self._highlight == suggestion.original_text:
            self.set_highlight(None)
        self._bus.publish(SuggestionRetired(suggestion_id=suggestion_id, applied=False))
        return True

    def set_highlight(self, text: str | None) -> None:
        """Highlight ``text`` in the rendered view; ``None`` or "" clears it."""

        normalized = text or None
        if normalized == self._highlight:
            return
        self._highlight = normalized
        self._bus.publish(HighlightChanged(text=normalized))

    # ------------------------------------------------------------------
    # Direct editing
    # ------------------------------------------------------------------

    def start_blank(self) -> None:
        """Leave the welcome screen with an empty document."""

        self._enter_editing()

    def load_document(self, text: str) -> None:
        """Open existing Markdown as the session document."""

        self._suggestions.clear()
        self._publish_suggestions()
        self.set_highlight(None)
        self._commit_text(text, source="open")
        self._enter_editing()

    def edit_text(self, text: str) -> bool:
        """Commit text typed into the Markdown view."""

        if self._mode is EditorMode.WELCOME:
            LOGGER.debug("Ignoring edit before the session left the welcome screen")
            return False
        if text == self._document.text:
            return False
        self._commit_text(text, source="edit")
        return True

    def begin_structured_edit(self) -> None:
        """Mark the rich-text view as the live source of truth; renders are suppressed."""

        if self._view_mode is not ViewMode.RICH_TEXT:
            LOGGER.debug("Structured edit requested outside the rich-text view")
            return
        self._structured_live = True

    def structured_input(self, html: str) -> bool:
        """Convert editor HTML back to Markdown and commit it."""

        if self._mode is EditorMode.WELCOME:
            return False
        if not self._structured_live:
            self.begin_structured_edit()
        front_matter, _ = split_front_matter(self._document.text)
        markup = self._bridge.to_markup(StructuredDocument(html=html, front_matter=front_matter))
        if markup == self._document.text:
            return False
        self._commit_text(markup, source="structured")
        return True

    def end_structured_edit(self, html: str | None = None) -> None:
        """Commit any final editor HTML and hand the view back to the renderer."""

        if html is not None:
            self.structured_input(html)
        self._structured_live = False

    def render_view(self) -> StructuredDocument | None:
        """Return the render tree for the current state, or ``None`` during a live edit."""

        if self._structured_live:
            return None
        return render_document(self._document.text, self._highlight, bridge=self._bridge)

    def set_view_mode(self, mode: ViewMode) -> None:
        if mode is self._view_mode:
            return
        if self._view_mode is ViewMode.RICH_TEXT:
            self._structured_live = False
        self._view_mode = mode
        # Offsets from one view are meaningless in the other
        self._selection.clear()
        self._bus.publish(ViewModeChanged(view_mode=mode.value))

    def select(
        self,
        start: int,
        end: int,
        anchor: AnchorPoint | tuple[float, float] | None = None,
    ) -> SelectionTrackerState:
        """Complete a selection gesture (pointer release)."""

        return self._selection.pointer_release(self._document.text, start, end, anchor)

    def selection_changed(self, start: int, end: int) -> SelectionTrackerState:
        return self._selection.selection_changed(start, end)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request_draft(
        self,
        request: PendingRequest,
        instructions: str,
        attachments: Sequence[Attachment],
        *,
        stream: bool,
    ) -> str:
        client = self._client
        assert client is not None
        if not stream:
            return await client.generate_draft(instructions, attachments)
        chunks: list[str] = []
        async with aclosing(client.stream_draft(instructions, attachments)) as deltas:
            async for delta in deltas:
                if self._pending is not request:
                    break
                chunks.append(delta)
                self._bus.publish(DraftChunkReceived(token=request.token, content=delta))
        return "".join(chunks)

    def _begin(self, kind: RequestKind) -> PendingRequest | None:
        if self._pending is not None:
            self._notice(
                f"A {self._pending.kind.value} request is already running; wait for it or cancel it.",
                level="warning",
            )
            return None
        if self._client is None:
            self._report(ConfigError())
            return None
        request = PendingRequest(
            token=uuid.uuid4().hex[:12],
            kind=kind,
            version_id=self._document.version_id,
        )
        self._pending = request
        LOGGER.debug("Starting %s request %s", kind.value, request.token)
        self._bus.publish(
            RequestStateChanged(state=RequestState.IN_FLIGHT.value, kind=kind.value, token=request.token)
        )
        return request

    def _release(self, request: PendingRequest) -> bool:
        """Free the slot if ``request`` still holds it; False means the token was retired."""

        if self._pending is not request:
            return False
        self._pending = None
        self._bus.publish(
            RequestStateChanged(state=RequestState.IDLE.value, kind=request.kind.value, token=request.token)
        )
        return True

    def _commit_text(self, text: str, *, source: str) -> None:
        self._document.update_text(text)
        self._selection.invalidate()
        if source != "structured":
            self._structured_live = False
        self._bus.publish(
            DocumentModified(
                document_id=self._document.document_id,
                version_id=self._document.version_id,
                content_hash=self._document.content_hash,
                source=source,
            )
        )

    def _enter_editing(self) -> None:
        if self._mode is EditorMode.EDITING:
            return
        self._mode = EditorMode.EDITING
        LOGGER.info("Session entered editing mode")
        self._bus.publish(ModeChanged(mode=self._mode.value))

    def _publish_suggestions(self) -> None:
        ids = tuple(suggestion.id for suggestion in self._suggestions)
        self._bus.publish(SuggestionsLoaded(suggestion_ids=ids))

    def _on_selection_state(self, state: SelectionTrackerState) -> None:
        if isinstance(state, ActiveSelection):
            anchor = (state.anchor.x, state.anchor.y) if state.anchor is not None else None
            event = SelectionChanged(
                active=True,
                start=state.selection.start,
                end=state.selection.end,
                anchor=anchor,
            )
        else:
            event = SelectionChanged(active=False)
        self._bus.publish(event)

    def _report(self, error: InkwellError) -> None:
        LOGGER.log(_LOG_LEVELS.get(error.severity, logging.ERROR), "%s", error)
        self._bus.publish(NoticePosted(message=error.message, level=error.severity, error_code=error.error_code))

    def _notice(self, message: str, *, level: str = "info") -> None:
        LOGGER.log(_LOG_LEVELS.get(level, logging.INFO), "%s", message)
        self._bus.publish(NoticePosted(message=message, level=level))


__all__ = ["EditorSessionController", "PendingRequest"]
