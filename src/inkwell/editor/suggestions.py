"""Pending improvement suggestions produced by the scan operation."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from ..ai.errors import StaleSuggestion
from .document_model import Suggestion
from .patches import PatchApplyError, replace_first_occurrence

LOGGER = logging.getLogger(__name__)


class SuggestionStore:
    """Holds one batch of suggestions keyed by id.

    The store never owns the document: :meth:`apply` receives the current
    text and returns the rewritten buffer for the caller to swap in.
    """

    def __init__(self) -> None:
        self._items: dict[str, Suggestion] = {}

    def load(self, batch: Iterable[Suggestion]) -> None:
        """Replace the current batch; no merge with earlier suggestions."""

        items: dict[str, Suggestion] = {}
        for suggestion in batch:
            if suggestion.id in items:
                LOGGER.debug("Ignoring duplicate suggestion id %s", suggestion.id)
                continue
            items[suggestion.id] = suggestion
        self._items = items

    def get(self, suggestion_id: str) -> Suggestion | None:
        return self._items.get(suggestion_id)

    def items(self) -> tuple[Suggestion, ...]:
        return tuple(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Suggestion]:
        return iter(tuple(self._items.values()))

    def __contains__(self, suggestion_id: object) -> bool:
        return suggestion_id in self._items

    def apply(self, suggestion_id: str, text: str) -> str:
        """Return ``text`` with the suggestion's leftmost match replaced.

        The suggestion is removed whether or not it applied. Raises
        :class:`StaleSuggestion` when the original passage is gone and
        ``KeyError`` for unknown ids.
        """

        suggestion = self._items.pop(suggestion_id)
        try:
            result = replace_first_occurrence(text, suggestion.original_text, suggestion.suggested_text)
        except PatchApplyError as exc:
            LOGGER.debug("Suggestion %s is stale: %s", suggestion_id, exc.reason)
            raise StaleSuggestion(suggestion_id=suggestion_id, details=exc.details()) from exc
        return result.text

    def dismiss(self, suggestion_id: str) -> Suggestion | None:
        return self._items.pop(suggestion_id, None)

    def clear(self) -> None:
        self._items = {}


__all__ = ["SuggestionStore"]
