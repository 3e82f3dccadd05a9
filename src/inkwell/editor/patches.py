"""Span and literal-substring replacement helpers.

Every helper returns a brand new buffer; callers swap it in as a whole so a
failed replacement can never leave a half-written document behind.
"""

from __future__ import annotations

from dataclasses import dataclass


class PatchApplyError(RuntimeError):
    """Raised when a replacement cannot be applied cleanly."""

    def __init__(
        self,
        message: str,
        *,
        reason: str = "range_mismatch",
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.expected = expected
        self.actual = actual

    def details(self) -> dict[str, str | None]:
        return {
            "reason": self.reason,
            "expected": self.expected,
            "actual": self.actual,
        }


@dataclass(slots=True)
class PatchResult:
    """Result of applying a replacement to a document."""

    text: str
    span: tuple[int, int]
    summary: str

    @property
    def changed(self) -> bool:
        return self.summary != "patch: no-op"


def replace_span(original_text: str, start: int, end: int, replacement: str, *, match_text: str) -> PatchResult:
    """Replace ``original_text[start:end]`` after verifying it still equals ``match_text``."""

    if end < start:
        start, end = end, start
    if start < 0 or end > len(original_text):
        raise PatchApplyError(
            "Patch range exceeds document length",
            reason="range_overflow",
            expected=match_text,
        )
    current_slice = original_text[start:end]
    if current_slice != match_text:
        raise PatchApplyError(
            "Patch range content mismatch",
            reason="range_mismatch",
            expected=match_text,
            actual=current_slice,
        )
    updated = original_text[:start] + replacement + original_text[end:]
    return PatchResult(
        text=updated,
        span=(start, start + len(replacement)),
        summary=_summarize(current_slice, replacement),
    )


def replace_first_occurrence(original_text: str, target: str, replacement: str) -> PatchResult:
    """Replace the leftmost literal occurrence of ``target``."""

    if not target:
        raise PatchApplyError("Replacement target is empty", reason="empty_target")
    index = original_text.find(target)
    if index < 0:
        raise PatchApplyError(
            "Replacement target not found in document",
            reason="target_missing",
            expected=target,
        )
    return replace_span(original_text, index, index + len(target), replacement, match_text=target)


def _summarize(removed: str, inserted: str) -> str:
    if removed == inserted:
        return "patch: no-op"
    return f"patch: -{len(removed)} +{len(inserted)} chars"


__all__ = ["PatchApplyError", "PatchResult", "replace_first_occurrence", "replace_span"]
