"""Error taxonomy shared by the generation client and the session controller.

Every error carries a machine-readable code plus a human-readable message so
the controller can turn it into a user-visible notice without inspecting the
exception type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for error codes surfaced in notices."""

    CONFIG_MISSING = "config_missing"
    GENERATION_FAILED = "generation_failed"
    SCAN_PARSE_FAILED = "scan_parse_failed"
    STALE_SUGGESTION = "stale_suggestion"


@dataclass
class InkwellError(Exception):
    """Base exception class for all recoverable and fatal assistant errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    # Notice level used when the controller reports the error
    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "severity": self.severity,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ConfigError(InkwellError):
    """Raised when a required credential is missing; blocks every generation call."""

    error_code: str = field(default=ErrorCode.CONFIG_MISSING)
    message: str = field(default="API key not found. Set INKWELL_API_KEY or save one in settings.")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "fatal"


@dataclass
class GenerationError(InkwellError):
    """Raised when the backend or transport fails during a generative call."""

    error_code: str = field(default=ErrorCode.GENERATION_FAILED)
    message: str = field(default="The language model request failed")
    details: dict[str, Any] = field(default_factory=dict)

    operation: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.operation:
            result["operation"] = self.operation
        return result


@dataclass
class ScanParseError(InkwellError):
    """Raised when the improvement scan returns malformed structured output."""

    error_code: str = field(default=ErrorCode.SCAN_PARSE_FAILED)
    message: str = field(default="Improvement scan returned malformed suggestions")
    details: dict[str, Any] = field(default_factory=dict)

    raw_response: str | None = field(default=None)

    severity: ClassVar[str] = "info"


@dataclass
class StaleSuggestion(InkwellError):
    """Raised when a suggestion's original text is no longer in the document."""

    error_code: str = field(default=ErrorCode.STALE_SUGGESTION)
    message: str = field(default="The suggested passage is no longer in the document")
    details: dict[str, Any] = field(default_factory=dict)

    suggestion_id: str | None = field(default=None)

    severity: ClassVar[str] = "info"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.suggestion_id is not None:
            result["suggestion_id"] = self.suggestion_id
        return result


__all__ = [
    "ConfigError",
    "ErrorCode",
    "GenerationError",
    "InkwellError",
    "ScanParseError",
    "StaleSuggestion",
]
