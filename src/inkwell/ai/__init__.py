"""Language-model client, prompts and generation operations."""

from .client import AIClient, ClientSettings
from .errors import ConfigError, GenerationError, InkwellError, ScanParseError, StaleSuggestion
from .generation import GenerationClient, RefinementResult

__all__ = [
    "AIClient",
    "ClientSettings",
    "ConfigError",
    "GenerationClient",
    "GenerationError",
    "InkwellError",
    "RefinementResult",
    "ScanParseError",
    "StaleSuggestion",
]
