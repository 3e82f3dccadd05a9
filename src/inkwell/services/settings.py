"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..utils.file_io import write_bytes

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".inkwell"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _env_int(value: str) -> int:
    return int(value.strip(), 10)


# Environment variable -> (settings field, parser)
_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "INKWELL_API_KEY": ("api_key", str),
    "INKWELL_BASE_URL": ("base_url", str),
    "INKWELL_MODEL": ("model", str),
    "INKWELL_FAST_MODEL": ("fast_model", str),
    "INKWELL_ORGANIZATION": ("organization", str),
    "INKWELL_DEBUG_LOGGING": ("debug_logging", _env_bool),
    "INKWELL_REQUEST_TIMEOUT": ("request_timeout", float),
    "INKWELL_TEMPERATURE": ("temperature", float),
    "INKWELL_MAX_RETRIES": ("max_retries", _env_int),
}
_API_KEY_FIELD = "api_key_ciphertext"


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o"
    fast_model: str = "gpt-4o-mini"
    temperature: float = 0.7
    organization: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    context_char_limit: int = 1_000
    scan_min_chars: int = 50
    scan_max_suggestions: int = 3
    max_attachment_bytes: int = 20 * 1024 * 1024
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    debug_logging: bool = False

    def normalized(self) -> "Settings":
        """Return a copy with numeric fields coerced and clamped to usable ranges.

        Values that cannot be coerced fall back to the field default.
        """

        defaults = Settings()

        def number(name: str, cast: Callable[[Any], Any], low: float, high: float | None = None) -> Any:
            raw = getattr(self, name)
            try:
                value = cast(raw)
            except (TypeError, ValueError):
                LOGGER.warning("Setting %s=%r is not numeric; using the default", name, raw)
                value = getattr(defaults, name)
            value = max(low, value)
            return value if high is None else min(high, value)

        retry_min = number("retry_min_seconds", float, 0.0)
        return replace(
            self,
            temperature=number("temperature", float, 0.0, 2.0),
            request_timeout=number("request_timeout", float, 1.0),
            max_retries=number("max_retries", int, 1),
            retry_min_seconds=retry_min,
            retry_max_seconds=number("retry_max_seconds", float, retry_min),
            context_char_limit=number("context_char_limit", int, 100),
            scan_min_chars=number("scan_min_chars", int, 0),
            scan_max_suggestions=number("scan_max_suggestions", int, 1),
            max_attachment_bytes=number("max_attachment_bytes", int, 1),
        )


class SecretVault:
    """Fernet encryption for the API key, keyed by a file beside the settings.

    Tokens are stored as ``fernet:<ciphertext>`` so a future backend can be
    told apart; unprefixed tokens are treated as Fernet.
    """

    strategy = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._cipher: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._fernet().encrypt(secret.encode("utf-8")).decode("ascii")
        return f"{self.strategy}:{token}"

    def decrypt(self, token: str | None) -> str:
        """Return the plaintext for ``token``; raises ``ValueError`` if it cannot."""

        if not token:
            return ""
        backend, sep, body = token.partition(":")
        if not sep:
            backend, body = self.strategy, token
        if backend != self.strategy:
            raise ValueError(f"Secret was stored with unsupported backend '{backend}'")
        try:
            return self._fernet().decrypt(body.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("API key ciphertext does not match the local key") from exc

    def _fernet(self) -> Fernet:
        if self._cipher is None:
            self._cipher = Fernet(self._read_or_generate_key())
        return self._cipher

    def _read_or_generate_key(self) -> bytes:
        if self._key_path.exists():
            return self._key_path.read_bytes().strip()
        key = Fernet.generate_key()
        write_bytes(self._key_path, key)
        if os.name != "nt":  # pragma: no cover - POSIX only
            os.chmod(self._key_path, 0o600)
        return key


class SettingsStore:
    """Reads and writes :class:`Settings` as JSON with an encrypted API key."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, then apply CLI and environment overrides.

        A plaintext ``api_key`` left by an older release is re-saved encrypted.
        """

        payload = self._read_payload()
        ciphertext = payload.pop(_API_KEY_FIELD, None)
        legacy_key = payload.pop("api_key", None)
        try:
            settings = Settings(**_filter_fields(payload))
        except TypeError as exc:
            LOGGER.warning("Ignoring malformed settings file %s: %s", self._path, exc)
            settings = Settings()

        if ciphertext:
            settings = replace(settings, api_key=self._unlock(ciphertext))
        elif legacy_key:
            LOGGER.info("Migrating plaintext API key in %s to encrypted storage", self._path)
            settings = replace(settings, api_key=str(legacy_key))
            self.save(settings)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings).normalized()

    def save(self, settings: Settings) -> Path:
        """Write ``settings`` atomically; the API key never touches disk in clear."""

        data = asdict(settings)
        api_key = data.pop("api_key", "") or ""
        if api_key:
            data[_API_KEY_FIELD] = self._vault.encrypt(api_key)
        data.update(version=_SETTINGS_VERSION, secret_backend=self._vault.strategy)
        write_bytes(self._path, json.dumps(data, indent=2, sort_keys=True).encode("utf-8"))
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON, using defaults: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not hold a JSON object, using defaults", self._path)
            return {}
        return payload

    def _unlock(self, ciphertext: str) -> str:
        try:
            return self._vault.decrypt(ciphertext)
        except ValueError as exc:
            LOGGER.warning("Stored API key could not be decrypted: %s", exc)
            return ""

    def _apply_overrides(self, settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
        known = {item.name for item in fields(Settings)}
        accepted = {key: value for key, value in overrides.items() if key in known and value is not None}
        if not accepted:
            return settings
        LOGGER.debug("Applying %s settings overrides: %s", source, sorted(accepted))
        return replace(settings, **accepted)

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        parsed: Dict[str, Any] = {}
        for variable, (name, parse) in _ENV_OVERRIDES.items():
            raw = os.environ.get(variable)
            if raw is None:
                continue
            try:
                parsed[name] = parse(raw)
            except ValueError:
                LOGGER.warning("Ignoring environment override %s=%r: not a valid %s", variable, raw, name)
        return self._apply_overrides(settings, parsed, source="environment")


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)} - {"api_key"}
    return {key: value for key, value in payload.items() if key in allowed}


def redact_secret(value: str) -> str:
    """Mask all but the first and last two characters of ``value``."""

    secret = (value or "").strip()
    if len(secret) <= 4:
        return "*" * len(secret)
    return secret[:2] + "*" * (len(secret) - 4) + secret[-2:]
