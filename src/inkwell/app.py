"""Command-line front end for the Inkwell writing assistant."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.errors import ConfigError
from .ai.generation import GenerationClient
from .services.attachments import AttachmentCodec, AttachmentError
from .services.export import write_export
from .services.settings import Settings, SettingsStore, redact_secret
from .ui.events import DraftChunkReceived, NoticePosted
from .ui.session_controller import EditorSessionController
from .utils import logging as logging_utils
from .utils.file_io import write_text

_LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "debug"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", "disabled"})

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure file + console logging for the command-line session."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `inkwell` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = _env_flag("INKWELL_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("INKWELL_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_USAGE

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return EXIT_OK
    if args.command is None:
        parser.print_usage(sys.stderr)
        return EXIT_USAGE

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)
        debug = True

    if args.command == "export":
        return _run_export(args)

    try:
        client = _build_client(settings, debug_logging=debug)
    except ConfigError as exc:
        print(exc.message, file=sys.stderr)
        return EXIT_USAGE

    controller = EditorSessionController(client)
    notices = _NoticePrinter(sys.stderr)
    controller.bus.subscribe(NoticePosted, notices.on_notice)
    try:
        if args.command == "draft":
            return asyncio.run(_run_draft(controller, args, settings))
        if args.command == "refine":
            return asyncio.run(_run_refine(controller, args))
        return asyncio.run(_run_scan(controller, args))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
        return EXIT_FAILED


class _NoticePrinter:
    """Writes controller notices to a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def on_notice(self, event: NoticePosted) -> None:
        self._stream.write(f"[{event.level}] {event.message}\n")


async def _run_draft(controller: EditorSessionController, args: argparse.Namespace, settings: Settings) -> int:
    codec = AttachmentCodec(max_bytes=settings.max_attachment_bytes)
    try:
        attachments = [codec.from_path(path) for path in args.attach]
    except (AttachmentError, FileNotFoundError) as exc:
        print(f"Cannot attach file: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if args.stream and args.output is None:
        controller.bus.subscribe(DraftChunkReceived, _echo_chunk)
    try:
        draft = await controller.generate_draft(args.prompt or "", attachments, stream=args.stream)
    finally:
        await controller.aclose()

    if draft is None and ((args.prompt or "").strip() or attachments):
        return EXIT_FAILED
    if args.output is not None:
        write_text(Path(args.output), controller.text)
    elif args.stream and draft is not None:
        sys.stdout.write("\n")
    else:
        sys.stdout.write(controller.text)
    return EXIT_OK


async def _run_refine(controller: EditorSessionController, args: argparse.Namespace) -> int:
    source = Path(args.file)
    text = _read_source(source)
    if text is None:
        await controller.aclose()
        return EXIT_USAGE
    controller.load_document(text)
    state = controller.select(args.start, args.end)
    if not state.is_active:
        print("The requested range does not cover any text.", file=sys.stderr)
        await controller.aclose()
        return EXIT_USAGE
    try:
        result = await controller.refine_selection(args.instruction)
    finally:
        await controller.aclose()
    if result is None or result.failed:
        return EXIT_FAILED
    if args.in_place:
        write_text(source, controller.text)
    else:
        sys.stdout.write(controller.text)
    return EXIT_OK


async def _run_scan(controller: EditorSessionController, args: argparse.Namespace) -> int:
    text = _read_source(Path(args.file))
    if text is None:
        await controller.aclose()
        return EXIT_USAGE
    controller.load_document(text)
    try:
        suggestions = await controller.scan()
    finally:
        await controller.aclose()
    if suggestions is None:
        return EXIT_FAILED
    if args.json:
        json.dump([item.to_dict() for item in suggestions], sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
        return EXIT_OK
    for item in suggestions:
        sys.stdout.write(f"[{item.id}] {item.original_text!r} -> {item.suggested_text!r}\n")
        if item.reason:
            sys.stdout.write(f"    {item.reason}\n")
    return EXIT_OK


def _run_export(args: argparse.Namespace) -> int:
    source = Path(args.file)
    text = _read_source(source)
    if text is None:
        return EXIT_USAGE
    output = Path(args.output) if args.output else source.with_suffix(f".{args.format}")
    write_export(output, text, fmt=args.format, title=args.title)
    print(str(output))
    return EXIT_OK


def _read_source(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Cannot read {path}: {exc}", file=sys.stderr)
        return None


def _echo_chunk(event: DraftChunkReceived) -> None:
    sys.stdout.write(event.content)
    sys.stdout.flush()


def _build_client(settings: Settings, *, debug_logging: bool = False) -> GenerationClient:
    return GenerationClient.from_settings(settings, debug_logging=debug_logging)


def _env_flag(name: str, *, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    return raw in _TRUE_VALUES if raw else default


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkwell",
        description="Draft, refine and critique Markdown documents with a hosted language model.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.inkwell/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    commands = parser.add_subparsers(dest="command")

    draft = commands.add_parser("draft", help="Generate a new draft from instructions and attachments.")
    draft.add_argument("--prompt", "-p", default="", help="Drafting instructions.")
    draft.add_argument("--attach", "-a", action="append", default=[], metavar="FILE", help="Attach a file (repeatable).")
    draft.add_argument("--output", "-o", metavar="FILE", help="Write the draft to FILE instead of stdout.")
    draft.add_argument("--stream", action="store_true", help="Print the draft as it is generated.")

    refine = commands.add_parser("refine", help="Rewrite a span of a Markdown file.")
    refine.add_argument("file", help="Markdown file to edit.")
    refine.add_argument("--start", type=int, required=True, help="Start offset of the span.")
    refine.add_argument("--end", type=int, required=True, help="End offset of the span.")
    refine.add_argument("--instruction", "-i", required=True, help="How to rewrite the span.")
    refine.add_argument("--in-place", action="store_true", help="Overwrite the file instead of printing.")

    scan = commands.add_parser("scan", help="Suggest up to three improvements for a Markdown file.")
    scan.add_argument("file", help="Markdown file to scan.")
    scan.add_argument("--json", action="store_true", help="Emit suggestions as JSON.")

    export = commands.add_parser("export", help="Export a Markdown file as HTML or a Word document.")
    export.add_argument("file", help="Markdown file to export.")
    export.add_argument("--format", "-f", choices=("html", "doc"), default="doc")
    export.add_argument("--output", "-o", metavar="FILE", help="Destination path (defaults beside the source).")
    export.add_argument("--title", help="Document title (defaults to front matter or first heading).")
    return parser


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    """Parse ``--set KEY=VALUE`` entries into typed :class:`Settings` values."""

    hints = get_type_hints(Settings)
    overrides: Dict[str, Any] = {}
    for entry in items:
        key, sep, raw_value = entry.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if key not in hints:
            raise ValueError(f"Unknown setting '{key}'.")
        parse = _SETTING_PARSERS.get(_base_type(hints[key]), str)
        overrides[key] = parse(raw_value.strip())
    return overrides


def _base_type(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None or origin in (dict, list):
        return origin or annotation
    # Optional[X] and X | None collapse to X
    return next(arg for arg in get_args(annotation) if arg is not type(None))


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _parse_json_object(value: str) -> Dict[str, Any]:
    payload = json.loads(value or "{}")
    if not isinstance(payload, dict):
        raise ValueError("Mapping overrides must be JSON objects")
    return payload


_SETTING_PARSERS: Mapping[Any, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: lambda value: int(value, 10),
    float: float,
    dict: _parse_json_object,
}


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(payload.get("api_key") or "")
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("INKWELL_"))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
