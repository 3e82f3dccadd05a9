"""Write-only export sinks for the canonical Markdown document."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from ..editor.conversion import ConversionBridge, StructuredDocument, render_document
from ..utils.file_io import write_bytes

LOGGER = logging.getLogger(__name__)

ExportFormat = Literal["html", "doc"]

_WORD_STYLES = """\
body { font-family: 'Times New Roman', serif; font-size: 12pt; line-height: 1.5; }
h1 { font-size: 24pt; font-weight: bold; margin-bottom: 12pt; }
h2 { font-size: 18pt; font-weight: bold; margin-top: 18pt; margin-bottom: 9pt; }
p { margin-bottom: 12pt; }"""

_WORD_TEMPLATE = """\
<html xmlns:o='urn:schemas-microsoft-com:office:office' xmlns:w='urn:schemas-microsoft-com:office:word' xmlns='http://www.w3.org/TR/REC-html40'>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
{styles}
</style>
</head>
<body>
{body}
</body>
</html>
"""

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""


@dataclass(frozen=True, slots=True)
class ClipboardPayload:
    """Clipboard flavours; ``html`` is ``None`` for a plain-text copy."""

    plain: str
    html: str | None = None


def clipboard_payload(text: str, *, rich: bool = True, bridge: ConversionBridge | None = None) -> ClipboardPayload:
    """Rich copies carry rendered HTML with the Markdown source as plain-text fallback."""

    if not rich:
        return ClipboardPayload(plain=text)
    rendered = render_document(text, bridge=bridge)
    return ClipboardPayload(plain=text, html=rendered.html)


def html_document(text: str, *, title: str | None = None, bridge: ConversionBridge | None = None) -> str:
    rendered = render_document(text, bridge=bridge)
    return _HTML_TEMPLATE.format(title=_document_title(rendered, title), body=rendered.html.rstrip())


def word_document(text: str, *, title: str | None = None, bridge: ConversionBridge | None = None) -> bytes:
    """Return a Word-compatible HTML document, UTF-8 with a BOM so Word picks the encoding."""

    rendered = render_document(text, bridge=bridge)
    body = _WORD_TEMPLATE.format(
        title=_document_title(rendered, title),
        styles=_WORD_STYLES,
        body=rendered.html.rstrip(),
    )
    return ("\ufeff" + body).encode("utf-8")


def write_export(
    path: Path | str,
    text: str,
    *,
    fmt: ExportFormat = "doc",
    title: str | None = None,
    bridge: ConversionBridge | None = None,
) -> Path:
    """Write ``text`` to ``path`` in the requested format."""

    target = Path(path)
    if fmt == "doc":
        payload = word_document(text, title=title, bridge=bridge)
    elif fmt == "html":
        payload = html_document(text, title=title, bridge=bridge).encode("utf-8")
    else:
        raise ValueError(f"Unsupported export format '{fmt}'")
    write_bytes(target, payload)
    LOGGER.info("Exported %s document to %s (%d bytes)", fmt, target, len(payload))
    return target


def _document_title(rendered: StructuredDocument, explicit: str | None) -> str:
    title = explicit or rendered.metadata.get("title")
    if not title and rendered.headings:
        title = rendered.headings[0]["text"]
    return html.escape(str(title or "Document"))


__all__ = [
    "ClipboardPayload",
    "clipboard_payload",
    "html_document",
    "word_document",
    "write_export",
]
