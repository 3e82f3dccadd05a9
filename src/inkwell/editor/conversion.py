"""Markdown <-> structured (HTML) conversion for the dual editing views.

Markdown is always the canonical form. The structured view is a projection
rendered with ``markdown-it-py`` and converted back with ``markdownify``; the
round trip is semantically faithful for headings, emphasis, lists and fenced
code but not byte-exact.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Literal, Optional

from markdown_it import MarkdownIt
from markdownify import ATX, markdownify
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

LOGGER = logging.getLogger(__name__)

HIGHLIGHT_CLASS = "inkwell-highlight"
HighlightMode = Literal["all", "first"]

_HEADING_PATTERN = re.compile(r"^(?P<level>#{1,6})\s+(?P<title>.+?)\s*$", re.MULTILINE)
_TAG_SPLIT_PATTERN = re.compile(r"(<[^>]*>)")
_BLANK_RUN_PATTERN = re.compile(r"\n{3,}")
_FRONTMATTER_FENCE = "---"


@dataclass(slots=True)
class StructuredDocument:
    """Rendered projection of a Markdown document.

    ``highlighted`` documents are presentation copies and are refused by
    :meth:`ConversionBridge.to_markup`.
    """

    html: str
    front_matter: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    headings: list[Dict[str, Any]] = field(default_factory=list)
    highlighted: bool = False


class ConversionBridge:
    """Bidirectional Markdown / structured-view transform."""

    def __init__(self, *, bullet: str = "-", emphasis: str = "*") -> None:
        self._renderer = _build_renderer()
        self._bullet = bullet
        self._emphasis = emphasis

    def to_structured(self, markup: str) -> StructuredDocument:
        """Parse ``markup``; malformed input yields best-effort output, never an error."""

        front_matter, body = split_front_matter(markup or "")
        return StructuredDocument(
            html=self._render_html(body),
            front_matter=front_matter,
            metadata=parse_front_matter(front_matter),
            headings=extract_headings(body),
        )

    def to_markup(self, structured: StructuredDocument | str) -> str:
        """Convert a structured document (or raw editor HTML) back to Markdown."""

        if isinstance(structured, StructuredDocument):
            if structured.highlighted:
                raise ValueError("Highlighted render copies cannot be converted back to Markdown")
            body_html = structured.html
            front_matter = structured.front_matter
        else:
            body_html = structured or ""
            front_matter = None
        converted = markdownify(
            body_html,
            heading_style=ATX,
            bullets=self._bullet,
            strong_em_symbol=self._emphasis,
            code_language_callback=_code_language,
        )
        body = _BLANK_RUN_PATTERN.sub("\n\n", converted).strip()
        if front_matter is not None:
            header = f"{_FRONTMATTER_FENCE}\n{front_matter}\n{_FRONTMATTER_FENCE}"
            body = f"{header}\n\n{body}" if body else header
        return f"{body}\n" if body else ""

    def render(
        self,
        markup: str,
        *,
        highlight: str | None = None,
        occurrences: HighlightMode = "all",
    ) -> StructuredDocument:
        """Render a disposable presentation copy, optionally highlighting a passage."""

        structured = self.to_structured(markup)
        if not highlight:
            return structured
        marked, count = highlight_html(structured.html, highlight, occurrences=occurrences)
        if not count:
            return structured
        return replace(structured, html=marked, highlighted=True)

    def _render_html(self, body: str) -> str:
        try:
            return self._renderer.render(body)
        except Exception:  # markdown-it is tolerant; guard anything exotic
            LOGGER.warning("Markdown rendering failed; falling back to preformatted text", exc_info=True)
            return f"<pre>{html.escape(body)}</pre>"


def render_document(
    text: str,
    highlight: str | None = None,
    *,
    bridge: ConversionBridge | None = None,
) -> StructuredDocument:
    """Pure projection from document state to a render tree."""

    return (bridge or _default_bridge()).render(text, highlight=highlight)


def highlight_html(markup_html: str, target: str, *, occurrences: HighlightMode = "all") -> tuple[str, int]:
    """Wrap literal occurrences of ``target`` found in text nodes with a marker span."""

    needle = _escape_like_renderer(target)
    if not needle:
        return markup_html, 0
    wrapper = f'<mark class="{HIGHLIGHT_CLASS}">{needle}</mark>'
    remaining = 1 if occurrences == "first" else -1
    count = 0
    parts = _TAG_SPLIT_PATTERN.split(markup_html)
    for index, part in enumerate(parts):
        if remaining == 0:
            break
        if not part or part.startswith("<"):
            continue
        hits = part.count(needle)
        if not hits:
            continue
        if remaining > 0:
            hits = min(hits, remaining)
            remaining -= hits
        parts[index] = part.replace(needle, wrapper, hits)
        count += hits
    return "".join(parts), count


def split_front_matter(text: str) -> tuple[Optional[str], str]:
    """Return ``(front_matter_block, body)`` when fenced front matter exists."""

    if not text:
        return None, ""

    working = text.lstrip("\ufeff")
    if not working.startswith(_FRONTMATTER_FENCE):
        return None, working

    lines = working.splitlines()
    fence = lines[0].strip()
    if fence != _FRONTMATTER_FENCE:
        return None, working

    closing_index = None
    for idx, line in enumerate(lines[1:], start=1):
        if line.strip() == fence:
            closing_index = idx
            break
    if closing_index is None:
        return None, working

    block = "\n".join(lines[1:closing_index])
    remainder = "\n".join(lines[closing_index + 1 :]).lstrip("\r\n")
    return block, remainder


def parse_front_matter(block: Optional[str]) -> Dict[str, Any]:
    if not block:
        return {}
    parser = YAML(typ="safe")
    try:
        loaded = parser.load(block) or {}
    except YAMLError:
        LOGGER.debug("Ignoring unparsable front matter")
        return {}
    if isinstance(loaded, dict):
        return dict(loaded)
    return {}


def extract_headings(text: str) -> list[Dict[str, Any]]:
    headings: list[Dict[str, Any]] = []
    for match in _HEADING_PATTERN.finditer(text):
        title = match.group("title").strip().rstrip("#").strip()
        if title:
            headings.append({"level": len(match.group("level")), "text": title})
    return headings


def _escape_like_renderer(value: str) -> str:
    # markdown-it escapes these four characters in text content
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _code_language(el: Any) -> str | None:
    code = el.find("code")
    classes = code.get("class") if code is not None else None
    for css_class in classes or ():
        if css_class.startswith("language-"):
            return css_class[len("language-") :]
    return None


def _build_renderer() -> MarkdownIt:
    renderer = MarkdownIt("commonmark", {"html": False, "typographer": False})
    renderer.enable("table")
    renderer.enable("strikethrough")
    return renderer


_DEFAULT_BRIDGE: ConversionBridge | None = None


def _default_bridge() -> ConversionBridge:
    global _DEFAULT_BRIDGE
    if _DEFAULT_BRIDGE is None:
        _DEFAULT_BRIDGE = ConversionBridge()
    return _DEFAULT_BRIDGE


__all__ = [
    "ConversionBridge",
    "HIGHLIGHT_CLASS",
    "StructuredDocument",
    "extract_headings",
    "highlight_html",
    "parse_front_matter",
    "render_document",
    "split_front_matter",
]
