"""Prompt templates for drafting, refinement and improvement scans."""

from __future__ import annotations

from base64 import b64decode
from typing import Any, Dict, List, Sequence

from ..editor.document_model import Attachment

CONTEXT_CHAR_LIMIT = 1_000
TRUNCATION_MARKER = "... (truncated)"

DRAFT_SYSTEM_PROMPT = "You are an expert writer. Output clean, well-structured Markdown."

DRAFT_DIRECTIVE = (
    "You are a world-class writer and thought partner.\n"
    "Write a comprehensive draft based on the following instructions.\n"
    "Use formatting (markdown) effectively."
)

SPOKEN_MEDIA_DIRECTIVE = (
    "The user has attached media files (audio or video).\n"
    "IMPORTANT: Use the spoken content/speech from these files as the PRIMARY source material for the draft.\n"
    "Transcribe, summarize, or restructure the spoken content into a high-quality written document."
)

SPOKEN_MEDIA_DEFAULT_INSTRUCTIONS = "Draft a comprehensive document based on the speech in the attached media."

REFINE_TEMPLATE = """I have a document. Here is the context of the document for reference:
---
{context}
---

I want you to rewrite the following specific text selection based on my instruction.

Selection to rewrite: "{selection}"

Instruction: {instruction}

Return ONLY the rewritten text. Do not add quotes or conversational filler."""

SCAN_TEMPLATE = """Analyze the following text and identify up to {max_suggestions} areas where the writing could be significantly improved (clarity, tone, punchiness).
For each one, quote the passage exactly as it appears in the text so it can be found verbatim.

Text:
{text}"""


def build_draft_directive(instructions: str, attachments: Sequence[Attachment]) -> str:
    """Compose the directive text that accompanies the attachment parts."""

    has_spoken_media = any(attachment.is_spoken_media for attachment in attachments)
    directive = DRAFT_DIRECTIVE
    if has_spoken_media:
        directive = f"{directive}\n\n{SPOKEN_MEDIA_DIRECTIVE}"
    user_instructions = (instructions or "").strip()
    if not user_instructions and has_spoken_media:
        user_instructions = SPOKEN_MEDIA_DEFAULT_INSTRUCTIONS
    return f"{directive}\n\nInstructions: {user_instructions}"


def build_draft_messages(instructions: str, attachments: Sequence[Attachment]) -> List[Dict[str, Any]]:
    parts: List[Dict[str, Any]] = [attachment_part(attachment) for attachment in attachments]
    parts.append({"type": "text", "text": build_draft_directive(instructions, attachments)})
    return [
        {"role": "system", "content": DRAFT_SYSTEM_PROMPT},
        {"role": "user", "content": parts},
    ]


def attachment_part(attachment: Attachment) -> Dict[str, Any]:
    """Map an attachment onto an OpenAI-compatible content part."""

    kind = attachment.media_kind
    if kind == "image":
        return {"type": "image_url", "image_url": {"url": attachment.data_uri()}}
    if kind == "audio":
        return {
            "type": "input_audio",
            "input_audio": {"data": attachment.payload, "format": _audio_format(attachment.mime_type)},
        }
    if kind == "text":
        body = b64decode(attachment.payload).decode("utf-8", errors="replace")
        return {"type": "text", "text": f"Attached file {attachment.name}:\n{body}"}
    return {
        "type": "file",
        "file": {"filename": attachment.name, "file_data": attachment.data_uri()},
    }


def excerpt_context(document: str, *, anchor: int | None = None, limit: int = CONTEXT_CHAR_LIMIT) -> str:
    """Return at most ``limit`` characters of ``document`` around ``anchor``."""

    if len(document) <= limit:
        return document
    if anchor is None:
        return f"{document[:limit]}{TRUNCATION_MARKER}"
    start = max(0, min(anchor - limit // 2, len(document) - limit))
    excerpt = document[start : start + limit]
    prefix = "(truncated) ..." if start > 0 else ""
    suffix = TRUNCATION_MARKER if start + limit < len(document) else ""
    return f"{prefix}{excerpt}{suffix}"


def build_refine_messages(selection: str, instruction: str, context_excerpt: str) -> List[Dict[str, Any]]:
    """Build the refine prompt; ``context_excerpt`` must already be bounded."""

    prompt = REFINE_TEMPLATE.format(
        context=context_excerpt,
        selection=selection,
        instruction=instruction.strip(),
    )
    return [{"role": "user", "content": prompt}]


def build_scan_messages(text: str, *, max_suggestions: int) -> List[Dict[str, Any]]:
    prompt = SCAN_TEMPLATE.format(max_suggestions=max_suggestions, text=text)
    return [{"role": "user", "content": prompt}]


SUGGESTION_FIELDS = ("id", "originalText", "suggestedText", "reason")


def suggestion_item_schema(*, strict: bool = True) -> Dict[str, Any]:
    """Schema of one suggestion; ``strict`` forbids extra keys as the API requires."""

    schema: Dict[str, Any] = {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "originalText": {
                "type": "string",
                "description": "The exact substring from the text that needs improvement",
            },
            "suggestedText": {"type": "string", "description": "The improved version"},
            "reason": {"type": "string", "description": "Brief explanation of why this is better"},
        },
        "required": list(SUGGESTION_FIELDS),
    }
    if strict:
        schema["additionalProperties"] = False
    return schema


def scan_response_format(max_suggestions: int) -> Dict[str, Any]:
    """Strict JSON schema for the improvement scan."""

    return {
        "type": "json_schema",
        "json_schema": {
            "name": "improvement_suggestions",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    "suggestions": {
                        "type": "array",
                        "items": suggestion_item_schema(),
                        "description": f"At most {max_suggestions} suggestions",
                    }
                },
                "required": ["suggestions"],
                "additionalProperties": False,
            },
        },
    }


def _audio_format(mime_type: str) -> str:
    subtype = mime_type.split("/", 1)[-1].lower()
    if subtype in {"mpeg", "mp3"}:
        return "mp3"
    if subtype in {"wav", "x-wav", "wave"}:
        return "wav"
    return subtype


__all__ = [
    "CONTEXT_CHAR_LIMIT",
    "SUGGESTION_FIELDS",
    "attachment_part",
    "build_draft_directive",
    "build_draft_messages",
    "build_refine_messages",
    "build_scan_messages",
    "excerpt_context",
    "scan_response_format",
    "suggestion_item_schema",
]
