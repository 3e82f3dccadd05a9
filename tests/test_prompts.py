"""Tests for prompt construction helpers."""

from __future__ import annotations

import base64

import pytest

from inkwell.ai import prompts
from inkwell.editor.document_model import Attachment


def _attachment(name: str, mime_type: str, data: bytes = b"hello") -> Attachment:
    return Attachment(name=name, mime_type=mime_type, payload=base64.b64encode(data).decode("ascii"))


@pytest.mark.parametrize(
    ("mime_type", "expected_type"),
    [
        ("image/jpeg", "image_url"),
        ("audio/wav", "input_audio"),
        ("text/plain", "text"),
        ("application/pdf", "file"),
        ("video/mp4", "file"),
    ],
)
def test_attachment_part_maps_media_kind(mime_type: str, expected_type: str) -> None:
    part = prompts.attachment_part(_attachment("upload", mime_type))

    assert part["type"] == expected_type


def test_text_attachments_are_inlined() -> None:
    part = prompts.attachment_part(_attachment("notes.md", "text/markdown", b"- buy milk"))

    assert part["text"] == "Attached file notes.md:\n- buy milk"


def test_file_parts_carry_a_data_uri() -> None:
    attachment = _attachment("brief.pdf", "application/pdf")

    part = prompts.attachment_part(attachment)

    assert part["file"] == {"filename": "brief.pdf", "file_data": attachment.data_uri()}


def test_draft_directive_without_media_keeps_instructions() -> None:
    directive = prompts.build_draft_directive("Write a haiku", [])

    assert directive.endswith("Instructions: Write a haiku")
    assert prompts.SPOKEN_MEDIA_DIRECTIVE not in directive


def test_draft_directive_prefers_user_instructions_over_default() -> None:
    directive = prompts.build_draft_directive("Summarise in French", [_attachment("talk.mp4", "video/mp4")])

    assert prompts.SPOKEN_MEDIA_DIRECTIVE in directive
    assert prompts.SPOKEN_MEDIA_DEFAULT_INSTRUCTIONS not in directive
    assert directive.endswith("Instructions: Summarise in French")


def test_draft_messages_put_attachments_before_directive() -> None:
    messages = prompts.build_draft_messages("Go", [_attachment("a.png", "image/png")])

    assert messages[0] == {"role": "system", "content": prompts.DRAFT_SYSTEM_PROMPT}
    assert [part["type"] for part in messages[1]["content"]] == ["image_url", "text"]


def test_excerpt_context_returns_short_documents_verbatim() -> None:
    assert prompts.excerpt_context("short doc", limit=100) == "short doc"


def test_excerpt_context_without_anchor_keeps_the_head() -> None:
    excerpt = prompts.excerpt_context("x" * 50 + "y" * 50, limit=60)

    assert excerpt == "x" * 50 + "y" * 10 + prompts.TRUNCATION_MARKER


def test_excerpt_context_centres_on_anchor_and_clamps_at_the_end() -> None:
    document = "".join(str(index % 10) for index in range(500))

    excerpt = prompts.excerpt_context(document, anchor=495, limit=100)

    assert excerpt.startswith("(truncated) ...")
    assert excerpt.endswith(document[-100:])


def test_scan_messages_mention_the_limit() -> None:
    messages = prompts.build_scan_messages("Some text", max_suggestions=3)

    assert "up to 3 areas" in messages[0]["content"]
    assert messages[0]["content"].endswith("Some text")


def test_scan_response_format_is_strict_schema() -> None:
    response_format = prompts.scan_response_format(3)

    schema = response_format["json_schema"]["schema"]
    item = schema["properties"]["suggestions"]["items"]
    assert response_format["json_schema"]["strict"] is True
    assert item["required"] == list(prompts.SUGGESTION_FIELDS)
    assert item["additionalProperties"] is False
    assert "additionalProperties" not in prompts.suggestion_item_schema(strict=False)
