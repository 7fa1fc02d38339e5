"""Tests for attachment summaries and input snapshots."""

from unittest.mock import AsyncMock

import pytest

from smart_intake.attachments import (
    Attachment,
    AttachmentPreprocessor,
    AttachmentSummary,
    OriginalInput,
    kind_from_mime,
    normalize_text,
)


def test_normalize_text():
    assert normalize_text("  pay \n\t rent  ") == "pay rent"
    assert normalize_text(None) == ""


def test_kind_from_mime():
    assert kind_from_mime("image/png") == "image"
    assert kind_from_mime("application/pdf") == "pdf"
    assert kind_from_mime("audio/ogg") == "audio"
    assert kind_from_mime(None) == "document"


class TestAttachmentPreprocessor:
    """Summaries with and without extracted text."""

    @pytest.mark.asyncio
    async def test_keeps_existing_text(self):
        extractor = AsyncMock()
        summary = await AttachmentPreprocessor(extractor).summarize(
            Attachment("bill.png", "image", "image/png", 100, extracted_text=" Amount  due $45 ", data=b"x")
        )
        assert summary.extracted_text == "Amount due $45"
        extractor.extract_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_runs_ocr_for_image_bytes(self):
        extractor = AsyncMock()
        extractor.extract_text.return_value = "Gas Co invoice"
        summary = await AttachmentPreprocessor(extractor).summarize(
            Attachment("bill.png", "image", "image/png", 3, data=b"png")
        )
        assert summary.extracted_text == "Gas Co invoice"
        extractor.extract_text.assert_awaited_once_with(b"png", "image/png")

    @pytest.mark.asyncio
    async def test_ocr_failure_is_not_fatal(self):
        extractor = AsyncMock()
        extractor.extract_text.side_effect = RuntimeError("ocr down")
        summary = await AttachmentPreprocessor(extractor).summarize(
            Attachment("bill.png", "image", "image/png", 3, data=b"png")
        )
        assert summary.extracted_text is None

    @pytest.mark.asyncio
    async def test_pdf_placeholder(self):
        summary = await AttachmentPreprocessor().summarize(Attachment("lease.pdf", "pdf", "application/pdf", 2048))
        assert "lease.pdf" in summary.extracted_text
        assert summary.size == 2048


class TestOriginalInput:
    """Input snapshot helpers."""

    def test_flags(self):
        image = AttachmentSummary("a.png", "image", "image/png", 1)
        assert OriginalInput(attachments=(image,)).has_image
        assert OriginalInput(voice_transcript="hi").has_voice
        assert OriginalInput().is_empty

    def test_display_text_order(self):
        summary = AttachmentSummary("a.png", "image", "image/png", 1, extracted_text="receipt text")
        assert OriginalInput(text="typed", voice_transcript="spoken").display_text() == "typed"
        assert OriginalInput(voice_transcript="spoken").display_text() == "spoken"
        assert OriginalInput(attachments=(summary,)).display_text() == "receipt text"
