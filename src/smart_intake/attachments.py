"""Attachment summaries and the immutable snapshot of a user's input turn."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

AttachmentKind = str  # "image", "pdf", "audio", "document", ...

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Strip and collapse runs of whitespace to single spaces."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def kind_from_mime(mime_type: str | None) -> AttachmentKind:
    """Guess an attachment kind from its MIME type."""
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("audio/"):
        return "audio"
    if mime == "application/pdf":
        return "pdf"
    return "document"


@dataclass
class Attachment:
    """A file the user sent along with the input."""

    name: str
    kind: AttachmentKind
    mime_type: str = "application/octet-stream"
    size: int = 0
    extracted_text: str | None = None
    data: bytes | None = None


@dataclass(frozen=True)
class AttachmentSummary:
    """What the intake pipeline keeps of an attachment: metadata and text."""

    name: str
    kind: AttachmentKind
    mime_type: str
    size: int
    extracted_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "mime_type": self.mime_type,
            "size": self.size,
            "extracted_text": self.extracted_text,
        }


class TextExtractor(Protocol):
    """OCR / text extraction collaborator."""

    async def extract_text(self, data: bytes, mime_type: str) -> str: ...


class AttachmentPreprocessor:
    """Reduces attachments to summaries the model prompt can carry.

    Images should normally arrive with OCR'd text already attached. When they
    do not and an extractor is configured, the bytes are run through it.
    PDFs and audio without text get a placeholder note.
    """

    def __init__(self, extractor: TextExtractor | None = None):
        self.extractor = extractor

    async def summarize(self, attachment: Attachment) -> AttachmentSummary:
        """Summarize one attachment.

        Args:
            attachment: Attachment as received from the client

        Returns:
            Summary with extracted text when any could be obtained
        """
        text = normalize_text(attachment.extracted_text) or None

        if text is None and attachment.kind == "image" and attachment.data and self.extractor:
            try:
                text = normalize_text(
                    await self.extractor.extract_text(attachment.data, attachment.mime_type)
                ) or None
            except Exception as e:
                logger.warning(f"Text extraction failed for {attachment.name}: {e}")

        if text is None and attachment.kind in ("pdf", "audio"):
            text = f"[{attachment.kind.upper()} attachment '{attachment.name}': content extraction unavailable]"

        return AttachmentSummary(
            name=attachment.name,
            kind=attachment.kind,
            mime_type=attachment.mime_type,
            size=attachment.size,
            extracted_text=text,
        )

    async def summarize_all(self, attachments: list[Attachment]) -> tuple[AttachmentSummary, ...]:
        return tuple([await self.summarize(a) for a in attachments])


@dataclass(frozen=True)
class OriginalInput:
    """Snapshot of the turn that started a conversation.

    Kept unchanged for display and audit while the draft evolves.
    """

    text: str = ""
    attachments: tuple[AttachmentSummary, ...] = field(default_factory=tuple)
    voice_transcript: str | None = None

    @property
    def has_image(self) -> bool:
        return any(a.kind == "image" for a in self.attachments)

    @property
    def has_voice(self) -> bool:
        return bool(self.voice_transcript)

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.attachments and not self.voice_transcript

    def display_text(self) -> str:
        """Best single string describing the input (text, else transcript, else attachment text)."""
        if self.text:
            return self.text
        if self.voice_transcript:
            return self.voice_transcript
        for attachment in self.attachments:
            if attachment.extracted_text:
                return attachment.extracted_text
        if self.attachments:
            return ", ".join(a.name for a in self.attachments)
        return ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "text": self.text,
            "attachments": [a.to_dict() for a in self.attachments],
            "voice_transcript": self.voice_transcript,
        }
