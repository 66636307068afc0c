"""
Message type classification.

Two entry points share one vocabulary of message types:

    classify_text     - transcript path; looks for an embedded media filename
                        marker ("IMG-20251023-WA0001.jpg") or the
                        "<Media omitted>" placeholder
    classify_payload  - live path; a single keyed lookup on the payload variant

Media markers:
    {IMG|VID|AUD|DOC}-<token>.<ext>, ext in jpg/jpeg/png/mp4/mov/opus/pdf/doc/docx
    The three-letter prefix decides the type. Matching is case-insensitive.
"""

import re
from dataclasses import dataclass
from typing import Dict, Literal, Optional, Type

from whatsapp_snippets.events import (
    AudioPayload,
    DocumentPayload,
    ImagePayload,
    LivePayload,
    LocationPayload,
    TextPayload,
    UnknownPayload,
    VideoPayload,
)

MessageType = Literal["text", "image", "video", "audio", "document", "location", "unknown"]

MESSAGE_TYPES = ("text", "image", "video", "audio", "document", "location", "unknown")

# Types that carry an attachment to resolve through the media uploader
MEDIA_MESSAGE_TYPES = frozenset({"image", "video", "audio", "document"})

MEDIA_MARKER_PATTERN = re.compile(
    r"(IMG|VID|AUD|DOC)-[A-Za-z0-9_-]+\.(jpg|jpeg|png|mp4|mov|opus|pdf|docx?)",
    re.IGNORECASE,
)

MEDIA_OMITTED_MARKER = "<Media omitted>"
MEDIA_OMITTED_CONTENT = "Media not available in export"

_PREFIX_TO_TYPE: Dict[str, MessageType] = {
    "IMG": "image",
    "VID": "video",
    "AUD": "audio",
    "DOC": "document",
}

_PAYLOAD_TO_TYPE: Dict[Type, MessageType] = {
    TextPayload: "text",
    ImagePayload: "image",
    VideoPayload: "video",
    AudioPayload: "audio",
    DocumentPayload: "document",
    LocationPayload: "location",
    UnknownPayload: "unknown",
}


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one transcript message body."""

    message_type: MessageType
    media_filename: Optional[str]
    content: str


def classify_text(text: str) -> Classification:
    """
    Classify a transcript message body.

    Args:
        text: The text after "<sender>: " on a header line.

    Returns:
        Classification with the type, the media filename (if any) and the
        initial content. Media messages start with empty content; it is
        filled in once the upload is resolved.

    Examples:
        >>> classify_text("IMG-2025-001.jpg (file attached)")
        Classification(message_type='image', media_filename='IMG-2025-001.jpg', content='')
        >>> classify_text("<Media omitted>").content
        'Media not available in export'
        >>> classify_text("  Hello there ").content
        'Hello there'
    """
    match = MEDIA_MARKER_PATTERN.search(text)
    if match:
        prefix = match.group(1).upper()
        return Classification(
            message_type=_PREFIX_TO_TYPE[prefix],
            media_filename=match.group(0),
            content="",
        )

    if MEDIA_OMITTED_MARKER in text:
        return Classification(
            message_type="unknown",
            media_filename=None,
            content=MEDIA_OMITTED_CONTENT,
        )

    return Classification(message_type="text", media_filename=None, content=text.strip())


def classify_payload(payload: LivePayload) -> MessageType:
    """Map a decoded live payload to its message type."""
    return _PAYLOAD_TO_TYPE.get(type(payload), "unknown")


def is_media_type(message_type: str) -> bool:
    """Check whether a message type carries an attachment."""
    return message_type in MEDIA_MESSAGE_TYPES
