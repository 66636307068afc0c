"""
Live capture: normalize and store messages from an active WhatsApp session.

The session itself (connecting, pairing, receiving events) belongs to a
provider such as Baileys. This module only consumes what the provider hands
over, one event at a time, and runs it through the same normalization the
transcript import uses:

    sender     participant JID in groups, otherwise the remote JID
    group      remote JID ends with @g.us; name from the group's metadata
    type       classify_payload() on the decoded payload variant
    media      download from the provider, upload, THEN build the record

Each event is an independent coroutine. Store and upload calls block, so
they run in worker threads and never hold up other events. A failing event
is logged and dropped; the adapter keeps going.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type
import logging

from whatsapp_snippets.config import Config
from whatsapp_snippets.etl.classifier import classify_payload, is_media_type
from whatsapp_snippets.etl.errors import LiveEventProcessingFailed, MediaUploadFailed
from whatsapp_snippets.etl.extractors import MessageRecord
from whatsapp_snippets.etl.identity import resolve_live_sender
from whatsapp_snippets.etl.media import MediaOutcome, MediaUploader
from whatsapp_snippets.etl.normalizers import is_group_jid, timestamp_from_epoch
from whatsapp_snippets.events import (
    AudioPayload,
    DocumentPayload,
    ImagePayload,
    LiveEvent,
    LivePayload,
    LocationPayload,
    TextPayload,
    UnknownPayload,
    VideoPayload,
    decode_event,
)
from whatsapp_snippets.stores import BlobStore, RecordStore

logger = logging.getLogger(__name__)

EventHandler = Callable[[LiveEvent], Awaitable[Optional[MessageRecord]]]

# Inbound event categories, one handler each
HANDLER_CATEGORIES = ("text", "image", "video", "document", "voice_note", "location")

_PAYLOAD_CATEGORIES: Dict[Type, str] = {
    TextPayload: "text",
    ImagePayload: "image",
    VideoPayload: "video",
    DocumentPayload: "document",
    AudioPayload: "voice_note",
    LocationPayload: "location",
}


class LiveSessionProvider(ABC):
    """What the adapter needs from the messaging session."""

    @abstractmethod
    async def download_media(self, event: LiveEvent) -> Optional[bytes]:
        """Download the attachment of a media event."""

    @abstractmethod
    async def group_metadata(self, jid: str) -> Dict[str, Any]:
        """Metadata of a group; the adapter reads ``subject``."""


# =============================================================================
# Type accessors: payload -> (content, caption)
# =============================================================================


def _text_fields(payload: TextPayload) -> Tuple[str, Optional[str]]:
    return payload.text, None


def _visual_fields(payload: Any) -> Tuple[str, Optional[str]]:
    # image / video: content is filled in by the upload
    return "", payload.caption or None


def _audio_fields(payload: AudioPayload) -> Tuple[str, Optional[str]]:
    return "", None


def _document_fields(payload: DocumentPayload) -> Tuple[str, Optional[str]]:
    return "", payload.caption or payload.title or payload.file_name or None


def _location_fields(payload: LocationPayload) -> Tuple[str, Optional[str]]:
    return (
        f"Location shared: {payload.latitude}, {payload.longitude}",
        payload.name or payload.address or None,
    )


def _unknown_fields(payload: UnknownPayload) -> Tuple[str, Optional[str]]:
    return f"Unsupported message: {payload.type_key or 'empty'}", None


_FIELD_ACCESSORS: Dict[Type, Callable[[Any], Tuple[str, Optional[str]]]] = {
    TextPayload: _text_fields,
    ImagePayload: _visual_fields,
    VideoPayload: _visual_fields,
    AudioPayload: _audio_fields,
    DocumentPayload: _document_fields,
    LocationPayload: _location_fields,
    UnknownPayload: _unknown_fields,
}


def payload_fields(payload: LivePayload) -> Tuple[str, Optional[str]]:
    """Initial (content, caption) of a payload, before media resolution."""
    accessor = _FIELD_ACCESSORS.get(type(payload), _unknown_fields)
    return accessor(payload)


def category_for(payload: LivePayload) -> Optional[str]:
    """Inbound event category of a payload, or None for unsupported shapes."""
    return _PAYLOAD_CATEGORIES.get(type(payload))


class LiveCaptureAdapter:
    """
    Turns live events into stored snippets, one insert per event.

    Args:
        provider: Session provider (media download, group metadata).
        record_store: Destination for snippet rows.
        blob_store: Destination for downloaded media.
        config: Configuration; the adapter keeps no other global state.
    """

    def __init__(
        self,
        provider: LiveSessionProvider,
        record_store: RecordStore,
        blob_store: BlobStore,
        config: Config,
    ):
        self.provider = provider
        self.record_store = record_store
        self.config = config
        self.uploader = MediaUploader(blob_store)
        self.handlers: Dict[str, EventHandler] = {
            category: self._category_handler(category) for category in HANDLER_CATEGORIES
        }

    def _category_handler(self, category: str) -> EventHandler:
        async def handler(event: LiveEvent) -> Optional[MessageRecord]:
            logger.debug(f"Received {category} event in {event.remote_jid}")
            return await self.handle_event(event)

        handler.__name__ = f"on_{category}"
        return handler

    async def dispatch(self, event: LiveEvent) -> Optional[MessageRecord]:
        """Route an event to its category handler."""
        category = category_for(event.payload)
        handler = self.handlers.get(category) if category else None
        if handler is None:
            return await self.handle_event(event)
        return await handler(event)

    async def handle_raw(self, raw: Dict[str, Any]) -> Optional[MessageRecord]:
        """Decode a provider event dict and handle it."""
        try:
            event = decode_event(raw)
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(str(LiveEventProcessingFailed(f"Undecodable live event: {e}")))
            return None
        return await self.dispatch(event)

    async def handle_event(self, event: LiveEvent) -> Optional[MessageRecord]:
        """
        Normalize, resolve media for, and store one event.

        Returns:
            The stored record, or None if the event was dropped.
        """
        try:
            record = await self.build_record(event)
            await asyncio.to_thread(self.record_store.insert_one, record.to_row())
        except Exception as e:
            # One bad event must not stop the feed
            failure = LiveEventProcessingFailed(f"Dropped live event in {event.remote_jid}: {e}")
            logger.error(str(failure))
            return None

        logger.info(f"Stored live {record.message_type} message from {record.sender_jid}")
        return record

    async def build_record(self, event: LiveEvent) -> MessageRecord:
        """Build the record for an event; media is resolved before returning."""
        payload = event.payload
        message_type = classify_payload(payload)
        timestamp = timestamp_from_epoch(event.timestamp)

        is_group = is_group_jid(event.remote_jid)
        group_name = await self._group_name(event.remote_jid) if is_group else None

        content, caption = payload_fields(payload)
        mime_type = getattr(payload, "mimetype", None)
        if is_media_type(message_type):
            outcome = await self._resolve_media(event, message_type, mime_type, timestamp)
            content = outcome.content

        return MessageRecord(
            sender_jid=resolve_live_sender(event.remote_jid, event.participant),
            timestamp=timestamp,
            message_type=message_type,
            content=content,
            sender_name=event.push_name,
            caption=caption,
            group_name=group_name,
            is_group=is_group,
            raw_message=event.raw,
        )

    async def _group_name(self, jid: str) -> Optional[str]:
        try:
            metadata = await self.provider.group_metadata(jid)
        except Exception as e:
            logger.warning(f"Could not fetch group metadata for {jid}: {e}")
            return None
        return (metadata or {}).get("subject") or None

    async def _resolve_media(self, event: LiveEvent, message_type: str, mime_type, timestamp) -> MediaOutcome:
        try:
            data = await self.provider.download_media(event)
        except Exception as e:
            logger.warning(f"Media download failed for {message_type} in {event.remote_jid}: {e}")
            return MediaOutcome(error=MediaUploadFailed(f"Download failed: {e}"))

        return await asyncio.to_thread(
            self.uploader.upload_bytes, data, message_type, mime_type, timestamp
        )
