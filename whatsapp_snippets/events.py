"""
Typed payloads for live WhatsApp events.

The live session provider (Baileys or similar) delivers each message as a
keyed union: a dict with exactly one meaningful key naming its shape
(``conversation``, ``imageMessage``, ``locationMessage``, ...). We decode that
once, at the edge, into one of the frozen payload dataclasses below so the
rest of the code dispatches on the payload's type instead of probing dict keys.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextPayload:
    """Plain or extended text message."""

    text: str


@dataclass(frozen=True)
class ImagePayload:
    caption: Optional[str] = None
    mimetype: Optional[str] = None


@dataclass(frozen=True)
class VideoPayload:
    caption: Optional[str] = None
    mimetype: Optional[str] = None


@dataclass(frozen=True)
class AudioPayload:
    """Audio attachment or voice note."""

    mimetype: Optional[str] = None


@dataclass(frozen=True)
class DocumentPayload:
    caption: Optional[str] = None
    title: Optional[str] = None
    file_name: Optional[str] = None
    mimetype: Optional[str] = None


@dataclass(frozen=True)
class LocationPayload:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    name: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class UnknownPayload:
    """Any shape we do not handle (stickers, reactions, polls, ...)."""

    type_key: Optional[str] = None


LivePayload = Union[
    TextPayload,
    ImagePayload,
    VideoPayload,
    AudioPayload,
    DocumentPayload,
    LocationPayload,
    UnknownPayload,
]


@dataclass(frozen=True)
class LiveEvent:
    """
    A decoded inbound message from the live session.

    ``raw`` is the event exactly as the provider delivered it; it is stored
    for audit and never parsed back.
    """

    remote_jid: str
    timestamp: float  # epoch seconds
    payload: LivePayload
    participant: Optional[str] = None
    push_name: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


# =============================================================================
# Decoding from the provider's keyed-union dicts
# =============================================================================


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _epoch_seconds(value: Any) -> float:
    """Accept plain numbers, numeric strings and protobuf Long dicts ({low, high})."""
    if isinstance(value, dict):
        low = int(value.get("low") or 0) & 0xFFFFFFFF
        high = int(value.get("high") or 0)
        return float((high << 32) | low)
    return float(value or 0)


def _decode_conversation(body: Any) -> LivePayload:
    return TextPayload(text=str(body or ""))


def _decode_extended_text(body: Dict[str, Any]) -> LivePayload:
    return TextPayload(text=str(body.get("text") or ""))


def _decode_image(body: Dict[str, Any]) -> LivePayload:
    return ImagePayload(caption=body.get("caption"), mimetype=body.get("mimetype"))


def _decode_video(body: Dict[str, Any]) -> LivePayload:
    return VideoPayload(caption=body.get("caption"), mimetype=body.get("mimetype"))


def _decode_audio(body: Dict[str, Any]) -> LivePayload:
    return AudioPayload(mimetype=body.get("mimetype"))


def _decode_document(body: Dict[str, Any]) -> LivePayload:
    return DocumentPayload(
        caption=body.get("caption"),
        title=body.get("title"),
        file_name=body.get("fileName"),
        mimetype=body.get("mimetype"),
    )


def _decode_location(body: Dict[str, Any]) -> LivePayload:
    return LocationPayload(
        latitude=_optional_float(body.get("degreesLatitude")),
        longitude=_optional_float(body.get("degreesLongitude")),
        name=body.get("name"),
        address=body.get("address"),
    )


_DECODERS: Dict[str, Callable[[Any], LivePayload]] = {
    "conversation": _decode_conversation,
    "extendedTextMessage": _decode_extended_text,
    "imageMessage": _decode_image,
    "videoMessage": _decode_video,
    "audioMessage": _decode_audio,
    "documentMessage": _decode_document,
    "locationMessage": _decode_location,
}


def decode_payload(message: Optional[Dict[str, Any]]) -> LivePayload:
    """
    Decode the provider's ``message`` dict into a typed payload.

    The first key names the shape, as the provider emits it.
    """
    if not message:
        return UnknownPayload()

    type_key = next(iter(message))
    decoder = _DECODERS.get(type_key)
    if decoder is None:
        logger.debug(f"Unhandled live message shape: {type_key}")
        return UnknownPayload(type_key=type_key)

    body = message[type_key]
    if type_key != "conversation" and not isinstance(body, dict):
        return UnknownPayload(type_key=type_key)
    return decoder(body)


def decode_event(raw: Dict[str, Any]) -> LiveEvent:
    """
    Decode a raw provider event into a LiveEvent.

    Expected shape (Baileys ``proto.IWebMessageInfo`` as JSON)::

        {
            "key": {"remoteJid": "...@g.us", "participant": "...@s.whatsapp.net"},
            "pushName": "Alice",
            "messageTimestamp": 1729689180,
            "message": {"imageMessage": {"caption": "...", "mimetype": "image/jpeg"}}
        }

    Raises:
        ValueError: If the event has no remote JID.
    """
    key = raw.get("key") or {}
    remote_jid = key.get("remoteJid")
    if not remote_jid:
        raise ValueError("Live event has no key.remoteJid")

    return LiveEvent(
        remote_jid=remote_jid,
        participant=key.get("participant") or None,
        push_name=raw.get("pushName") or None,
        timestamp=_epoch_seconds(raw.get("messageTimestamp")),
        payload=decode_payload(raw.get("message")),
        raw=raw,
    )
