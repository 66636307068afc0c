"""
Tests for decoding live provider events into typed payloads.
"""

import pytest

from whatsapp_snippets.events import (
    AudioPayload,
    DocumentPayload,
    ImagePayload,
    LocationPayload,
    TextPayload,
    UnknownPayload,
    VideoPayload,
    decode_event,
    decode_payload,
)


class TestDecodePayload:
    """Tests for decode_payload()."""

    def test_conversation(self):
        assert decode_payload({"conversation": "Hello there"}) == TextPayload("Hello there")

    def test_extended_text(self):
        payload = decode_payload({"extendedTextMessage": {"text": "with link", "matchedText": "x"}})
        assert payload == TextPayload("with link")

    def test_image(self):
        payload = decode_payload({"imageMessage": {"caption": "Nice photo!", "mimetype": "image/jpeg"}})
        assert payload == ImagePayload(caption="Nice photo!", mimetype="image/jpeg")

    def test_video(self):
        assert decode_payload({"videoMessage": {}}) == VideoPayload()

    def test_voice_note(self):
        payload = decode_payload({"audioMessage": {"mimetype": "audio/ogg; codecs=opus", "ptt": True}})
        assert payload == AudioPayload(mimetype="audio/ogg; codecs=opus")

    def test_document(self):
        payload = decode_payload(
            {"documentMessage": {"title": "Report", "fileName": "report.pdf", "mimetype": "application/pdf"}}
        )
        assert payload == DocumentPayload(title="Report", file_name="report.pdf", mimetype="application/pdf")

    def test_location(self):
        payload = decode_payload(
            {"locationMessage": {"degreesLatitude": "52.37", "degreesLongitude": 4.89, "name": "Dam"}}
        )
        assert payload == LocationPayload(latitude=52.37, longitude=4.89, name="Dam")

    def test_location_bad_coordinates(self):
        payload = decode_payload({"locationMessage": {"degreesLatitude": "north"}})
        assert payload.latitude is None

    @pytest.mark.parametrize("message", [None, {}])
    def test_empty(self, message):
        assert decode_payload(message) == UnknownPayload()

    def test_unhandled_shape_keeps_key(self):
        assert decode_payload({"stickerMessage": {"url": "x"}}) == UnknownPayload("stickerMessage")

    def test_body_of_wrong_shape(self):
        assert decode_payload({"imageMessage": "not a dict"}) == UnknownPayload("imageMessage")


class TestDecodeEvent:
    """Tests for decode_event()."""

    def test_group_event(self):
        raw = {
            "key": {"remoteJid": "120363025246125486@g.us", "participant": "15551234567@s.whatsapp.net"},
            "pushName": "Alice",
            "messageTimestamp": 1761225180,
            "message": {"conversation": "hi"},
        }

        event = decode_event(raw)

        assert event.remote_jid == "120363025246125486@g.us"
        assert event.participant == "15551234567@s.whatsapp.net"
        assert event.push_name == "Alice"
        assert event.timestamp == 1761225180.0
        assert event.payload == TextPayload("hi")
        assert event.raw is raw

    def test_direct_event_has_no_participant(self):
        event = decode_event({"key": {"remoteJid": "15551234567@s.whatsapp.net", "participant": ""}})
        assert event.participant is None
        assert event.payload == UnknownPayload()

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1761225180", 1761225180.0),
            ({"low": 1761225180, "high": 0, "unsigned": False}, 1761225180.0),
            ({"low": -1, "high": 0}, 4294967295.0),
            (None, 0.0),
        ],
    )
    def test_timestamp_shapes(self, value, expected):
        event = decode_event({"key": {"remoteJid": "a@s.whatsapp.net"}, "messageTimestamp": value})
        assert event.timestamp == expected

    @pytest.mark.parametrize("raw", [{}, {"key": {}}, {"key": {"remoteJid": ""}}])
    def test_missing_remote_jid(self, raw):
        with pytest.raises(ValueError, match="remoteJid"):
            decode_event(raw)
