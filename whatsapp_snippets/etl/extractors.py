"""
ETL Extractors for WhatsApp chat transcript exports.

This module turns the "Export chat" text file into MessageRecord values.
The export does not escape embedded newlines, so the only boundary signal is
whether a line looks like a message header:

    23/10/25, 1:13 pm - Alice: Hello there
    23/10/25, 1:14 pm - Bob: IMG-2025-001.jpg (file attached)
    Nice photo!
    23/10/25, 1:15 pm - Alice: second line
    continues here

Parser states:
    NO_CURRENT_MESSAGE      nothing pending; continuation lines are ignored
    ACCUMULATING_MESSAGE    a record is pending; continuation lines attach to it

Transitions:
    header line         emit the pending record (if any), start a new one
    non-blank other     caption (first continuation after a media marker, once)
                        otherwise appended to content with "\\n"
    blank line          ignored, state unchanged
    end of input        emit the pending record

Design Decisions:
    1. Only ONE caption line is ever claimed. A second continuation line after a
       media marker is appended to content, which the upload later replaces.
    2. A header whose timestamp cannot be normalized is consumed, reported in
       ParseResult.malformed and logged; parsing continues. The continuation
       lines that follow it are counted on that entry, then discarded.
    3. The header line is kept verbatim in raw_message for audit.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
import logging

from whatsapp_snippets.etl.classifier import classify_text
from whatsapp_snippets.etl.errors import ChatFileNotFound, MalformedTimestamp
from whatsapp_snippets.etl.identity import generate_sender_jid
from whatsapp_snippets.etl.normalizers import format_timestamp, parse_whatsapp_timestamp

logger = logging.getLogger(__name__)

# "DD/MM/YY, H:MM am - Sender: Message"; sender ends at the first colon
MESSAGE_HEADER_PATTERN = re.compile(
    r"^(\d{1,2}/\d{1,2}/\d{2}),\s+(\d{1,2}:\d{2})\s+(am|pm)\s+-\s+([^:]+):\s*(.*)$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class MessageRecord:
    """
    A normalized message, ready to be persisted as one snippet row.

    media_filename (transcript path) is a working field for media resolution
    and is not written to the store. media_resolved turns True once the
    upload outcome has replaced content.
    """

    sender_jid: str
    timestamp: datetime
    message_type: str
    content: str
    sender_name: Optional[str] = None
    caption: Optional[str] = None
    group_name: Optional[str] = None
    is_group: bool = False
    raw_message: Dict[str, Any] = field(default_factory=dict, compare=False)
    media_filename: Optional[str] = None
    media_resolved: bool = False

    @property
    def needs_media(self) -> bool:
        """True while a transcript media record has not been through the upload."""
        return self.media_filename is not None and not self.media_resolved

    def to_row(self) -> Dict[str, Any]:
        """Render the record in the record store's column layout."""
        return {
            "sender_jid": self.sender_jid,
            "timestamp": format_timestamp(self.timestamp),
            "message_type": self.message_type,
            "content": self.content or "",
            "sender_name": self.sender_name,
            "caption": self.caption,
            "group_name": self.group_name,
            "is_group": self.is_group,
            "raw_message": self.raw_message,
        }


@dataclass
class MalformedLine:
    """
    A header line whose timestamp could not be normalized.

    dropped_continuations counts the non-blank lines that followed it and were
    discarded with it.
    """

    line_number: int
    line: str
    error: str
    dropped_continuations: int = 0


@dataclass
class ParseResult:
    """Result of parsing one transcript."""

    records: List[MessageRecord] = field(default_factory=list)
    malformed: List[MalformedLine] = field(default_factory=list)
    line_count: int = 0

    @property
    def dropped_lines(self) -> int:
        """Continuation lines discarded together with malformed headers."""
        return sum(m.dropped_continuations for m in self.malformed)


class ParserState(Enum):
    NO_CURRENT_MESSAGE = "no_current_message"
    ACCUMULATING_MESSAGE = "accumulating_message"


@dataclass
class PendingMessage:
    """The record being accumulated while in ACCUMULATING_MESSAGE."""

    timestamp: datetime
    sender_name: str
    message_type: str
    content: str
    media_filename: Optional[str]
    raw_line: str
    caption: Optional[str] = None

    @property
    def awaiting_caption(self) -> bool:
        return self.media_filename is not None and self.caption is None

    def add_continuation(self, text: str) -> None:
        """Attach a non-blank continuation line (already stripped)."""
        if self.awaiting_caption:
            self.caption = text
        else:
            self.content += "\n" + text

    def finalize(self, group_name: Optional[str]) -> MessageRecord:
        return MessageRecord(
            sender_jid=generate_sender_jid(self.sender_name),
            timestamp=self.timestamp,
            message_type=self.message_type,
            content=self.content,
            sender_name=self.sender_name,
            caption=self.caption,
            group_name=group_name,
            is_group=group_name is not None,
            raw_message={"original": self.raw_line},
            media_filename=self.media_filename,
        )


class TranscriptParser:
    """
    Line-oriented state machine over a transcript.

    Feed lines one at a time; every call returns the record completed by that
    line, if any. Call finish() after the last line.

    Args:
        group_name: Group the transcript was exported from, or None for a 1:1 chat.
    """

    def __init__(self, group_name: Optional[str] = None):
        self.group_name = group_name
        self.malformed: List[MalformedLine] = []
        self._pending: Optional[PendingMessage] = None
        self._skipped: Optional[MalformedLine] = None
        self._line_number = 0

    @property
    def state(self) -> ParserState:
        if self._pending is None:
            return ParserState.NO_CURRENT_MESSAGE
        return ParserState.ACCUMULATING_MESSAGE

    @property
    def pending(self) -> Optional[PendingMessage]:
        return self._pending

    def feed(self, line: str) -> Optional[MessageRecord]:
        """
        Consume one line.

        Returns:
            The previously pending record if this line starts a new message,
            otherwise None.
        """
        self._line_number += 1
        match = MESSAGE_HEADER_PATTERN.match(line)

        if match:
            emitted = self._emit()
            self._close_skipped()
            self._start(line, match)
            return emitted

        stripped = line.strip()
        if stripped and self._pending is not None:
            self._pending.add_continuation(stripped)
        elif stripped and self._skipped is not None:
            self._skipped.dropped_continuations += 1
        return None

    def finish(self) -> Optional[MessageRecord]:
        """Emit the last pending record at end of input."""
        self._close_skipped()
        return self._emit()

    def _close_skipped(self) -> None:
        skipped, self._skipped = self._skipped, None
        if skipped is not None and skipped.dropped_continuations:
            logger.warning(
                f"Dropped {skipped.dropped_continuations} continuation line(s) "
                f"of the malformed message on line {skipped.line_number}"
            )

    def _emit(self) -> Optional[MessageRecord]:
        if self._pending is None:
            return None
        record = self._pending.finalize(self.group_name)
        self._pending = None
        return record

    def _start(self, line: str, match: "re.Match[str]") -> None:
        date_str, time_str, period, sender, text = match.groups()
        try:
            timestamp = parse_whatsapp_timestamp(date_str, time_str, period)
        except MalformedTimestamp as e:
            logger.warning(f"Skipping message on line {self._line_number}: {e}")
            self._skipped = MalformedLine(line_number=self._line_number, line=line, error=str(e))
            self.malformed.append(self._skipped)
            return

        classification = classify_text(text)
        self._pending = PendingMessage(
            timestamp=timestamp,
            sender_name=sender.strip(),
            message_type=classification.message_type,
            content=classification.content,
            media_filename=classification.media_filename,
            raw_line=line,
        )


def parse_transcript(lines: Iterable[str], group_name: Optional[str] = None) -> ParseResult:
    """
    Parse transcript lines into message records.

    Args:
        lines: Transcript lines without line terminators.
        group_name: Group name to stamp on every record (None for 1:1 chats).

    Returns:
        ParseResult with records in transcript order and any malformed headers.
    """
    parser = TranscriptParser(group_name=group_name)
    records: List[MessageRecord] = []
    line_count = 0

    for line in lines:
        line_count += 1
        record = parser.feed(line)
        if record is not None:
            records.append(record)

    last = parser.finish()
    if last is not None:
        records.append(last)

    return ParseResult(records=records, malformed=parser.malformed, line_count=line_count)


def extract_messages(chat_path: Path, group_name: Optional[str] = None) -> ParseResult:
    """
    Read and parse a transcript file.

    Args:
        chat_path: Path to the exported .txt file.
        group_name: Group name to stamp on every record.

    Returns:
        ParseResult.

    Raises:
        ChatFileNotFound: If the file does not exist.
    """
    if not chat_path.is_file():
        raise ChatFileNotFound(chat_path)

    # utf-8-sig drops the BOM some exports start with
    text = chat_path.read_text(encoding="utf-8-sig")
    # Split on \n only; message bodies may legitimately contain other separators
    lines = (line.rstrip("\r") for line in text.split("\n"))
    result = parse_transcript(lines, group_name=group_name)

    logger.info(
        f"Extracted {len(result.records)} messages from {chat_path.name} "
        f"({result.line_count} lines, {len(result.malformed)} malformed, "
        f"{result.dropped_lines} dropped)"
    )
    return result
