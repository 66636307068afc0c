"""
Sender identity resolution for ETL.

Transcript exports only carry a free-text sender label: either the phone
number as WhatsApp rendered it ("+1 555-1234") or the contact's display name
as saved on the exporting phone ("Alice", "Mamá 🌻"). The live feed carries
real JIDs. This module derives the stable ``sender_jid`` stored on every
snippet.

Design Decisions:
    1. Phone-shaped labels keep only digits and '+' ("+1 555-1234" → "+15551234")
    2. Display names are hashed with the 31-polynomial string hash, wrapped to
       a signed 32-bit integer at every step, over UTF-16 code units.
       Identifiers produced by earlier imports therefore stay valid.
    3. The hash path is lossy: two names may collide. It is a grouping key,
       not a security identifier.
    4. Live events use the participant JID (groups) or the remote JID (1:1)
"""

import re
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# A label is a phone number if it starts with an optional + followed by digits
PHONE_LABEL_PATTERN = re.compile(r"^\+?[0-9]+")
NON_PHONE_CHARS_PATTERN = re.compile(r"[^0-9+]")

_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def string_hash32(value: str) -> int:
    """
    Compute the signed 32-bit polynomial hash of a string.

    Recurrence: ``h = h * 31 + code_unit`` wrapped to 32 bits each step,
    where code units are UTF-16 (astral characters contribute two units).

    Examples:
        >>> string_hash32("")
        0
        >>> string_hash32("a")
        97
        >>> string_hash32("Alice")
        63350368
    """
    encoded = value.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + code_unit) & _UINT32_MASK
    if h & _INT32_SIGN:
        h -= 1 << 32
    return h


def is_phone_label(label: str) -> bool:
    """Check whether a sender label starts like a phone number."""
    return bool(PHONE_LABEL_PATTERN.match(label))


def generate_sender_jid(sender_label: str) -> str:
    """
    Derive a stable sender identifier from a transcript sender label.

    Args:
        sender_label: Sender as shown in the transcript header line.

    Returns:
        Digits-and-plus phone string, or ``user_<abs(hash)>`` for names.

    Examples:
        >>> generate_sender_jid("+1 555-1234")
        '+15551234'
        >>> generate_sender_jid("Alice")
        'user_63350368'
    """
    if is_phone_label(sender_label):
        return NON_PHONE_CHARS_PATTERN.sub("", sender_label)

    return f"user_{abs(string_hash32(sender_label))}"


def resolve_live_sender(remote_jid: str, participant: Optional[str] = None) -> str:
    """
    Pick the sender JID for a live event.

    In groups the conversation JID is the group itself; the author is the
    participant. In 1:1 chats there is no participant.
    """
    return participant or remote_jid
