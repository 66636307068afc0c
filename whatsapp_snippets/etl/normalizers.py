"""
Timestamp normalization utilities for ETL.

WhatsApp transcript exports carry locale-formatted date/time triples such as
"23/10/25", "1:13", "pm". This module turns those into absolute UTC instants
and provides the ISO-8601 formatting used by every store backend.

Design Decisions:
    1. Two-digit years map to 2000 + YY (no century windowing)
    2. Wall-clock components are interpreted directly as UTC (no offset applied)
    3. 12-hour clock: "12 am" is hour 0, "12 pm" is hour 12
    4. Stored timestamps use millisecond precision with a Z suffix so that
       lexical order in the store equals chronological order

Known Limitations:
    - Exports from other centuries are misdated
    - Exports using a 24-hour clock do not match the transcript grammar at all
"""

import re
from datetime import datetime, timezone
from typing import Optional

from whatsapp_snippets.etl.errors import MalformedTimestamp

GROUP_JID_SUFFIX = "@g.us"

_TIMESTAMP_PATH_UNSAFE = re.compile(r"[:.]")


def parse_whatsapp_timestamp(date_str: str, time_str: str, period: str) -> datetime:
    """
    Convert a transcript date/time/meridiem triple to a UTC datetime.

    Args:
        date_str: Day/month/two-digit-year, e.g. "23/10/25".
        time_str: Hour and minute on a 12-hour clock, e.g. "1:13".
        period: "am" or "pm" (case-insensitive).

    Returns:
        Timezone-aware datetime in UTC.

    Raises:
        MalformedTimestamp: If a component is non-numeric or out of range.

    Examples:
        >>> parse_whatsapp_timestamp("23/10/25", "1:13", "pm").isoformat()
        '2025-10-23T13:13:00+00:00'
        >>> parse_whatsapp_timestamp("1/1/25", "12:00", "AM").hour
        0
    """
    try:
        day, month, year = (int(part) for part in date_str.split("/"))
        hours, minutes = (int(part) for part in time_str.split(":"))
    except (AttributeError, ValueError) as e:
        raise MalformedTimestamp(
            f"Unparseable timestamp: {date_str!r} {time_str!r} {period!r}"
        ) from e

    meridiem = (period or "").strip().lower()
    if meridiem not in ("am", "pm"):
        raise MalformedTimestamp(f"Unknown meridiem: {period!r}")
    if not 1 <= hours <= 12 or not 0 <= minutes <= 59:
        raise MalformedTimestamp(f"Time out of range: {time_str!r} {period}")
    if not 0 <= year <= 99:
        raise MalformedTimestamp(f"Expected a two-digit year: {date_str!r}")

    if meridiem == "pm" and hours != 12:
        hours += 12
    elif meridiem == "am" and hours == 12:
        hours = 0

    try:
        return datetime(2000 + year, month, day, hours, minutes, 0, tzinfo=timezone.utc)
    except (OverflowError, ValueError) as e:
        # Day/month out of range (e.g. 31/02)
        raise MalformedTimestamp(f"Date out of range: {date_str!r}") from e


def format_timestamp(dt: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with millisecond precision.

    Naive datetimes are assumed to already be UTC.

    Examples:
        >>> format_timestamp(datetime(2025, 10, 23, 13, 13, tzinfo=timezone.utc))
        '2025-10-23T13:13:00.000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_iso_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp read back from a store.

    Accepts a trailing Z or an explicit offset; naive values are taken as UTC.

    Returns:
        Timezone-aware UTC datetime, or None for empty/invalid input.
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def timestamp_from_epoch(seconds: float) -> datetime:
    """Convert a live event's epoch-seconds timestamp to a UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def sanitize_timestamp_for_path(dt: datetime) -> str:
    """
    Render a timestamp safe for use inside a storage key.

    Examples:
        >>> sanitize_timestamp_for_path(datetime(2025, 10, 23, 13, 13, tzinfo=timezone.utc))
        '2025-10-23T13-13-00-000Z'
    """
    return _TIMESTAMP_PATH_UNSAFE.sub("-", format_timestamp(dt))


def is_group_jid(jid: Optional[str]) -> bool:
    """
    Detect whether a conversation JID identifies a group.

    Examples:
        >>> is_group_jid("120363025246125486@g.us")
        True
        >>> is_group_jid("14155551234@s.whatsapp.net")
        False
    """
    if not jid:
        return False
    return jid.endswith(GROUP_JID_SUFFIX)
