"""
Watermark filtering for incremental imports.

A transcript export always contains the whole chat history. The watermark is
the instant up to which messages are considered already imported; only
records strictly after it are new. A record exactly at the watermark counts as
imported, so re-running with the same watermark selects the same records.
"""

from datetime import datetime
from itertools import takewhile
from typing import Iterable, List, Optional, Sequence
import logging

from whatsapp_snippets.etl.extractors import MessageRecord

logger = logging.getLogger(__name__)


def filter_new_messages(
    records: Iterable[MessageRecord],
    cutoff: Optional[datetime],
    limit: Optional[int] = None,
) -> List[MessageRecord]:
    """
    Keep records with timestamp > cutoff, in order, at most ``limit`` of them.

    Args:
        records: Parsed records in transcript order.
        cutoff: Watermark instant (tz-aware). None keeps every record.
        limit: Optional cap; the earliest matches in sequence are kept.

    Returns:
        The selected records.
    """
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")

    selected: List[MessageRecord] = []
    for record in records:
        if limit is not None and len(selected) >= limit:
            break
        if cutoff is None or record.timestamp > cutoff:
            selected.append(record)

    logger.debug(f"Watermark {cutoff}: selected {len(selected)} records (limit={limit})")
    return selected


def effective_cutoff(
    configured: Optional[datetime],
    store_latest: Optional[datetime],
) -> Optional[datetime]:
    """
    Combine the configured watermark with the latest instant already stored.

    The later of the two wins; either may be missing.
    """
    candidates = [c for c in (configured, store_latest) if c is not None]
    if not candidates:
        return None
    return max(candidates)


def align_to_timestamp_boundary(
    new_messages: Sequence[MessageRecord],
    selected: Sequence[MessageRecord],
) -> List[MessageRecord]:
    """
    Keep a limited batch from ending partway through one timestamp.

    Transcript timestamps have minute precision and the next run's watermark
    is the newest stored timestamp, compared with ">". A batch that stops
    inside a minute would leave the rest of that minute behind for good, so
    the trailing records sharing the last timestamp are moved to the next run.
    When that would leave nothing (one minute holds more messages than the
    limit) the whole minute is taken instead.

    Args:
        new_messages: Every record after the cutoff, in order.
        selected: The limited prefix of new_messages.

    Returns:
        The aligned selection.
    """
    if not selected or len(selected) >= len(new_messages):
        return list(selected)

    boundary = selected[-1].timestamp
    if new_messages[len(selected)].timestamp != boundary:
        return list(selected)

    kept = list(selected)
    while kept and kept[-1].timestamp == boundary:
        kept.pop()
    if kept:
        logger.info(
            f"Batch ends inside {boundary.isoformat()}; "
            f"{len(selected) - len(kept)} message(s) deferred to the next run"
        )
        return kept

    whole_minute = list(takewhile(lambda r: r.timestamp == boundary, new_messages))
    logger.warning(
        f"{len(whole_minute)} messages share {boundary.isoformat()}, more than the "
        f"batch limit of {len(selected)}; importing all of them together"
    )
    return whole_minute
