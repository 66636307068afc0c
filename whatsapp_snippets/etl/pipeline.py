"""
Import orchestration.

This module runs one transcript import end to end against a record store and
a blob store that it receives from the caller.

Pipeline Steps:
    1. Parse the transcript (ChatFileNotFound aborts before any side effects)
    2. Work out the effective cutoff and keep only new messages (+ batch limit,
       never ending a batch partway through one timestamp)
    3. Break the selection down by message type
    4. Dry run: stop here with a preview sample, nothing is written
    5. Upload media one file at a time, in transcript order
    6. Insert the whole selection as ONE bulk insert (BulkInsertFailed aborts)
    7. Report counts

A single media failure never aborts the run: the record's content becomes a
placeholder and the remaining records go through unchanged. Re-running is
safe at batch granularity because step 2 re-derives "new" from the cutoff and
from what the store already holds.
"""

import sqlite3
from collections import Counter
from contextlib import closing
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from whatsapp_snippets.config import Config
from whatsapp_snippets.etl.classifier import MESSAGE_TYPES
from whatsapp_snippets.etl.errors import (
    BulkInsertFailed,
    ImportPipelineError,
    RecordStoreError,
    StoreError,
)
from whatsapp_snippets.etl.extractors import MessageRecord, extract_messages
from whatsapp_snippets.etl.loaders import (
    get_counts_by_type,
    get_etl_state,
    get_group_names,
    get_loaded_snippet_count,
)
from whatsapp_snippets.etl.media import MediaOutcome, MediaUploader
from whatsapp_snippets.etl.normalizers import format_timestamp
from whatsapp_snippets.etl.schema import verify_schema
from whatsapp_snippets.etl.watermark import (
    align_to_timestamp_boundary,
    effective_cutoff,
    filter_new_messages,
)
from whatsapp_snippets.stores import BlobStore, RecordStore

logger = logging.getLogger(__name__)

PREVIEW_SIZE = 5
PREVIEW_CONTENT_CHARS = 50


@dataclass(frozen=True)
class UploadProgress:
    """One step of the media upload loop, as seen by a progress callback."""

    done: int
    total: int
    uploaded: int
    failed: int
    filename: str


ProgressCallback = Callable[[UploadProgress], None]


@dataclass
class ImportResult:
    """Result of an import run."""

    success: bool
    dry_run: bool = False
    messages_parsed: int = 0
    malformed_lines: int = 0
    dropped_lines: int = 0
    messages_new: int = 0
    messages_selected: int = 0
    breakdown: Dict[str, int] = field(default_factory=dict)
    media_total: int = 0
    media_uploaded: int = 0
    media_failed: int = 0
    messages_inserted: int = 0
    cutoff: Optional[datetime] = None
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None
    preview: List[MessageRecord] = field(default_factory=list)
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def date_range(self) -> Optional[Tuple[str, str]]:
        if self.first_timestamp is None or self.last_timestamp is None:
            return None
        return (
            self.first_timestamp.date().isoformat(),
            self.last_timestamp.date().isoformat(),
        )

    def __str__(self) -> str:
        status = "SUCCESS" if self.success else f"FAILED: {self.error}"
        mode = "dry run" if self.dry_run else "import"
        cutoff = format_timestamp(self.cutoff) if self.cutoff else "none"
        lines = [
            f"Import {status} ({mode})",
            f"  Messages: {self.messages_parsed} parsed, {self.messages_new} new after {cutoff}, "
            f"{self.messages_selected} selected ({self.malformed_lines} malformed lines, "
            f"{self.dropped_lines} dropped)",
        ]
        if not self.dry_run:
            lines.append(f"  Media: {self.media_uploaded} uploaded, {self.media_failed} failed")
            lines.append(f"  Inserted: {self.messages_inserted}")
        if self.date_range:
            lines.append(f"  Date range: {self.date_range[0]} to {self.date_range[1]}")
        lines.append(f"  Duration: {self.duration_seconds:.2f}s")
        return "\n".join(lines)


def count_by_type(records: Iterable[MessageRecord]) -> Dict[str, int]:
    """Count records per message type, in the canonical type order."""
    counts = Counter(record.message_type for record in records)
    return {t: counts[t] for t in MESSAGE_TYPES if counts[t]}


def render_preview(records: Sequence[MessageRecord], limit: int = PREVIEW_SIZE) -> str:
    """
    Render the first records of a selection for a dry run.

    Output is the same for every caller; it depends only on the records.
    """
    blocks = []
    for i, record in enumerate(records[:limit], start=1):
        lines = [f"{i}. [{format_timestamp(record.timestamp)}] {record.sender_name or record.sender_jid}"]
        lines.append(f"   Type: {record.message_type}")
        if record.media_filename:
            lines.append(f"   Media: {record.media_filename}")
        if record.caption:
            lines.append(f"   Caption: {record.caption}")
        if record.content and record.message_type == "text":
            content = record.content
            if len(content) > PREVIEW_CONTENT_CHARS:
                content = content[:PREVIEW_CONTENT_CHARS] + "..."
            lines.append(f"   Content: {content}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def upload_media(
    records: Sequence[MessageRecord],
    uploader: MediaUploader,
    on_progress: Optional[ProgressCallback] = None,
) -> List[Tuple[MessageRecord, MediaOutcome]]:
    """
    Resolve every pending media record, one at a time, in order.

    Args:
        records: Selected records; only those needing media are touched.
        uploader: Media uploader bound to the export folder.
        on_progress: Called after each file with the running counts.

    Returns:
        (record, outcome) pairs in the order of the media records.
    """
    pending = [record for record in records if record.needs_media]
    pairs: List[Tuple[MessageRecord, MediaOutcome]] = []
    uploaded = 0

    for record in pending:
        outcome = uploader.upload_file(record.media_filename or "")
        pairs.append((record, outcome))
        uploaded += 1 if outcome.ok else 0

        if on_progress is not None:
            on_progress(
                UploadProgress(
                    done=len(pairs),
                    total=len(pending),
                    uploaded=uploaded,
                    failed=len(pairs) - uploaded,
                    filename=record.media_filename or "",
                )
            )

    return pairs


def apply_media_outcomes(
    records: Sequence[MessageRecord],
    pairs: Sequence[Tuple[MessageRecord, MediaOutcome]],
) -> List[MessageRecord]:
    """
    Put each outcome's content on its record, keeping the selection order.

    pairs must come from upload_media() over the same records.
    """
    outcomes = iter(pairs)
    resolved: List[MessageRecord] = []
    for record in records:
        if record.needs_media:
            _, outcome = next(outcomes)
            record = replace(record, content=outcome.content, media_resolved=True)
        resolved.append(record)
    return resolved


def _select_new(
    config: Config,
    record_store: RecordStore,
    records: List[MessageRecord],
    limit: Optional[int],
) -> Tuple[Optional[datetime], List[MessageRecord], int]:
    store_latest = None
    if config.use_store_watermark:
        store_latest = record_store.latest_timestamp(config.group_name)
        if store_latest is not None:
            logger.info(f"Latest stored message: {format_timestamp(store_latest)}")

    cutoff = effective_cutoff(config.cutoff_instant, store_latest)
    new_messages = filter_new_messages(records, cutoff)
    selected = align_to_timestamp_boundary(
        new_messages, filter_new_messages(new_messages, None, limit=limit)
    )
    return cutoff, selected, len(new_messages)


def run_import(
    config: Config,
    record_store: RecordStore,
    blob_store: BlobStore,
    dry_run: bool = False,
    limit: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> ImportResult:
    """
    Run one transcript import.

    Args:
        config: Import configuration (chat folder/file, group, cutoff, ...).
        record_store: Destination for snippet rows.
        blob_store: Destination for media.
        dry_run: Parse, filter and preview only; nothing is written.
        limit: Cap on new messages processed; defaults to config.batch_limit.
        on_progress: Observer for the media upload loop.

    Returns:
        ImportResult with per-stage counts and success status.
    """
    start_time = datetime.now()
    result = ImportResult(success=False, dry_run=dry_run)
    if limit is None:
        limit = config.batch_limit

    try:
        # Step 1: Parse
        logger.info(f"Step 1: Parsing {config.chat_path}...")
        parsed = extract_messages(config.chat_path, group_name=config.group_name)
        result.messages_parsed = len(parsed.records)
        result.malformed_lines = len(parsed.malformed)
        result.dropped_lines = parsed.dropped_lines

        # Step 2: Watermark + limit
        logger.info("Step 2: Filtering already imported messages...")
        cutoff, selected, new_count = _select_new(config, record_store, parsed.records, limit)
        result.cutoff = cutoff
        result.messages_new = new_count
        result.messages_selected = len(selected)

        # Step 3: Breakdown
        result.breakdown = count_by_type(selected)
        if selected:
            result.first_timestamp = selected[0].timestamp
            result.last_timestamp = selected[-1].timestamp
        logger.info(f"Step 3: {len(selected)} messages selected: {result.breakdown}")

        # Step 4: Dry run stops before any write
        if dry_run:
            result.preview = list(selected[:PREVIEW_SIZE])
            result.success = True
            return result

        if not selected:
            logger.info("No new messages to import")
            result.success = True
            return result

        # Step 5: Media
        uploader = MediaUploader(blob_store, config.chat_folder, config.storage_path)
        pairs = upload_media(selected, uploader, on_progress=on_progress)
        result.media_total = len(pairs)
        result.media_uploaded = sum(1 for _, outcome in pairs if outcome.ok)
        result.media_failed = result.media_total - result.media_uploaded
        logger.info(
            f"Step 5: Media complete: {result.media_uploaded} uploaded, {result.media_failed} failed"
        )
        resolved = apply_media_outcomes(selected, pairs)

        # Step 6: One bulk insert
        logger.info(f"Step 6: Inserting {len(resolved)} messages...")
        try:
            result.messages_inserted = record_store.insert_many([r.to_row() for r in resolved])
        except RecordStoreError as e:
            raise BulkInsertFailed(str(e)) from e

        result.success = True
        logger.info(f"Import completed: {result.messages_inserted} messages inserted")
        return result

    except (ImportPipelineError, StoreError) as e:
        logger.error(f"Import failed: {e}")
        result.success = False
        result.error = str(e)
        return result

    finally:
        result.duration_seconds = (datetime.now() - start_time).total_seconds()


def get_import_status(db_path: Path) -> dict:
    """
    Get current import status from the local snippets database.

    Args:
        db_path: Path to the snippets database.

    Returns:
        Dictionary with import status information.
    """
    if not db_path.exists():
        return {"exists": False}
    if not verify_schema(db_path):
        return {"exists": True, "schema_valid": False}

    conn = sqlite3.connect(str(db_path))
    with closing(conn):
        return {
            "exists": True,
            "schema_valid": True,
            "snippet_count": get_loaded_snippet_count(conn),
            "counts_by_type": get_counts_by_type(conn),
            "groups": get_group_names(conn),
            "last_import": get_etl_state(conn, "last_import"),
            "last_message_date": get_etl_state(conn, "last_message_date"),
            "schema_version": get_etl_state(conn, "schema_version"),
        }
