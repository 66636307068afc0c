"""
Record store and blob store backends.

The import pipeline and the live adapter only see two small contracts:

    RecordStore   insert rows into ``whatsapp_snippets``, report the newest
                  stored timestamp for a group (the watermark)
    BlobStore     put(path, data, content_type) -> public URL, refusing to
                  overwrite an existing object

Local backends (this module):
    SQLiteRecordStore   the snippets database created by etl/schema.py
    LocalBlobStore      files under <media_dir>/<bucket>/<path>

Hosted backends live in whatsapp_snippets.supabase.
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import quote
import logging

from whatsapp_snippets.etl.errors import BlobExistsError, BlobStoreError, RecordStoreError
from whatsapp_snippets.etl.loaders import (
    get_etl_state,
    get_latest_timestamp,
    insert_snippets,
    update_etl_state,
)
from whatsapp_snippets.etl.normalizers import parse_iso_timestamp
from whatsapp_snippets.etl.schema import create_schema

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Append-only store of snippet rows."""

    @abstractmethod
    def insert_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        """
        Insert rows in order as one atomic batch.

        Returns:
            Number of rows inserted.

        Raises:
            RecordStoreError: If the batch is rejected. Nothing is committed.
        """

    def insert_one(self, row: Dict[str, Any]) -> None:
        """Insert a single row (live path)."""
        self.insert_many([row])

    @abstractmethod
    def latest_timestamp(self, group_name: Optional[str] = None) -> Optional[datetime]:
        """Newest stored timestamp for a group (None = 1:1 rows), or None if empty."""


class BlobStore(ABC):
    """Object store addressed by path inside one bucket."""

    def __init__(self, bucket: str):
        self.bucket = bucket

    @abstractmethod
    def put(self, path: str, data: bytes, content_type: str) -> str:
        """
        Store an object and return its public URL.

        Raises:
            BlobExistsError: If an object already exists at path.
            BlobStoreError: For any other failure.
        """

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Public URL of the object at path (whether or not it exists)."""


# =============================================================================
# SQLite record store
# =============================================================================


class SQLiteRecordStore(RecordStore):
    """
    Record store backed by the local snippets database.

    Opens a connection per call, so one instance can be shared with worker
    threads (live path).

    Args:
        db_path: SQLite file. The schema is created if needed.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        try:
            create_schema(self.db_path)
        except sqlite3.Error as e:
            raise RecordStoreError(str(e)) from e

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def insert_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        try:
            with closing(self._connect()) as conn:
                inserted = insert_snippets(conn, rows)
                self._record_import(conn, rows)
        except sqlite3.Error as e:
            logger.error(f"Snippet insert failed: {e}")
            raise RecordStoreError(str(e)) from e
        return inserted

    def _record_import(self, conn: sqlite3.Connection, rows: Sequence[Dict[str, Any]]) -> None:
        now = datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        update_etl_state(conn, "last_import", now)

        newest = max(row["timestamp"] for row in rows)
        previous = get_etl_state(conn, "last_message_date")
        if previous is None or newest > previous:
            update_etl_state(conn, "last_message_date", newest)

    def latest_timestamp(self, group_name: Optional[str] = None) -> Optional[datetime]:
        try:
            with closing(self._connect()) as conn:
                value = get_latest_timestamp(conn, group_name)
        except sqlite3.Error as e:
            raise RecordStoreError(str(e)) from e
        return parse_iso_timestamp(value)


# =============================================================================
# Local blob store
# =============================================================================


class LocalBlobStore(BlobStore):
    """
    Blob store on the local filesystem.

    Objects live at ``<root>/<bucket>/<path>``. Public URLs are
    ``<base_url>/<bucket>/<path>``; without a base URL the root's file:// URI
    is used.
    """

    def __init__(self, root: Path, bucket: str, base_url: Optional[str] = None):
        super().__init__(bucket)
        self.root = Path(root)
        self.base_url = (base_url or self.root.resolve().as_uri()).rstrip("/")

    @property
    def bucket_dir(self) -> Path:
        return self.root / self.bucket

    def _object_path(self, path: str) -> Path:
        bucket_dir = self.bucket_dir.resolve()
        target = (bucket_dir / path.lstrip("/")).resolve()
        if bucket_dir not in target.parents:
            raise BlobStoreError(f"Object path escapes bucket: {path!r}")
        return target

    def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self._object_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "x" refuses to overwrite an existing object
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError:
            raise BlobExistsError(f"Object already exists: {self.bucket}/{path}", 409) from None
        except OSError as e:
            raise BlobStoreError(f"Could not write {self.bucket}/{path}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes ({content_type}) at {target}")
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{quote(self.bucket)}/{quote(path.lstrip('/'), safe='/')}"


def create_stores(config) -> Tuple[RecordStore, BlobStore]:
    """
    Build the record store and blob store for the configured backend.

    Args:
        config: Config instance.

    Returns:
        (record_store, blob_store)

    Raises:
        ValueError: If the hosted backend is selected without its settings.
    """
    if config.backend == "supabase":
        if not config.validate_backend():
            raise ValueError("SUPABASE_URL and SUPABASE_KEY are required for the supabase backend")

        from whatsapp_snippets.supabase import SupabaseBlobStore, SupabaseRecordStore

        logger.info(f"Using Supabase backend at {config.supabase_url}")
        return (
            SupabaseRecordStore(config.supabase_url, config.supabase_key, timeout=config.http_timeout),
            SupabaseBlobStore(
                config.supabase_url,
                config.supabase_key,
                config.storage_bucket,
                timeout=config.http_timeout,
            ),
        )

    config.ensure_data_dir()
    logger.info(f"Using local backend at {config.db_path}")
    return (
        SQLiteRecordStore(config.db_path),
        LocalBlobStore(config.media_dir, config.storage_bucket, config.media_base_url),
    )
