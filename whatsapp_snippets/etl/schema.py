"""
Schema definitions for the local snippets database.

This module defines the DDL for the SQLite record store. The column layout
matches the hosted ``whatsapp_snippets`` table the web viewer reads, so rows
produced by the pipeline are identical whichever backend receives them.

Design Decisions:
    1. Auto-assigned INTEGER id; rows are append-only
    2. ISO-8601 TEXT timestamps with millisecond precision and Z suffix
       (lexical order == chronological order, so MAX() is the watermark)
    3. raw_message is stored as JSON text for audit, never parsed back
    4. etl_state table tracks import progress
"""

import sqlite3
from pathlib import Path
from typing import List
import logging

logger = logging.getLogger(__name__)

# Schema version for migration tracking
SCHEMA_VERSION = "1.0.0"

SNIPPETS_TABLE = "whatsapp_snippets"

SCHEMA_DDL = """
-- =============================================================================
-- whatsapp_snippets: one row per message
-- =============================================================================
-- content holds the text body, or the public media URL / failure placeholder
-- for attachments. caption is only set for media messages.
--
CREATE TABLE IF NOT EXISTS whatsapp_snippets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sender_jid TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    message_type TEXT NOT NULL CHECK (message_type IN
        ('text', 'image', 'video', 'audio', 'document', 'location', 'unknown')),
    content TEXT NOT NULL DEFAULT '',
    sender_name TEXT,
    caption TEXT,
    group_name TEXT,
    is_group INTEGER NOT NULL DEFAULT 0 CHECK (is_group IN (0, 1)),
    raw_message TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_snippet_timestamp
    ON whatsapp_snippets(timestamp);

CREATE INDEX IF NOT EXISTS idx_snippet_group_timestamp
    ON whatsapp_snippets(group_name, timestamp);

CREATE INDEX IF NOT EXISTS idx_snippet_sender
    ON whatsapp_snippets(sender_jid);

-- =============================================================================
-- etl_state: import bookkeeping
-- =============================================================================
-- Common keys:
--   - 'last_import': When the last batch was inserted
--   - 'last_message_date': Latest message timestamp inserted
--   - 'schema_version': Current schema version
--
CREATE TABLE IF NOT EXISTS etl_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

INSERT OR REPLACE INTO etl_state (key, value, updated_at)
VALUES ('schema_version', '{schema_version}', datetime('now'));
""".format(
    schema_version=SCHEMA_VERSION
)


def create_schema(db_path: Path) -> None:
    """
    Create the snippets schema if it doesn't exist.

    Idempotent - safe to call multiple times.

    Args:
        db_path: Path to the SQLite file. Parent directory is created if needed.

    Raises:
        sqlite3.Error: If schema creation fails.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.debug(f"Creating/verifying schema at: {db_path}")

    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(SCHEMA_DDL)
        conn.commit()
    except sqlite3.Error as e:
        logger.error(f"Schema creation failed: {e}")
        raise
    finally:
        conn.close()


def get_table_names(db_path: Path) -> List[str]:
    """Get all table names in the snippets database."""
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;")
        return [row[0] for row in cursor.fetchall()]
    finally:
        conn.close()


def verify_schema(db_path: Path) -> bool:
    """
    Verify that the schema exists and has all required tables.

    Returns:
        True if schema is valid, False otherwise.
    """
    if not db_path.exists():
        return False

    existing_tables = set(get_table_names(db_path))
    return {SNIPPETS_TABLE, "etl_state"}.issubset(existing_tables)
