"""
ETL Loaders for the local snippets database.

Design Decisions:
    1. A batch is inserted in ONE transaction: all rows or none
    2. Rows are plain dicts in the record store layout (MessageRecord.to_row())
    3. raw_message is serialized to JSON; unknown values fall back to str()
    4. The import watermark is derived from MAX(timestamp), per group
"""

import json
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    """Get current UTC timestamp in ISO-8601 format."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def insert_snippets(conn: sqlite3.Connection, rows: Sequence[Dict[str, Any]]) -> int:
    """
    Insert snippet rows atomically.

    Args:
        conn: SQLite connection to the snippets database.
        rows: Rows in record store layout.

    Returns:
        Number of rows inserted.

    Raises:
        sqlite3.Error: If any row is rejected; nothing is committed.
    """
    if not rows:
        return 0

    now = _now_iso()

    query = """
        INSERT INTO whatsapp_snippets
            (sender_jid, timestamp, message_type, content, sender_name,
             caption, group_name, is_group, raw_message, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
    """

    params = [
        (
            row["sender_jid"],
            row["timestamp"],
            row["message_type"],
            row.get("content") or "",
            row.get("sender_name"),
            row.get("caption"),
            row.get("group_name"),
            1 if row.get("is_group") else 0,
            json.dumps(row.get("raw_message"), ensure_ascii=False, default=str),
            now,
        )
        for row in rows
    ]

    try:
        with closing(conn.cursor()) as cursor:
            cursor.executemany(query, params)
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise

    logger.info(f"Inserted {len(params)} snippets")
    return len(params)


def get_latest_timestamp(
    conn: sqlite3.Connection,
    group_name: Optional[str] = None,
) -> Optional[str]:
    """
    Get the newest stored timestamp for a group (or for 1:1 rows if None).

    Returns:
        ISO-8601 string, or None if nothing is stored yet.
    """
    if group_name is None:
        query = "SELECT MAX(timestamp) FROM whatsapp_snippets WHERE group_name IS NULL;"
        params: tuple = ()
    else:
        query = "SELECT MAX(timestamp) FROM whatsapp_snippets WHERE group_name = ?;"
        params = (group_name,)

    with closing(conn.cursor()) as cursor:
        cursor.execute(query, params)
        result = cursor.fetchone()
        return result[0] if result and result[0] else None


def update_etl_state(conn: sqlite3.Connection, key: str, value: str) -> None:
    """
    Update or insert an ETL state value.

    Args:
        conn: SQLite connection to the snippets database.
        key: State key (e.g., 'last_message_date', 'last_import').
        value: State value.
    """
    now = _now_iso()

    query = """
        INSERT OR REPLACE INTO etl_state (key, value, updated_at)
        VALUES (?, ?, ?);
    """

    with closing(conn.cursor()) as cursor:
        cursor.execute(query, (key, value, now))
        conn.commit()

    logger.debug(f"Updated ETL state: {key} = {value}")


def get_etl_state(conn: sqlite3.Connection, key: str) -> Optional[str]:
    """
    Get an ETL state value.

    Returns:
        State value, or None if not found.
    """
    query = "SELECT value FROM etl_state WHERE key = ?;"

    with closing(conn.cursor()) as cursor:
        cursor.execute(query, (key,))
        result = cursor.fetchone()
        return result[0] if result else None


def get_loaded_snippet_count(conn: sqlite3.Connection) -> int:
    """Get total snippet count."""
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT COUNT(*) FROM whatsapp_snippets;")
        result = cursor.fetchone()
        return result[0] if result else 0


def get_counts_by_type(conn: sqlite3.Connection) -> Dict[str, int]:
    """Get snippet counts keyed by message type."""
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            "SELECT message_type, COUNT(*) FROM whatsapp_snippets GROUP BY message_type;"
        )
        return {row[0]: row[1] for row in cursor.fetchall()}


def get_group_names(conn: sqlite3.Connection) -> List[str]:
    """Get distinct group names of group snippets, sorted."""
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            """
            SELECT DISTINCT group_name FROM whatsapp_snippets
            WHERE is_group = 1 AND group_name IS NOT NULL
            ORDER BY group_name;
            """
        )
        return [row[0] for row in cursor.fetchall()]
