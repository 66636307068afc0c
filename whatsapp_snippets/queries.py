"""
SQL query definitions for the snippets database.

Each builder returns ``(query, params)`` for the read side (API, charts).
Filters mirror the snippet browser:

    start_date   from the start of that day (UTC)
    end_date     to the end of that day (UTC)
    group        exact group name match

Stored timestamps are ISO-8601 strings with a Z suffix, so day bounds can be
compared lexically.
"""

from datetime import date
from typing import Any, List, Optional, Tuple

SNIPPET_COLUMNS = (
    "id",
    "sender_jid",
    "timestamp",
    "message_type",
    "content",
    "sender_name",
    "caption",
    "group_name",
    "is_group",
    "created_at",
)


def day_start(day: date) -> str:
    """First instant of a UTC day in stored timestamp format."""
    return f"{day.isoformat()}T00:00:00.000Z"


def day_end(day: date) -> str:
    """Last instant of a UTC day in stored timestamp format."""
    return f"{day.isoformat()}T23:59:59.999Z"


def _where(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    group: Optional[str] = None,
) -> Tuple[str, List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    if start_date is not None:
        clauses.append("timestamp >= ?")
        params.append(day_start(start_date))
    if end_date is not None:
        clauses.append("timestamp <= ?")
        params.append(day_end(end_date))
    if group:
        clauses.append("group_name = ?")
        params.append(group)

    if not clauses:
        return "", params
    return "WHERE " + " AND ".join(clauses), params


def list_snippets(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    group: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[str, List[Any]]:
    """Page of snippets, newest first."""
    where, params = _where(start_date, end_date, group)
    query = f"""
        SELECT {", ".join(SNIPPET_COLUMNS)}
        FROM whatsapp_snippets
        {where}
        ORDER BY timestamp DESC, id DESC
        LIMIT ? OFFSET ?;
    """
    return query, params + [limit, offset]


def count_snippets(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    group: Optional[str] = None,
) -> Tuple[str, List[Any]]:
    """Number of snippets matching the filters."""
    where, params = _where(start_date, end_date, group)
    return f"SELECT COUNT(*) FROM whatsapp_snippets {where};", params


def daily_counts_by_type(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    group: Optional[str] = None,
) -> Tuple[str, List[Any]]:
    """Snippet counts per (day, message_type), oldest day first."""
    where, params = _where(start_date, end_date, group)
    query = f"""
        SELECT substr(timestamp, 1, 10) AS day, message_type, COUNT(*)
        FROM whatsapp_snippets
        {where}
        GROUP BY day, message_type
        ORDER BY day, message_type;
    """
    return query, params


def latest_timestamp() -> str:
    """Newest stored timestamp across all snippets."""
    return "SELECT MAX(timestamp) FROM whatsapp_snippets;"
