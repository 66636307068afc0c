"""
FastAPI backend for browsing imported snippets.

IMPORTANT: This API ONLY reads from the local snippets database. Imports and
live capture are the only writers.

Run ``whatsapp-import`` first to populate the database.
"""

from __future__ import annotations

import json
import math
import os
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from whatsapp_snippets import queries
from whatsapp_snippets.config import Config
from whatsapp_snippets.etl.loaders import get_counts_by_type, get_group_names
from whatsapp_snippets.visualization import build_activity_figure


def _get_db_path() -> Path:
    """Get the path to the snippets database."""
    return Path(
        os.getenv(
            "WHATSAPP_SNIPPETS_DB_PATH",
            str(Config.DEFAULT_DATA_PATH / Config.DEFAULT_DB_NAME),
        )
    )


def _open_db() -> sqlite3.Connection:
    """
    Open the snippets database for reading.

    Raises HTTPException if it doesn't exist.
    """
    path = _get_db_path()
    if not path.exists():
        raise HTTPException(
            status_code=503,
            detail={
                "error": "snippets database not found",
                "message": "Run whatsapp-import first to populate the snippets database",
                "path": str(path),
            },
        )
    # Read-only: the API never writes
    return sqlite3.connect(f"file:{path}?mode=ro", uri=True)


def _snippet_row(row: tuple) -> Dict[str, Any]:
    snippet = dict(zip(queries.SNIPPET_COLUMNS, row))
    snippet["is_group"] = bool(snippet["is_group"])
    return snippet


app = FastAPI(
    title="WhatsApp Snippets API",
    version="0.1.0",
    description="Read-only API over imported WhatsApp snippets.",
)

# Local dev CORS defaults
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        os.getenv("WHATSAPP_ALLOWED_ORIGIN", "http://127.0.0.1:5173"),
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> Dict[str, Any]:
    """Health check - also reports whether the database exists."""
    path = _get_db_path()
    return {
        "status": "ok" if path.exists() else "degraded",
        "db_exists": path.exists(),
        "db_path": str(path),
    }


@app.get("/summary")
def summary() -> Dict[str, Any]:
    """Totals over all stored snippets."""
    conn = _open_db()
    try:
        cursor = conn.cursor()

        count_query, count_params = queries.count_snippets()
        cursor.execute(count_query, count_params)
        total = cursor.fetchone()[0]

        cursor.execute(queries.latest_timestamp())
        latest = cursor.fetchone()[0]

        return {
            "total_snippets": total,
            "by_type": get_counts_by_type(conn),
            "group_count": len(get_group_names(conn)),
            "latest_timestamp": latest,
            "db_path": str(_get_db_path()),
        }
    finally:
        conn.close()


@app.get("/snippets")
def snippets(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    group: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> Dict[str, Any]:
    """Snippets newest first, filtered by day range and group, paginated."""
    conn = _open_db()
    try:
        cursor = conn.cursor()

        count_query, count_params = queries.count_snippets(start_date, end_date, group)
        cursor.execute(count_query, count_params)
        total = cursor.fetchone()[0]

        list_query, list_params = queries.list_snippets(
            start_date, end_date, group, limit=page_size, offset=(page - 1) * page_size
        )
        cursor.execute(list_query, list_params)
        rows = [_snippet_row(row) for row in cursor.fetchall()]

        return {
            "snippets": rows,
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": math.ceil(total / page_size) if total else 0,
        }
    finally:
        conn.close()


@app.get("/groups")
def groups() -> List[str]:
    """Distinct group names, sorted."""
    conn = _open_db()
    try:
        return get_group_names(conn)
    finally:
        conn.close()


@app.get("/activity")
def activity(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    group: Optional[str] = Query(default=None),
) -> Dict[str, Any]:
    """Daily activity chart as plotly figure JSON."""
    conn = _open_db()
    try:
        query, params = queries.daily_counts_by_type(start_date, end_date, group)
        cursor = conn.execute(query, params)
        rows = [
            {"day": day, "message_type": message_type, "count": count}
            for day, message_type, count in cursor.fetchall()
        ]
    finally:
        conn.close()

    return json.loads(build_activity_figure(rows).to_json())
