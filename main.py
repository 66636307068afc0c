#!/usr/bin/env python3
"""
Main entry point for WhatsApp Snippets.

Imports new messages from a WhatsApp "Export chat" folder into the snippet
store. Use --dry-run to preview what would be imported without writing,
--status to see what the local database holds, and --chart to write the
daily activity chart.
"""
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional
import argparse
import sqlite3
import sys

from whatsapp_snippets import queries
from whatsapp_snippets.config import BACKENDS, get_config
from whatsapp_snippets.etl.errors import StoreError
from whatsapp_snippets.etl.normalizers import format_timestamp
from whatsapp_snippets.etl.pipeline import (
    UploadProgress,
    get_import_status,
    render_preview,
    run_import,
)
from whatsapp_snippets.etl.schema import verify_schema
from whatsapp_snippets.logger_config import setup_logging
from whatsapp_snippets.stores import create_stores
from whatsapp_snippets.visualization import write_activity_chart

# ANSI codes for terminal output
HEADER = "\033[95m"
OK = "\033[92m"
FAIL = "\033[91m"
BOLD = "\033[1m"
RESET = "\033[0m"

# Setup logging (LOG_LEVEL env var, default INFO)
setup_logging()


def print_section(title: str) -> None:
    """Print a formatted section title."""
    print(f"\n{BOLD}{HEADER}{'=' * 60}{RESET}")
    print(f"{BOLD}{HEADER}{title}{RESET}")
    print(f"{BOLD}{HEADER}{'=' * 60}{RESET}\n")


def print_type_counts(title: str, counts: Dict[str, int]) -> None:
    """Print snippet counts per message type, one aligned row each."""
    print(f"\n{BOLD}{title}:{RESET}")
    if not counts:
        print("  (none)")
    for message_type, count in counts.items():
        print(f"  {message_type:10s}: {count:>8,}")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def _iso_instant(value: str) -> datetime:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 instant: {value!r}") from None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import a WhatsApp chat export into the snippet store."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and preview only; nothing is uploaded or inserted.",
    )
    parser.add_argument(
        "--limit",
        type=_non_negative_int,
        default=None,
        help="Import at most N new messages (default: all, or WHATSAPP_BATCH_LIMIT).",
    )
    parser.add_argument(
        "--chat-folder",
        default=None,
        help="Export folder with _chat.txt and media (default: WHATSAPP_CHAT_FOLDER or cwd).",
    )
    parser.add_argument(
        "--chat-file",
        default=None,
        help="Transcript file name inside the folder (default: _chat.txt).",
    )
    parser.add_argument(
        "--group-name",
        default=None,
        help="Group the export belongs to; omit for a 1:1 chat.",
    )
    parser.add_argument(
        "--cutoff",
        type=_iso_instant,
        default=None,
        help="Only import messages strictly after this ISO-8601 instant.",
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=None,
        help="Store backend (default: WHATSAPP_BACKEND or sqlite).",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="SQLite snippets database (sqlite backend).",
    )
    parser.add_argument(
        "--media-dir",
        default=None,
        help="Local media directory (sqlite backend).",
    )
    parser.add_argument(
        "--no-store-watermark",
        action="store_true",
        help="Ignore the newest stored message; use only --cutoff.",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show what the local snippets database holds, then exit.",
    )
    parser.add_argument(
        "--chart",
        metavar="HTML_FILE",
        default=None,
        help="Write the daily activity chart of the local database to HTML_FILE, then exit.",
    )
    return parser.parse_args(argv)


def _print_progress(progress: UploadProgress) -> None:
    print(
        f"\r[UPLOAD] Progress: {progress.done}/{progress.total} "
        f"({progress.uploaded} uploaded, {progress.failed} failed)",
        end="",
        flush=True,
    )
    if progress.done == progress.total:
        print()


def _fail(message: str) -> None:
    print(f"{FAIL}Error: {message}{RESET}")
    sys.exit(1)


def _show_status(db_path: Path) -> None:
    print_section("Snippets Database")
    status = get_import_status(db_path)
    print(f"Database: {db_path}")
    if not status["exists"]:
        print("No snippets database yet. Run an import first.")
        return
    if not status["schema_valid"]:
        _fail("Not a snippets database (missing tables)")
        return

    print(f"Schema version: {status['schema_version']}")
    print(f"Total snippets: {status['snippet_count']:,}")
    print(f"Last import: {status['last_import'] or 'never'}")
    print(f"Latest message: {status['last_message_date'] or 'none'}")

    print_type_counts("Snippets by type", status["counts_by_type"])

    print(f"\n{BOLD}Groups:{RESET}")
    for group in status["groups"]:
        print(f"  - {group}")


def _write_chart(db_path: Path, output_file: str) -> None:
    if not verify_schema(db_path):
        _fail(f"No snippets database at {db_path}")
        return

    query, params = queries.daily_counts_by_type()
    with closing(sqlite3.connect(str(db_path))) as conn:
        rows = [
            {"day": day, "message_type": message_type, "count": count}
            for day, message_type, count in conn.execute(query, params).fetchall()
        ]

    path = write_activity_chart(rows, output_file)
    print(f"{OK}Activity chart written to {path}{RESET}")


def main(argv: Optional[List[str]] = None):
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    try:
        config = get_config(
            chat_folder=args.chat_folder,
            chat_file=args.chat_file,
            group_name=args.group_name,
            cutoff_instant=args.cutoff,
            backend=args.backend,
            db_path=args.db_path,
            media_dir=args.media_dir,
            use_store_watermark=not args.no_store_watermark,
        )
    except ValueError as e:
        _fail(str(e))
        return

    if args.status or args.chart:
        if args.status:
            _show_status(config.db_path)
        if args.chart:
            _write_chart(config.db_path, args.chart)
        return

    if not config.validate():
        print(f"{FAIL}Error: Chat file not found or not readable.{RESET}")
        print("Expected the transcript at:")
        print(f"  {config.chat_path}")
        sys.exit(1)

    try:
        record_store, blob_store = create_stores(config)
    except (ValueError, StoreError) as e:
        _fail(str(e))
        return

    print(f"{OK}Using transcript: {config.chat_path}{RESET}")
    print_section("Dry Run" if args.dry_run else "Import")

    result = run_import(
        config,
        record_store,
        blob_store,
        dry_run=args.dry_run,
        limit=args.limit,
        on_progress=_print_progress,
    )

    if not result.success:
        _fail(result.error or "import failed")
        return

    cutoff = format_timestamp(result.cutoff) if result.cutoff else "the beginning"
    print(
        f"[PREP] Parsed {result.messages_parsed} messages ({result.malformed_lines} malformed lines, "
        f"{result.dropped_lines} dropped)"
    )
    print(f"[FILTER] {result.messages_new} new messages after {cutoff}")
    print(f"[LIMIT] {result.messages_selected} selected")

    print_type_counts("Messages breakdown", result.breakdown)

    if args.dry_run:
        print_section("Preview")
        print(render_preview(result.preview) or "(nothing to import)")
        print(f"\n{OK}DRY RUN COMPLETE - No data was imported{RESET}")
        return

    if result.media_total:
        print(f"[UPLOAD] Complete: {result.media_uploaded} uploaded, {result.media_failed} failed")
    print(f"[INSERT] Inserted {result.messages_inserted} messages")

    print_section("Summary")
    print(result)


if __name__ == '__main__':
    main()
