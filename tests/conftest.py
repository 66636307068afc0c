"""
Pytest fixtures for WhatsApp Snippets tests.

This module provides shared fixtures for the import pipeline and the live
adapter, including a sample export folder and in-memory stores.

Fixture Categories:
    1. Transcript fixtures (sample lines, export folder with media files)
    2. Store fixtures (in-memory record/blob stores that record every call)
    3. Configuration fixtures

Design Notes:
    - Fixtures use tmp_path for isolation between tests
    - Config environment variables are cleared for every test
    - Fake stores implement the real RecordStore/BlobStore contracts
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from whatsapp_snippets.config import Config
from whatsapp_snippets.etl.errors import BlobExistsError, BlobStoreError, RecordStoreError
from whatsapp_snippets.etl.normalizers import parse_iso_timestamp
from whatsapp_snippets.etl.schema import create_schema
from whatsapp_snippets.stores import BlobStore, RecordStore

CONFIG_ENV_VARS = (
    "WHATSAPP_CHAT_FOLDER",
    "WHATSAPP_CHAT_FILE",
    "WHATSAPP_GROUP_NAME",
    "WHATSAPP_CUTOFF",
    "SUPABASE_BUCKET",
    "WHATSAPP_STORAGE_PATH",
    "WHATSAPP_BATCH_LIMIT",
    "WHATSAPP_SNIPPETS_DB_PATH",
    "WHATSAPP_MEDIA_DIR",
    "WHATSAPP_MEDIA_BASE_URL",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "WHATSAPP_BACKEND",
    "WHATSAPP_HTTP_TIMEOUT",
    "LOG_LEVEL",
)

# Seven messages on 2025-10-23, 13:13 to 13:19 UTC
SAMPLE_TRANSCRIPT_LINES = [
    "23/10/25, 1:13 pm - Alice: Hello there",
    "23/10/25, 1:14 pm - Bob: IMG-20251023-WA0001.jpg (file attached)",
    "Nice photo!",
    "23/10/25, 1:15 pm - Alice: second line",
    "continues here",
    "23/10/25, 1:16 pm - +1 555-1234: VID-20251023-WA0002.mp4 (file attached)",
    "",
    "23/10/25, 1:17 pm - Bob: <Media omitted>",
    "23/10/25, 1:18 pm - Alice: DOC-20251023-WA0003.pdf (file attached)",
    "Quarterly report",
    "23/10/25, 1:19 pm - Bob: See you tomorrow",
]

SAMPLE_MEDIA_FILES = {
    "IMG-20251023-WA0001.jpg": b"\xff\xd8\xff\xe0 fake jpeg",
    "VID-20251023-WA0002.mp4": b"\x00\x00\x00\x18ftypmp42 fake mp4",
    "DOC-20251023-WA0003.pdf": b"%PDF-1.4 fake pdf",
}


def pytest_configure(config):
    config.addinivalue_line("markers", "property: Hypothesis property-based tests")


def utc(*args: int) -> datetime:
    """Shorthand for a UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of Config defaults."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# Transcript fixtures
# =============================================================================


@pytest.fixture
def sample_lines() -> List[str]:
    return list(SAMPLE_TRANSCRIPT_LINES)


@pytest.fixture
def chat_folder(tmp_path: Path) -> Path:
    """
    Create an export folder: _chat.txt plus the three media files it references.

    Returns:
        Path to the folder.
    """
    folder = tmp_path / "export"
    folder.mkdir()
    (folder / "_chat.txt").write_text("\n".join(SAMPLE_TRANSCRIPT_LINES) + "\n", encoding="utf-8")
    for name, data in SAMPLE_MEDIA_FILES.items():
        (folder / name).write_bytes(data)
    return folder


# =============================================================================
# In-memory stores
# =============================================================================


class FakeRecordStore(RecordStore):
    """Record store that keeps rows in a list and records every call."""

    def __init__(self, latest: Optional[datetime] = None, fail_with: Optional[str] = None):
        self.rows: List[Dict[str, Any]] = []
        self.insert_calls: List[List[Dict[str, Any]]] = []
        self.latest_calls: List[Optional[str]] = []
        self.fixed_latest = latest
        self.fail_with = fail_with

    def insert_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        self.insert_calls.append(list(rows))
        if self.fail_with:
            raise RecordStoreError(self.fail_with)
        self.rows.extend(rows)
        return len(rows)

    def latest_timestamp(self, group_name: Optional[str] = None) -> Optional[datetime]:
        self.latest_calls.append(group_name)
        if self.fixed_latest is not None:
            return self.fixed_latest
        timestamps = [
            row["timestamp"] for row in self.rows if row.get("group_name") == group_name
        ]
        return parse_iso_timestamp(max(timestamps)) if timestamps else None

    @property
    def write_count(self) -> int:
        return len(self.insert_calls)


class FakeBlobStore(BlobStore):
    """Blob store that keeps objects in a dict, refuses overwrites, can fail per path."""

    BASE_URL = "https://blobs.test"

    def __init__(self, bucket: str = "whatsapp-media", fail_paths: Optional[Set[str]] = None):
        super().__init__(bucket)
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.put_calls: List[str] = []
        self.fail_paths = fail_paths or set()

    def put(self, path: str, data: bytes, content_type: str) -> str:
        self.put_calls.append(path)
        if path in self.fail_paths:
            raise BlobStoreError(f"Simulated failure for {path}", 500)
        if path in self.objects:
            raise BlobExistsError(f"Object already exists: {path}", 409)
        self.objects[path] = data
        self.content_types[path] = content_type
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"{self.BASE_URL}/{self.bucket}/{path}"


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


# =============================================================================
# Configuration fixtures
# =============================================================================


@pytest.fixture
def config(chat_folder: Path, tmp_path: Path) -> Config:
    """Config pointing at the sample export folder, local backend under tmp_path."""
    return Config(
        chat_folder=str(chat_folder),
        group_name="Family",
        storage_path="imports",
        db_path=str(tmp_path / "data" / "snippets.db"),
        media_dir=str(tmp_path / "data" / "media"),
    )


# =============================================================================
# Database fixtures
# =============================================================================


def make_row(minute: int = 13, **overrides: Any) -> Dict[str, Any]:
    """A snippet row in record store layout, at 2025-10-23 13:<minute> UTC."""
    row: Dict[str, Any] = {
        "sender_jid": "alice@s.whatsapp.net",
        "timestamp": f"2025-10-23T13:{minute:02d}:00.000Z",
        "message_type": "text",
        "content": f"message at {minute}",
        "sender_name": "Alice",
        "caption": None,
        "group_name": "Family",
        "is_group": True,
        "raw_message": {"original": f"23/10/25, 1:{minute:02d} pm - Alice: message"},
    }
    row.update(overrides)
    return row


@pytest.fixture
def empty_snippets_db(tmp_path: Path) -> Path:
    """Create an empty snippets database with the schema applied."""
    db_path = tmp_path / "snippets.db"
    create_schema(db_path)
    return db_path
