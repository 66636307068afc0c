"""
Tests for the local store backends and backend selection.
"""

from pathlib import Path

import pytest

from whatsapp_snippets.config import Config
from whatsapp_snippets.etl.errors import BlobExistsError, BlobStoreError, RecordStoreError
from whatsapp_snippets.stores import LocalBlobStore, SQLiteRecordStore, create_stores
from whatsapp_snippets.supabase import SupabaseBlobStore, SupabaseRecordStore

from conftest import make_row, utc


class TestSQLiteRecordStore:
    """Tests for SQLiteRecordStore."""

    def test_creates_schema(self, tmp_path: Path):
        db_path = tmp_path / "nested" / "snippets.db"
        SQLiteRecordStore(db_path)
        assert db_path.exists()

    def test_insert_and_latest(self, tmp_path: Path):
        store = SQLiteRecordStore(tmp_path / "snippets.db")

        assert store.latest_timestamp("Family") is None
        assert store.insert_many([make_row(13), make_row(17)]) == 2
        assert store.latest_timestamp("Family") == utc(2025, 10, 23, 13, 17)
        assert store.latest_timestamp(None) is None

    def test_insert_one(self, tmp_path: Path):
        store = SQLiteRecordStore(tmp_path / "snippets.db")
        store.insert_one(make_row(13, group_name=None, is_group=False))
        assert store.latest_timestamp(None) == utc(2025, 10, 23, 13, 13)

    def test_empty_batch(self, tmp_path: Path):
        store = SQLiteRecordStore(tmp_path / "snippets.db")
        assert store.insert_many([]) == 0

    def test_rejected_batch_raises_store_error(self, tmp_path: Path):
        store = SQLiteRecordStore(tmp_path / "snippets.db")

        with pytest.raises(RecordStoreError, match="CHECK constraint failed"):
            store.insert_many([make_row(13), make_row(14, message_type="sticker")])

        assert store.latest_timestamp("Family") is None


class TestLocalBlobStore:
    """Tests for LocalBlobStore."""

    def test_put_writes_file(self, tmp_path: Path):
        store = LocalBlobStore(tmp_path / "media", "whatsapp-media", "https://cdn.test")

        url = store.put("imports/IMG-1.jpg", b"jpeg", "image/jpeg")

        assert url == "https://cdn.test/whatsapp-media/imports/IMG-1.jpg"
        assert (tmp_path / "media" / "whatsapp-media" / "imports" / "IMG-1.jpg").read_bytes() == b"jpeg"

    def test_refuses_overwrite(self, tmp_path: Path):
        store = LocalBlobStore(tmp_path / "media", "whatsapp-media")
        store.put("a.jpg", b"first", "image/jpeg")

        with pytest.raises(BlobExistsError):
            store.put("a.jpg", b"second", "image/jpeg")

        assert (tmp_path / "media" / "whatsapp-media" / "a.jpg").read_bytes() == b"first"

    def test_rejects_path_outside_bucket(self, tmp_path: Path):
        store = LocalBlobStore(tmp_path / "media", "whatsapp-media")
        with pytest.raises(BlobStoreError):
            store.put("../escape.txt", b"x", "text/plain")

    def test_default_url_is_file_uri(self, tmp_path: Path):
        store = LocalBlobStore(tmp_path / "media", "whatsapp-media")
        url = store.public_url("imports/My File.jpg")

        assert url.startswith("file://")
        assert url.endswith("/whatsapp-media/imports/My%20File.jpg")


class TestCreateStores:
    """Tests for create_stores()."""

    def test_local_backend(self, tmp_path: Path):
        config = Config(db_path=str(tmp_path / "data" / "snippets.db"), media_dir=str(tmp_path / "media"))

        record_store, blob_store = create_stores(config)

        assert isinstance(record_store, SQLiteRecordStore)
        assert isinstance(blob_store, LocalBlobStore)
        assert blob_store.bucket == "whatsapp-media"
        assert (tmp_path / "media").is_dir()

    def test_supabase_requires_settings(self):
        config = Config(backend="supabase")
        with pytest.raises(ValueError, match="SUPABASE_URL"):
            create_stores(config)

    def test_supabase_backend(self):
        config = Config(
            backend="supabase",
            supabase_url="https://project.supabase.co/",
            supabase_key="secret",
            storage_bucket="media",
        )

        record_store, blob_store = create_stores(config)

        assert isinstance(record_store, SupabaseRecordStore)
        assert isinstance(blob_store, SupabaseBlobStore)
        assert blob_store.public_url("a.jpg") == "https://project.supabase.co/storage/v1/object/public/media/a.jpg"
        record_store.close()
        blob_store.close()
