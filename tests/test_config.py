"""
Tests for config.py configuration module.

Tests option resolution (argument, then environment, then default),
validation, and global config management.
"""

from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from whatsapp_snippets.config import BACKENDS, Config, get_config, set_config

from conftest import utc


@pytest.fixture
def sample_chat(tmp_path: Path) -> Path:
    """Create an export folder with an empty transcript."""
    folder = tmp_path / "export"
    folder.mkdir()
    (folder / "_chat.txt").write_text("", encoding="utf-8")
    return folder


class TestConfigInit:
    """Tests for Config initialization."""

    def test_defaults(self, tmp_path: Path):
        """Unset options fall back to the documented defaults."""
        with patch.object(Path, "cwd", return_value=tmp_path):
            config = Config()

        assert config.chat_folder == tmp_path
        assert config.chat_file == "_chat.txt"
        assert config.group_name is None
        assert config.cutoff_instant is None
        assert config.storage_bucket == "whatsapp-media"
        assert config.storage_path == "imports"
        assert config.batch_limit is None
        assert config.backend == "sqlite"
        assert config.use_store_watermark is True
        assert config.http_timeout == 30.0

    def test_explicit_values(self, sample_chat: Path):
        config = Config(
            chat_folder=str(sample_chat),
            chat_file="chat.txt",
            group_name="Family",
            cutoff_instant=utc(2025, 10, 5, 21, 14),
            storage_bucket="media",
            storage_path="/exports/family/",
            batch_limit=10,
        )

        assert config.chat_path == sample_chat / "chat.txt"
        assert config.group_name == "Family"
        assert config.cutoff_instant == utc(2025, 10, 5, 21, 14)
        assert config.storage_bucket == "media"
        assert config.storage_path == "exports/family"
        assert config.batch_limit == 10

    def test_environment_fallback(self, sample_chat: Path, monkeypatch: pytest.MonkeyPatch):
        """Environment variables are used when no argument is given."""
        monkeypatch.setenv("WHATSAPP_CHAT_FOLDER", str(sample_chat))
        monkeypatch.setenv("WHATSAPP_GROUP_NAME", "Family")
        monkeypatch.setenv("WHATSAPP_CUTOFF", "2025-10-05T21:14:00Z")
        monkeypatch.setenv("WHATSAPP_BATCH_LIMIT", "25")
        monkeypatch.setenv("SUPABASE_BUCKET", "chat-media")

        config = Config()

        assert config.chat_folder == sample_chat
        assert config.group_name == "Family"
        assert config.cutoff_instant == utc(2025, 10, 5, 21, 14)
        assert config.batch_limit == 25
        assert config.storage_bucket == "chat-media"

    def test_argument_beats_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WHATSAPP_GROUP_NAME", "Family")
        assert Config(group_name="Work").group_name == "Work"

    def test_naive_cutoff_env_is_utc(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WHATSAPP_CUTOFF", "2025-10-05T21:14:00")
        assert Config().cutoff_instant == utc(2025, 10, 5, 21, 14)

    def test_invalid_cutoff_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WHATSAPP_CUTOFF", "last tuesday")
        with pytest.raises(ValueError, match="ISO-8601"):
            Config()

    def test_naive_cutoff_argument_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            Config(cutoff_instant=datetime(2025, 10, 5, 21, 14))

    def test_invalid_batch_limit_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WHATSAPP_BATCH_LIMIT", "many")
        with pytest.raises(ValueError, match="WHATSAPP_BATCH_LIMIT"):
            Config()

    def test_negative_batch_limit(self):
        with pytest.raises(ValueError, match="non-negative"):
            Config(batch_limit=-1)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown backend"):
            Config(backend="mongo")

    def test_backend_is_case_insensitive(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WHATSAPP_BACKEND", "SUPABASE")
        assert Config().backend == "supabase"
        assert Config().backend in BACKENDS

    def test_supabase_url_trailing_slash(self):
        config = Config(supabase_url="https://project.supabase.co/")
        assert config.supabase_url == "https://project.supabase.co"


class TestConfigPaths:
    """Tests for local data paths."""

    def test_default_db_path(self):
        config = Config()
        assert config.db_path == Config.DEFAULT_DATA_PATH / Config.DEFAULT_DB_NAME
        assert config.db_path_str == str(config.db_path)

    def test_db_path_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WHATSAPP_SNIPPETS_DB_PATH", str(tmp_path / "x.db"))
        assert Config().db_path == tmp_path / "x.db"

    def test_ensure_data_dir(self, tmp_path: Path):
        config = Config(db_path=str(tmp_path / "data" / "s.db"), media_dir=str(tmp_path / "blobs"))

        config.ensure_data_dir()

        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "blobs").is_dir()


class TestConfigValidation:
    """Tests for Config.validate() and validate_backend()."""

    def test_validate_with_existing_file(self, sample_chat: Path):
        assert Config(chat_folder=str(sample_chat)).validate() is True

    def test_validate_with_nonexistent_file(self, tmp_path: Path):
        assert Config(chat_folder=str(tmp_path)).validate() is False

    def test_validate_with_directory(self, sample_chat: Path):
        (sample_chat / "folder.txt").mkdir()
        assert Config(chat_folder=str(sample_chat), chat_file="folder.txt").validate() is False

    def test_local_backend_needs_nothing(self):
        assert Config().validate_backend() is True

    def test_supabase_needs_url_and_key(self):
        assert Config(backend="supabase").validate_backend() is False
        assert Config(backend="supabase", supabase_url="https://p.supabase.co").validate_backend() is False
        assert (
            Config(backend="supabase", supabase_url="https://p.supabase.co", supabase_key="k").validate_backend()
            is True
        )


class TestGlobalConfig:
    """Tests for get_config and set_config functions."""

    def test_get_config_creates_instance(self):
        """get_config should create Config instance."""
        import whatsapp_snippets.config as config_module

        config_module._config = None

        config = get_config()
        assert isinstance(config, Config)

    def test_get_config_returns_same_instance(self):
        """get_config should return same instance on subsequent calls."""
        import whatsapp_snippets.config as config_module

        config_module._config = None

        config1 = get_config()
        config2 = get_config()
        assert config1 is config2

    def test_get_config_with_overrides_creates_new(self):
        """Overrides always build a fresh instance."""
        config1 = get_config()
        config2 = get_config(group_name="Family")

        assert config2 is not config1
        assert config2.group_name == "Family"

    def test_set_config(self, sample_chat: Path):
        """set_config should replace global config."""
        import whatsapp_snippets.config as config_module

        new_config = Config(chat_folder=str(sample_chat))
        set_config(new_config)

        assert config_module._config is new_config
