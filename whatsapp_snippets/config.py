"""
Configuration module for WhatsApp Snippets.

One Config object carries everything the import pipeline and the live
capture adapter need; both receive it explicitly at construction time.
Every option can be given as a constructor argument and otherwise falls back
to an environment variable, then to a default.

Options:
    chat_folder / chat_file   Export folder and the transcript inside it
    group_name                Group the transcript belongs to (None for 1:1)
    cutoff_instant            Watermark: only messages strictly after it are new
    storage_bucket            Blob store bucket for media
    storage_path              Key prefix for transcript media
    batch_limit               Optional cap on new messages per run
    backend                   'sqlite' (local) or 'supabase' (hosted)
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

BACKENDS = ("sqlite", "supabase")


def _parse_cutoff(value: str) -> datetime:
    """Parse an ISO-8601 cutoff ('2025-10-05T21:14:00Z'); naive values are UTC."""
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Cutoff is not ISO-8601: {value!r}") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


class Config:
    """Configuration class for WhatsApp Snippets."""

    DEFAULT_CHAT_FILE = "_chat.txt"
    DEFAULT_STORAGE_BUCKET = "whatsapp-media"
    DEFAULT_STORAGE_PATH = "imports"
    DEFAULT_BACKEND = "sqlite"
    DEFAULT_HTTP_TIMEOUT = 30.0

    # Local data directory for the SQLite store and the local blob store
    DEFAULT_DATA_PATH = Path.home() / ".whatsapp_snippets"
    DEFAULT_DB_NAME = "snippets.db"
    DEFAULT_MEDIA_DIR_NAME = "media"

    def __init__(
        self,
        chat_folder: Optional[str] = None,
        chat_file: Optional[str] = None,
        group_name: Optional[str] = None,
        cutoff_instant: Optional[datetime] = None,
        storage_bucket: Optional[str] = None,
        storage_path: Optional[str] = None,
        batch_limit: Optional[int] = None,
        db_path: Optional[str] = None,
        media_dir: Optional[str] = None,
        media_base_url: Optional[str] = None,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        backend: Optional[str] = None,
        use_store_watermark: bool = True,
        http_timeout: Optional[float] = None,
    ):
        """
        Initialize configuration.

        Args:
            chat_folder: Folder holding the transcript and its media files.
                    Defaults to WHATSAPP_CHAT_FOLDER, then the current directory.
            chat_file: Transcript file name inside chat_folder.
            group_name: Group name stamped on imported records.
            cutoff_instant: Tz-aware watermark. Defaults to WHATSAPP_CUTOFF (ISO-8601).
            storage_bucket: Media bucket name.
            storage_path: Key prefix for transcript media uploads.
            batch_limit: Maximum number of new messages per run.
            db_path: SQLite snippets database (sqlite backend).
            media_dir: Root directory of the local blob store (sqlite backend).
            media_base_url: Public base URL of the local blob store.
            supabase_url: Supabase project URL (supabase backend).
            supabase_key: Supabase API key (supabase backend).
            backend: 'sqlite' or 'supabase'.
            use_store_watermark: Also skip messages not newer than the latest
                    stored one for the same group.
            http_timeout: Timeout in seconds for hosted store requests.
        """
        folder = chat_folder or os.getenv("WHATSAPP_CHAT_FOLDER")
        self._chat_folder = Path(folder) if folder else Path.cwd()
        self._chat_file = chat_file or os.getenv("WHATSAPP_CHAT_FILE") or self.DEFAULT_CHAT_FILE
        self._group_name = group_name or os.getenv("WHATSAPP_GROUP_NAME") or None

        if cutoff_instant is None:
            raw_cutoff = os.getenv("WHATSAPP_CUTOFF")
            if raw_cutoff:
                cutoff_instant = _parse_cutoff(raw_cutoff)
        if cutoff_instant is not None and cutoff_instant.tzinfo is None:
            raise ValueError("cutoff_instant must be timezone-aware")
        self._cutoff_instant = cutoff_instant

        self._storage_bucket = (
            storage_bucket or os.getenv("SUPABASE_BUCKET") or self.DEFAULT_STORAGE_BUCKET
        )
        self._storage_path = (
            storage_path or os.getenv("WHATSAPP_STORAGE_PATH") or self.DEFAULT_STORAGE_PATH
        ).strip("/")

        self._batch_limit = batch_limit if batch_limit is not None else _env_int("WHATSAPP_BATCH_LIMIT")
        if self._batch_limit is not None and self._batch_limit < 0:
            raise ValueError(f"batch_limit must be non-negative, got {self._batch_limit}")

        db = db_path or os.getenv("WHATSAPP_SNIPPETS_DB_PATH")
        self._db_path = Path(db) if db else self.DEFAULT_DATA_PATH / self.DEFAULT_DB_NAME

        media = media_dir or os.getenv("WHATSAPP_MEDIA_DIR")
        self._media_dir = Path(media) if media else self.DEFAULT_DATA_PATH / self.DEFAULT_MEDIA_DIR_NAME
        self._media_base_url = media_base_url or os.getenv("WHATSAPP_MEDIA_BASE_URL") or None

        self._supabase_url = (supabase_url or os.getenv("SUPABASE_URL") or "").rstrip("/") or None
        self._supabase_key = supabase_key or os.getenv("SUPABASE_KEY") or None

        self._backend = (backend or os.getenv("WHATSAPP_BACKEND") or self.DEFAULT_BACKEND).lower()
        if self._backend not in BACKENDS:
            raise ValueError(f"Unknown backend {self._backend!r}; expected one of {BACKENDS}")

        self._use_store_watermark = use_store_watermark

        if http_timeout is None:
            raw_timeout = os.getenv("WHATSAPP_HTTP_TIMEOUT")
            http_timeout = float(raw_timeout) if raw_timeout else self.DEFAULT_HTTP_TIMEOUT
        self._http_timeout = http_timeout

    @property
    def chat_folder(self) -> Path:
        """Folder holding the transcript and its exported media."""
        return self._chat_folder

    @property
    def chat_file(self) -> str:
        return self._chat_file

    @property
    def chat_path(self) -> Path:
        """Full path to the transcript file."""
        return self._chat_folder / self._chat_file

    @property
    def group_name(self) -> Optional[str]:
        return self._group_name

    @property
    def cutoff_instant(self) -> Optional[datetime]:
        return self._cutoff_instant

    @property
    def storage_bucket(self) -> str:
        return self._storage_bucket

    @property
    def storage_path(self) -> str:
        return self._storage_path

    @property
    def batch_limit(self) -> Optional[int]:
        return self._batch_limit

    @property
    def db_path(self) -> Path:
        """SQLite snippets database (sqlite backend)."""
        return self._db_path

    @property
    def db_path_str(self) -> str:
        return str(self._db_path)

    @property
    def media_dir(self) -> Path:
        """Root of the local blob store (sqlite backend)."""
        return self._media_dir

    @property
    def media_base_url(self) -> Optional[str]:
        return self._media_base_url

    @property
    def supabase_url(self) -> Optional[str]:
        return self._supabase_url

    @property
    def supabase_key(self) -> Optional[str]:
        return self._supabase_key

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def use_store_watermark(self) -> bool:
        return self._use_store_watermark

    @property
    def http_timeout(self) -> float:
        return self._http_timeout

    def validate(self) -> bool:
        """
        Validate that the transcript exists and is readable.

        Returns:
            True if the chat file exists and is readable, False otherwise.
        """
        path = self.chat_path
        return path.is_file() and os.access(path, os.R_OK)

    def validate_backend(self) -> bool:
        """Check that the selected backend has the settings it needs."""
        if self._backend == "supabase":
            return bool(self._supabase_url and self._supabase_key)
        return True

    def ensure_data_dir(self) -> None:
        """Create the local data directories if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._media_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
_config: Optional[Config] = None


def get_config(**overrides) -> Config:
    """
    Get or create the global configuration instance.

    Passing any keyword override builds a fresh instance.

    Returns:
        Config instance.
    """
    global _config
    if _config is None or overrides:
        _config = Config(**overrides)
    return _config


def set_config(config: Config) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Config instance to use.
    """
    global _config
    _config = config
