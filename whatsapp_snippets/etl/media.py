"""
Media resolution: local export files and live downloads -> blob store URLs.

Transcript path:
    <chat_folder>/<filename> is stored at <storage_path>/<filename>. The key is
    deterministic, so a second run over overlapping exports hits objects that
    already exist; those are treated as already uploaded and their public URL
    is reused.

Live path:
    Downloaded bytes are stored at <uuid4>_<sanitized timestamp>.<ext>, which
    never collides.

Any failure yields a MediaOutcome carrying the error; the record's content
then becomes MEDIA_UPLOAD_FAILED. Nothing here raises for a single bad file.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
import logging
import uuid

from whatsapp_snippets.etl.errors import (
    BlobExistsError,
    BlobStoreError,
    MediaError,
    MediaNotFound,
    MediaUploadFailed,
)
from whatsapp_snippets.etl.normalizers import sanitize_timestamp_for_path
from whatsapp_snippets.stores import BlobStore

logger = logging.getLogger(__name__)

MEDIA_UPLOAD_FAILED = "Media upload failed"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Transcript path: content type from the file extension
CONTENT_TYPES: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".opus": "audio/opus",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

# Live path: extension from the declared MIME type
MIME_EXTENSIONS: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}

# Live path fallbacks when no MIME type is declared
DEFAULT_MIME_TYPES: Dict[str, str] = {
    "image": "image/jpeg",
    "video": "video/mp4",
    "audio": "audio/ogg",
    "document": DEFAULT_CONTENT_TYPE,
}

DEFAULT_EXTENSIONS: Dict[str, str] = {
    "image": "jpg",
    "video": "mp4",
    "audio": "ogg",
    "document": "pdf",
}


def content_type_for_filename(filename: str) -> str:
    """
    Infer a content type from a filename extension.

    Examples:
        >>> content_type_for_filename("IMG-2025-001.JPG")
        'image/jpeg'
        >>> content_type_for_filename("notes.xyz")
        'application/octet-stream'
    """
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


def _base_mime(mime_type: str) -> str:
    # "audio/ogg; codecs=opus" -> "audio/ogg"
    return mime_type.split(";", 1)[0].strip().lower()


def resolve_live_media_type(message_type: str, mime_type: Optional[str]) -> str:
    """Declared MIME type if present, else the per-type default."""
    if mime_type:
        return mime_type
    return DEFAULT_MIME_TYPES.get(message_type, DEFAULT_CONTENT_TYPE)


def extension_for(message_type: str, mime_type: Optional[str]) -> str:
    """
    File extension for a live upload.

    A declared MIME type decides on its own (unknown ones give "bin");
    without one the per-type default is used.
    """
    if mime_type:
        return MIME_EXTENSIONS.get(_base_mime(mime_type), "bin")
    return DEFAULT_EXTENSIONS.get(message_type, "bin")


@dataclass(frozen=True)
class MediaOutcome:
    """Result of resolving one media reference."""

    url: Optional[str] = None
    error: Optional[MediaError] = None

    @property
    def ok(self) -> bool:
        return self.url is not None

    @property
    def content(self) -> str:
        """What the record's content becomes: the URL or the failure placeholder."""
        return self.url if self.url is not None else MEDIA_UPLOAD_FAILED


class MediaUploader:
    """
    Puts media into a blob store.

    Args:
        blob_store: Destination store.
        chat_folder: Export folder holding transcript media (transcript path).
        storage_path: Key prefix for transcript media.
    """

    def __init__(self, blob_store: BlobStore, chat_folder: Optional[Path] = None, storage_path: str = ""):
        self.blob_store = blob_store
        self.chat_folder = Path(chat_folder) if chat_folder is not None else Path.cwd()
        self.storage_path = storage_path.strip("/")

    def storage_key(self, filename: str) -> str:
        """Deterministic key for a transcript media file."""
        if self.storage_path:
            return f"{self.storage_path}/{filename}"
        return filename

    def upload_file(self, filename: str) -> MediaOutcome:
        """
        Upload a transcript media file from the export folder.

        An object already stored under the same key is reused.
        """
        file_path = self.chat_folder / filename
        if not file_path.is_file():
            logger.warning(f"Media file not found: {filename}")
            return MediaOutcome(error=MediaNotFound(f"Media file not found: {filename}", filename))

        key = self.storage_key(filename)
        try:
            data = file_path.read_bytes()
            url = self.blob_store.put(key, data, content_type_for_filename(filename))
        except BlobExistsError:
            logger.info(f"Media already uploaded, reusing: {key}")
            return MediaOutcome(url=self.blob_store.public_url(key))
        except (BlobStoreError, OSError) as e:
            logger.warning(f"Error uploading {filename}: {e}")
            return MediaOutcome(error=MediaUploadFailed(str(e), filename))

        return MediaOutcome(url=url)

    def upload_bytes(
        self,
        data: Optional[bytes],
        message_type: str,
        mime_type: Optional[str],
        timestamp: datetime,
    ) -> MediaOutcome:
        """
        Upload downloaded live media under a fresh unique key.

        Args:
            data: Media bytes; None or empty means the download produced nothing.
            message_type: image/video/audio/document.
            mime_type: Declared MIME type, if the event carried one.
            timestamp: Message instant, part of the key.
        """
        if not data:
            return MediaOutcome(error=MediaUploadFailed("No media bytes to upload"))

        key = f"{uuid.uuid4()}_{sanitize_timestamp_for_path(timestamp)}.{extension_for(message_type, mime_type)}"
        try:
            url = self.blob_store.put(key, data, resolve_live_media_type(message_type, mime_type))
        except BlobStoreError as e:
            logger.warning(f"Error uploading live {message_type} media: {e}")
            return MediaOutcome(error=MediaUploadFailed(str(e), key))

        return MediaOutcome(url=url)
