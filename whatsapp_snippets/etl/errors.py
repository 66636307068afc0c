"""
Error taxonomy for the import pipeline and live capture path.

Fatal vs. isolated handling:
    - MalformedTimestamp: recovered by the transcript parser (line consumed, warning logged)
    - ChatFileNotFound: fatal, raised before any side effects
    - MediaNotFound / MediaUploadFailed: non-fatal, the record gets a placeholder
    - BulkInsertFailed: fatal for the run, no partial commit
    - LiveEventProcessingFailed: isolated to a single live event

Store backends raise RecordStoreError / BlobStoreError; the orchestrator and the
live adapter translate those into the errors above.
"""

from pathlib import Path
from typing import Optional


class ImportPipelineError(Exception):
    """Base class for all pipeline errors."""


class MalformedTimestamp(ImportPipelineError, ValueError):
    """Date/time components could not be turned into an instant."""


class ChatFileNotFound(ImportPipelineError, FileNotFoundError):
    """The transcript file does not exist."""

    def __init__(self, path: Path):
        super().__init__(f"Chat file not found: {path}")
        self.path = path


class MediaError(ImportPipelineError):
    """Base class for non-fatal media failures."""

    def __init__(self, message: str, media_ref: Optional[str] = None):
        super().__init__(message)
        self.media_ref = media_ref


class MediaNotFound(MediaError):
    """A media marker points at a file missing from the export folder."""


class MediaUploadFailed(MediaError):
    """The blob store rejected an upload (or the bytes could not be obtained)."""


class BulkInsertFailed(ImportPipelineError):
    """The record store rejected the batch insert."""


class LiveEventProcessingFailed(ImportPipelineError):
    """A single live event could not be normalized or stored."""


# =============================================================================
# Store backend errors
# =============================================================================


class StoreError(Exception):
    """Base class for storage backend errors."""


class RecordStoreError(StoreError):
    """Record store operation failed. The message is the backend's own."""


class BlobStoreError(StoreError):
    """Blob store operation failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BlobExistsError(BlobStoreError):
    """An object already exists at the requested path (no overwrite)."""
