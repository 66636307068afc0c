"""
ETL (Extract, Transform, Load) module for WhatsApp Snippets.

Architecture Overview:
    _chat.txt + media files          record store / blob store
    ├── extractors (state machine) → whatsapp_snippets (one row per message)
    ├── classifier / identity      → <bucket>/<storage_path>/<media file>
    ├── watermark
    └── media

Key Design Decisions:
    1. The transcript is the source of truth; it is never modified
    2. Every record is normalized before it reaches a store
       (UTC timestamps, derived sender JIDs, one message type)
    3. Incremental import via a cutoff watermark (strictly-after)
    4. One bulk insert per run; media failures only degrade single records

The orchestrator (run_import) lives in whatsapp_snippets.etl.pipeline and the
store backends in whatsapp_snippets.stores.
"""

from whatsapp_snippets.etl.schema import create_schema, SCHEMA_VERSION
from whatsapp_snippets.etl.errors import (
    ImportPipelineError,
    MalformedTimestamp,
    ChatFileNotFound,
    MediaNotFound,
    MediaUploadFailed,
    BulkInsertFailed,
    LiveEventProcessingFailed,
)
from whatsapp_snippets.etl.normalizers import (
    parse_whatsapp_timestamp,
    format_timestamp,
    is_group_jid,
)
from whatsapp_snippets.etl.identity import generate_sender_jid
from whatsapp_snippets.etl.classifier import classify_text, classify_payload, Classification
from whatsapp_snippets.etl.extractors import (
    extract_messages,
    parse_transcript,
    TranscriptParser,
    MessageRecord,
    ParseResult,
)
from whatsapp_snippets.etl.watermark import filter_new_messages
from whatsapp_snippets.etl.loaders import insert_snippets, update_etl_state, get_etl_state

__all__ = [
    # Schema
    "create_schema",
    "SCHEMA_VERSION",
    # Errors
    "ImportPipelineError",
    "MalformedTimestamp",
    "ChatFileNotFound",
    "MediaNotFound",
    "MediaUploadFailed",
    "BulkInsertFailed",
    "LiveEventProcessingFailed",
    # Normalizers
    "parse_whatsapp_timestamp",
    "format_timestamp",
    "is_group_jid",
    # Identity
    "generate_sender_jid",
    # Classifier
    "classify_text",
    "classify_payload",
    "Classification",
    # Extractors
    "extract_messages",
    "parse_transcript",
    "TranscriptParser",
    "MessageRecord",
    "ParseResult",
    # Watermark
    "filter_new_messages",
    # Loaders
    "insert_snippets",
    "update_etl_state",
    "get_etl_state",
]
