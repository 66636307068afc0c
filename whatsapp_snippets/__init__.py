"""
WhatsApp Snippets - import WhatsApp chats into a queryable snippet store.

This package provides functionality to:
- Parse "Export chat" transcripts into normalized message records
- Upload exported media and insert new messages incrementally
- Capture messages from a live session with the same normalization
- Browse stored snippets through a read-only API
"""

__version__ = "0.1.0"

from whatsapp_snippets.config import get_config, Config

__all__ = [
    "get_config",
    "Config",
]
