"""
Hosted backends: Supabase PostgREST table + Supabase Storage bucket.

Both talk plain REST over httpx; no Supabase SDK is involved.

Endpoints:
    POST /rest/v1/whatsapp_snippets                     bulk insert (one statement)
    GET  /rest/v1/whatsapp_snippets?select=timestamp... watermark lookup
    POST /storage/v1/object/<bucket>/<path>             upload, x-upsert: false
         /storage/v1/object/public/<bucket>/<path>      public URL
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote
import logging

import httpx

from whatsapp_snippets.etl.errors import BlobExistsError, BlobStoreError, RecordStoreError
from whatsapp_snippets.etl.normalizers import parse_iso_timestamp
from whatsapp_snippets.etl.schema import SNIPPETS_TABLE
from whatsapp_snippets.stores import BlobStore, RecordStore

logger = logging.getLogger(__name__)


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(response: httpx.Response) -> str:
    body = _error_body(response)
    message = body.get("message") or body.get("error") or response.text
    return f"{message} (HTTP {response.status_code})"


class _SupabaseClient:
    """Shared httpx client setup: base URL, API key headers, timeout."""

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url.rstrip("/")
        self._headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()


class SupabaseRecordStore(_SupabaseClient, RecordStore):
    """Record store over the PostgREST ``whatsapp_snippets`` endpoint."""

    @property
    def _table_url(self) -> str:
        return f"{self.url}/rest/v1/{SNIPPETS_TABLE}"

    def insert_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        if not rows:
            return 0

        # An array body is inserted by PostgREST in a single statement
        body = json.dumps(list(rows), ensure_ascii=False, default=str)
        headers = {
            **self._headers,
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }
        try:
            response = self._client.post(self._table_url, content=body.encode("utf-8"), headers=headers)
        except httpx.HTTPError as e:
            raise RecordStoreError(str(e)) from e

        if response.is_error:
            raise RecordStoreError(_error_message(response))

        logger.info(f"Inserted {len(rows)} snippets into {SNIPPETS_TABLE}")
        return len(rows)

    def latest_timestamp(self, group_name: Optional[str] = None) -> Optional[datetime]:
        params = {
            "select": "timestamp",
            "order": "timestamp.desc",
            "limit": "1",
            "group_name": f"eq.{group_name}" if group_name is not None else "is.null",
        }
        try:
            response = self._client.get(self._table_url, params=params, headers=self._headers)
        except httpx.HTTPError as e:
            raise RecordStoreError(str(e)) from e

        if response.is_error:
            raise RecordStoreError(_error_message(response))

        try:
            rows = response.json()
        except ValueError as e:
            raise RecordStoreError(f"Unreadable response from {SNIPPETS_TABLE}: {e}") from e
        if not isinstance(rows, list):
            raise RecordStoreError(f"Unexpected response from {SNIPPETS_TABLE}: {rows!r}")
        if not rows:
            return None
        timestamp = rows[0].get("timestamp") if isinstance(rows[0], dict) else None
        return parse_iso_timestamp(timestamp if isinstance(timestamp, str) else None)


class SupabaseBlobStore(_SupabaseClient, BlobStore):
    """Blob store over the Supabase Storage REST API."""

    def __init__(
        self,
        url: str,
        key: str,
        bucket: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        _SupabaseClient.__init__(self, url, key, timeout=timeout, client=client)
        BlobStore.__init__(self, bucket)

    def _object_key(self, path: str) -> str:
        return f"{quote(self.bucket)}/{quote(path.lstrip('/'), safe='/')}"

    def put(self, path: str, data: bytes, content_type: str) -> str:
        url = f"{self.url}/storage/v1/object/{self._object_key(path)}"
        headers = {**self._headers, "Content-Type": content_type, "x-upsert": "false"}
        try:
            response = self._client.post(url, content=data, headers=headers)
        except httpx.HTTPError as e:
            raise BlobStoreError(str(e)) from e

        if response.is_error:
            body = _error_body(response)
            # Storage reports duplicates as 409, or as 400 with statusCode "409"
            duplicate = response.status_code == 409 or (
                str(body.get("statusCode")) == "409" or body.get("error") == "Duplicate"
            )
            if duplicate:
                raise BlobExistsError(
                    f"Object already exists: {self.bucket}/{path}", response.status_code
                )
            raise BlobStoreError(_error_message(response), response.status_code)

        logger.debug(f"Uploaded {len(data)} bytes to {self.bucket}/{path}")
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self._object_key(path)}"
