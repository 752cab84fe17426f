"""
service.py — Parse half of the ingestion pipeline: resolve → fetch → extract.

The HTTP client is created once in the FastAPI lifespan (app.state.http_client)
and passed in, so connection pooling is shared and tests can inject an
httpx.MockTransport.

Download buffers are dropped on every exit path; only the extracted text leaves
this module.
"""
from __future__ import annotations

import logging
import os
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from intake.config import settings
from intake.errors import DownloadFailed, PayloadTooLarge
from intake.ingestion.extractor import extract_text
from intake.ingestion.schemas import ParsedDocument
from intake.ingestion.storage import StorageConfig, resolve_download_url

logger = logging.getLogger(__name__)


def _too_large(max_bytes: int) -> PayloadTooLarge:
    return PayloadTooLarge(f"File size exceeds maximum allowed {max_bytes // (1024 * 1024)} MB")


async def fetch_document(
    client: httpx.AsyncClient,
    url: str,
    max_bytes: int,
) -> tuple[bytes, Optional[str]]:
    """
    Stream a document into memory, stopping as soon as it exceeds max_bytes.

    Returns (body, content_type header or None).

    Raises:
        DownloadFailed:  non-2xx response or transport error.
        PayloadTooLarge: declared or actual size above max_bytes.
    """
    buffer = bytearray()
    try:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                raise DownloadFailed(
                    f"Failed to download file: {response.status_code} {response.reason_phrase}"
                )

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise _too_large(max_bytes)

            async for chunk in response.aiter_bytes():
                buffer.extend(chunk)
                if len(buffer) > max_bytes:
                    raise _too_large(max_bytes)

            content_type = response.headers.get("content-type")
        return bytes(buffer), content_type
    except httpx.HTTPError as exc:
        logger.warning("Document download failed: %s", type(exc).__name__)
        raise DownloadFailed(f"Failed to download file: {exc}") from exc
    finally:
        buffer.clear()


def file_name_from_url(url: str) -> str:
    name = os.path.basename(unquote(urlparse(url).path))
    return name or "document"


async def parse_document(
    client: httpx.AsyncClient,
    file_url: str,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    storage: Optional[StorageConfig] = None,
) -> ParsedDocument:
    """
    Turn a stored document URL into plain text.

    The declared MIME type wins over the response Content-Type; the file name
    (given or derived from the URL) is the last classification fallback.
    """
    storage = storage or StorageConfig.from_settings()
    download_url = resolve_download_url(file_url, storage)
    name = file_name or file_name_from_url(file_url)

    data, content_type = await fetch_document(client, download_url, settings.max_file_size)
    try:
        text = extract_text(data, mime_type or content_type, name)
    finally:
        del data

    return ParsedDocument(content=text, file_name=name)
