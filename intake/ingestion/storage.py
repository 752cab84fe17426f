"""
storage.py — Object-storage access (S3 / S3-compatible) for uploaded documents.

Three operations:
  resolve_download_url()   — stored object URL → short-lived presigned GET URL.
                             Never raises: on any failure the original URL comes back
                             and the caller's fetch decides what happens next.
  build_upload_signature() — presigned POST for a direct browser → bucket upload.
  upload_document()        — server-side proxy upload of a validated temp file.

Stored URLs address objects as  <bucket base>/<key>  where the bucket base is
either the virtual-host AWS endpoint or <endpoint>/<bucket> for S3-compatible
services. A leading "v<digits>/" path segment is a cache-busting version tag
added by delivery URLs, never part of the key. Keys keep their extension.

Credentials are passed per call (StorageConfig) instead of being read from the
environment by boto3, so tests and background jobs never share state.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from intake.config import settings
from intake.errors import ServiceNotConfigured, UpstreamUnavailable

logger = logging.getLogger(__name__)

_VERSION_PREFIX = re.compile(r"^v\d+/")


@dataclass(frozen=True)
class StorageConfig:
    bucket: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"
    endpoint_url: str = ""
    folder: str = "business-profiles"

    @classmethod
    def from_settings(cls) -> "StorageConfig":
        return cls(
            bucket=settings.storage_bucket,
            access_key=settings.storage_access_key,
            secret_key=settings.storage_secret_key,
            region=settings.storage_region,
            endpoint_url=settings.storage_endpoint_url,
            folder=settings.storage_folder,
        )

    @property
    def complete(self) -> bool:
        return bool(self.bucket and self.access_key and self.secret_key)

    @property
    def base_url(self) -> str:
        """Public URL prefix every object of the bucket starts with."""
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"

    def object_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key)}"


@lru_cache(maxsize=8)
def _s3_client(config: StorageConfig):
    """One boto3 client per distinct config; boto3 clients are thread-safe."""
    return boto3.client(
        "s3",
        region_name=config.region,
        endpoint_url=config.endpoint_url or None,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        config=Config(signature_version="s3v4"),
    )


def _bucket_prefixes(config: StorageConfig) -> list[str]:
    if config.endpoint_url:
        return [config.base_url]
    return [
        config.base_url,
        f"https://{config.bucket}.s3.amazonaws.com",
        f"https://s3.{config.region}.amazonaws.com/{config.bucket}",
    ]


def parse_object_key(url: str, config: StorageConfig) -> Optional[str]:
    """
    Object key for a URL inside our bucket, or None for any other URL.

    https://docs.s3.eu-west-1.amazonaws.com/v1712/business-profiles/profile.pdf
        → "business-profiles/profile.pdf"

    Raises:
        ValueError: the URL points into the bucket but names no object.
    """
    parsed = urlparse(url)
    bare = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
    for prefix in _bucket_prefixes(config):
        if bare.startswith(prefix + "/"):
            key = _VERSION_PREFIX.sub("", unquote(bare[len(prefix) + 1:]))
            if not key:
                raise ValueError("storage URL has no object key")
            return key
    return None


def resolve_download_url(
    stored_url: str,
    config: StorageConfig,
    ttl_seconds: Optional[int] = None,
) -> str:
    """
    Return a time-limited presigned download URL for a stored document.

    Foreign URLs are returned unchanged. Any parse or signing failure (including
    missing credentials) is logged and the original URL is returned.
    """
    ttl = ttl_seconds if ttl_seconds is not None else settings.signed_url_ttl_seconds
    try:
        if not config.bucket:
            return stored_url
        key = parse_object_key(stored_url, config)
        if key is None:
            return stored_url
        if not config.complete:
            raise ValueError("storage credentials are not configured")
        signed = _s3_client(config).generate_presigned_url(
            "get_object",
            Params={"Bucket": config.bucket, "Key": key},
            ExpiresIn=ttl,
        )
    except Exception as exc:
        logger.warning("Signed URL generation failed, using stored URL: %s", exc)
        return stored_url

    logger.info("Signed download URL issued ttl=%ds", ttl)
    return signed


def _new_key(config: StorageConfig, file_name: str) -> str:
    ext = os.path.splitext(file_name)[1].lower()
    return f"{config.folder}/business-profile-{int(time.time() * 1000)}{ext}"


def build_upload_signature(
    config: StorageConfig,
    file_name: str,
    content_type: str,
    max_bytes: int,
) -> dict[str, Any]:
    """
    Presigned POST that lets a browser upload one document straight into the
    bucket, bounded by content type and size.

    Raises:
        ServiceNotConfigured: storage credentials are missing.
        UpstreamUnavailable:  the SDK could not build the policy.
    """
    if not config.complete:
        logger.error("Upload signature requested but storage is not configured")
        raise ServiceNotConfigured()

    key = _new_key(config, file_name)
    ttl = settings.signed_url_ttl_seconds
    try:
        post = _s3_client(config).generate_presigned_post(
            Bucket=config.bucket,
            Key=key,
            Fields={"Content-Type": content_type},
            Conditions=[
                {"Content-Type": content_type},
                ["content-length-range", 1, max_bytes],
            ],
            ExpiresIn=ttl,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error("Presigned POST failed: %s", exc)
        raise UpstreamUnavailable("Failed to prepare upload") from exc

    return {
        "url": post["url"],
        "fields": post["fields"],
        "key": key,
        "fileUrl": config.object_url(key),
        "expiresIn": ttl,
    }


async def upload_document(
    path: str,
    file_name: str,
    content_type: str,
    config: StorageConfig,
) -> dict[str, str]:
    """
    Upload a validated local file and return {url, key, fileName, format}.

    The SDK call is blocking, so it runs in a worker thread.

    Raises:
        ServiceNotConfigured: storage credentials are missing.
        UpstreamUnavailable:  the storage provider rejected or failed the upload.
    """
    if not config.complete:
        logger.error("Upload requested but storage is not configured")
        raise ServiceNotConfigured()

    key = _new_key(config, file_name)
    try:
        await asyncio.to_thread(
            _s3_client(config).upload_file,
            path,
            config.bucket,
            key,
            ExtraArgs={"ContentType": content_type},
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error("Storage upload failed: %s", exc)
        raise UpstreamUnavailable("Failed to upload file") from exc

    logger.info("Document uploaded key=%s", key)
    return {
        "url": config.object_url(key),
        "key": key,
        "fileName": file_name,
        "format": os.path.splitext(file_name)[1].lstrip(".").lower(),
    }
