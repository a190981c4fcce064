"""S3-compatible blob storage for uploaded and generated images.

This module provides :class:`BlobStore`, the single point of contact with the
object store (Cloudflare R2 by default).  Every image that enters or leaves
Jewelkit becomes an object here, addressed by a public URL.

Key Responsibilities
--------------------
- **Input normalisation** — ``put()`` accepts raw bytes, a binary file-like
  object, an async iterator of byte chunks, a ``data:`` URI or a remote
  ``http(s)`` URL, and reduces all of them to one byte buffer.
- **Idempotent re-upload** — a URL that already lives under the store's
  public base is returned unchanged without touching the network.
- **Key layout** — ``{folder}/{millisecond timestamp}-{random}{extension}``,
  with the extension taken from a fixed content-type table.
- **Presigned URLs and deletion** for direct client access.

The underlying boto3 client is synchronous; its calls run in a worker
thread via :func:`asyncio.to_thread` so the event loop is never blocked.

Usage
-----
::

    store = BlobStore(config)
    url = await store.put(b"...", folder="uploads", content_type="image/png")
    # "https://assets.example.com/uploads/1718000000000-k3j2h1g0f9e8d.png"
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import secrets
import string
import time
from collections.abc import AsyncIterator
from typing import IO, Any, Union

import boto3
import httpx
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from jewelkit.core.config import JewelkitConfig
from jewelkit.core.errors import ConfigError, DeleteError, FetchError, UploadError

logger = logging.getLogger(__name__)

BlobInput = Union[bytes, bytearray, str, IO[bytes], AsyncIterator[bytes]]

DEFAULT_CONTENT_TYPE = "image/jpeg"

# Content type → object key extension.  Unknown types get no extension.
CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
    "image/svg+xml": ".svg",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/avi": ".avi",
    "video/mov": ".mov",
    "text/plain": ".txt",
    "application/pdf": ".pdf",
    "application/json": ".json",
}

_KEY_ALPHABET = string.ascii_lowercase + string.digits
_KEY_SUFFIX_LENGTH = 13


def extension_for_content_type(content_type: str) -> str:
    """Return the object key extension for *content_type*.

    Args:
        content_type: MIME type such as ``"image/png"`` (case-insensitive).

    Returns:
        The extension including its dot, or ``""`` for unknown types.
    """
    return CONTENT_TYPE_EXTENSIONS.get(content_type.lower(), "")


def build_object_key(folder: str, content_type: str, *, now_ms: int | None = None) -> str:
    """Build a fresh object key ``{folder}/{timestamp}-{random}{ext}``.

    Args:
        folder: Target folder.  An empty folder yields a bare file name.
        content_type: MIME type used to pick the extension.
        now_ms: Timestamp override in milliseconds (defaults to the clock).

    Returns:
        The object key.
    """
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(_KEY_SUFFIX_LENGTH))
    filename = f"{timestamp}-{suffix}{extension_for_content_type(content_type)}"
    return f"{folder}/{filename}" if folder else filename


def decode_data_uri(uri: str) -> tuple[bytes, str | None]:
    """Decode a base64 ``data:`` URI.

    Args:
        uri: A URI of the form ``data:{mime};base64,{payload}``.

    Returns:
        Tuple of ``(payload_bytes, mime_type)``; ``mime_type`` is ``None``
        when the URI does not declare one.

    Raises:
        UploadError: If the URI has no payload or the payload is not base64.
    """
    header, sep, payload = uri.partition(",")
    if not sep:
        raise UploadError("Invalid data URI: missing payload")
    mime = header[len("data:") :].split(";", 1)[0] or None
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise UploadError(f"Invalid data URI payload: {e}") from e
    return data, mime


class BlobStore:
    """Async facade over an S3-compatible bucket with a public URL base.

    Attributes:
        _config (JewelkitConfig):
            Storage credentials, bucket, public URL and fetch timeout.
        _s3:
            The boto3 S3 client.
        _http (httpx.AsyncClient | None):
            Client used to fetch remote ``http(s)`` inputs; a short-lived
            client is created per fetch when none is injected.
    """

    def __init__(
        self,
        config: JewelkitConfig,
        *,
        s3_client: Any | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the store.

        Args:
            config: Application configuration.
            s3_client: Pre-built S3 client (tests inject a mock here).
            http_client: Client for fetching remote inputs.

        Raises:
            ConfigError: If the account id, bucket name or public URL is
                not configured.
        """
        missing = [
            name
            for name, value in (
                ("r2_account_id", config.r2_account_id or config.storage_endpoint_url),
                ("r2_bucket_name", config.r2_bucket_name),
                ("r2_public_url", config.r2_public_url),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Blob storage is not configured; missing: {', '.join(missing)}")

        self._config = config
        self._http = http_client
        self._s3 = s3_client if s3_client is not None else boto3.client(
            "s3",
            endpoint_url=config.resolved_storage_endpoint,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            region_name=config.storage_region,
            config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
        )

        logger.info(
            "BlobStore configured (bucket=%s, access_key=%s, secret_key=%s, public_url=%s)",
            config.r2_bucket_name,
            bool(config.s3_access_key),
            bool(config.s3_secret_key),
            config.public_base_url,
        )

    @property
    def bucket(self) -> str:
        return self._config.r2_bucket_name

    @property
    def public_base_url(self) -> str:
        return self._config.public_base_url

    def is_public_url(self, value: str) -> bool:
        """Whether *value* already points at an object of this store."""
        return value.startswith(f"{self.public_base_url}/")

    def public_url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    # -----------------------------------------------------------------------
    # Upload
    # -----------------------------------------------------------------------

    async def put(
        self,
        data: BlobInput,
        folder: str = "default",
        content_type: str | None = None,
    ) -> str:
        """Store *data* under *folder* and return its public URL.

        Args:
            data: Bytes, binary file-like object, async byte-chunk iterator,
                ``data:`` URI, remote ``http(s)`` URL or a URL of this store.
            folder: Target folder of the object key.
            content_type: MIME type of the object.  When omitted it is taken
                from the ``data:`` URI or the remote response, falling back
                to ``image/jpeg``.

        Returns:
            ``{public_base_url}/{key}``, or *data* itself when it is already
            a URL of this store.

        Raises:
            FetchError: If a remote URL answers with a non-2xx status.
            UploadError: If the input is unsupported or the object store
                rejects the write.
        """
        if isinstance(data, str) and self.is_public_url(data):
            logger.debug("Input already stored, skipping upload: %s", data)
            return data

        body, detected_type = await self._read_input(data)
        resolved_type = content_type or detected_type or DEFAULT_CONTENT_TYPE
        key = build_object_key(folder, resolved_type)

        logger.info(
            "Uploading to bucket %s (key=%s, size=%d, content_type=%s)",
            self.bucket,
            key,
            len(body),
            resolved_type,
        )
        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=resolved_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Upload of %s failed: %s", key, e, exc_info=True)
            raise UploadError(f"Blob upload failed: {e}") from e

        url = self.public_url_for(key)
        logger.info("Upload successful: %s", url)
        return url

    async def _read_input(self, data: BlobInput) -> tuple[bytes, str | None]:
        """Reduce any supported input to ``(bytes, detected_content_type)``."""
        if isinstance(data, (bytes, bytearray)):
            return bytes(data), None
        if isinstance(data, str):
            if data.startswith("data:"):
                return decode_data_uri(data)
            if data.startswith(("http://", "https://")):
                return await self._fetch(data)
            raise UploadError("Invalid string input. Must be a data URI or an HTTP(S) URL")
        if hasattr(data, "__aiter__"):
            chunks = [bytes(chunk) async for chunk in data]
            return b"".join(chunks), None
        if hasattr(data, "read"):
            return bytes(data.read()), None
        raise UploadError(
            f"Unsupported input type {type(data).__name__}; "
            "expected bytes, a stream, a data URI or a URL"
        )

    async def _fetch(self, url: str) -> tuple[bytes, str | None]:
        """Download *url*, returning its body and declared content type."""
        logger.info("Fetching remote input %s", url)
        try:
            if self._http is not None:
                response = await self._http.get(url)
            else:
                async with httpx.AsyncClient(timeout=self._config.fetch_timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

        if not response.is_success:
            raise FetchError(
                f"Failed to fetch image: {response.status_code} {response.reason_phrase}"
            )
        declared = response.headers.get("content-type")
        mime = declared.split(";", 1)[0].strip() if declared else None
        return response.content, mime

    # -----------------------------------------------------------------------
    # Presigned URLs and deletion
    # -----------------------------------------------------------------------

    async def presigned_upload_url(
        self, key: str, content_type: str, expires_in: int | None = None
    ) -> str:
        """Return a short-lived URL that accepts a ``PUT`` of *key*."""
        return await asyncio.to_thread(
            self._s3.generate_presigned_url,
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_in or self._config.presigned_url_expiry,
        )

    async def presigned_download_url(self, key: str, expires_in: int | None = None) -> str:
        """Return a short-lived URL that serves ``GET`` of *key*."""
        return await asyncio.to_thread(
            self._s3.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in or self._config.presigned_url_expiry,
        )

    async def delete(self, key: str) -> None:
        """Delete the object stored under *key*.

        Raises:
            DeleteError: If the object store rejects the request.
        """
        try:
            await asyncio.to_thread(self._s3.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to delete %s: %s", key, e)
            raise DeleteError(f"Blob deletion failed: {e}") from e
        logger.info("Deleted %s", key)
