"""Unit tests for jewelkit.core.blob_store.

The boto3 client is a ``MagicMock`` and remote fetches go through
``httpx.MockTransport``, so no network access occurs.  Coverage:

- Content-type → extension table and object key layout.
- ``data:`` URI decoding.
- ``put()`` for every supported input kind, including the idempotent
  short-circuit for URLs already in the store.
- Error mapping for fetch, upload and delete failures.
- Presigned URL generation.
"""

from __future__ import annotations

import base64
import re
from io import BytesIO

import httpx
import pytest
from botocore.exceptions import BotoCoreError, ClientError

from jewelkit.core.blob_store import (
    BlobStore,
    build_object_key,
    decode_data_uri,
    extension_for_content_type,
)
from jewelkit.core.config import JewelkitConfig
from jewelkit.core.errors import ConfigError, DeleteError, FetchError, UploadError

PUBLIC = "https://assets.example.com"
KEY_PATTERN = r"\d{13}-[a-z0-9]{13}"


def _http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _put_kwargs(s3_client) -> dict:
    return s3_client.put_object.call_args.kwargs


# ---------------------------------------------------------------------------
# Pure helpers.
# ---------------------------------------------------------------------------


class TestExtensionForContentType:
    """Tests for the content-type → extension table."""

    @pytest.mark.parametrize(
        "content_type, extension",
        [
            ("image/png", ".png"),
            ("image/jpeg", ".jpg"),
            ("image/webp", ".webp"),
            ("image/svg+xml", ".svg"),
            ("video/mp4", ".mp4"),
            ("application/json", ".json"),
        ],
    )
    def test_known_types(self, content_type, extension):
        assert extension_for_content_type(content_type) == extension

    def test_case_insensitive(self):
        assert extension_for_content_type("IMAGE/PNG") == ".png"

    def test_unknown_type_has_no_extension(self):
        assert extension_for_content_type("application/x-unknown") == ""


class TestBuildObjectKey:
    """Tests for the object key layout."""

    def test_layout(self):
        key = build_object_key("uploads", "image/png", now_ms=1718000000000)
        assert re.fullmatch(r"uploads/1718000000000-[a-z0-9]{13}\.png", key)

    def test_unknown_type_key_has_no_extension(self):
        key = build_object_key("processed", "application/x-unknown")
        assert re.fullmatch(rf"processed/{KEY_PATTERN}", key)

    def test_keys_are_unique(self):
        keys = {build_object_key("uploads", "image/png", now_ms=1) for _ in range(50)}
        assert len(keys) == 50


class TestDecodeDataUri:
    """Tests for data URI decoding."""

    def test_decodes_payload_and_mime(self):
        payload = base64.b64encode(b"hello").decode()
        data, mime = decode_data_uri(f"data:image/webp;base64,{payload}")
        assert data == b"hello"
        assert mime == "image/webp"

    def test_missing_mime(self):
        payload = base64.b64encode(b"x").decode()
        _, mime = decode_data_uri(f"data:;base64,{payload}")
        assert mime is None

    def test_missing_payload_raises(self):
        with pytest.raises(UploadError):
            decode_data_uri("data:image/png;base64")


# ---------------------------------------------------------------------------
# BlobStore.
# ---------------------------------------------------------------------------


class TestBlobStoreInit:
    """Tests for construction and configuration checks."""

    def test_missing_bucket_raises(self, s3_client):
        config = JewelkitConfig(_env_file=None, r2_account_id="a", r2_public_url=PUBLIC)
        with pytest.raises(ConfigError, match="r2_bucket_name"):
            BlobStore(config, s3_client=s3_client)

    def test_missing_account_raises(self, s3_client):
        config = JewelkitConfig(_env_file=None, r2_bucket_name="b", r2_public_url=PUBLIC)
        with pytest.raises(ConfigError, match="r2_account_id"):
            BlobStore(config, s3_client=s3_client)

    def test_explicit_endpoint_replaces_account(self, s3_client):
        config = JewelkitConfig(
            _env_file=None,
            storage_endpoint_url="http://minio:9000",
            r2_bucket_name="b",
            r2_public_url=PUBLIC,
        )
        assert BlobStore(config, s3_client=s3_client).bucket == "b"

    def test_public_base_url(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)
        assert store.public_base_url == PUBLIC
        assert store.public_url_for("a/b.png") == f"{PUBLIC}/a/b.png"


class TestBlobStorePut:
    """Tests for BlobStore.put()."""

    @pytest.mark.asyncio
    async def test_put_bytes(self, test_config, s3_client):
        """Raw bytes are stored under the folder with the given content type."""
        store = BlobStore(test_config, s3_client=s3_client)

        url = await store.put(b"\x89PNG", folder="uploads", content_type="image/png")

        assert re.fullmatch(rf"{PUBLIC}/uploads/{KEY_PATTERN}\.png", url)
        kwargs = _put_kwargs(s3_client)
        assert kwargs["Bucket"] == "test-bucket"
        assert kwargs["Body"] == b"\x89PNG"
        assert kwargs["ContentType"] == "image/png"
        assert url == f"{PUBLIC}/{kwargs['Key']}"

    @pytest.mark.asyncio
    async def test_default_folder_and_content_type(self, test_config, s3_client):
        """Without hints the object lands in ``default`` as JPEG."""
        store = BlobStore(test_config, s3_client=s3_client)

        url = await store.put(b"data")

        assert re.fullmatch(rf"{PUBLIC}/default/{KEY_PATTERN}\.jpg", url)
        assert _put_kwargs(s3_client)["ContentType"] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_unknown_content_type_key_has_no_extension(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)

        url = await store.put(b"data", folder="misc", content_type="application/x-unknown")

        assert re.fullmatch(rf"{PUBLIC}/misc/{KEY_PATTERN}", url)

    @pytest.mark.asyncio
    async def test_own_public_url_is_returned_unchanged(self, test_config, s3_client):
        """A URL already under the public base is never re-uploaded."""
        store = BlobStore(test_config, s3_client=s3_client)
        existing = f"{PUBLIC}/uploads/1-abc.png"

        assert await store.put(existing, folder="other") == existing
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_data_uri_uses_declared_mime(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)
        payload = base64.b64encode(b"webp-bytes").decode()

        url = await store.put(f"data:image/webp;base64,{payload}", folder="processed")

        assert url.endswith(".webp")
        kwargs = _put_kwargs(s3_client)
        assert kwargs["Body"] == b"webp-bytes"
        assert kwargs["ContentType"] == "image/webp"

    @pytest.mark.asyncio
    async def test_explicit_content_type_overrides_data_uri(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)
        payload = base64.b64encode(b"x").decode()

        url = await store.put(f"data:image/webp;base64,{payload}", content_type="image/png")

        assert url.endswith(".png")

    @pytest.mark.asyncio
    async def test_remote_url_is_fetched(self, test_config, s3_client):
        """A foreign http(s) URL is downloaded and its content type kept."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://elsewhere.example.com/ring.png"
            return httpx.Response(
                200, content=b"remote", headers={"content-type": "image/png; charset=binary"}
            )

        async with _http_client(handler) as http:
            store = BlobStore(test_config, s3_client=s3_client, http_client=http)
            url = await store.put("https://elsewhere.example.com/ring.png", folder="mirror")

        assert url.endswith(".png")
        kwargs = _put_kwargs(s3_client)
        assert kwargs["Body"] == b"remote"
        assert kwargs["ContentType"] == "image/png"

    @pytest.mark.asyncio
    async def test_remote_non_2xx_raises_fetch_error(self, test_config, s3_client):
        async with _http_client(lambda r: httpx.Response(404)) as http:
            store = BlobStore(test_config, s3_client=s3_client, http_client=http)
            with pytest.raises(FetchError, match="404 Not Found"):
                await store.put("https://elsewhere.example.com/missing.png")
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_file_like_input(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)

        await store.put(BytesIO(b"from-file"), content_type="image/png")

        assert _put_kwargs(s3_client)["Body"] == b"from-file"

    @pytest.mark.asyncio
    async def test_async_stream_input(self, test_config, s3_client):
        """Async byte-chunk iterators are concatenated."""

        async def chunks():
            yield b"ab"
            yield b"cd"

        store = BlobStore(test_config, s3_client=s3_client)
        await store.put(chunks(), content_type="image/png")

        assert _put_kwargs(s3_client)["Body"] == b"abcd"

    @pytest.mark.asyncio
    async def test_plain_string_rejected(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)
        with pytest.raises(UploadError, match="Invalid string input"):
            await store.put("not a url")

    @pytest.mark.asyncio
    async def test_unsupported_type_rejected(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)
        with pytest.raises(UploadError, match="Unsupported input type"):
            await store.put(12345)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_storage_failure_raises_upload_error(self, test_config, s3_client):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        store = BlobStore(test_config, s3_client=s3_client)

        with pytest.raises(UploadError, match="Blob upload failed"):
            await store.put(b"data")


class TestBlobStorePresignAndDelete:
    """Tests for presigned URLs and deletion."""

    @pytest.mark.asyncio
    async def test_presigned_upload_url(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)

        url = await store.presigned_upload_url("uploads/a.png", "image/png")

        assert url == "https://signed.example.com/object?sig=1"
        s3_client.generate_presigned_url.assert_called_once_with(
            "put_object",
            Params={"Bucket": "test-bucket", "Key": "uploads/a.png", "ContentType": "image/png"},
            ExpiresIn=3600,
        )

    @pytest.mark.asyncio
    async def test_presigned_download_url_custom_expiry(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)

        await store.presigned_download_url("uploads/a.png", expires_in=60)

        s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "test-bucket", "Key": "uploads/a.png"},
            ExpiresIn=60,
        )

    @pytest.mark.asyncio
    async def test_delete(self, test_config, s3_client):
        store = BlobStore(test_config, s3_client=s3_client)

        await store.delete("uploads/a.png")

        s3_client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="uploads/a.png")

    @pytest.mark.asyncio
    async def test_delete_failure_raises_delete_error(self, test_config, s3_client):
        s3_client.delete_object.side_effect = BotoCoreError()
        store = BlobStore(test_config, s3_client=s3_client)

        with pytest.raises(DeleteError, match="Blob deletion failed"):
            await store.delete("uploads/a.png")
