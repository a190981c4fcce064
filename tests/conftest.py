"""Shared pytest fixtures for Jewelkit tests."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Generator
from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from jewelkit.core.config import JewelkitConfig

PUBLIC_URL = "https://assets.example.com"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config() -> JewelkitConfig:
    """Create a fully configured test configuration.

    The ``.env`` file is bypassed so the developer's environment never leaks
    into tests.

    Returns:
        JewelkitConfig instance for testing
    """
    return JewelkitConfig(
        _env_file=None,
        r2_account_id="test-account",
        s3_access_key="test-access",
        s3_secret_key="test-secret",
        r2_bucket_name="test-bucket",
        r2_public_url=f"{PUBLIC_URL}/",
        google_api_key="test-key",
        api_base_url="http://testserver",
        progress_clear_delay=0.01,
    )


@pytest.fixture
def png_bytes() -> bytes:
    """A small valid PNG image."""
    buf = BytesIO()
    Image.new("RGB", (64, 48), color=(200, 170, 60)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def s3_client() -> MagicMock:
    """Mock boto3 S3 client."""
    client = MagicMock()
    client.put_object.return_value = {"ETag": '"abc"'}
    client.generate_presigned_url.return_value = "https://signed.example.com/object?sig=1"
    return client


@pytest.fixture
def mock_blob_store() -> MagicMock:
    """Mock BlobStore whose ``put`` returns a deterministic public URL."""
    store = MagicMock()
    counter = {"n": 0}

    async def put(data, folder="default", content_type=None):
        counter["n"] += 1
        return f"{PUBLIC_URL}/{folder}/{counter['n']}.png"

    store.put = AsyncMock(side_effect=put)
    return store


@pytest.fixture
def mock_image_generator() -> MagicMock:
    """Mock ImageGenerator that always returns a tiny PNG data URI."""
    generator = MagicMock()
    generator.generate = AsyncMock(return_value="data:image/png;base64,iVBORw0KGgo=")
    return generator


@pytest.fixture
def test_client(mock_blob_store, mock_image_generator) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with the storage and generation clients mocked.

    The client is not entered as a context manager, so the lifespan handler
    (which would build real clients) never runs.
    """
    from jewelkit.api.main import app, get_blob_store, get_image_generator

    app.dependency_overrides[get_blob_store] = lambda: mock_blob_store
    app.dependency_overrides[get_image_generator] = lambda: mock_image_generator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
