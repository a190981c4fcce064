"""Jewelkit — FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, the REST routes, and the ``main()`` CLI function
that launches the uvicorn server.

Architecture
------------
The application is stateless:

- **Storage** goes through :class:`~jewelkit.core.blob_store.BlobStore`;
  public URLs are the only durable artifacts.
- **Generation** goes through
  :class:`~jewelkit.core.image_generator.ImageGenerator`.
- Both clients are built once in the lifespan handler from the process
  configuration and stored on ``app.state``; routes reach them through
  dependency functions so tests can override them.

Every response is an envelope: ``{"success": true, "data": ...}`` or
``{"success": false, "error": "..."}``.  Missing or malformed request fields
yield HTTP 400; any other failure yields HTTP 500 with the error's message.

Endpoints
---------
========  ==================  ==============================================
Method    Path                Purpose
========  ==================  ==============================================
POST      ``/api/upload``     Store one multipart ``file``, return its URL
POST      ``/api/generate``   Generate one image, store it, return its URL
========  ==================  ==============================================

Usage
-----
CLI (installed entry point)::

    jewelkit

Direct invocation::

    python -m jewelkit.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jewelkit import __version__
from jewelkit.api.models import (
    ErrorResponse,
    GenerateData,
    GenerateRequest,
    GenerateResponse,
    UploadData,
    UploadResponse,
)
from jewelkit.core.blob_store import BlobStore
from jewelkit.core.config import config
from jewelkit.core.errors import ValidationError
from jewelkit.core.image_generator import ImageGenerator
from jewelkit.core.prompts import STANDARD_TYPE, build_generation_prompt, storage_folder

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application lifecycle: external service clients.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the storage and generation clients on startup.

    ``BlobStore`` raises :class:`~jewelkit.core.errors.ConfigError` when
    storage is not configured, which aborts startup.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    app.state.blob_store = BlobStore(config)
    app.state.image_generator = ImageGenerator(config)
    logger.info("Storage and generation clients initialised.")

    yield


app = FastAPI(
    title="Jewelkit",
    description="Upload jewelry photos and generate e-commerce image assets.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_image_generator(request: Request) -> ImageGenerator:
    return request.app.state.image_generator


# ---------------------------------------------------------------------------
# Error envelopes.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render schema violations (wrong JSON types, bad body) as 400."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request field '{location}': {first.get('msg')}"
    else:
        message = "Invalid request"
    return _error(400, message)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.post("/api/upload")
async def upload_image(
    file: UploadFile | None = File(default=None),
    store: BlobStore = Depends(get_blob_store),
) -> dict:
    """Store one uploaded file and return its public URL.

    Args:
        file: Multipart form field ``file``.
        store: Blob store dependency.

    Returns:
        ``{"success": true, "message": ..., "data": {"url", "imageUrl"}}``.

    Raises:
        ValidationError: 400 if no file was provided.
    """
    if file is None:
        raise ValidationError("No file provided")

    try:
        content = await file.read()
        logger.info(
            "Uploading image (name=%s, size=%d, type=%s)",
            file.filename,
            len(content),
            file.content_type,
        )
        url = await store.put(
            content,
            folder=config.upload_folder,
            content_type=file.content_type or None,
        )
    except Exception as e:
        logger.error("Error in upload route: %s", e, exc_info=True)
        return _error(500, str(e) or "Failed to upload file")
    logger.info("Upload successful: %s", url)

    return UploadResponse(data=UploadData(url=url, image_url=url)).model_dump(by_alias=True)


@app.post("/api/generate")
async def generate_image(
    req: GenerateRequest,
    store: BlobStore = Depends(get_blob_store),
    generator: ImageGenerator = Depends(get_image_generator),
) -> dict:
    """Generate one image and store it.

    This endpoint:

    1. Validates that ``prompt`` is present and ``urls`` is non-empty.
    2. Appends ``references`` after ``urls``.
    3. Applies the type-specific prompt suffix.
    4. Calls the generation model.
    5. Stores the result under ``processed/{type}`` (or ``processed``).

    Args:
        req: Validated :class:`GenerateRequest` payload.
        store: Blob store dependency.
        generator: Image generator dependency.

    Returns:
        ``{"success": true, "message": ..., "data": {"processedImage", "type"}}``.

    Raises:
        ValidationError: 400 for a missing prompt or empty ``urls``.
    """
    if not req.prompt:
        raise ValidationError("No prompt provided")
    if not req.urls:
        raise ValidationError("No URLs provided")

    images = [*req.urls, *(req.references or [])]
    prompt = build_generation_prompt(req.prompt, req.type)

    logger.info("Processing %s generation with %d image(s)", req.type or STANDARD_TYPE, len(images))
    try:
        data_uri = await generator.generate(prompt, images)
        # The data URI carries the model's output content type.
        url = await store.put(data_uri, folder=storage_folder(req.type))
    except Exception as e:
        logger.error("Error in generate route: %s", e, exc_info=True)
        return _error(500, str(e) or "Failed to process request")

    return GenerateResponse(
        data=GenerateData(processed_image=url, type=req.type or STANDARD_TYPE)
    ).model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Host and port come from :data:`~jewelkit.core.config.config`
    (``JEWELKIT_SERVER_HOST`` / ``JEWELKIT_SERVER_PORT``).

    This function is registered as the ``jewelkit`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "jewelkit.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
