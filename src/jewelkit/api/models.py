"""Pydantic request and response models for the Jewelkit API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for request validation, serialisation, and OpenAPI documentation.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.
UploadResponse / GenerateResponse
    Success envelopes ``{"success": true, "message": ..., "data": {...}}``.
ErrorResponse
    Failure envelope ``{"success": false, "error": ...}``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    ``prompt`` and ``urls`` are optional at the schema level so that their
    absence is reported by the route as a 400 with a specific message rather
    than a generic schema error.

    Attributes:
        prompt: Generation prompt.
        urls: Primary image URLs (at least one required).
        references: Optional extra reference image URLs, appended after
            ``urls``.
        type: Generation type tag: ``background``, ``studio``, ``model`` or
            anything else for an unmodified prompt.
    """

    prompt: str | None = Field(default=None, description="Generation prompt.")
    urls: list[str] | None = Field(default=None, description="Primary image URLs.")
    references: list[str] | None = Field(
        default=None,
        description="Optional reference image URLs, sent after the primary ones.",
    )
    type: str | None = Field(
        default=None,
        description="Generation type: 'background', 'studio', 'model' or omitted.",
    )


class UploadData(BaseModel):
    """``data`` member of a successful upload.

    ``imageUrl`` duplicates ``url`` for older clients.
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str
    image_url: str = Field(alias="imageUrl")


class UploadResponse(BaseModel):
    success: bool = True
    message: str = "Image uploaded successfully"
    data: UploadData


class GenerateData(BaseModel):
    """``data`` member of a successful generation."""

    model_config = ConfigDict(populate_by_name=True)

    processed_image: str = Field(alias="processedImage")
    type: str


class GenerateResponse(BaseModel):
    success: bool = True
    message: str = "Image processed successfully"
    data: GenerateData


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
