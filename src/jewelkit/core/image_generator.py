"""Single-call client for the multimodal image generation model.

:class:`ImageGenerator` sends one prompt plus up to ``max_reference_images``
reference images to the Gemini image model and returns the first generated
image as a ``data:`` URI.  There is no streaming and no retry: one request,
one response.

Reference handling
------------------
Candidate URLs are filtered to ``http(s)``, de-duplicated (first occurrence
wins) and truncated to the configured maximum.  Each remaining URL is
fetched; it is skipped when the response is not 2xx, its content type is not
PNG/JPEG/WebP, or its declared ``Content-Length`` exceeds the configured
limit.  Skips are logged but not reported to the caller.

Usage
-----
::

    generator = ImageGenerator(config)
    data_uri = await generator.generate(
        "Studio shot of this ring",
        ["https://assets.example.com/uploads/1718000000000-abc.png"],
    )
"""

from __future__ import annotations

import base64
import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

import httpx
from google import genai
from google.genai import types

from jewelkit.core.config import JewelkitConfig
from jewelkit.core.errors import ConfigError, GenerationStoppedError, NoImageReturnedError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/webp"})
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


def extract_image_urls(candidates: Iterable[Any], limit: int) -> list[str]:
    """Keep ``http(s)`` string URLs, de-duplicated, at most *limit* of them.

    Args:
        candidates: Arbitrary values; non-strings and non-HTTP strings are
            ignored.
        limit: Maximum number of URLs returned.

    Returns:
        URLs in first-occurrence order.
    """
    seen: dict[str, None] = {}
    for value in candidates:
        if isinstance(value, str) and _HTTP_URL.match(value):
            seen.setdefault(value, None)
    return list(seen)[:limit]


def _finish_reason_name(reason: Any) -> str | None:
    if reason is None:
        return None
    return str(getattr(reason, "value", reason))


class ImageGenerator:
    """Client for one-shot image generation.

    Attributes:
        _config (JewelkitConfig):
            API key, model id, reference limits and fetch timeout.
        _client:
            ``genai.Client``; built lazily on the first call so that a
            missing key surfaces as :class:`ConfigError` at call time.
        _http (httpx.AsyncClient | None):
            Client used to fetch reference images.
    """

    def __init__(
        self,
        config: JewelkitConfig,
        *,
        client: Any | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._http = http_client

    def _genai_client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self._config.google_api_key)
        return self._client

    async def generate(self, prompt: str, image_urls: Sequence[str] = ()) -> str:
        """Generate one image from *prompt* and reference *image_urls*.

        Args:
            prompt: Non-empty prompt text.
            image_urls: Reference image URLs; only the first
                ``max_reference_images`` usable ones are sent.

        Returns:
            ``data:{mime};base64,{payload}`` of the first image part.

        Raises:
            ConfigError: If no API key is configured or *prompt* is empty.
            GenerationStoppedError: If no image came back and the model
                reported a finish reason other than ``STOP``.
            NoImageReturnedError: If no image came back otherwise.
        """
        if not prompt:
            raise ConfigError("Prompt is required")
        if not self._config.google_api_key and self._client is None:
            raise ConfigError("Google API key is not configured")

        urls = extract_image_urls(image_urls, self._config.max_reference_images)
        parts = await self._reference_parts(urls)
        logger.info("Generating image from %d of %d reference image(s)", len(parts), len(urls))

        # The text part always goes last.
        parts.append(types.Part.from_text(text=prompt))
        response = await self._genai_client().aio.models.generate_content(
            model=self._config.gemini_model,
            contents=[types.Content(role="user", parts=parts)],
        )
        return self._extract_image(response)

    async def _reference_parts(self, urls: list[str]) -> list[Any]:
        parts: list[Any] = []
        if not urls:
            return parts
        if self._http is not None:
            for url in urls:
                part = await self._fetch_part(self._http, url)
                if part is not None:
                    parts.append(part)
            return parts
        async with httpx.AsyncClient(timeout=self._config.fetch_timeout) as client:
            for url in urls:
                part = await self._fetch_part(client, url)
                if part is not None:
                    parts.append(part)
        return parts

    async def _fetch_part(self, client: httpx.AsyncClient, url: str) -> Any | None:
        """Fetch *url* as an inline image part, or ``None`` when it is unusable."""
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Skipping reference %s: %s", url, e)
            return None
        if not response.is_success:
            logger.warning("Skipping reference %s: HTTP %d", url, response.status_code)
            return None

        declared = response.headers.get("content-type") or "image/png"
        mime = declared.split(";", 1)[0].strip().lower()
        if mime not in ALLOWED_IMAGE_TYPES:
            logger.warning("Skipping reference %s: unsupported content type %s", url, mime)
            return None

        length = int(response.headers.get("content-length") or 0)
        if length > self._config.max_reference_image_bytes:
            logger.warning("Skipping reference %s: %d bytes exceeds limit", url, length)
            return None

        return types.Part.from_bytes(data=response.content, mime_type=mime)

    @staticmethod
    def _extract_image(response: Any) -> str:
        candidates = getattr(response, "candidates", None) or []
        candidate = candidates[0] if candidates else None
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                data = inline.data
                if isinstance(data, str):
                    payload = data
                else:
                    payload = base64.b64encode(data).decode("ascii")
                return f"data:{inline.mime_type};base64,{payload}"

        reason = _finish_reason_name(getattr(candidate, "finish_reason", None))
        if reason and reason != "STOP":
            raise GenerationStoppedError(reason)
        raise NoImageReturnedError()
