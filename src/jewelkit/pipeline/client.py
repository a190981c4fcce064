"""HTTP client for the Jewelkit upload and generate endpoints.

The orchestrator talks to the API exclusively through
:class:`StudioApiClient`.  Tests point it at the ASGI app in-process with
``httpx.ASGITransport``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from jewelkit.core.config import JewelkitConfig
from jewelkit.core.errors import NetworkError, UploadError
from jewelkit.pipeline.models import UploadedAsset

logger = logging.getLogger(__name__)


class StudioApiClient:
    """Async client for ``POST /api/upload`` and ``POST /api/generate``.

    No timeout is imposed beyond the transport's own default handling; the
    generate call may legitimately take minutes.
    """

    def __init__(
        self,
        config: JewelkitConfig,
        *,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url or config.api_base_url,
            transport=transport,
            timeout=None,
        )

    async def __aenter__(self) -> "StudioApiClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.post(path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

    async def upload(self, asset: UploadedAsset) -> str:
        """Upload *asset* and return its public URL.

        Raises:
            UploadError: If the API rejects the upload or returns no URL.
            NetworkError: If the request itself fails.
        """
        response = await self._post(
            "/api/upload",
            files={"file": (asset.filename, asset.content, asset.content_type)},
        )
        if not response.is_success:
            raise UploadError(f"Failed to upload {asset.filename}: {response.text}")

        body = response.json()
        url = (body.get("data") or {}).get("url")
        if not body.get("success") or not url:
            raise UploadError(
                f"Invalid upload response for {asset.filename}: "
                f"{body.get('error') or 'No URL returned'}"
            )
        return url

    async def generate(
        self,
        prompt: str,
        urls: Sequence[str],
        references: Sequence[str] | None = None,
        generation_type: str | None = None,
    ) -> str:
        """Request one generated image and return its public URL.

        Raises:
            NetworkError: If the request fails, the API answers non-2xx, or
                the response carries no processed image.
        """
        payload: dict[str, Any] = {"prompt": prompt, "urls": list(urls)}
        if references is not None:
            payload["references"] = list(references)
        if generation_type is not None:
            payload["type"] = generation_type

        response = await self._post("/api/generate", json=payload)
        if not response.is_success:
            raise NetworkError(
                f"{generation_type or 'standard'} generation failed: "
                f"{response.status_code} {_error_text(response)}",
                status_code=response.status_code,
            )

        body = response.json()
        processed = (body.get("data") or {}).get("processedImage")
        if not body.get("success") or not processed:
            raise NetworkError(
                f"Invalid {generation_type or 'standard'} response: "
                f"{body.get('error') or 'No processed image'}"
            )
        return processed


def _error_text(response: httpx.Response) -> str:
    try:
        return str(response.json().get("error") or response.reason_phrase)
    except ValueError:
        return response.text or response.reason_phrase
