"""Unit tests for jewelkit.core.image_generator.

The genai client is a ``MagicMock`` whose ``aio.models.generate_content``
is an ``AsyncMock``; reference images are served by ``httpx.MockTransport``.
"""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from jewelkit.core.config import JewelkitConfig
from jewelkit.core.errors import ConfigError, GenerationStoppedError, NoImageReturnedError
from jewelkit.core.image_generator import ImageGenerator, extract_image_urls


def _response(parts=None, finish_reason=None):
    content = SimpleNamespace(parts=parts or [])
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=content, finish_reason=finish_reason)]
    )


def _image_part(data, mime="image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime), text=None)


def _genai_client(response) -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response)
    return client


def _sent_parts(client: MagicMock) -> list:
    kwargs = client.aio.models.generate_content.call_args.kwargs
    return kwargs["contents"][0].parts


def _serve_images(routes: dict[str, httpx.Response]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(str(request.url), httpx.Response(404))

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _png(body: bytes = b"png-bytes") -> httpx.Response:
    return httpx.Response(200, content=body, headers={"content-type": "image/png"})


class TestExtractImageUrls:
    """Tests for reference URL filtering."""

    def test_keeps_http_strings_only(self):
        candidates = ["https://a/1.png", 42, None, "ftp://x", "not a url", "http://b/2.png"]
        assert extract_image_urls(candidates, 10) == ["https://a/1.png", "http://b/2.png"]

    def test_deduplicates_in_order(self):
        candidates = ["https://a/1", "https://a/2", "https://a/1"]
        assert extract_image_urls(candidates, 10) == ["https://a/1", "https://a/2"]

    def test_truncates_to_limit(self):
        candidates = [f"https://a/{i}" for i in range(5)]
        assert extract_image_urls(candidates, 3) == candidates[:3]


class TestGenerate:
    """Tests for ImageGenerator.generate()."""

    @pytest.mark.asyncio
    async def test_returns_data_uri_from_bytes(self, test_config):
        client = _genai_client(_response([_image_part(b"\x89PNG", "image/png")]))
        generator = ImageGenerator(test_config, client=client)

        result = await generator.generate("A ring")

        expected = base64.b64encode(b"\x89PNG").decode()
        assert result == f"data:image/png;base64,{expected}"

    @pytest.mark.asyncio
    async def test_string_payload_passes_through(self, test_config):
        client = _genai_client(_response([_image_part("QUJD", "image/webp")]))
        generator = ImageGenerator(test_config, client=client)

        assert await generator.generate("A ring") == "data:image/webp;base64,QUJD"

    @pytest.mark.asyncio
    async def test_skips_text_parts(self, test_config):
        text_part = SimpleNamespace(inline_data=None, text="here you go")
        client = _genai_client(_response([text_part, _image_part(b"x")]))
        generator = ImageGenerator(test_config, client=client)

        assert (await generator.generate("A ring")).startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_text_part_goes_last(self, test_config):
        """Reference images precede the prompt text."""
        client = _genai_client(_response([_image_part(b"x")]))
        http = _serve_images({"https://img/1.png": _png(b"one"), "https://img/2.png": _png(b"two")})
        generator = ImageGenerator(test_config, client=client, http_client=http)

        await generator.generate("A ring", ["https://img/1.png", "https://img/2.png"])
        await http.aclose()

        parts = _sent_parts(client)
        assert len(parts) == 3
        assert parts[0].inline_data.data == b"one"
        assert parts[1].inline_data.data == b"two"
        assert parts[2].text == "A ring"
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == test_config.gemini_model

    @pytest.mark.asyncio
    async def test_truncates_to_three_references(self, test_config):
        routes = {f"https://img/{i}.png": _png() for i in range(5)}
        client = _genai_client(_response([_image_part(b"x")]))
        http = _serve_images(routes)
        generator = ImageGenerator(test_config, client=client, http_client=http)

        await generator.generate("A ring", list(routes))
        await http.aclose()

        assert len(_sent_parts(client)) == 3 + 1

    @pytest.mark.asyncio
    async def test_unusable_references_are_skipped(self):
        """Non-2xx, unsupported types and oversized images are dropped."""
        config = JewelkitConfig(
            _env_file=None, google_api_key="k", max_reference_images=5, max_reference_image_bytes=4
        )
        routes = {
            "https://img/ok.png": _png(b"ok"),
            "https://img/gif": httpx.Response(
                200, content=b"g", headers={"content-type": "image/gif"}
            ),
            "https://img/big.png": _png(b"far too large"),
            "https://img/untyped": httpx.Response(200, content=b"raw"),
        }
        client = _genai_client(_response([_image_part(b"x")]))
        http = _serve_images(routes)
        generator = ImageGenerator(config, client=client, http_client=http)

        await generator.generate("A ring", [*routes, "https://img/missing.png"])
        await http.aclose()

        parts = _sent_parts(client)
        images = [p.inline_data for p in parts[:-1]]
        assert [i.data for i in images] == [b"ok", b"raw"]
        # A missing content type is treated as PNG.
        assert images[1].mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_stopped_generation_raises(self, test_config):
        reason = SimpleNamespace(value="SAFETY")
        client = _genai_client(_response([], finish_reason=reason))
        generator = ImageGenerator(test_config, client=client)

        with pytest.raises(GenerationStoppedError) as excinfo:
            await generator.generate("A ring")

        assert excinfo.value.reason == "SAFETY"
        assert "Reason: SAFETY" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_stop_without_image_raises_no_image(self, test_config):
        client = _genai_client(_response([], finish_reason="STOP"))
        generator = ImageGenerator(test_config, client=client)

        with pytest.raises(NoImageReturnedError):
            await generator.generate("A ring")

    @pytest.mark.asyncio
    async def test_no_candidates_raises_no_image(self, test_config):
        client = _genai_client(SimpleNamespace(candidates=[]))
        generator = ImageGenerator(test_config, client=client)

        with pytest.raises(NoImageReturnedError):
            await generator.generate("A ring")

    @pytest.mark.asyncio
    async def test_missing_api_key_raises(self, monkeypatch):
        for var in ("JEWELKIT_GOOGLE_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY"):
            monkeypatch.delenv(var, raising=False)
        generator = ImageGenerator(JewelkitConfig(_env_file=None))

        with pytest.raises(ConfigError, match="API key"):
            await generator.generate("A ring")

    @pytest.mark.asyncio
    async def test_empty_prompt_raises(self, test_config):
        client = _genai_client(_response([_image_part(b"x")]))
        generator = ImageGenerator(test_config, client=client)

        with pytest.raises(ConfigError, match="Prompt"):
            await generator.generate("")
        client.aio.models.generate_content.assert_not_called()
