"""Session state for one user building an asset kit.

:class:`GenerationSession` owns everything a single user session holds:
the selected primary and reference files (with their previews), the
current aggregate, the current progress state and the last user-visible
error.  It is the only writer of that state; the orchestrator reports into
it through callbacks.

Previews are the session's scoped resources: removing a file, resetting
the session or closing it releases them.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from collections.abc import Callable, Iterable
from pathlib import Path

from jewelkit.core.config import JewelkitConfig
from jewelkit.pipeline.models import (
    EMPTY_RESULT,
    AssetRole,
    GenerationResult,
    ProgressState,
    UploadedAsset,
)
from jewelkit.pipeline.orchestrator import GenerationOrchestrator, StudioApi
logger = logging.getLogger(__name__)

# Receives every progress change, including the clear to ``None``.
SessionProgressListener = Callable[[ProgressState | None], None]


class GenerationSession:
    """One user's files, results and progress.

    Attributes:
        images (list[UploadedAsset]): Primary images in selection order.
        references (list[UploadedAsset]): Style reference images.
        result (GenerationResult): Current aggregate.
        single_result (str | None): URL produced by the last prompt-driven
            single-image generation.
        progress (ProgressState | None): Current progress, ``None`` when idle.
        error (str | None): Last user-visible error.
        is_generating (bool): Whether a run is in flight.
    """

    def __init__(
        self,
        api: StudioApi,
        config: JewelkitConfig,
        *,
        progress_listener: SessionProgressListener | None = None,
    ) -> None:
        self._api = api
        self._progress_listener = progress_listener
        self._clear_delay = config.progress_clear_delay
        self._clear_handle: asyncio.TimerHandle | None = None

        self.images: list[UploadedAsset] = []
        self.references: list[UploadedAsset] = []
        self.result: GenerationResult = EMPTY_RESULT
        self.single_result: str | None = None
        self.progress: ProgressState | None = None
        self.error: str | None = None
        self.is_generating = False

    def __enter__(self) -> "GenerationSession":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _files(self, role: AssetRole) -> list[UploadedAsset]:
        return self.images if role == "image" else self.references

    # -----------------------------------------------------------------------
    # File selection
    # -----------------------------------------------------------------------

    def add_file(
        self, content: bytes, filename: str, content_type: str, role: AssetRole = "image"
    ) -> UploadedAsset | None:
        """Select one file.

        Non-image files are ignored.  Images without a renderable preview
        (SVG, AVIF and other formats Pillow cannot decode) are kept without
        one.  Selecting a file clears the previous results and error.

        Returns:
            The new asset, or ``None`` when the file was ignored.
        """
        if not content_type.startswith("image/"):
            logger.info("Ignoring non-image file %s (%s)", filename, content_type)
            return None
        try:
            asset = UploadedAsset.from_bytes(content, filename, content_type, role)
        except OSError as e:
            logger.warning("No preview for %s: %s", filename, e)
            asset = UploadedAsset.from_bytes(
                content, filename, content_type, role, with_preview=False
            )

        self._files(role).append(asset)
        self.error = None
        self.result = EMPTY_RESULT
        self.single_result = None
        return asset

    def add_paths(
        self, paths: Iterable[str | Path], role: AssetRole = "image"
    ) -> list[UploadedAsset]:
        """Select files from disk; the content type is guessed from the name."""
        added = []
        for raw in paths:
            path = Path(raw)
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            asset = self.add_file(path.read_bytes(), path.name, content_type, role)
            if asset is not None:
                added.append(asset)
        return added

    def remove_file(self, asset_id: str, role: AssetRole = "image") -> bool:
        """Deselect a file and release its preview.

        Returns:
            ``True`` if a file with *asset_id* was selected.
        """
        files = self._files(role)
        for i, asset in enumerate(files):
            if asset.id == asset_id:
                asset.release()
                del files[i]
                return True
        return False

    def reset(self) -> None:
        """Release every preview and clear all state."""
        for asset in (*self.images, *self.references):
            asset.release()
        self.images.clear()
        self.references.clear()
        self._cancel_clear()
        self.result = EMPTY_RESULT
        self.single_result = None
        self.progress = None
        self.error = None

    def close(self) -> None:
        self.reset()

    # -----------------------------------------------------------------------
    # Generation
    # -----------------------------------------------------------------------

    def _set_result(self, result: GenerationResult) -> None:
        self.result = result

    def _set_progress(self, state: ProgressState | None) -> None:
        self.progress = state
        if self._progress_listener is not None:
            self._progress_listener(state)

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _clear_progress(self) -> None:
        self._clear_handle = None
        self._set_progress(None)

    async def generate(self) -> GenerationResult | None:
        """Run the orchestrator over the selected files.

        Failures are not raised: they are stored in :attr:`error` and the
        progress is cleared.

        Returns:
            The final aggregate, or ``None`` if the run did not complete.
        """
        if not self.images:
            self.error = "Please upload at least one image"
            return None
        if self.is_generating:
            self.error = "A generation is already in progress"
            return None

        self._cancel_clear()
        self.is_generating = True
        self.error = None
        self.result = EMPTY_RESULT

        orchestrator = GenerationOrchestrator(
            self._api, on_result=self._set_result, on_progress=self._set_progress
        )
        try:
            result = await orchestrator.run(list(self.images), list(self.references))
        except Exception as e:
            logger.error("Generation error: %s", e, exc_info=True)
            self.error = str(e) or "Failed to generate images"
            self._set_progress(None)
            return None
        finally:
            self.is_generating = False

        self.result = result
        loop = asyncio.get_running_loop()
        self._clear_handle = loop.call_later(self._clear_delay, self._clear_progress)
        return result

    async def generate_single(self, prompt: str) -> str | None:
        """Generate one image from the first primary image and a free-form prompt.

        The image is uploaded and sent with *prompt* as an untyped request,
        so the server applies no style suffix.  Failures are stored in
        :attr:`error` like :meth:`generate`.

        Returns:
            The processed image URL, or ``None`` if the request did not
            complete.
        """
        if not self.images:
            self.error = "Please select a file first"
            return None
        if not prompt.strip():
            self.error = "Please enter a prompt"
            return None
        if self.is_generating:
            self.error = "A generation is already in progress"
            return None

        self.is_generating = True
        self.error = None
        self.single_result = None
        try:
            url = await self._api.upload(self.images[0])
            processed = await self._api.generate(prompt, [url])
        except Exception as e:
            logger.error("Single-image generation error: %s", e, exc_info=True)
            self.error = str(e) or "Failed to process image"
            return None
        finally:
            self.is_generating = False

        self.single_result = processed
        return processed
