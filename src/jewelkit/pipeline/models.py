"""Data models for the generation pipeline.

The aggregate (:class:`GenerationResult`) and everything inside it are
frozen dataclasses.  Concurrent branches never mutate it; they emit
:data:`ResultUpdate` messages that :mod:`jewelkit.pipeline.reducer` folds
into a new value.
"""

from __future__ import annotations

import logging
import os
import secrets
import tempfile
import time
from dataclasses import dataclass, field, replace
from io import BytesIO
from pathlib import Path
from typing import Generic, Literal, TypeVar, Union

from PIL import Image

logger = logging.getLogger(__name__)

AssetRole = Literal["image", "reference"]

PREVIEW_SIZE = (256, 256)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Uploaded assets and their previews.
# ---------------------------------------------------------------------------


def new_asset_id() -> str:
    """Opaque unique token: ``{ms timestamp}-{9 random chars}``."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


class ImagePreview:
    """Thumbnail of a selected file, rendered to a temporary PNG.

    The file on disk is the scoped resource; :meth:`release` deletes it and
    may be called any number of times.
    """

    def __init__(self, path: Path) -> None:
        self._path: Path | None = path

    @classmethod
    def render(cls, content: bytes, size: tuple[int, int] = PREVIEW_SIZE) -> "ImagePreview":
        """Render a thumbnail of *content*.

        Raises:
            UnidentifiedImageError: If *content* is not a decodable image.
        """
        with Image.open(BytesIO(content)) as img:
            thumb = img.convert("RGBA") if img.mode not in ("RGB", "RGBA") else img.copy()
            thumb.thumbnail(size)
            fd, name = tempfile.mkstemp(prefix="jewelkit-preview-", suffix=".png")
            with os.fdopen(fd, "wb") as fh:
                thumb.save(fh, format="PNG")
        return cls(Path(name))

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def released(self) -> bool:
        return self._path is None

    def release(self) -> None:
        if self._path is None:
            return
        try:
            self._path.unlink(missing_ok=True)
        finally:
            self._path = None


@dataclass
class UploadedAsset:
    """A file selected for a run, owned locally until uploaded.

    Attributes:
        id: Opaque unique token.
        content: Raw file bytes.
        filename: Original file name.
        content_type: MIME type of the file.
        role: ``"image"`` (primary) or ``"reference"`` (style reference).
        preview: Local thumbnail; released on removal or reset.
    """

    content: bytes
    filename: str
    content_type: str
    role: AssetRole = "image"
    id: str = field(default_factory=new_asset_id)
    preview: ImagePreview | None = None

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        filename: str,
        content_type: str,
        role: AssetRole = "image",
        *,
        with_preview: bool = True,
    ) -> "UploadedAsset":
        """Create an asset, rendering its preview.

        Raises:
            UnidentifiedImageError: If a preview is requested and *content*
                is not a decodable image.
        """
        preview = ImagePreview.render(content) if with_preview else None
        return cls(
            content=content,
            filename=filename,
            content_type=content_type,
            role=role,
            preview=preview,
        )

    def release(self) -> None:
        if self.preview is not None:
            self.preview.release()


# ---------------------------------------------------------------------------
# Aggregate result.
# ---------------------------------------------------------------------------

Category = Literal["ear", "neck", "wrist"]


@dataclass(frozen=True)
class ModelShotGroup:
    category: Category
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class ObjectResult:
    """Generated assets for one primary image."""

    studio_view: str | None = None
    model_shots: tuple[ModelShotGroup, ...] = ()

    def shots_for(self, category: str) -> tuple[str, ...]:
        for group in self.model_shots:
            if group.category == category:
                return group.images
        return ()

    def with_model_shots(self, group: ModelShotGroup) -> "ObjectResult":
        """Insert or replace the group of ``group.category``."""
        groups = list(self.model_shots)
        for i, existing in enumerate(groups):
            if existing.category == group.category:
                groups[i] = group
                break
        else:
            groups.append(group)
        return replace(self, model_shots=tuple(groups))


@dataclass(frozen=True)
class GenerationResult:
    """The aggregate exposed to the session.

    ``object_results[i]`` always belongs to the ``i``-th primary image in
    upload order.
    """

    background_assets: tuple[str, ...] = ()
    object_results: tuple[ObjectResult, ...] = ()

    @property
    def model_shot_count(self) -> int:
        return sum(len(g.images) for obj in self.object_results for g in obj.model_shots)

    def all_urls(self) -> list[str]:
        """Every non-empty asset URL: backgrounds, studio views, model shots."""
        urls = list(self.background_assets)
        urls.extend(obj.studio_view for obj in self.object_results if obj.studio_view)
        urls.extend(
            url for obj in self.object_results for g in obj.model_shots for url in g.images
        )
        return urls


EMPTY_RESULT = GenerationResult()


# ---------------------------------------------------------------------------
# Partial-update messages.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackgroundAdded:
    url: str


@dataclass(frozen=True)
class StudioViewSet:
    object_index: int
    url: str


@dataclass(frozen=True)
class ModelShotsSet:
    object_index: int
    category: Category
    images: tuple[str, ...]


@dataclass(frozen=True)
class ResultReplaced:
    result: GenerationResult


ResultUpdate = Union[BackgroundAdded, StudioViewSet, ModelShotsSet, ResultReplaced]


# ---------------------------------------------------------------------------
# Branch outcomes and progress.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BranchOutcome(Generic[T]):
    """Outcome of one guarded generation call."""

    label: str
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def success(cls, label: str, value: T) -> "BranchOutcome[T]":
        return cls(label=label, value=value)

    @classmethod
    def failure(cls, label: str, error: BaseException) -> "BranchOutcome[T]":
        return cls(label=label, error=error)


def successes(outcomes: "list[BranchOutcome[T]]") -> list[T]:
    """Values of the successful outcomes, in order."""
    return [o.value for o in outcomes if o.ok]  # type: ignore[misc]


@dataclass(frozen=True)
class ProgressState:
    stage: str
    completed: int
    total: int
    message: str

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 0.0


__all__ = [
    "AssetRole",
    "BackgroundAdded",
    "BranchOutcome",
    "Category",
    "EMPTY_RESULT",
    "GenerationResult",
    "ImagePreview",
    "ModelShotGroup",
    "ModelShotsSet",
    "ObjectResult",
    "ProgressState",
    "ResultReplaced",
    "ResultUpdate",
    "StudioViewSet",
    "UploadedAsset",
    "successes",
]
