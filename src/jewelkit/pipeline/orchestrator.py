"""Generation orchestrator: the fan-out/fan-in plan behind one asset kit.

A run goes through five sequential stages, each internally concurrent:

1. **Uploading** — every primary and reference image is uploaded at once.
   Any failure cancels the remaining uploads and aborts the run; nothing is
   generated.
2. **Backgrounds** — five independent background generations.  A failing
   call is logged and omitted.  Successes stream into the aggregate in
   completion order; the final aggregate and the style references of later
   stages use launch order.
3. **Objects** — per primary image, one studio call and three categories of
   three model shots, all concurrent.  Every call degrades to omission on
   failure.  A category enters the aggregate once its three shots settle and
   at least one succeeded.
4. **Aggregation** — the final aggregate replaces the incremental one.
5. **Completion** — progress is marked complete.

Progress totals ``1 + 5 + 10 * image_count`` steps.  Every settled
generation call counts as one step whether it succeeded or not, so a run
that completes always ends at the total.

Usage
-----
::

    async with StudioApiClient(config) as api:
        orchestrator = GenerationOrchestrator(api, on_result=print, on_progress=print)
        result = await orchestrator.run(images, references)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from jewelkit.core.prompts import (
    BACKGROUND_PROMPTS,
    MODEL_SHOT_CATEGORIES,
    SHOTS_PER_CATEGORY,
    STUDIO_PROMPT,
    background_prompt,
    model_shot_prompt,
)
from jewelkit.pipeline.models import (
    BackgroundAdded,
    BranchOutcome,
    GenerationResult,
    ModelShotGroup,
    ModelShotsSet,
    ObjectResult,
    ResultReplaced,
    StudioViewSet,
    UploadedAsset,
    successes,
)
from jewelkit.pipeline.progress import ProgressListener, ProgressTracker, total_steps
from jewelkit.pipeline.reducer import ResultListener, ResultStore

logger = logging.getLogger(__name__)

STYLE_REFERENCE_BACKGROUNDS = 2


class StudioApi(Protocol):
    """What the orchestrator needs from the API client."""

    async def upload(self, asset: UploadedAsset) -> str: ...

    async def generate(
        self,
        prompt: str,
        urls: Sequence[str],
        references: Sequence[str] | None = None,
        generation_type: str | None = None,
    ) -> str: ...


class GenerationOrchestrator:
    """Drives one asset-kit run against a :class:`StudioApi`.

    Attributes:
        api: Upload/generate client.
        on_result: Called with every new aggregate value.
        on_progress: Called with every new progress state.
        background_prompts: Base prompts, one background call each.
    """

    def __init__(
        self,
        api: StudioApi,
        *,
        on_result: ResultListener | None = None,
        on_progress: ProgressListener | None = None,
        background_prompts: Sequence[str] = BACKGROUND_PROMPTS,
    ) -> None:
        self.api = api
        self.on_result = on_result
        self.on_progress = on_progress
        self.background_prompts = tuple(background_prompts)

    async def run(
        self,
        images: Sequence[UploadedAsset],
        references: Sequence[UploadedAsset] = (),
    ) -> GenerationResult:
        """Run the full plan and return the final aggregate.

        Args:
            images: Primary images, in the order results must be indexed.
            references: Style reference images.

        Returns:
            The final aggregate: at most ``len(background_prompts)``
            backgrounds and exactly ``len(images)`` object results.

        Raises:
            ValueError: If *images* is empty.
            Exception: Whatever an upload raised; the run is aborted.
        """
        if not images:
            raise ValueError("At least one primary image is required")

        progress = ProgressTracker(
            total_steps(len(images), len(self.background_prompts)), self.on_progress
        )
        store = ResultStore(listener=self.on_result)

        async with store.running():
            progress.advance(
                "Uploading",
                "Uploading your jewelry images and references to cloud storage...",
                0,
            )
            urls = await self._upload_all([*images, *references])
            image_urls, reference_urls = urls[: len(images)], urls[len(images) :]
            progress.advance(
                "Preparing",
                "Files uploaded successfully! Analyzing jewelry for AI generation...",
            )

            backgrounds = await self._generate_backgrounds(
                image_urls, reference_urls, store, progress
            )

            progress.advance(
                "Object Processing",
                "Starting parallel generation for all jewelry pieces...",
                0,
            )
            style_refs = backgrounds[:STYLE_REFERENCE_BACKGROUNDS]
            objects = await asyncio.gather(
                *(
                    self._process_object(
                        index, url, style_refs, reference_urls, store, progress
                    )
                    for index, url in enumerate(image_urls)
                )
            )

            final = GenerationResult(
                background_assets=tuple(backgrounds), object_results=tuple(objects)
            )
            store.submit(ResultReplaced(final))

        progress.advance(
            "Complete",
            "All images generated successfully! You can now download your jewelry photos.",
            0,
        )
        return store.state

    # -----------------------------------------------------------------------
    # Stage 1
    # -----------------------------------------------------------------------

    async def _upload_all(self, assets: Sequence[UploadedAsset]) -> list[str]:
        """Upload every asset concurrently, returning URLs in input order.

        The first failure cancels the uploads still in flight and is re-raised.
        """
        tasks = [asyncio.ensure_future(self.api.upload(a)) for a in assets]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    # -----------------------------------------------------------------------
    # Guarded calls
    # -----------------------------------------------------------------------

    @staticmethod
    async def _guarded(label: str, call: Callable[[], Awaitable[str]]) -> BranchOutcome[str]:
        try:
            return BranchOutcome.success(label, await call())
        except Exception as e:
            logger.error("%s generation failed: %s", label, e)
            return BranchOutcome.failure(label, e)

    # -----------------------------------------------------------------------
    # Stage 2
    # -----------------------------------------------------------------------

    async def _generate_backgrounds(
        self,
        image_urls: list[str],
        reference_urls: list[str],
        store: ResultStore,
        progress: ProgressTracker,
    ) -> list[str]:
        progress.advance(
            "Background Analysis",
            "AI is analyzing your jewelry to suggest perfect backgrounds...",
            0,
        )
        style_source = reference_urls if reference_urls else image_urls[:1]
        count = len(self.background_prompts)

        async def one(i: int, base: str) -> BranchOutcome[str]:
            label = f"Background {i + 1}"
            outcome = await self._guarded(
                label,
                lambda: self.api.generate(
                    background_prompt(base), style_source, generation_type="background"
                ),
            )
            if outcome.ok:
                store.submit(BackgroundAdded(outcome.value))
                status = "created successfully!"
            else:
                status = "failed, skipping."
            progress.advance("Backgrounds", f"Background {i + 1} of {count} {status}")
            return outcome

        outcomes = await asyncio.gather(
            *(one(i, p) for i, p in enumerate(self.background_prompts))
        )
        backgrounds = successes(list(outcomes))
        logger.info("%d of %d backgrounds generated", len(backgrounds), count)
        # Streamed in completion order; the returned list is in launch order.
        return backgrounds

    # -----------------------------------------------------------------------
    # Stage 3
    # -----------------------------------------------------------------------

    async def _process_object(
        self,
        index: int,
        image_url: str,
        style_refs: list[str],
        reference_urls: list[str],
        store: ResultStore,
        progress: ProgressTracker,
    ) -> ObjectResult:
        piece = index + 1

        async def studio() -> str | None:
            outcome = await self._guarded(
                f"Studio shot for piece {piece}",
                lambda: self.api.generate(
                    STUDIO_PROMPT, [image_url], style_refs, generation_type="studio"
                ),
            )
            if outcome.ok:
                store.submit(StudioViewSet(index, outcome.value))
                progress.advance("Studio Photography", f"Studio shot for piece {piece} completed!")
            else:
                progress.advance("Studio Photography", f"Studio shot for piece {piece} failed.")
            return outcome.value

        async def category(name: str) -> ModelShotGroup | None:
            prompt = model_shot_prompt(name)
            refs = [*style_refs, *reference_urls]

            async def shot(n: int) -> BranchOutcome[str]:
                label = f"{name} shot {n + 1} for piece {piece}"
                outcome = await self._guarded(
                    label,
                    lambda: self.api.generate(prompt, [image_url], refs, generation_type="model"),
                )
                status = "completed!" if outcome.ok else "failed."
                progress.advance("Model Photography", f"{label} {status}")
                return outcome

            outcomes = await asyncio.gather(*(shot(n) for n in range(SHOTS_PER_CATEGORY)))
            images = tuple(successes(list(outcomes)))
            if not images:
                return None
            store.submit(ModelShotsSet(index, name, images))
            return ModelShotGroup(category=name, images=images)

        studio_view, *groups = await asyncio.gather(
            studio(), *(category(name) for name in MODEL_SHOT_CATEGORIES)
        )
        return ObjectResult(
            studio_view=studio_view,
            model_shots=tuple(g for g in groups if g is not None),
        )
