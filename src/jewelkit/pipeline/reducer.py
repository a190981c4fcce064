"""Reducer for incremental result updates.

Concurrent branches of a run never touch the aggregate directly.  Each
branch submits an immutable update message to a :class:`ResultStore`; a
single consumer task applies the messages in arrival order with
:func:`apply_update` and publishes every new value to a listener.

Each branch owns disjoint fields (backgrounds append to their own list;
each object index and category within it has exactly one writer), so
arrival order only affects background ordering.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import replace

from jewelkit.pipeline.models import (
    EMPTY_RESULT,
    BackgroundAdded,
    GenerationResult,
    ModelShotGroup,
    ModelShotsSet,
    ObjectResult,
    ResultReplaced,
    ResultUpdate,
    StudioViewSet,
)

logger = logging.getLogger(__name__)

ResultListener = Callable[[GenerationResult], None]


def _with_object(
    result: GenerationResult, index: int, fn: Callable[[ObjectResult], ObjectResult]
) -> GenerationResult:
    objects = list(result.object_results)
    if index >= len(objects):
        objects.extend(ObjectResult() for _ in range(index + 1 - len(objects)))
    objects[index] = fn(objects[index])
    return replace(result, object_results=tuple(objects))


def apply_update(result: GenerationResult, update: ResultUpdate) -> GenerationResult:
    """Return *result* with *update* applied.

    Args:
        result: Current aggregate (never modified).
        update: One partial-update message.

    Returns:
        The new aggregate.

    Raises:
        TypeError: If *update* is not a known message type.
    """
    if isinstance(update, BackgroundAdded):
        return replace(result, background_assets=(*result.background_assets, update.url))
    if isinstance(update, StudioViewSet):
        return _with_object(
            result, update.object_index, lambda obj: replace(obj, studio_view=update.url)
        )
    if isinstance(update, ModelShotsSet):
        group = ModelShotGroup(category=update.category, images=tuple(update.images))
        return _with_object(result, update.object_index, lambda obj: obj.with_model_shots(group))
    if isinstance(update, ResultReplaced):
        return update.result
    raise TypeError(f"Unknown result update: {update!r}")


class ResultStore:
    """Single-consumer queue that folds updates into the aggregate.

    Usage::

        store = ResultStore(listener=print)
        async with store.running():
            store.submit(BackgroundAdded("https://..."))
        store.state  # reflects every submitted update
    """

    def __init__(
        self,
        initial: GenerationResult = EMPTY_RESULT,
        listener: ResultListener | None = None,
    ) -> None:
        self._state = initial
        self._listener = listener
        self._queue: asyncio.Queue[ResultUpdate] = asyncio.Queue()

    @property
    def state(self) -> GenerationResult:
        return self._state

    def submit(self, update: ResultUpdate) -> None:
        self._queue.put_nowait(update)

    def _apply(self, update: ResultUpdate) -> None:
        self._state = apply_update(self._state, update)
        if self._listener is not None:
            self._listener(self._state)

    async def _consume(self) -> None:
        while True:
            update = await self._queue.get()
            try:
                self._apply(update)
            except Exception:
                logger.error("Failed to apply result update %r", update, exc_info=True)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every submitted update has been applied."""
        await self._queue.join()

    @asynccontextmanager
    async def running(self) -> AsyncIterator["ResultStore"]:
        """Run the consumer for the duration of the block.

        On normal exit pending updates are applied before returning.
        """
        consumer = asyncio.create_task(self._consume())
        try:
            yield self
            await self.drain()
        finally:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
