"""Step-counted progress for a generation run."""

from __future__ import annotations

import logging
from collections.abc import Callable

from jewelkit.core.prompts import BACKGROUND_PROMPTS, MODEL_SHOT_CATEGORIES, SHOTS_PER_CATEGORY
from jewelkit.pipeline.models import ProgressState

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressState], None]

UPLOAD_STEPS = 1


def steps_per_image() -> int:
    """One studio call plus every model shot."""
    return 1 + len(MODEL_SHOT_CATEGORIES) * SHOTS_PER_CATEGORY


def total_steps(image_count: int, background_count: int = len(BACKGROUND_PROMPTS)) -> int:
    """``1 (upload) + backgrounds + image_count * (1 studio + 9 model shots)``."""
    return UPLOAD_STEPS + background_count + image_count * steps_per_image()


class ProgressTracker:
    """Monotonic step counter that republishes its state on every change.

    The counter is observational only; nothing in the pipeline branches on
    it.  It never exceeds ``total``.
    """

    def __init__(self, total: int, listener: ProgressListener | None = None) -> None:
        self.total = total
        self.completed = 0
        self._listener = listener
        self.state: ProgressState | None = None

    def advance(self, stage: str, message: str, increment: int = 1) -> ProgressState:
        """Add *increment* completed steps and publish the new state.

        Raises:
            ValueError: If *increment* is negative.
        """
        if increment < 0:
            raise ValueError("Progress cannot move backwards")
        self.completed = min(self.total, self.completed + increment)
        self.state = ProgressState(
            stage=stage, completed=self.completed, total=self.total, message=message
        )
        logger.debug("Progress %d/%d [%s] %s", self.completed, self.total, stage, message)
        if self._listener is not None:
            self._listener(self.state)
        return self.state
