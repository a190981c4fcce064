"""Generation pipeline: the orchestrator and the session state around it.

Modules
-------
models
    Uploaded assets, the immutable aggregate, update messages, progress.
reducer
    Applies update messages to the aggregate from a single consumer.
progress
    Step-counted progress tracking.
client
    HTTP client for the upload and generate endpoints.
orchestrator
    The staged fan-out/fan-in generation plan.
session
    Per-user files, results, progress and errors.
export
    Website-brief text export of a finished kit.
cli
    ``jewelkit-kit`` command-line driver.
"""

from jewelkit.pipeline.export import build_ecommerce_prompt
from jewelkit.pipeline.models import GenerationResult, ObjectResult, UploadedAsset
from jewelkit.pipeline.orchestrator import GenerationOrchestrator
from jewelkit.pipeline.session import GenerationSession

__all__ = [
    "GenerationOrchestrator",
    "GenerationResult",
    "GenerationSession",
    "ObjectResult",
    "UploadedAsset",
    "build_ecommerce_prompt",
]
