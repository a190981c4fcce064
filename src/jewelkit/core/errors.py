"""Exception taxonomy shared by the storage client, the generation client,
the API layer and the orchestrator.

All messages are meant to be shown to a user as-is: the API returns them in
the ``error`` field of ``{"success": false, "error": ...}`` responses and the
orchestrator surfaces them as its single top-level error.
"""

from __future__ import annotations


class JewelkitError(Exception):
    """Base class for every error raised by Jewelkit."""


class ConfigError(JewelkitError):
    """A required credential or configuration value is missing."""


class ValidationError(JewelkitError):
    """A request is missing a required field or carries a malformed one."""


class FetchError(JewelkitError):
    """A remote resource answered with a non-2xx status."""


class UploadError(JewelkitError):
    """Writing an object to the blob store failed."""


class DeleteError(JewelkitError):
    """Deleting an object from the blob store failed."""


class GenerationStoppedError(JewelkitError):
    """The generation model stopped before producing an image."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Image generation stopped unexpectedly. Reason: {reason}")


class NoImageReturnedError(JewelkitError):
    """The generation model finished normally but returned no image part."""

    def __init__(self, message: str = "The generation model did not return an image") -> None:
        super().__init__(message)


class NetworkError(JewelkitError):
    """A client-side call to the Jewelkit API failed or was rejected."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
