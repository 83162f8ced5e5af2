"""Error types for the capture core.

Every error raised by the capture session, the cropper and the photo
library derives from FillCamError so the UI boundary can catch them in one
place. None of them is fatal to the process.
"""

from __future__ import annotations

from typing import Optional


class FillCamError(Exception):
    """Base error for capture-core failures."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} (cause: {self.cause})"


class ConfigurationError(FillCamError):
    """No usable camera, or its input/output could not be attached.

    Terminal for the screen instance that raised it; no retry is attempted.
    """


class InvalidStateError(FillCamError):
    """Operation requested in a session state that does not allow it."""


class BusyError(FillCamError):
    """A photo capture is already in flight."""


class CaptureError(FillCamError):
    """Hardware or codec failure during a still capture."""


class CaptureTimeoutError(CaptureError):
    """The hardware did not answer a capture request in time."""


class DegenerateInputError(FillCamError, ValueError):
    """Zero-sized dimensions were passed to the cropper."""


class PersistenceError(FillCamError):
    """Writing a photo to the library failed."""
