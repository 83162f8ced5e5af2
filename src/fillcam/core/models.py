"""Core data models for FillCam.

This module contains the enums, value objects and settings dataclasses
shared by the capture session, the cropper, the photo library and the
desktop UI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from fillcam.core.errors import DegenerateInputError

# ============================================================================
# Basic Value Objects
# ============================================================================


@dataclass(frozen=True)
class Resolution:
    """Video resolution."""

    width: int
    height: int

    def __str__(self) -> str:
        """String representation."""
        return f"{self.width}x{self.height}"

    def to_tuple(self) -> Tuple[int, int]:
        """Convert to (width, height) tuple."""
        return (self.width, self.height)

    @property
    def aspect_ratio(self) -> float:
        """Calculate aspect ratio."""
        return self.width / self.height if self.height > 0 else 0.0


@dataclass(frozen=True)
class ViewportSpec:
    """Pixel dimensions of the region a photo is displayed in."""

    width: float
    height: float

    @property
    def aspect_ratio(self) -> float:
        """Width over height.

        Raises:
            DegenerateInputError: If the height is not positive
        """
        if self.height <= 0:
            raise DegenerateInputError(f"Viewport height must be positive, got {self.height}")
        return self.width / self.height


@dataclass(frozen=True, eq=False)
class SourceImage:
    """A captured still: an RGB pixel buffer of shape (height, width, 3)."""

    pixels: np.ndarray

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> SourceImage:
        """Wrap an RGB uint8 array, validating its shape.

        Raises:
            ValueError: If the array is not a (height, width, 3) image
        """
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError(f"Expected an RGB image of shape (H, W, 3), got {pixels.shape}")
        if pixels.dtype != np.uint8:
            pixels = pixels.astype(np.uint8)
        return cls(pixels=np.ascontiguousarray(pixels))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def resolution(self) -> Resolution:
        return Resolution(width=self.width, height=self.height)

    @property
    def aspect_ratio(self) -> float:
        """Width over height.

        Raises:
            DegenerateInputError: If the image has no rows
        """
        if self.height <= 0:
            raise DegenerateInputError("Image height must be positive")
        return self.width / self.height


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in source-image pixel coordinates."""

    x: float
    y: float
    width: float
    height: float

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height > 0 else 0.0

    def to_tuple(self) -> Tuple[float, float, float, float]:
        """Convert to (x, y, width, height) tuple."""
        return (self.x, self.y, self.width, self.height)

    def to_pixel_box(self, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
        """Round to an integer (left, top, right, bottom) box inside the image.

        A rectangle that rounds to zero width or height still keeps one pixel
        along that axis, as long as the image has one.
        """
        left, right = _pixel_span(self.x, self.width, image_width)
        top, bottom = _pixel_span(self.y, self.height, image_height)
        return (left, top, right, bottom)


def _pixel_span(start: float, length: float, limit: int) -> Tuple[int, int]:
    low = max(0, min(limit, int(round(start))))
    high = max(low, min(limit, int(round(start + length))))
    if high == low and limit > 0:
        if high < limit:
            high += 1
        else:
            low -= 1
    return (low, high)


# ============================================================================
# Enums
# ============================================================================


class CaptureSessionState(Enum):
    """State of a capture session.

    UNCONFIGURED → CONFIGURED (configure)
    CONFIGURED/IDLE → RUNNING (start)
    RUNNING → IDLE (stop)
    RUNNING → CAPTURE_PENDING → RUNNING (capture_photo)
    """

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    RUNNING = "running"
    CAPTURE_PENDING = "capture_pending"
    IDLE = "idle"

    @property
    def can_start(self) -> bool:
        return self in (CaptureSessionState.CONFIGURED, CaptureSessionState.IDLE)

    @property
    def is_streaming(self) -> bool:
        return self in (CaptureSessionState.RUNNING, CaptureSessionState.CAPTURE_PENDING)


class CameraPosition(Enum):
    """Physical facing of a camera."""

    BACK = "back"
    FRONT = "front"
    UNSPECIFIED = "unspecified"


class CameraDeviceType(Enum):
    """Kind of camera device."""

    BUILT_IN_WIDE_ANGLE = "built_in_wide_angle"
    EXTERNAL = "external"


class WorkflowPhase(Enum):
    """Screen-level phase of the camera workflow."""

    LIVE = "live"
    PREVIEWING = "previewing"
    SAVING = "saving"
    SAVED = "saved"


# ============================================================================
# Device and Capture Models
# ============================================================================


@dataclass
class CameraDeviceInfo:
    """Metadata for a camera device."""

    device_id: str
    index: int
    name: str
    position: CameraPosition = CameraPosition.UNSPECIFIED
    device_type: CameraDeviceType = CameraDeviceType.EXTERNAL
    resolution: Optional[Resolution] = None
    fps: Optional[int] = None


@dataclass(frozen=True, eq=False)
class CapturedPhoto:
    """Result of a successful one-shot capture."""

    image: SourceImage
    timestamp: datetime
    device_id: str


# ============================================================================
# Settings Models
# ============================================================================


@dataclass
class WindowGeometry:
    """Window geometry for UI persistence."""

    x: int
    y: int
    width: int
    height: int


@dataclass
class AppSettings:
    """Application settings."""

    camera_index: Optional[int] = None  # None: first device found
    preferred_resolution: Optional[Resolution] = None
    preview_fps: int = 30
    capture_timeout: Optional[float] = 10.0  # Seconds, None waits forever
    photo_library_dir: Optional[Path] = None  # None: platform Pictures folder
    jpeg_quality: int = 90
    window_geometry: Optional[WindowGeometry] = field(default=None)
