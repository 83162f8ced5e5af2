"""Image geometry for fitting captured photos to a display region."""

from fillcam.core.imaging.crop import (
    aspect_fill_crop,
    aspect_fill_rect,
    crop_to_fill,
)

__all__ = [
    "aspect_fill_crop",
    "aspect_fill_rect",
    "crop_to_fill",
]
