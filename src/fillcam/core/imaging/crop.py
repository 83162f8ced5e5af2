"""Aspect-fill cropping.

Computes the centered rectangle of a source image that fills a viewport
without distortion or letterboxing, discarding the excess along exactly one
axis, and extracts that rectangle at 1:1 scale.
"""

from __future__ import annotations

import logging

from fillcam.core.errors import DegenerateInputError
from fillcam.core.models import CropRect, SourceImage, ViewportSpec

logger = logging.getLogger(__name__)


def _check_dimensions(image_width: float, image_height: float, viewport: ViewportSpec) -> None:
    if image_width <= 0 or image_height <= 0:
        raise DegenerateInputError(
            f"Image dimensions must be positive, got {image_width}x{image_height}"
        )
    if viewport.width <= 0 or viewport.height <= 0:
        raise DegenerateInputError(
            f"Viewport dimensions must be positive, got {viewport.width}x{viewport.height}"
        )


def aspect_fill_rect(image_width: float, image_height: float, viewport: ViewportSpec) -> CropRect:
    """Compute the aspect-fill crop for an image of the given size.

    Args:
        image_width: Source width in pixels
        image_height: Source height in pixels
        viewport: Display region the crop must fill

    Returns:
        CropRect in source pixel coordinates, centered on the image

    Raises:
        DegenerateInputError: If any dimension is zero or negative
    """
    _check_dimensions(image_width, image_height, viewport)

    viewport_aspect = viewport.width / viewport.height
    image_aspect = image_width / image_height

    if image_aspect > viewport_aspect:
        # Image is relatively wider: keep full height, trim the sides
        crop_width = image_height * viewport_aspect
        crop_height = float(image_height)
    else:
        # Image is relatively taller (or equal): keep full width, trim top and bottom
        crop_width = float(image_width)
        crop_height = image_width / viewport_aspect

    # Never exceed the source
    crop_width = min(crop_width, float(image_width))
    crop_height = min(crop_height, float(image_height))

    x = max(0.0, (image_width - crop_width) / 2)
    y = max(0.0, (image_height - crop_height) / 2)

    return CropRect(x=x, y=y, width=crop_width, height=crop_height)


def aspect_fill_crop(image: SourceImage, viewport: ViewportSpec) -> CropRect:
    """Compute the aspect-fill crop rectangle of a SourceImage."""
    return aspect_fill_rect(image.width, image.height, viewport)


def crop_to_fill(image: SourceImage, viewport: ViewportSpec) -> SourceImage:
    """Extract the aspect-fill region of an image at 1:1 scale.

    The result is never empty: a crop thinner than a pixel keeps one.

    Raises:
        DegenerateInputError: If any dimension is zero or negative
    """
    rect = aspect_fill_crop(image, viewport)
    left, top, right, bottom = rect.to_pixel_box(image.width, image.height)

    logger.debug(
        f"Cropping {image.width}x{image.height} to ({left}, {top}, {right}, {bottom}) "
        f"for viewport {viewport.width}x{viewport.height}"
    )
    return SourceImage.from_array(image.pixels[top:bottom, left:right].copy())
