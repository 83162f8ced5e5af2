"""Photo library writers.

A PhotoLibraryWriter accepts a finished image and persists it in the
background, reporting success or failure through a Future. The capture
workflow never blocks on it and never retries.
"""

from __future__ import annotations

import logging
import os
import sys
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from fillcam.core.errors import PersistenceError
from fillcam.core.models import SourceImage

logger = logging.getLogger(__name__)


def default_library_dir() -> Path:
    """Platform Pictures folder for saved photos.

    Returns:
        Path to ~/Pictures/FillCam (or the XDG pictures directory on Linux)
    """
    if sys.platform.startswith("linux"):
        base = Path(os.environ.get("XDG_PICTURES_DIR", Path.home() / "Pictures"))
    else:
        base = Path.home() / "Pictures"

    return base / "FillCam"


class PhotoLibraryWriter(ABC):
    """Abstract interface for photo persistence."""

    @abstractmethod
    def write(self, image: SourceImage) -> Future:
        """Persist an image asynchronously.

        Returns:
            Future resolved with the saved location, or failed with
            PersistenceError.
        """
        pass

    def close(self) -> None:
        """Release background resources."""


class DirectoryPhotoLibrary(PhotoLibraryWriter):
    """Saves photos as JPEG files in a directory."""

    def __init__(self, directory: Optional[Path] = None, quality: int = 90):
        """Initialize the DirectoryPhotoLibrary.

        Args:
            directory: Target directory; platform Pictures folder if None
            quality: JPEG quality (1-95)
        """
        self.directory = Path(directory) if directory is not None else default_library_dir()
        self.quality = max(1, min(quality, 95))
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="PhotoLibrary")

        logger.info(f"Photo library initialized at: {self.directory}")

    def write(self, image: SourceImage) -> Future:
        logger.info(f"Saving {image.width}x{image.height} photo to library")
        return self._executor.submit(self._write, image)

    def _write(self, image: SourceImage) -> Path:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path = self._next_path()

            pil_image = Image.fromarray(image.pixels)
            pil_image.save(path, format="JPEG", quality=self.quality)

        except Exception as e:
            logger.error(f"Failed to save photo: {e}")
            raise PersistenceError(f"Failed to save photo to {self.directory}", e) from e

        logger.info(f"Photo saved: {path}")
        return path

    def _next_path(self) -> Path:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        path = self.directory / f"IMG_{stamp}.jpg"

        counter = 1
        while path.exists():
            path = self.directory / f"IMG_{stamp}_{counter}.jpg"
            counter += 1

        return path

    def close(self) -> None:
        self._executor.shutdown(wait=True)
