"""
Camera preview widget.

This module provides the CameraPreviewWidget, which shows either the live
camera feed or a still photo, always scaled with aspect-fill so the whole
widget is covered without distortion.
"""

import logging
from typing import Callable, Optional

import numpy as np
from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QImage, QPixmap
from PySide6.QtWidgets import QLabel, QSizePolicy, QVBoxLayout, QWidget

from fillcam.core.errors import DegenerateInputError
from fillcam.core.imaging import aspect_fill_rect
from fillcam.core.models import SourceImage, ViewportSpec

logger = logging.getLogger(__name__)

FrameSource = Callable[[], Optional[np.ndarray]]


def array_to_pixmap(image: np.ndarray) -> Optional[QPixmap]:
    """Convert an RGB numpy array to a QPixmap.

    Args:
        image: RGB uint8 array of shape (height, width, 3)

    Returns:
        QPixmap, or None if conversion fails
    """
    try:
        # QImage requires a C-contiguous buffer
        if not image.flags["C_CONTIGUOUS"]:
            image = np.ascontiguousarray(image)

        height, width, channels = image.shape
        bytes_per_line = channels * width
        q_image = QImage(
            image.data,
            width,
            height,
            bytes_per_line,
            QImage.Format.Format_RGB888,
        )

        # QPixmap.fromImage copies, so the numpy buffer may be released afterwards
        return QPixmap.fromImage(q_image)

    except Exception as e:
        logger.error(f"Error converting frame to pixmap: {e}", exc_info=True)
        return None


class CameraPreviewWidget(QWidget):
    """Aspect-fill display for the live feed or a captured photo.

    Live frames are pulled from a frame source on a QTimer. While a still
    is shown the timer keeps running but frames are not drawn.
    """

    def __init__(
        self,
        frame_source: Optional[FrameSource] = None,
        fps: int = 30,
        parent: Optional[QWidget] = None,
    ):
        """Initialize the CameraPreviewWidget.

        Args:
            frame_source: Callable returning the latest RGB frame or None
            fps: Preview refresh rate
            parent: Optional parent widget
        """
        super().__init__(parent)

        self._frame_source = frame_source
        self._interval_ms = int(1000 / max(1, min(fps, 60)))
        self._update_timer = QTimer(self)
        self._update_timer.timeout.connect(self._update_frame)
        self._still: Optional[SourceImage] = None

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self._video_label = QLabel()
        self._video_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._video_label.setSizePolicy(QSizePolicy.Policy.Ignored, QSizePolicy.Policy.Ignored)
        self._video_label.setStyleSheet("QLabel { background-color: black; color: white; }")
        self._video_label.setText("Starting camera...")
        layout.addWidget(self._video_label)

    def set_frame_source(self, frame_source: FrameSource) -> None:
        self._frame_source = frame_source

    def start_updates(self) -> None:
        if self._frame_source is None:
            return
        self._update_timer.start(self._interval_ms)
        logger.debug("Preview updates started")

    def stop_updates(self) -> None:
        self._update_timer.stop()
        logger.debug("Preview updates stopped")

    def is_updating(self) -> bool:
        return self._update_timer.isActive()

    def show_still(self, image: SourceImage) -> None:
        """Freeze the display on a captured photo."""
        self._still = image
        self._render(image.pixels)

    def clear_still(self) -> None:
        """Return to the live feed."""
        self._still = None
        self._video_label.clear()
        self._video_label.setText("Starting camera...")

    def is_showing_still(self) -> bool:
        return self._still is not None

    def show_message(self, text: str) -> None:
        self._video_label.clear()
        self._video_label.setText(text)

    def viewport(self) -> ViewportSpec:
        return ViewportSpec(width=self.width(), height=self.height())

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        if self._still is not None:
            self._render(self._still.pixels)

    def _update_frame(self) -> None:
        if self._still is not None or self._frame_source is None:
            return

        try:
            frame = self._frame_source()
        except Exception as e:
            logger.error(f"Error reading preview frame: {e}", exc_info=True)
            return

        if frame is None:
            return

        self._render(frame)

    def _render(self, image: np.ndarray) -> None:
        try:
            rect = aspect_fill_rect(image.shape[1], image.shape[0], self.viewport())
        except DegenerateInputError:
            # Not laid out yet
            return

        left, top, right, bottom = rect.to_pixel_box(image.shape[1], image.shape[0])
        pixmap = array_to_pixmap(image[top:bottom, left:right])

        if pixmap is not None:
            self._video_label.setPixmap(
                pixmap.scaled(
                    self._video_label.size(),
                    Qt.AspectRatioMode.KeepAspectRatio,
                    Qt.TransformationMode.FastTransformation,
                )
            )
