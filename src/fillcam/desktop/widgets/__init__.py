"""
Desktop UI widgets for FillCam.
"""

from fillcam.desktop.widgets.preview import CameraPreviewWidget, array_to_pixmap

__all__ = ["CameraPreviewWidget", "array_to_pixmap"]
