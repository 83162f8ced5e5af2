"""Capture module for camera input and still photos.

This module provides camera device selection, the OpenCV capture graph,
the capture session state machine and the screen-level capture workflow.
"""

from fillcam.core.capture.device import CameraDeviceManager
from fillcam.core.capture.hardware import (
    CameraInput,
    CaptureHardware,
    PhotoOutput,
    VideoDataOutput,
)
from fillcam.core.capture.session import CaptureSessionController, PhotoCaptureRequest
from fillcam.core.capture.workflow import CaptureWorkflow

__all__ = [
    "CameraDeviceManager",
    "CameraInput",
    "CaptureHardware",
    "CaptureSessionController",
    "CaptureWorkflow",
    "PhotoCaptureRequest",
    "PhotoOutput",
    "VideoDataOutput",
]
