"""Camera device enumeration and selection.

This module provides the CameraDeviceManager class which scans OpenCV
camera indices, reports what it finds as CameraDeviceInfo entries, and
answers the one question the capture session asks: "give me a rear
wide-angle camera, or tell me none exists".
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fillcam.core.capture.hardware import CameraInput
from fillcam.core.models import CameraDeviceInfo, CameraDeviceType, CameraPosition, Resolution

logger = logging.getLogger(__name__)

# Camera enumeration constants
MAX_CAMERA_INDEX = 16  # Maximum device index to check
MAX_CONSECUTIVE_FAILURES = 3  # Stop after this many consecutive failures


class CameraDeviceManager:
    """Enumerates camera devices and opens them as capture inputs.

    OpenCV does not report which way a camera faces. The preferred index
    (or index 0 when none is configured) is treated as the built-in rear
    wide-angle camera; every other device is reported as an external camera
    with unspecified position.
    """

    def __init__(self, preferred_index: Optional[int] = None):
        """Initialize the CameraDeviceManager.

        Args:
            preferred_index: OpenCV index to treat as the rear camera
        """
        self._preferred_index = preferred_index
        self._cameras: Optional[List[CameraDeviceInfo]] = None
        logger.info(f"CameraDeviceManager initialized (preferred index: {preferred_index})")

    def get_cameras(self, refresh: bool = False) -> List[CameraDeviceInfo]:
        """Get available camera devices.

        Args:
            refresh: Probe the devices again instead of using the cached list

        Returns:
            List of CameraDeviceInfo objects, one per device that opened.
        """
        if self._cameras is not None and not refresh:
            return list(self._cameras)

        logger.info("Getting camera devices...")
        cameras: List[CameraDeviceInfo] = []

        try:
            import cv2

            indices = list(range(MAX_CAMERA_INDEX))
            if self._preferred_index is not None and self._preferred_index not in indices:
                indices.insert(0, self._preferred_index)

            consecutive_failures = 0

            for i in indices:
                cap = cv2.VideoCapture(i)

                if cap.isOpened():
                    consecutive_failures = 0

                    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
                    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
                    fps = int(cap.get(cv2.CAP_PROP_FPS))

                    cameras.append(self._describe(i, Resolution(width, height), fps or 30))
                    logger.debug(f"Found camera {i} ({width}x{height} @ {fps}fps)")

                    cap.release()
                else:
                    cap.release()
                    consecutive_failures += 1
                    if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                        logger.debug(
                            f"Stopping camera search after {consecutive_failures} "
                            f"consecutive failures at index {i}"
                        )
                        break

        except Exception as e:
            logger.error(f"Error getting camera devices: {e}", exc_info=True)

        self._cameras = cameras
        logger.info(f"Found {len(cameras)} camera(s)")
        return list(cameras)

    def _describe(self, index: int, resolution: Resolution, fps: int) -> CameraDeviceInfo:
        rear_index = self._preferred_index if self._preferred_index is not None else 0

        if index == rear_index:
            return CameraDeviceInfo(
                device_id=f"camera_{index}",
                index=index,
                name=f"Back Camera ({index})",
                position=CameraPosition.BACK,
                device_type=CameraDeviceType.BUILT_IN_WIDE_ANGLE,
                resolution=resolution,
                fps=fps,
            )

        return CameraDeviceInfo(
            device_id=f"camera_{index}",
            index=index,
            name=f"Camera {index}",
            position=CameraPosition.UNSPECIFIED,
            device_type=CameraDeviceType.EXTERNAL,
            resolution=resolution,
            fps=fps,
        )

    def default_device(
        self,
        device_type: CameraDeviceType = CameraDeviceType.BUILT_IN_WIDE_ANGLE,
        position: CameraPosition = CameraPosition.BACK,
    ) -> Optional[CameraDeviceInfo]:
        """Find the first camera of the given type and position.

        Returns:
            CameraDeviceInfo, or None if no such camera exists.
        """
        for camera in self.get_cameras():
            if camera.device_type == device_type and camera.position == position:
                logger.debug(f"Selected default camera: {camera.device_id}")
                return camera

        logger.warning(f"No {position.value} {device_type.value} camera available")
        return None

    def open_input(
        self, device: CameraDeviceInfo, resolution: Optional[Resolution] = None
    ) -> CameraInput:
        """Open a camera as a capture input.

        Raises:
            ConfigurationError: If the device cannot be opened
        """
        camera_input = CameraInput(device, resolution=resolution)
        camera_input.open()
        return camera_input
