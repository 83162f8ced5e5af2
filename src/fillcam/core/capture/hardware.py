"""Capture hardware graph built on OpenCV.

A CaptureHardware instance wires one CameraInput to its outputs:

- VideoDataOutput: a reader thread that keeps the latest frames in a small
  buffer for the live preview
- PhotoOutput: one-shot still capture that waits for the next fresh frame

All frames leave this module as RGB uint8 numpy arrays.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Optional, Union

import numpy as np

from fillcam.core.errors import CaptureError, ConfigurationError, InvalidStateError
from fillcam.core.models import CameraDeviceInfo, Resolution

logger = logging.getLogger(__name__)


class CameraInput:
    """Streaming input backed by a cv2.VideoCapture device."""

    def __init__(self, device: CameraDeviceInfo, resolution: Optional[Resolution] = None):
        """Initialize the CameraInput.

        Args:
            device: Camera to open
            resolution: Optional resolution override
        """
        self.device = device
        self._resolution = resolution
        self._cap = None  # cv2.VideoCapture object
        self._read_lock = threading.Lock()

    def open(self) -> None:
        """Open the camera.

        Raises:
            ConfigurationError: If the camera cannot be opened
        """
        import cv2

        try:
            self._cap = cv2.VideoCapture(self.device.index)
        except Exception as e:
            raise ConfigurationError(f"Error opening camera {self.device.device_id}", e) from e

        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise ConfigurationError(f"Failed to open camera: {self.device.device_id}")

        if self._resolution:
            width, height = self._resolution.to_tuple()
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            logger.debug(f"Set resolution to: {width}x{height}")

        logger.info(f"Opened camera input: {self.device.device_id}")

    def is_opened(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def read(self) -> Optional[np.ndarray]:
        """Read one frame.

        Returns:
            RGB frame, or None if the device returned nothing.
        """
        import cv2

        with self._read_lock:
            if self._cap is None:
                return None
            ret, frame = self._cap.read()

        if not ret or frame is None or frame.size == 0:
            return None

        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self) -> None:
        with self._read_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.info(f"Released camera input: {self.device.device_id}")


class VideoDataOutput:
    """Keeps the most recent frames of a running input.

    Frames are read on a daemon thread at the configured rate and numbered
    so that a still capture can wait for one that arrived after its request.
    """

    def __init__(self, fps: int = 30, buffer_size: int = 5):
        self._fps = max(1, min(fps, 60))
        self._frame_buffer: deque = deque(maxlen=buffer_size)
        self._frame_number: int = 0
        self._condition = threading.Condition()
        self._input: Optional[CameraInput] = None
        self._reading: bool = False
        self._reader_thread: Optional[threading.Thread] = None

    @property
    def fps(self) -> int:
        return self._fps

    def attach(self, camera_input: CameraInput) -> None:
        self._input = camera_input

    def is_attached(self) -> bool:
        return self._input is not None

    def start(self) -> None:
        if self._reading:
            logger.warning("Video output already reading")
            return
        if self._input is None:
            raise InvalidStateError("Video output has no input attached")

        with self._condition:
            self._frame_buffer.clear()

        self._reading = True
        self._reader_thread = threading.Thread(
            target=self._read_loop, name="VideoDataOutput", daemon=True
        )
        self._reader_thread.start()
        logger.debug(f"Video output started at {self._fps} fps")

    def stop(self) -> None:
        if not self._reading:
            return

        self._reading = False

        if self._reader_thread and self._reader_thread.is_alive():
            if self._reader_thread is not threading.current_thread():
                self._reader_thread.join(timeout=2.0)

        with self._condition:
            self._condition.notify_all()

        logger.debug("Video output stopped")

    def is_reading(self) -> bool:
        return self._reading

    def get_frame(self) -> Optional[np.ndarray]:
        """Get the latest frame, or None if nothing has arrived yet."""
        with self._condition:
            if self._frame_buffer:
                return self._frame_buffer[-1]
            return None

    def get_frame_number(self) -> int:
        with self._condition:
            return self._frame_number

    def wait_for_frame(self, after: int, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Block until a frame numbered above `after` arrives.

        With no timeout this waits until a frame arrives or reading stops.

        Returns:
            The frame, or None if the timeout expired or reading stopped.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._condition:
            while self._frame_number <= after:
                if not self._reading:
                    return None
                if deadline is None:
                    self._condition.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._condition.wait(remaining)
            return self._frame_buffer[-1]

    def _read_loop(self) -> None:
        frame_interval = 1.0 / self._fps
        next_read_time = time.monotonic()

        try:
            while self._reading and self._input is not None:
                current_time = time.monotonic()

                if current_time < next_read_time:
                    time.sleep(min(0.005, next_read_time - current_time))
                    continue

                frame = self._input.read()

                if frame is None:
                    logger.warning("Failed to read frame from camera")
                    time.sleep(frame_interval)
                    next_read_time = time.monotonic() + frame_interval
                    continue

                with self._condition:
                    self._frame_buffer.append(frame)
                    self._frame_number += 1
                    self._condition.notify_all()

                next_read_time += frame_interval

                # If we're falling behind, reset timing
                if next_read_time < current_time:
                    next_read_time = current_time + frame_interval

        except Exception as e:
            logger.error(f"Error in video output loop: {e}", exc_info=True)
        finally:
            self._reading = False
            with self._condition:
                self._condition.notify_all()
            logger.debug("Video output loop ended")


class PhotoOutput:
    """One-shot still capture from the frames of a VideoDataOutput."""

    def __init__(self, video_output: VideoDataOutput):
        self._video_output = video_output

    def capture(self, timeout: Optional[float] = None) -> np.ndarray:
        """Capture the next frame that arrives after this call.

        Args:
            timeout: Seconds to wait for the frame, or None to wait until one
                arrives or the stream stops

        Raises:
            CaptureError: If the stream is not running or no frame arrives
        """
        if not self._video_output.is_reading():
            raise CaptureError("Cannot capture a still while the stream is stopped")

        current = self._video_output.get_frame_number()
        frame = self._video_output.wait_for_frame(after=current, timeout=timeout)

        if frame is None:
            if timeout is None:
                raise CaptureError("Stream stopped before a frame was received")
            raise CaptureError(f"No frame received from camera within {timeout:.1f}s")
        if frame.ndim != 3 or frame.shape[0] == 0 or frame.shape[1] == 0:
            raise CaptureError(f"Camera returned an unusable frame of shape {frame.shape}")

        return frame.copy()


Output = Union[VideoDataOutput, PhotoOutput]


class CaptureHardware:
    """Input/output graph for one camera.

    Mirrors the usual capture-session shape: attach an input, attach
    outputs, then start and stop the flow of frames.
    """

    def __init__(self):
        self._input: Optional[CameraInput] = None
        self._video_output: Optional[VideoDataOutput] = None
        self._photo_output: Optional[PhotoOutput] = None
        self._running: bool = False

    def can_add_input(self, camera_input: CameraInput) -> bool:
        return self._input is None and camera_input.is_opened()

    def add_input(self, camera_input: CameraInput) -> None:
        if not self.can_add_input(camera_input):
            raise ConfigurationError(f"Cannot add input {camera_input.device.device_id}")
        self._input = camera_input
        if self._video_output is not None:
            self._video_output.attach(camera_input)

    def can_add_output(self, output: Output) -> bool:
        if isinstance(output, VideoDataOutput):
            return self._video_output is None
        if isinstance(output, PhotoOutput):
            return self._photo_output is None and self._video_output is not None
        return False

    def add_output(self, output: Output) -> None:
        if not self.can_add_output(output):
            raise ConfigurationError(f"Cannot add output {output.__class__.__name__}")

        if isinstance(output, VideoDataOutput):
            self._video_output = output
            if self._input is not None:
                output.attach(self._input)
        else:
            self._photo_output = output

    @property
    def video_output(self) -> Optional[VideoDataOutput]:
        return self._video_output

    def start_running(self) -> None:
        """Begin producing frames. Blocks until the reader thread is up."""
        if self._running:
            return
        if self._input is None or self._video_output is None:
            raise InvalidStateError("Capture hardware is not configured")

        self._video_output.start()
        self._running = True
        logger.info(f"Capture hardware running: {self._input.device.device_id}")

    def stop_running(self) -> None:
        if not self._running:
            return

        if self._video_output is not None:
            self._video_output.stop()
        self._running = False
        logger.info("Capture hardware stopped")

    def is_running(self) -> bool:
        return self._running

    def capture_still(self, timeout: Optional[float] = None) -> np.ndarray:
        """Capture one RGB still.

        Raises:
            CaptureError: If there is no photo output or the capture fails
        """
        if self._photo_output is None:
            raise CaptureError("No photo output attached")
        return self._photo_output.capture(timeout=timeout)

    def release(self) -> None:
        self.stop_running()
        if self._input is not None:
            self._input.release()
            self._input = None
