"""Capture session controller.

This module provides the CaptureSessionController, which owns the lifecycle
of one camera screen's capture session and brokers one-shot photo capture
requests.

State Machine:
    UNCONFIGURED → CONFIGURED (configure)
    CONFIGURED/IDLE → RUNNING (start)
    RUNNING → IDLE (stop)
    RUNNING → CAPTURE_PENDING → RUNNING (capture_photo, on completion)
    any → UNCONFIGURED (close)

State changes happen synchronously on the calling thread. Hardware start,
stop and still capture run on a single-thread session queue, so the caller
never blocks on the camera. Only one capture may be in flight; a second
request is rejected with BusyError.
"""

from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional

import numpy as np

from fillcam.core.capture.device import CameraDeviceManager
from fillcam.core.capture.hardware import CaptureHardware, PhotoOutput, VideoDataOutput
from fillcam.core.errors import (
    BusyError,
    CaptureError,
    CaptureTimeoutError,
    ConfigurationError,
    InvalidStateError,
)
from fillcam.core.models import (
    CameraDeviceInfo,
    CameraDeviceType,
    CameraPosition,
    CapturedPhoto,
    CaptureSessionState,
    Resolution,
    SourceImage,
)

logger = logging.getLogger(__name__)


def _completed_future() -> Future:
    future: Future = Future()
    future.set_result(None)
    return future


class PhotoCaptureRequest:
    """A one-shot capture that completes exactly once.

    Wraps a concurrent.futures.Future. The first call to complete() or
    fail() wins; later calls return False and change nothing, so a hardware
    answer that arrives after a timeout is dropped.
    """

    def __init__(self, request_id: int, timeout: Optional[float] = None):
        self.request_id = request_id
        self.timeout = timeout
        self._future: Future = Future()
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"PhotoCaptureRequest(id={self.request_id}, done={self.done()})"

    @property
    def future(self) -> Future:
        return self._future

    def complete(self, photo: CapturedPhoto) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_result(photo)
            return True

    def fail(self, error: CaptureError) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_exception(error)
            return True

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> CapturedPhoto:
        """Wait for the photo.

        Raises:
            CaptureError: If the capture failed or timed out
        """
        return self._future.result(timeout=timeout)

    def add_done_callback(self, callback: Callable[[PhotoCaptureRequest], None]) -> None:
        self._future.add_done_callback(lambda _future: callback(self))


class CaptureSessionController:
    """Manages a camera capture session and one-shot photo captures.

    Events (see register_callback):
        state_changed(state=CaptureSessionState)
        photo_captured(photo=CapturedPhoto)
        capture_failed(error=CaptureError)

    Callbacks run on whichever thread produced the event; UI code must
    marshal them onto its own thread.
    """

    def __init__(
        self,
        device_manager: Optional[CameraDeviceManager] = None,
        hardware_factory: Callable[[], CaptureHardware] = CaptureHardware,
        resolution: Optional[Resolution] = None,
        preview_fps: int = 30,
        capture_timeout: Optional[float] = 10.0,
    ):
        """Initialize the CaptureSessionController.

        Args:
            device_manager: Camera enumeration; a default one is created if None
            hardware_factory: Builds the input/output graph
            resolution: Optional camera resolution override
            preview_fps: Rate at which the video output reads frames
            capture_timeout: Default seconds to wait for a still; None waits forever
        """
        self._device_manager = device_manager or CameraDeviceManager()
        self._hardware_factory = hardware_factory
        self._resolution = resolution
        self._preview_fps = preview_fps
        self._capture_timeout = capture_timeout

        self._state = CaptureSessionState.UNCONFIGURED
        self._lock = threading.RLock()
        self._closed = False
        self._device: Optional[CameraDeviceInfo] = None
        self._hardware: Optional[CaptureHardware] = None
        self._video_output: Optional[VideoDataOutput] = None
        self._pending_request: Optional[PhotoCaptureRequest] = None
        self._request_ids = itertools.count(1)
        self._session_queue = ThreadPoolExecutor(max_workers=1, thread_name_prefix="SessionQueue")
        self._callbacks: dict[str, list[Callable]] = {}

        logger.info("CaptureSessionController initialized")

    # ========================================================================
    # Configuration
    # ========================================================================

    def configure(self) -> None:
        """Select the rear wide-angle camera and build the capture graph.

        Raises:
            ConfigurationError: If no camera is found, or its input or an
                output cannot be attached. The session stays UNCONFIGURED.
            InvalidStateError: If the controller has been closed
        """
        with self._lock:
            if self._closed:
                raise InvalidStateError("Capture session has been closed")
            if self._state != CaptureSessionState.UNCONFIGURED:
                logger.debug(f"Session already configured (state: {self._state.value})")
                return

        device = self._device_manager.default_device(
            CameraDeviceType.BUILT_IN_WIDE_ANGLE, CameraPosition.BACK
        )
        if device is None:
            logger.error("Unable to access the back camera")
            raise ConfigurationError("Unable to access the back camera")

        try:
            camera_input = self._device_manager.open_input(device, resolution=self._resolution)
        except ConfigurationError as e:
            logger.error(f"Error adding back camera input: {e}")
            raise

        hardware = self._hardware_factory()
        try:
            if not hardware.can_add_input(camera_input):
                raise ConfigurationError(f"Cannot add camera input: {device.device_id}")
            hardware.add_input(camera_input)

            video_output = VideoDataOutput(fps=self._preview_fps)
            if not hardware.can_add_output(video_output):
                raise ConfigurationError("Cannot add video data output")
            hardware.add_output(video_output)

            photo_output = PhotoOutput(video_output)
            if not hardware.can_add_output(photo_output):
                raise ConfigurationError("Cannot add photo output")
            hardware.add_output(photo_output)

        except ConfigurationError as e:
            logger.error(f"Error configuring capture session: {e}")
            hardware.release()
            camera_input.release()
            raise

        with self._lock:
            self._device = device
            self._hardware = hardware
            self._video_output = video_output
            self._state = CaptureSessionState.CONFIGURED

        logger.info(f"Capture session configured with {device.name}")
        self._emit_event("state_changed", state=CaptureSessionState.CONFIGURED)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> Future:
        """Start streaming. Non-blocking; the camera starts on the session queue.

        Returns:
            Future resolved once the hardware is running. Already running:
            an already-completed Future and no hardware call.

        Raises:
            InvalidStateError: If the session is not configured
        """
        with self._lock:
            if self._state.is_streaming:
                logger.debug("Session already running")
                return _completed_future()
            if not self._state.can_start:
                raise InvalidStateError(f"Cannot start session in state {self._state.value}")
            pending = self._pending_request
            if pending is not None and not pending.done():
                # A capture from before the last stop is still in flight
                self._state = CaptureSessionState.CAPTURE_PENDING
            else:
                self._state = CaptureSessionState.RUNNING
            state = self._state
            hardware = self._hardware

        logger.info("Starting capture session")
        self._emit_event("state_changed", state=state)
        return self._session_queue.submit(self._start_hardware, hardware)

    def _start_hardware(self, hardware: CaptureHardware) -> None:
        try:
            hardware.start_running()
        except Exception as e:
            logger.error(f"Error starting capture hardware: {e}", exc_info=True)
            with self._lock:
                reverted = self._state.is_streaming
                if reverted:
                    self._state = CaptureSessionState.IDLE
            if reverted:
                self._emit_event("state_changed", state=CaptureSessionState.IDLE)
            raise

    def stop(self) -> Future:
        """Stop streaming. Non-blocking; idempotent when not running.

        Returns:
            Future resolved once the hardware has stopped.
        """
        with self._lock:
            if not self._state.is_streaming:
                logger.debug(f"Session not running (state: {self._state.value})")
                return _completed_future()
            if self._state == CaptureSessionState.CAPTURE_PENDING:
                logger.warning("Stopping session with a capture in flight")
            self._state = CaptureSessionState.IDLE
            hardware = self._hardware

        logger.info("Stopping capture session")
        self._emit_event("state_changed", state=CaptureSessionState.IDLE)
        return self._session_queue.submit(hardware.stop_running)

    def close(self, wait: bool = False) -> None:
        """Stop the session and release the camera.

        Args:
            wait: Block until the session queue has drained
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self.stop()

        with self._lock:
            hardware = self._hardware
            self._hardware = None
            self._video_output = None
            was_configured = self._state != CaptureSessionState.UNCONFIGURED
            self._state = CaptureSessionState.UNCONFIGURED

        if hardware is not None:
            self._session_queue.submit(hardware.release)
        self._session_queue.shutdown(wait=wait)

        logger.info("Capture session closed")
        if was_configured:
            self._emit_event("state_changed", state=CaptureSessionState.UNCONFIGURED)

    # ========================================================================
    # Photo Capture
    # ========================================================================

    def capture_photo(self, timeout: Optional[float] = None) -> PhotoCaptureRequest:
        """Request a single still photo.

        Args:
            timeout: Seconds to wait for the hardware; defaults to the
                controller's capture timeout

        Returns:
            PhotoCaptureRequest completed exactly once with a CapturedPhoto
            or a CaptureError.

        Raises:
            BusyError: If a capture is already in flight
            InvalidStateError: If the session is not running
        """
        with self._lock:
            pending = self._pending_request
            if self._state == CaptureSessionState.CAPTURE_PENDING or (
                pending is not None and not pending.done()
            ):
                raise BusyError("A photo capture is already in progress")
            if self._state != CaptureSessionState.RUNNING:
                raise InvalidStateError(f"Cannot capture photo in state {self._state.value}")

            effective_timeout = self._capture_timeout if timeout is None else timeout
            request = PhotoCaptureRequest(next(self._request_ids), timeout=effective_timeout)
            self._pending_request = request
            self._state = CaptureSessionState.CAPTURE_PENDING
            hardware = self._hardware
            device_id = self._device.device_id if self._device else "unknown"

        logger.info(f"Capturing photo (request {request.request_id})")
        self._emit_event("state_changed", state=CaptureSessionState.CAPTURE_PENDING)

        if effective_timeout is not None:
            timer = threading.Timer(effective_timeout, self._on_capture_timeout, args=(request,))
            timer.daemon = True
            timer.start()
            request.add_done_callback(lambda _request: timer.cancel())

        self._session_queue.submit(self._run_capture, request, hardware, device_id)
        return request

    def _run_capture(
        self, request: PhotoCaptureRequest, hardware: CaptureHardware, device_id: str
    ) -> None:
        if request.done():
            logger.debug(f"Skipping capture for finished request {request.request_id}")
            return

        try:
            pixels = hardware.capture_still(timeout=request.timeout)
            image = self._decode(pixels)
        except CaptureError as e:
            logger.error(f"Photo capture failed: {e}")
            self._finish_capture(request, error=e)
            return
        except Exception as e:
            logger.error(f"Unexpected error during photo capture: {e}", exc_info=True)
            self._finish_capture(request, error=CaptureError("Photo capture failed", e))
            return

        photo = CapturedPhoto(
            image=image,
            timestamp=datetime.now(timezone.utc),
            device_id=device_id,
        )
        self._finish_capture(request, photo=photo)

    def _decode(self, pixels: np.ndarray) -> SourceImage:
        try:
            return SourceImage.from_array(pixels)
        except ValueError as e:
            raise CaptureError("Camera returned an undecodable image", e) from e

    def _on_capture_timeout(self, request: PhotoCaptureRequest) -> None:
        logger.warning(f"Photo capture timed out after {request.timeout}s")
        self._finish_capture(
            request,
            error=CaptureTimeoutError(f"Photo capture timed out after {request.timeout}s"),
        )

    def _finish_capture(
        self,
        request: PhotoCaptureRequest,
        photo: Optional[CapturedPhoto] = None,
        error: Optional[CaptureError] = None,
    ) -> None:
        returned_to_running = False

        with self._lock:
            if request.done():
                logger.warning(f"Dropping late result for capture request {request.request_id}")
                return
            if self._pending_request is request:
                self._pending_request = None
                if self._state == CaptureSessionState.CAPTURE_PENDING:
                    self._state = CaptureSessionState.RUNNING
                    returned_to_running = True

        if photo is not None:
            won = request.complete(photo)
        else:
            won = request.fail(error or CaptureError("Photo capture failed"))

        if returned_to_running:
            self._emit_event("state_changed", state=CaptureSessionState.RUNNING)

        if not won:
            logger.warning(f"Dropping late result for capture request {request.request_id}")
            return

        if photo is not None:
            logger.info(
                f"Photo captured (request {request.request_id}): "
                f"{photo.image.width}x{photo.image.height}"
            )
            self._emit_event("photo_captured", photo=photo)
        else:
            self._emit_event("capture_failed", error=error)

    # ========================================================================
    # Queries
    # ========================================================================

    def get_state(self) -> CaptureSessionState:
        with self._lock:
            return self._state

    def is_running(self) -> bool:
        return self.get_state().is_streaming

    def is_capture_pending(self) -> bool:
        return self.get_state() == CaptureSessionState.CAPTURE_PENDING

    def get_device(self) -> Optional[CameraDeviceInfo]:
        return self._device

    def get_capture_timeout(self) -> Optional[float]:
        return self._capture_timeout

    def get_latest_frame(self) -> Optional[np.ndarray]:
        """Latest preview frame (RGB), or None if none is available."""
        video_output = self._video_output
        if video_output is None or not self.is_running():
            return None
        return video_output.get_frame()

    # ========================================================================
    # Event Callbacks
    # ========================================================================

    def register_callback(self, event: str, callback: Callable) -> None:
        """Register callback for events.

        Args:
            event: Event name (e.g., "state_changed", "photo_captured")
            callback: Callback function to invoke when event occurs
        """
        if event not in self._callbacks:
            self._callbacks[event] = []

        self._callbacks[event].append(callback)
        logger.debug(f"Registered callback for event: {event}")

    def unregister_callback(self, event: str, callback: Callable) -> None:
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)
            logger.debug(f"Unregistered callback for event: {event}")

    def _emit_event(self, event: str, **kwargs) -> None:
        if event not in self._callbacks:
            return

        for callback in list(self._callbacks[event]):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in callback for event {event}: {e}", exc_info=True)

