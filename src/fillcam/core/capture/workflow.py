"""Screen-level capture workflow.

Ties a CaptureSessionController to a photo library for one camera screen:

    LIVE → PREVIEWING (capture succeeded)
    PREVIEWING → SAVING → SAVED (save succeeded)
    SAVING → PREVIEWING (save failed, photo kept so the user can try again)
    PREVIEWING/SAVED → LIVE (retake)

Only the aspect-fill crop of a photo is ever written; the full-resolution
original is discarded on retake or on the next capture.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Optional

from fillcam.core.capture.session import CaptureSessionController, PhotoCaptureRequest
from fillcam.core.errors import CaptureError, InvalidStateError, PersistenceError
from fillcam.core.imaging import crop_to_fill
from fillcam.core.models import CapturedPhoto, SourceImage, ViewportSpec, WorkflowPhase
from fillcam.core.photos import PhotoLibraryWriter

logger = logging.getLogger(__name__)


class CaptureWorkflow:
    """Capture, preview and save flow of the camera screen.

    Events (see register_callback):
        phase_changed(phase=WorkflowPhase)
        capture_failed(error=CaptureError)
        photo_saved(path=Path)
        save_failed(error=PersistenceError)
    """

    def __init__(
        self,
        controller: CaptureSessionController,
        library: PhotoLibraryWriter,
        viewport: Optional[ViewportSpec] = None,
    ):
        self._controller = controller
        self._library = library
        self._viewport = viewport
        self._phase = WorkflowPhase.LIVE
        self._photo: Optional[CapturedPhoto] = None
        self._last_saved_path: Optional[Path] = None
        self._lock = threading.RLock()
        self._callbacks: dict[str, list[Callable]] = {}

    @property
    def controller(self) -> CaptureSessionController:
        return self._controller

    def get_phase(self) -> WorkflowPhase:
        with self._lock:
            return self._phase

    def get_viewport(self) -> Optional[ViewportSpec]:
        return self._viewport

    def set_viewport(self, width: float, height: float) -> None:
        """Track the display size; called on every layout change."""
        self._viewport = ViewportSpec(width=width, height=height)

    def get_photo(self) -> Optional[CapturedPhoto]:
        with self._lock:
            return self._photo

    def get_last_saved_path(self) -> Optional[Path]:
        return self._last_saved_path

    # ========================================================================
    # Capture
    # ========================================================================

    def capture(self, timeout: Optional[float] = None) -> PhotoCaptureRequest:
        """Take a photo; on success the workflow enters PREVIEWING.

        Raises:
            InvalidStateError: While a save is in progress, or if the
                session is not running
            BusyError: If a capture is already in flight
        """
        with self._lock:
            if self._phase == WorkflowPhase.SAVING:
                raise InvalidStateError("Cannot capture while a photo is being saved")

        request = self._controller.capture_photo(timeout=timeout)
        request.add_done_callback(self._on_capture_done)
        return request

    def _on_capture_done(self, request: PhotoCaptureRequest) -> None:
        try:
            photo = request.result()
        except CaptureError as e:
            logger.error(f"Capture failed: {e}")
            self._emit_event("capture_failed", error=e)
            return

        with self._lock:
            if self._phase == WorkflowPhase.SAVING:
                logger.warning("Discarding photo captured during a save")
                return
            self._photo = photo
            self._last_saved_path = None

        self._set_phase(WorkflowPhase.PREVIEWING)

    def preview_image(self) -> Optional[SourceImage]:
        """The captured photo as it will be saved: cropped to fill the viewport.

        Returns:
            Cropped image, the full image if no viewport is known yet, or
            None if there is no photo.
        """
        with self._lock:
            photo = self._photo

        if photo is None:
            return None
        if self._viewport is None:
            return photo.image
        return crop_to_fill(photo.image, self._viewport)

    def retake(self) -> None:
        """Discard the captured photo and return to the live preview.

        Raises:
            InvalidStateError: While a save is in progress
        """
        with self._lock:
            if self._phase == WorkflowPhase.SAVING:
                raise InvalidStateError("Cannot retake while a photo is being saved")
            self._photo = None
            self._last_saved_path = None

        self._set_phase(WorkflowPhase.LIVE)

    # ========================================================================
    # Save
    # ========================================================================

    def save(self) -> Future:
        """Crop the captured photo to the viewport and write it to the library.

        Returns:
            The library's Future (saved path, or PersistenceError).

        Raises:
            InvalidStateError: If there is no photo or a save is in progress
            DegenerateInputError: If the viewport or photo has no area
        """
        with self._lock:
            if self._phase not in (WorkflowPhase.PREVIEWING, WorkflowPhase.SAVED):
                raise InvalidStateError(f"Nothing to save in phase {self._phase.value}")
            if self._photo is None:
                raise InvalidStateError("No captured photo to save")

            image = self._photo.image
            viewport = self._viewport or ViewportSpec(width=image.width, height=image.height)
            cropped = crop_to_fill(image, viewport)
            self._phase = WorkflowPhase.SAVING

        self._emit_event("phase_changed", phase=WorkflowPhase.SAVING)

        future = self._library.write(cropped)
        future.add_done_callback(self._on_save_done)
        return future

    def _on_save_done(self, future: Future) -> None:
        error = future.exception()

        if error is None:
            path = future.result()
            with self._lock:
                self._last_saved_path = path
            logger.info(f"Photo saved to library: {path}")
            self._set_phase(WorkflowPhase.SAVED)
            self._emit_event("photo_saved", path=path)
            return

        if not isinstance(error, PersistenceError):
            error = PersistenceError("Failed to save photo", error)

        logger.error(f"Error saving photo: {error}")
        self._set_phase(WorkflowPhase.PREVIEWING)
        self._emit_event("save_failed", error=error)

    # ========================================================================
    # Event Callbacks
    # ========================================================================

    def _set_phase(self, phase: WorkflowPhase) -> None:
        with self._lock:
            if self._phase == phase:
                return
            self._phase = phase

        logger.debug(f"Workflow phase: {phase.value}")
        self._emit_event("phase_changed", phase=phase)

    def register_callback(self, event: str, callback: Callable) -> None:
        if event not in self._callbacks:
            self._callbacks[event] = []
        self._callbacks[event].append(callback)

    def unregister_callback(self, event: str, callback: Callable) -> None:
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)

    def _emit_event(self, event: str, **kwargs) -> None:
        for callback in list(self._callbacks.get(event, [])):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in callback for event {event}: {e}", exc_info=True)
