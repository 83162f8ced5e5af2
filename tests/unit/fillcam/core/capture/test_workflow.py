"""Unit tests for CaptureWorkflow."""

from concurrent.futures import Future
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import numpy as np
import pytest

from fillcam.core.capture.session import PhotoCaptureRequest
from fillcam.core.capture.workflow import CaptureWorkflow
from fillcam.core.errors import (
    BusyError,
    CaptureError,
    InvalidStateError,
    PersistenceError,
)
from fillcam.core.models import CapturedPhoto, SourceImage, ViewportSpec, WorkflowPhase
from fillcam.core.photos import PhotoLibraryWriter


class FakeLibrary(PhotoLibraryWriter):
    """Library whose writes complete when the test says so."""

    def __init__(self):
        self.writes = []

    def write(self, image: SourceImage) -> Future:
        future: Future = Future()
        self.writes.append((image, future))
        return future


@pytest.fixture
def photo():
    """Create a 400x300 captured photo."""
    pixels = np.zeros((300, 400, 3), dtype=np.uint8)
    return CapturedPhoto(
        image=SourceImage.from_array(pixels),
        timestamp=datetime.now(timezone.utc),
        device_id="camera_0",
    )


@pytest.fixture
def controller():
    """Create a mock controller that hands out fresh capture requests."""
    ctrl = Mock()
    ctrl.capture_photo.side_effect = lambda timeout=None: PhotoCaptureRequest(1, timeout=timeout)
    return ctrl


@pytest.fixture
def library():
    return FakeLibrary()


@pytest.fixture
def workflow(controller, library):
    return CaptureWorkflow(controller, library, viewport=ViewportSpec(width=100, height=200))


@pytest.fixture
def previewing(workflow, photo):
    """A workflow holding a captured photo."""
    request = workflow.capture()
    request.complete(photo)
    return workflow


class TestCapture:
    """Test capture and retake."""

    def test_initial_phase(self, workflow):
        """Test that a new workflow shows the live preview."""
        assert workflow.get_phase() == WorkflowPhase.LIVE
        assert workflow.get_photo() is None
        assert workflow.preview_image() is None

    def test_capture_success(self, workflow, controller, photo):
        """Test that a captured photo moves the workflow to PREVIEWING."""
        phases = []
        workflow.register_callback("phase_changed", lambda phase: phases.append(phase))

        request = workflow.capture(timeout=3.0)
        controller.capture_photo.assert_called_once_with(timeout=3.0)
        assert workflow.get_phase() == WorkflowPhase.LIVE

        request.complete(photo)

        assert workflow.get_phase() == WorkflowPhase.PREVIEWING
        assert workflow.get_photo() is photo
        assert phases == [WorkflowPhase.PREVIEWING]

    def test_capture_failure(self, workflow):
        """Test that a failed capture stays LIVE and reports the error."""
        errors = []
        workflow.register_callback("capture_failed", lambda error: errors.append(error))

        request = workflow.capture()
        request.fail(CaptureError("sensor error"))

        assert workflow.get_phase() == WorkflowPhase.LIVE
        assert len(errors) == 1
        assert isinstance(errors[0], CaptureError)

    def test_busy_propagates(self, workflow, controller):
        """Test that the controller's BusyError reaches the caller."""
        controller.capture_photo.side_effect = BusyError("busy")

        with pytest.raises(BusyError):
            workflow.capture()

    def test_preview_is_cropped_to_viewport(self, previewing):
        """Test that the preview shows exactly what will be saved."""
        image = previewing.preview_image()

        # 400x300 into a 1:2 viewport keeps 150x300
        assert image.width == 150
        assert image.height == 300

    def test_preview_without_viewport(self, controller, library, photo):
        """Test that the full photo is shown before the first layout."""
        workflow = CaptureWorkflow(controller, library)
        workflow.capture().complete(photo)

        assert workflow.preview_image() is photo.image

    def test_retake(self, previewing):
        """Test that retake discards the photo and returns to LIVE."""
        previewing.retake()

        assert previewing.get_phase() == WorkflowPhase.LIVE
        assert previewing.get_photo() is None

    def test_set_viewport(self, workflow):
        """Test that viewport changes are tracked."""
        workflow.set_viewport(1080, 1920)

        assert workflow.get_viewport() == ViewportSpec(width=1080, height=1920)


class TestSave:
    """Test saving to the library."""

    def test_save_without_photo(self, workflow):
        """Test that saving in LIVE is rejected."""
        with pytest.raises(InvalidStateError):
            workflow.save()

    def test_save_writes_cropped_image(self, previewing, library):
        """Test that only the cropped image is written."""
        previewing.save()

        assert previewing.get_phase() == WorkflowPhase.SAVING
        assert len(library.writes) == 1
        image, _future = library.writes[0]
        assert (image.width, image.height) == (150, 300)

    def test_save_success(self, previewing, library):
        """Test that a completed write moves to SAVED and reports the path."""
        saved = []
        previewing.register_callback("photo_saved", lambda path: saved.append(path))

        previewing.save()
        _image, future = library.writes[0]
        future.set_result(Path("/photos/IMG_1.jpg"))

        assert previewing.get_phase() == WorkflowPhase.SAVED
        assert previewing.get_last_saved_path() == Path("/photos/IMG_1.jpg")
        assert saved == [Path("/photos/IMG_1.jpg")]

    def test_save_failure_keeps_photo(self, previewing, library):
        """Test that a failed write returns to PREVIEWING with the photo kept."""
        errors = []
        previewing.register_callback("save_failed", lambda error: errors.append(error))

        previewing.save()
        _image, future = library.writes[0]
        future.set_exception(PersistenceError("disk full"))

        assert previewing.get_phase() == WorkflowPhase.PREVIEWING
        assert previewing.get_photo() is not None
        assert isinstance(errors[0], PersistenceError)

    def test_unexpected_save_error_is_wrapped(self, previewing, library):
        """Test that non-persistence errors are reported as PersistenceError."""
        errors = []
        previewing.register_callback("save_failed", lambda error: errors.append(error))

        previewing.save()
        library.writes[0][1].set_exception(OSError("read-only"))

        assert isinstance(errors[0], PersistenceError)
        assert isinstance(errors[0].cause, OSError)

    def test_no_capture_or_retake_while_saving(self, previewing):
        """Test that the photo cannot change during a save."""
        previewing.save()

        with pytest.raises(InvalidStateError):
            previewing.capture()
        with pytest.raises(InvalidStateError):
            previewing.retake()
        with pytest.raises(InvalidStateError):
            previewing.save()

    def test_save_again_after_saved(self, previewing, library):
        """Test that a saved photo can be written again."""
        previewing.save()
        library.writes[0][1].set_result(Path("/photos/IMG_1.jpg"))

        previewing.save()

        assert len(library.writes) == 2
