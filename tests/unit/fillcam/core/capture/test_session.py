"""Unit tests for CaptureSessionController."""

import threading
from unittest.mock import Mock

import numpy as np
import pytest

from fillcam.core.capture.session import CaptureSessionController, PhotoCaptureRequest
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
    SourceImage,
)

# Seconds to wait on futures before failing a test
WAIT = 5.0


@pytest.fixture
def back_camera():
    """Create a rear wide-angle camera description."""
    return CameraDeviceInfo(
        device_id="camera_0",
        index=0,
        name="Back Camera (0)",
        position=CameraPosition.BACK,
        device_type=CameraDeviceType.BUILT_IN_WIDE_ANGLE,
    )


@pytest.fixture
def camera_input():
    """Create a mock opened camera input."""
    return Mock()


@pytest.fixture
def device_manager(back_camera, camera_input):
    """Create a mock device manager that finds the back camera."""
    manager = Mock()
    manager.default_device.return_value = back_camera
    manager.open_input.return_value = camera_input
    return manager


@pytest.fixture
def frame():
    """Create a 40x30 RGB frame."""
    return np.full((30, 40, 3), 128, dtype=np.uint8)


@pytest.fixture
def hardware(frame):
    """Create mock capture hardware that accepts everything."""
    hw = Mock()
    hw.can_add_input.return_value = True
    hw.can_add_output.return_value = True
    hw.capture_still.return_value = frame
    hw.video_output = None
    return hw


@pytest.fixture
def controller(device_manager, hardware):
    """Create a controller wired to the mocks."""
    ctrl = CaptureSessionController(
        device_manager=device_manager,
        hardware_factory=lambda: hardware,
        capture_timeout=WAIT,
    )
    yield ctrl
    ctrl.close(wait=True)


@pytest.fixture
def running_controller(controller):
    """Create a configured and running controller."""
    controller.configure()
    controller.start().result(timeout=WAIT)
    return controller


class TestPhotoCaptureRequest:
    """Test PhotoCaptureRequest."""

    def test_complete_once(self):
        """Test that only the first completion is kept."""
        request = PhotoCaptureRequest(1)
        photo = Mock(spec=CapturedPhoto)

        assert request.complete(photo) is True
        assert request.fail(CaptureError("late")) is False
        assert request.complete(Mock()) is False
        assert request.result(timeout=0) is photo

    def test_fail_once(self):
        """Test that a failure cannot be overwritten by a photo."""
        request = PhotoCaptureRequest(2)

        assert request.fail(CaptureTimeoutError("timed out")) is True
        assert request.complete(Mock()) is False

        with pytest.raises(CaptureTimeoutError):
            request.result(timeout=0)

    def test_done_callback_receives_request(self):
        """Test that done callbacks are called with the request itself."""
        request = PhotoCaptureRequest(3, timeout=1.0)
        seen = []
        request.add_done_callback(seen.append)

        assert not request.done()
        request.complete(Mock())

        assert request.done()
        assert seen == [request]


class TestConfigure:
    """Test CaptureSessionController.configure."""

    def test_initial_state(self, controller):
        """Test that a new controller is unconfigured."""
        assert controller.get_state() == CaptureSessionState.UNCONFIGURED
        assert not controller.is_running()
        assert controller.get_device() is None
        assert controller.get_capture_timeout() == WAIT

    def test_configure_success(self, controller, device_manager, hardware, camera_input):
        """Test that configure selects the back camera and attaches outputs."""
        states = []
        controller.register_callback("state_changed", lambda state: states.append(state))

        controller.configure()

        assert controller.get_state() == CaptureSessionState.CONFIGURED
        assert controller.get_device().device_id == "camera_0"
        device_manager.default_device.assert_called_once_with(
            CameraDeviceType.BUILT_IN_WIDE_ANGLE, CameraPosition.BACK
        )
        hardware.add_input.assert_called_once_with(camera_input)
        assert hardware.add_output.call_count == 2
        assert states == [CaptureSessionState.CONFIGURED]

    def test_configure_twice_is_noop(self, controller, device_manager):
        """Test that configuring a configured session does nothing."""
        controller.configure()
        controller.configure()

        device_manager.default_device.assert_called_once()

    def test_no_camera(self, controller, device_manager, hardware):
        """Test that a missing back camera raises ConfigurationError."""
        device_manager.default_device.return_value = None

        with pytest.raises(ConfigurationError, match="back camera"):
            controller.configure()

        assert controller.get_state() == CaptureSessionState.UNCONFIGURED
        device_manager.open_input.assert_not_called()
        hardware.add_input.assert_not_called()

    def test_input_cannot_be_opened(self, controller, device_manager):
        """Test that an input error propagates and leaves the session unconfigured."""
        device_manager.open_input.side_effect = ConfigurationError("Failed to open camera")

        with pytest.raises(ConfigurationError, match="Failed to open camera"):
            controller.configure()

        assert controller.get_state() == CaptureSessionState.UNCONFIGURED

    def test_input_rejected(self, controller, hardware, camera_input):
        """Test that a rejected input releases the hardware and the camera."""
        hardware.can_add_input.return_value = False

        with pytest.raises(ConfigurationError, match="Cannot add camera input"):
            controller.configure()

        assert controller.get_state() == CaptureSessionState.UNCONFIGURED
        hardware.release.assert_called_once()
        camera_input.release.assert_called_once()

    def test_photo_output_rejected(self, controller, hardware):
        """Test that a rejected photo output fails configuration."""
        hardware.can_add_output.side_effect = [True, False]

        with pytest.raises(ConfigurationError, match="photo output"):
            controller.configure()

        assert controller.get_state() == CaptureSessionState.UNCONFIGURED
        assert hardware.add_output.call_count == 1

    def test_configure_after_close(self, controller):
        """Test that a closed controller cannot be configured."""
        controller.close(wait=True)

        with pytest.raises(InvalidStateError):
            controller.configure()


class TestLifecycle:
    """Test start, stop and close."""

    def test_start_unconfigured(self, controller, hardware):
        """Test that start requires configuration."""
        with pytest.raises(InvalidStateError):
            controller.start()

        hardware.start_running.assert_not_called()

    def test_start(self, controller, hardware):
        """Test that start moves to RUNNING and starts the hardware."""
        controller.configure()

        future = controller.start()

        assert controller.get_state() == CaptureSessionState.RUNNING
        future.result(timeout=WAIT)
        hardware.start_running.assert_called_once()

    def test_start_is_idempotent(self, running_controller, hardware):
        """Test that starting a running session does not touch the hardware."""
        future = running_controller.start()

        assert future.done()
        assert running_controller.get_state() == CaptureSessionState.RUNNING
        hardware.start_running.assert_called_once()

    def test_start_failure_reverts_to_idle(self, controller, hardware):
        """Test that a hardware start failure returns the session to IDLE."""
        hardware.start_running.side_effect = RuntimeError("device busy")
        controller.configure()

        future = controller.start()

        with pytest.raises(RuntimeError):
            future.result(timeout=WAIT)
        assert controller.get_state() == CaptureSessionState.IDLE

    def test_stop(self, running_controller, hardware):
        """Test that stop moves to IDLE and stops the hardware."""
        running_controller.stop().result(timeout=WAIT)

        assert running_controller.get_state() == CaptureSessionState.IDLE
        hardware.stop_running.assert_called_once()

    def test_stop_is_idempotent(self, running_controller, hardware):
        """Test that stopping twice stops the hardware once."""
        running_controller.stop().result(timeout=WAIT)
        future = running_controller.stop()

        assert future.done()
        hardware.stop_running.assert_called_once()

    def test_stop_when_configured(self, controller, hardware):
        """Test that stop on a never-started session is a no-op."""
        controller.configure()

        assert controller.stop().done()
        assert controller.get_state() == CaptureSessionState.CONFIGURED
        hardware.stop_running.assert_not_called()

    def test_restart_from_idle(self, running_controller, hardware):
        """Test that an idle session can be started again."""
        running_controller.stop().result(timeout=WAIT)
        running_controller.start().result(timeout=WAIT)

        assert running_controller.get_state() == CaptureSessionState.RUNNING
        assert hardware.start_running.call_count == 2

    def test_close(self, running_controller, hardware):
        """Test that close stops and releases the hardware."""
        states = []
        running_controller.register_callback("state_changed", lambda state: states.append(state))

        running_controller.close(wait=True)

        assert running_controller.get_state() == CaptureSessionState.UNCONFIGURED
        hardware.stop_running.assert_called_once()
        hardware.release.assert_called_once()
        assert states == [CaptureSessionState.IDLE, CaptureSessionState.UNCONFIGURED]

    def test_close_twice(self, running_controller, hardware):
        """Test that close is idempotent."""
        running_controller.close(wait=True)
        running_controller.close(wait=True)

        hardware.release.assert_called_once()

    def test_latest_frame_requires_running(self, controller, hardware):
        """Test that no preview frame is returned unless streaming."""
        controller.configure()

        assert controller.get_latest_frame() is None


class TestCapturePhoto:
    """Test one-shot photo capture."""

    def test_capture_when_configured(self, controller, hardware):
        """Test that capture outside RUNNING fails without touching the hardware."""
        controller.configure()

        with pytest.raises(InvalidStateError):
            controller.capture_photo()

        hardware.capture_still.assert_not_called()
        assert controller.get_state() == CaptureSessionState.CONFIGURED

    def test_capture_when_unconfigured(self, controller):
        """Test that capture on a new controller fails."""
        with pytest.raises(InvalidStateError):
            controller.capture_photo()

    def test_capture_success(self, running_controller, hardware, frame):
        """Test that a capture delivers a photo and returns to RUNNING."""
        captured = []
        running_controller.register_callback("photo_captured", lambda photo: captured.append(photo))

        request = running_controller.capture_photo()
        photo = request.result(timeout=WAIT)

        assert isinstance(photo, CapturedPhoto)
        assert isinstance(photo.image, SourceImage)
        assert photo.image.width == 40
        assert photo.image.height == 30
        assert photo.device_id == "camera_0"
        assert photo.timestamp.tzinfo is not None
        np.testing.assert_array_equal(photo.image.pixels, frame)

        assert running_controller.get_state() == CaptureSessionState.RUNNING
        hardware.capture_still.assert_called_once_with(timeout=WAIT)

        # Events are emitted after completion, on the session queue
        running_controller.stop().result(timeout=WAIT)
        assert captured == [photo]

    def test_capture_uses_explicit_timeout(self, running_controller, hardware):
        """Test that a caller timeout is passed to the hardware."""
        request = running_controller.capture_photo(timeout=2.5)
        request.result(timeout=WAIT)

        assert request.timeout == 2.5
        hardware.capture_still.assert_called_once_with(timeout=2.5)

    def test_second_capture_is_busy(self, running_controller, hardware, frame):
        """Test that only one capture may be in flight."""
        release = threading.Event()

        def slow_capture(timeout=None):
            release.wait(WAIT)
            return frame

        hardware.capture_still.side_effect = slow_capture

        first = running_controller.capture_photo()
        assert running_controller.is_capture_pending()

        with pytest.raises(BusyError):
            running_controller.capture_photo()

        release.set()
        first.result(timeout=WAIT)

        assert running_controller.get_state() == CaptureSessionState.RUNNING
        hardware.capture_still.assert_called_once()

    def test_capture_again_after_completion(self, running_controller, hardware):
        """Test that a new capture is accepted once the previous one finished."""
        running_controller.capture_photo().result(timeout=WAIT)
        running_controller.capture_photo().result(timeout=WAIT)

        assert hardware.capture_still.call_count == 2

    def test_hardware_error(self, running_controller, hardware):
        """Test that a hardware CaptureError fails the request."""
        failures = []
        running_controller.register_callback("capture_failed", lambda error: failures.append(error))
        hardware.capture_still.side_effect = CaptureError("sensor error")

        request = running_controller.capture_photo()

        with pytest.raises(CaptureError, match="sensor error"):
            request.result(timeout=WAIT)
        assert running_controller.get_state() == CaptureSessionState.RUNNING

        running_controller.stop().result(timeout=WAIT)
        assert len(failures) == 1

    def test_unexpected_error_is_wrapped(self, running_controller, hardware):
        """Test that unexpected exceptions become CaptureError with a cause."""
        cause = RuntimeError("driver crashed")
        hardware.capture_still.side_effect = cause

        request = running_controller.capture_photo()

        with pytest.raises(CaptureError) as exc_info:
            request.result(timeout=WAIT)
        assert exc_info.value.cause is cause

    def test_undecodable_frame(self, running_controller, hardware):
        """Test that a frame that is not an RGB image fails the capture."""
        hardware.capture_still.return_value = np.zeros((10, 10), dtype=np.uint8)

        request = running_controller.capture_photo()

        with pytest.raises(CaptureError, match="undecodable"):
            request.result(timeout=WAIT)

    def test_timeout_drops_late_result(self, running_controller, hardware, frame):
        """Test that a timed-out capture fails and ignores the late photo."""
        release = threading.Event()
        captured = []
        running_controller.register_callback("photo_captured", lambda photo: captured.append(photo))

        def stuck_capture(timeout=None):
            release.wait(WAIT)
            return frame

        hardware.capture_still.side_effect = stuck_capture

        request = running_controller.capture_photo(timeout=0.1)

        with pytest.raises(CaptureTimeoutError):
            request.result(timeout=WAIT)
        assert running_controller.get_state() == CaptureSessionState.RUNNING

        # Let the hardware answer late, then drain the session queue
        release.set()
        running_controller.stop().result(timeout=WAIT)

        assert captured == []
        with pytest.raises(CaptureTimeoutError):
            request.result(timeout=0)

    def test_stop_while_pending(self, running_controller, hardware, frame):
        """Test that stopping during a capture leaves the session IDLE."""
        release = threading.Event()

        def slow_capture(timeout=None):
            release.wait(WAIT)
            return frame

        hardware.capture_still.side_effect = slow_capture

        request = running_controller.capture_photo()
        stopped = running_controller.stop()
        assert running_controller.get_state() == CaptureSessionState.IDLE

        release.set()
        request.result(timeout=WAIT)
        stopped.result(timeout=WAIT)

        assert running_controller.get_state() == CaptureSessionState.IDLE

    def test_restart_keeps_pending_capture_busy(self, running_controller, hardware, frame):
        """Test that stop and start cannot let a second capture past a pending one."""
        release = threading.Event()

        def slow_capture(timeout=None):
            release.wait(WAIT)
            return frame

        hardware.capture_still.side_effect = slow_capture

        first = running_controller.capture_photo()
        running_controller.stop()
        running_controller.start()

        assert running_controller.get_state() == CaptureSessionState.CAPTURE_PENDING
        with pytest.raises(BusyError):
            running_controller.capture_photo()

        release.set()
        first.result(timeout=WAIT)

        assert running_controller.get_state() == CaptureSessionState.RUNNING
        hardware.capture_still.assert_called_once()

    def test_capture_while_stopped_with_pending(self, running_controller, hardware, frame):
        """Test that a capture from IDLE with one still in flight is busy."""
        release = threading.Event()

        def slow_capture(timeout=None):
            release.wait(WAIT)
            return frame

        hardware.capture_still.side_effect = slow_capture

        first = running_controller.capture_photo()
        running_controller.stop()

        with pytest.raises(BusyError):
            running_controller.capture_photo()

        release.set()
        first.result(timeout=WAIT)

        with pytest.raises(InvalidStateError):
            running_controller.capture_photo()


class TestCallbacks:
    """Test callback registration."""

    def test_unregister(self, controller):
        """Test that unregistered callbacks are not called."""
        callback = Mock()
        controller.register_callback("state_changed", callback)
        controller.unregister_callback("state_changed", callback)

        controller.configure()

        callback.assert_not_called()

    def test_callback_errors_are_contained(self, controller):
        """Test that a failing callback does not break the session."""
        controller.register_callback("state_changed", Mock(side_effect=RuntimeError("boom")))
        other = Mock()
        controller.register_callback("state_changed", other)

        controller.configure()

        assert controller.get_state() == CaptureSessionState.CONFIGURED
        other.assert_called_once_with(state=CaptureSessionState.CONFIGURED)
