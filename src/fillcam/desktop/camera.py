"""
Full-screen camera window.

This module provides the CameraWindow: a live aspect-fill preview with a
round shutter button; after a capture it shows the photo cropped to fill
the window with Save and Retake actions.
"""

import logging
from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QWidget

from fillcam.core.capture import CameraDeviceManager, CaptureSessionController, CaptureWorkflow
from fillcam.core.errors import (
    BusyError,
    ConfigurationError,
    DegenerateInputError,
    InvalidStateError,
)
from fillcam.core.logging import LogConsoleHandler
from fillcam.core.models import AppSettings, WorkflowPhase
from fillcam.core.photos import DirectoryPhotoLibrary, PhotoLibraryWriter
from fillcam.desktop.styles import ROUND_BUTTON_BOTTOM_MARGIN, ROUND_BUTTON_SIZE
from fillcam.desktop.widgets import CameraPreviewWidget

logger = logging.getLogger(__name__)


class CameraWindow(QWidget):
    """Camera screen.

    The capture session is configured when the window is built, started
    when it is shown and stopped when it is hidden. Session and library
    events arrive on worker threads and are re-emitted as Qt signals so all
    widget updates happen on the UI thread.
    """

    # Re-emitted workflow events (queued onto the UI thread)
    phase_changed = Signal(object)  # WorkflowPhase
    capture_failed = Signal(str)
    photo_saved = Signal(str)
    save_failed = Signal(str)

    # Emitted when the window closes, after the session has been released
    closed = Signal()

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        controller: Optional[CaptureSessionController] = None,
        library: Optional[PhotoLibraryWriter] = None,
        log_console_handler: Optional[LogConsoleHandler] = None,
        parent: Optional[QWidget] = None,
    ):
        """Initialize the CameraWindow.

        Args:
            settings: Application settings; defaults if None
            controller: Capture session; built from settings if None
            library: Photo library writer; built from settings if None
            log_console_handler: Optional handler whose warnings are shown in the status line
            parent: Optional parent widget
        """
        super().__init__(parent)
        logger.info("Initializing CameraWindow")

        self._settings = settings or AppSettings()

        if controller is None:
            controller = CaptureSessionController(
                device_manager=CameraDeviceManager(preferred_index=self._settings.camera_index),
                resolution=self._settings.preferred_resolution,
                preview_fps=self._settings.preview_fps,
                capture_timeout=self._settings.capture_timeout,
            )
        if library is None:
            library = DirectoryPhotoLibrary(
                directory=self._settings.photo_library_dir,
                quality=self._settings.jpeg_quality,
            )

        self._controller = controller
        self._library = library
        self._workflow = CaptureWorkflow(controller, library)
        self._log_console_handler = log_console_handler
        self._configured = False

        self.setObjectName("CameraRoot")
        self.setWindowTitle("Camera")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        self.setMinimumSize(360, 640)

        self._setup_ui()
        self._connect_signals()
        self._configure_session()

        logger.info("CameraWindow initialized")

    @property
    def workflow(self) -> CaptureWorkflow:
        return self._workflow

    def _setup_ui(self) -> None:
        self._preview = CameraPreviewWidget(
            frame_source=self._controller.get_latest_frame,
            fps=self._settings.preview_fps,
            parent=self,
        )

        self._capture_button = QPushButton(self)
        self._capture_button.setObjectName("RoundButton")
        self._capture_button.setFixedSize(ROUND_BUTTON_SIZE, ROUND_BUTTON_SIZE)
        self._capture_button.setToolTip("Take photo")

        self._actions = QWidget(self)
        actions_layout = QHBoxLayout(self._actions)
        actions_layout.setContentsMargins(0, 0, 0, 0)
        actions_layout.setSpacing(20)

        self._retake_button = QPushButton("Retake")
        self._retake_button.setObjectName("ActionButton")
        actions_layout.addWidget(self._retake_button)

        self._save_button = QPushButton("Save")
        self._save_button.setObjectName("ActionButton")
        actions_layout.addWidget(self._save_button)

        self._actions.hide()

        self._status_label = QLabel(self)
        self._status_label.setObjectName("StatusLabel")
        self._status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._status_label.hide()

    def _connect_signals(self) -> None:
        self._capture_button.clicked.connect(self._on_capture_clicked)
        self._save_button.clicked.connect(self._on_save_clicked)
        self._retake_button.clicked.connect(self._on_retake_clicked)

        self.phase_changed.connect(self._on_phase_changed)
        self.capture_failed.connect(self._on_capture_failed)
        self.photo_saved.connect(self._on_photo_saved)
        self.save_failed.connect(self._on_save_failed)

        self._workflow.register_callback(
            "phase_changed", lambda phase: self.phase_changed.emit(phase)
        )
        self._workflow.register_callback(
            "capture_failed", lambda error: self.capture_failed.emit(str(error))
        )
        self._workflow.register_callback("photo_saved", lambda path: self.photo_saved.emit(str(path)))
        self._workflow.register_callback(
            "save_failed", lambda error: self.save_failed.emit(str(error))
        )

        if self._log_console_handler is not None:
            self._log_console_handler.log_message.connect(self._on_log_message)

    def _configure_session(self) -> None:
        try:
            self._controller.configure()
            self._configured = True
        except ConfigurationError as e:
            logger.error(f"Camera unavailable: {e}")
            self._capture_button.setEnabled(False)
            self._preview.show_message("Camera unavailable")
            self._show_status(str(e))

    def is_configured(self) -> bool:
        return self._configured

    # ========================================================================
    # Visibility and Layout
    # ========================================================================

    def showEvent(self, event) -> None:
        super().showEvent(event)
        if not self._configured:
            return

        try:
            self._controller.start()
        except InvalidStateError as e:
            logger.error(f"Cannot start camera: {e}")
            return
        self._preview.start_updates()

    def hideEvent(self, event) -> None:
        super().hideEvent(event)
        self._preview.stop_updates()
        self._controller.stop()

    def closeEvent(self, event) -> None:
        logger.info("Closing CameraWindow")
        self._preview.stop_updates()
        if self._log_console_handler is not None:
            self._log_console_handler.log_message.disconnect(self._on_log_message)
            self._log_console_handler = None
        self._controller.close()
        self._library.close()
        super().closeEvent(event)
        self.closed.emit()

    def keyPressEvent(self, event) -> None:
        if event.key() == Qt.Key.Key_Escape:
            self.close()
            return
        if event.key() == Qt.Key.Key_Space and self._capture_button.isVisible():
            self._on_capture_clicked()
            return
        super().keyPressEvent(event)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        width, height = self.width(), self.height()

        self._preview.setGeometry(0, 0, width, height)
        self._workflow.set_viewport(width, height)

        self._capture_button.move(
            (width - ROUND_BUTTON_SIZE) // 2,
            height - ROUND_BUTTON_BOTTOM_MARGIN - ROUND_BUTTON_SIZE,
        )

        self._actions.adjustSize()
        self._actions.move(
            (width - self._actions.width()) // 2,
            height - ROUND_BUTTON_BOTTOM_MARGIN - self._actions.height(),
        )

        self._place_status_label()

        if self._workflow.get_phase() != WorkflowPhase.LIVE:
            self._show_preview_image()

    def _place_status_label(self) -> None:
        self._status_label.adjustSize()
        self._status_label.move((self.width() - self._status_label.width()) // 2, 20)

    def _show_status(self, text: str) -> None:
        self._status_label.setText(text)
        self._status_label.show()
        self._status_label.raise_()
        self._place_status_label()

    def _hide_status(self) -> None:
        self._status_label.hide()

    # ========================================================================
    # Actions
    # ========================================================================

    def _on_capture_clicked(self) -> None:
        try:
            self._workflow.capture()
            self._capture_button.setEnabled(False)
        except BusyError:
            logger.info("Capture already in progress")
        except InvalidStateError as e:
            logger.warning(f"Cannot capture photo: {e}")
            self._show_status("Camera is not ready")

    def _on_save_clicked(self) -> None:
        try:
            self._workflow.save()
        except (InvalidStateError, DegenerateInputError) as e:
            logger.warning(f"Cannot save photo: {e}")
            self._show_status("Nothing to save")

    def _on_retake_clicked(self) -> None:
        try:
            self._workflow.retake()
        except InvalidStateError as e:
            logger.warning(f"Cannot retake: {e}")

    # ========================================================================
    # Workflow Events (UI thread)
    # ========================================================================

    def _on_phase_changed(self, phase: WorkflowPhase) -> None:
        logger.debug(f"Camera window phase: {phase.value}")

        if phase == WorkflowPhase.LIVE:
            self._preview.clear_still()
            self._actions.hide()
            self._capture_button.setEnabled(self._configured)
            self._capture_button.show()
            self._hide_status()

        elif phase == WorkflowPhase.PREVIEWING:
            self._show_preview_image()
            self._capture_button.hide()
            self._capture_button.setEnabled(True)
            self._save_button.setEnabled(True)
            self._retake_button.setEnabled(True)
            self._actions.show()
            self._actions.raise_()

        elif phase == WorkflowPhase.SAVING:
            self._save_button.setEnabled(False)
            self._retake_button.setEnabled(False)
            self._show_status("Saving...")

        elif phase == WorkflowPhase.SAVED:
            self._save_button.setEnabled(True)
            self._retake_button.setEnabled(True)

    def _show_preview_image(self) -> None:
        try:
            image = self._workflow.preview_image()
        except DegenerateInputError as e:
            logger.debug(f"Preview not shown: {e}")
            return

        if image is not None:
            self._preview.show_still(image)

    def _on_capture_failed(self, message: str) -> None:
        self._capture_button.setEnabled(True)
        self._show_status(f"Capture failed: {message}")

    def _on_photo_saved(self, path: str) -> None:
        self._show_status(f"Saved to {path}")

    def _on_save_failed(self, message: str) -> None:
        self._show_status(f"Save failed: {message}")

    def _on_log_message(self, level: str, message: str, record) -> None:
        if record.levelno >= logging.WARNING:
            self._show_status(record.getMessage())
