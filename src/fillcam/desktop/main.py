"""
Launcher window for FillCam desktop application.

This module provides the LauncherWindow: a single round button that opens
the full-screen camera window.
"""

import logging
from typing import Optional

from PySide6.QtWidgets import QMainWindow, QPushButton, QWidget

from fillcam.core.logging import LogConsoleHandler
from fillcam.core.models import AppSettings, WindowGeometry
from fillcam.core.settings import SettingsManager
from fillcam.desktop.camera import CameraWindow
from fillcam.desktop.styles import ROUND_BUTTON_BOTTOM_MARGIN, ROUND_BUTTON_SIZE

logger = logging.getLogger(__name__)


class LauncherWindow(QMainWindow):
    """Launcher screen with an "Open Camera" button."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        settings_manager: Optional[SettingsManager] = None,
        full_screen_camera: bool = True,
        log_console_handler: Optional[LogConsoleHandler] = None,
        parent: Optional[QWidget] = None,
    ):
        """Initialize the launcher.

        Args:
            settings: Application settings; loaded from settings_manager if None
            settings_manager: Used to persist window geometry on close
            full_screen_camera: Show the camera window full screen
            log_console_handler: Forwarded to camera windows for status messages
            parent: Optional parent widget
        """
        super().__init__(parent)
        logger.info("Initializing LauncherWindow")

        self._settings_manager = settings_manager
        if settings is None:
            settings = settings_manager.load_settings() if settings_manager else AppSettings()
        self._settings = settings
        self._full_screen_camera = full_screen_camera
        self._log_console_handler = log_console_handler
        self._camera_window: Optional[CameraWindow] = None

        self.setWindowTitle("FillCam")
        self.setMinimumSize(360, 640)

        central = QWidget()
        central.setObjectName("LauncherRoot")
        self.setCentralWidget(central)

        self._open_button = QPushButton("Open Camera", central)
        self._open_button.setObjectName("RoundButton")
        self._open_button.setFixedSize(ROUND_BUTTON_SIZE, ROUND_BUTTON_SIZE)
        self._open_button.clicked.connect(self.open_camera)

        self._apply_settings()

    def _apply_settings(self) -> None:
        if self._settings.window_geometry:
            geom = self._settings.window_geometry
            self.setGeometry(geom.x, geom.y, geom.width, geom.height)
            logger.debug(f"Applied window geometry: {geom.x}, {geom.y}, {geom.width}x{geom.height}")

    def _save_settings(self) -> None:
        if self._settings_manager is None:
            return

        geom = self.geometry()
        self._settings.window_geometry = WindowGeometry(
            x=geom.x(),
            y=geom.y(),
            width=geom.width(),
            height=geom.height(),
        )

        try:
            self._settings_manager.save_settings(self._settings)
        except IOError as e:
            logger.error(f"Error saving settings: {e}")

    def camera_window(self) -> Optional[CameraWindow]:
        return self._camera_window

    def open_camera(self) -> None:
        """Present the camera window, or raise it if it is already open."""
        if self._camera_window is not None:
            self._camera_window.raise_()
            self._camera_window.activateWindow()
            return

        logger.info("Opening camera window")
        window = CameraWindow(
            settings=self._settings, log_console_handler=self._log_console_handler
        )
        window.closed.connect(self._on_camera_closed)
        self._camera_window = window

        if self._full_screen_camera:
            window.showFullScreen()
        else:
            window.show()

    def _on_camera_closed(self) -> None:
        logger.info("Camera window closed")
        if self._camera_window is not None:
            self._camera_window.deleteLater()
            self._camera_window = None

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        central = self.centralWidget()
        self._open_button.move(
            (central.width() - ROUND_BUTTON_SIZE) // 2,
            central.height() - ROUND_BUTTON_BOTTOM_MARGIN - ROUND_BUTTON_SIZE,
        )

    def closeEvent(self, event) -> None:
        if self._camera_window is not None:
            self._camera_window.close()
        self._save_settings()
        super().closeEvent(event)
