"""
Desktop UI module for FillCam.

This module provides the PySide6-based launcher and camera windows.
"""

from fillcam.desktop.camera import CameraWindow
from fillcam.desktop.main import LauncherWindow

__all__ = ["CameraWindow", "LauncherWindow"]
