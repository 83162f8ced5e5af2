"""Core capture logic: session lifecycle, cropping and photo persistence."""

from fillcam.core.models import AppSettings, CaptureSessionState
from fillcam.core.settings import SettingsManager

__all__ = ["AppSettings", "CaptureSessionState", "SettingsManager"]
