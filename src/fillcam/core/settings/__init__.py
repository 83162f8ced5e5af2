"""Settings persistence."""

from fillcam.core.settings.manager import SettingsManager

__all__ = ["SettingsManager"]
