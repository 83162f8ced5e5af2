"""Settings manager for FillCam.

This module provides the SettingsManager class for persisting and loading
application settings as JSON in the user's config directory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fillcam.core.models import AppSettings, Resolution, WindowGeometry

logger = logging.getLogger(__name__)


class SettingsManager:
    """Manages application settings.

    Provides methods for:
    - Loading and saving settings to JSON files
    - Managing settings persistence in user config directory
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize settings manager.

        Args:
            config_dir: Optional custom config directory. If None, uses platform default.
        """
        if config_dir is None:
            config_dir = self._get_default_config_dir()

        self.config_dir = config_dir
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.settings_file = self.config_dir / "settings.json"

        logger.info(f"Settings manager initialized with config dir: {self.config_dir}")

    @classmethod
    def from_file(cls, settings_file: Path) -> SettingsManager:
        """Create a manager bound to an explicit settings file."""
        manager = cls(config_dir=settings_file.parent)
        manager.settings_file = settings_file
        return manager

    def _get_default_config_dir(self) -> Path:
        """Get platform-specific default config directory.

        Returns:
            Path to config directory
        """
        import sys

        if sys.platform == "darwin":
            # macOS: ~/Library/Application Support/FillCam
            base = Path.home() / "Library" / "Application Support"
            return base / "FillCam"
        elif sys.platform == "win32":
            # Windows: %APPDATA%/FillCam
            import os

            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
            return base / "FillCam"
        else:
            # Linux: ~/.config/fillcam
            import os

            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
            return base / "fillcam"

    def load_settings(self) -> AppSettings:
        """Load settings from storage.

        Returns:
            AppSettings instance with loaded settings, or default settings if file doesn't exist

        Raises:
            ValueError: If settings file is corrupted or invalid
        """
        if not self.settings_file.exists():
            logger.info("Settings file not found, using default settings")
            return AppSettings()

        try:
            with open(self.settings_file, "r", encoding="utf-8") as f:
                data = json.load(f)

            settings = self._deserialize_settings(data)
            logger.info("Settings loaded successfully")
            return settings

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse settings file: {e}")
            raise ValueError(f"Settings file is corrupted: {e}") from e
        except Exception as e:
            logger.error(f"Failed to load settings: {e}")
            raise ValueError(f"Failed to load settings: {e}") from e

    def save_settings(self, settings: AppSettings) -> None:
        """Save settings to storage.

        Args:
            settings: AppSettings instance to save

        Raises:
            IOError: If settings file cannot be written
        """
        try:
            data = self._serialize_settings(settings)

            # Write to temporary file first, then rename (atomic operation)
            temp_file = self.settings_file.with_suffix(".tmp")
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            temp_file.replace(self.settings_file)

            logger.info("Settings saved successfully")

        except Exception as e:
            logger.error(f"Failed to save settings: {e}")
            raise IOError(f"Failed to save settings: {e}") from e

    def _serialize_settings(self, settings: AppSettings) -> Dict[str, Any]:
        """Serialize AppSettings to JSON-compatible dictionary."""
        return {
            "camera_index": settings.camera_index,
            "preferred_resolution": (
                {
                    "width": settings.preferred_resolution.width,
                    "height": settings.preferred_resolution.height,
                }
                if settings.preferred_resolution
                else None
            ),
            "preview_fps": settings.preview_fps,
            "capture_timeout": settings.capture_timeout,
            "photo_library_dir": (
                str(settings.photo_library_dir) if settings.photo_library_dir else None
            ),
            "jpeg_quality": settings.jpeg_quality,
            "window_geometry": (
                {
                    "x": settings.window_geometry.x,
                    "y": settings.window_geometry.y,
                    "width": settings.window_geometry.width,
                    "height": settings.window_geometry.height,
                }
                if settings.window_geometry
                else None
            ),
        }

    def _deserialize_settings(self, data: Dict[str, Any]) -> AppSettings:
        """Deserialize JSON dictionary to AppSettings.

        Raises:
            ValueError: If the camera index or capture timeout is out of range
        """
        defaults = AppSettings()

        camera_index = data.get("camera_index", defaults.camera_index)
        if camera_index is not None and camera_index < 0:
            raise ValueError(f"Camera index must be non-negative: {camera_index}")

        capture_timeout = data.get("capture_timeout", defaults.capture_timeout)
        if capture_timeout is not None and capture_timeout <= 0:
            raise ValueError(f"Capture timeout must be positive: {capture_timeout}")

        preferred_resolution = None
        if data.get("preferred_resolution"):
            res_data = data["preferred_resolution"]
            preferred_resolution = Resolution(width=res_data["width"], height=res_data["height"])

        photo_library_dir = None
        if data.get("photo_library_dir"):
            photo_library_dir = Path(data["photo_library_dir"]).expanduser()

        window_geometry = None
        if data.get("window_geometry"):
            wg_data = data["window_geometry"]
            window_geometry = WindowGeometry(
                x=wg_data["x"],
                y=wg_data["y"],
                width=wg_data["width"],
                height=wg_data["height"],
            )

        return AppSettings(
            camera_index=camera_index,
            preferred_resolution=preferred_resolution,
            preview_fps=data.get("preview_fps", defaults.preview_fps),
            capture_timeout=capture_timeout,
            photo_library_dir=photo_library_dir,
            jpeg_quality=data.get("jpeg_quality", defaults.jpeg_quality),
            window_geometry=window_geometry,
        )
