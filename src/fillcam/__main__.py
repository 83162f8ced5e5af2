"""
FillCam CLI entry point.

This module provides the command-line interface for the FillCam application.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from fillcam.core.logging import LogConsoleHandler, setup_logging
from fillcam.core.models import AppSettings
from fillcam.core.settings import SettingsManager
from fillcam.core.version import __version__, describe_runtime

APP_NAME = "FillCam"
APP_DESCRIPTION = "Full-screen camera with aspect-fill photo cropping"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="fillcam",
        description=f"{APP_NAME} - {APP_DESCRIPTION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Launch with the default camera
  python -m fillcam

  # Use the second camera and save photos to a custom folder
  python -m fillcam --camera-index 1 --photo-dir ~/Desktop/shots

  # Launch with debug logging
  python -m fillcam --log-level DEBUG
        """,
    )

    parser.add_argument(
        "--camera-index",
        type=int,
        metavar="N",
        help="OpenCV index of the camera to use as the back camera",
    )

    parser.add_argument(
        "--photo-dir",
        type=str,
        metavar="PATH",
        help="Directory where saved photos are written (default: ~/Pictures/FillCam)",
    )

    parser.add_argument(
        "--capture-timeout",
        type=float,
        metavar="SECONDS",
        help="Seconds to wait for a photo before the capture fails",
    )

    parser.add_argument("--config", type=str, metavar="PATH", help="Path to settings file")

    parser.add_argument(
        "--log-file",
        type=str,
        metavar="PATH",
        help="Path to the debug log file (default: platform log directory)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        metavar="LEVEL",
        help="Logging level (default: INFO)",
    )

    parser.add_argument("--version", action="version", version=f"{APP_NAME} {__version__}")

    return parser


def apply_overrides(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    """Apply command-line values on top of loaded settings.

    Raises:
        ValueError: If an override is out of range
    """
    if args.camera_index is not None:
        if args.camera_index < 0:
            raise ValueError(f"Camera index must be non-negative: {args.camera_index}")
        settings.camera_index = args.camera_index

    if args.photo_dir:
        settings.photo_library_dir = Path(args.photo_dir).expanduser()

    if args.capture_timeout is not None:
        if args.capture_timeout <= 0:
            raise ValueError(f"Capture timeout must be positive: {args.capture_timeout}")
        settings.capture_timeout = args.capture_timeout

    return settings


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the FillCam application.

    Returns:
        Exit code using os.EX_* constants:
        - os.EX_OK (0): Success
        - os.EX_USAGE (64): Invalid command-line value
        - os.EX_NOINPUT (66): Cannot open input file
        - os.EX_DATAERR (65): Settings file is corrupt
        - os.EX_SOFTWARE (70): Internal software error
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    console_handler = LogConsoleHandler()
    log_file = Path(args.log_file).expanduser() if args.log_file else None
    setup_logging(log_level=args.log_level, log_file=log_file, console_handler=console_handler)
    logger = logging.getLogger(__name__)

    logger.info("Starting FillCam application")
    logger.info(describe_runtime())
    logger.debug(f"Command-line arguments: {args}")

    try:
        if args.config:
            config_path = Path(args.config).expanduser()
            if not config_path.exists():
                logger.error(f"Configuration file not found: {config_path}")
                return os.EX_NOINPUT
            logger.info(f"Loading configuration from: {config_path}")
            settings_manager = SettingsManager.from_file(config_path)
        else:
            settings_manager = SettingsManager()

        try:
            settings = settings_manager.load_settings()
        except ValueError as e:
            logger.error(f"Invalid settings file: {e}")
            return os.EX_DATAERR

        try:
            settings = apply_overrides(settings, args)
        except ValueError as e:
            logger.error(str(e))
            return os.EX_USAGE

        logger.info("Launching desktop UI")
        from PySide6.QtWidgets import QApplication

        app = QApplication(sys.argv)
        app.setApplicationName(APP_NAME)
        app.setOrganizationName(APP_NAME)
        app.setApplicationVersion(__version__)

        from fillcam.desktop.styles import get_global_stylesheet

        app.setStyleSheet(get_global_stylesheet())
        logger.debug("Global stylesheet applied")

        from fillcam.desktop import LauncherWindow

        window = LauncherWindow(
            settings=settings,
            settings_manager=settings_manager,
            log_console_handler=console_handler,
        )
        window.show()

        logger.info("Desktop UI launched successfully")

        return app.exec()

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return os.EX_OK

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return os.EX_SOFTWARE


if __name__ == "__main__":
    sys.exit(main())
