"""
Global stylesheet definitions for FillCam desktop application.

This module provides centralized style definitions that are applied
application-wide, keeping the launcher and camera screens consistent.
"""

# Diameter of the round launcher and shutter buttons, in pixels
ROUND_BUTTON_SIZE = 60

# Distance between the round buttons and the bottom edge of their window
ROUND_BUTTON_BOTTOM_MARGIN = 50

GLOBAL_STYLESHEET = """
QWidget#LauncherRoot, QWidget#CameraRoot {
    background-color: #000000;
}

QLabel {
    background-color: transparent;
    border: none;
}

QLabel#StatusLabel {
    color: #ffffff;
    background-color: rgba(0, 0, 0, 150);
    border-radius: 6px;
    padding: 4px 10px;
    font-size: 13px;
}

QPushButton#RoundButton {
    background-color: #ffffff;
    color: #000000;
    border: none;
    border-radius: 30px;
    font-size: 10px;
}

QPushButton#RoundButton:pressed {
    background-color: #d0d0d0;
}

QPushButton#RoundButton:disabled {
    background-color: #606060;
}

QPushButton#ActionButton {
    background-color: rgba(0, 0, 0, 150);
    color: #ffffff;
    border: 1px solid #ffffff;
    border-radius: 6px;
    padding: 8px 20px;
    font-size: 14px;
    font-weight: bold;
}

QPushButton#ActionButton:hover {
    background-color: rgba(0, 0, 0, 200);
}

QPushButton#ActionButton:disabled {
    color: #808080;
    border: 1px solid #808080;
}
"""


def get_global_stylesheet() -> str:
    """Get the global application stylesheet.

    Returns:
        Global stylesheet string
    """
    return GLOBAL_STYLESHEET
