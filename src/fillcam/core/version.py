"""Version information for FillCam."""

from importlib.metadata import PackageNotFoundError, version
from typing import Dict

# Distributions that decide how capture, preview and saving behave
RUNTIME_DISTRIBUTIONS = ("opencv-python", "PySide6", "numpy", "Pillow")


def get_version() -> str:
    """Get version from installed package metadata.

    Falls back to pyproject.toml when running from a source checkout that
    has not been installed.

    Returns:
        Version string (e.g., "0.1.0") or "unknown" if not found
    """
    try:
        return version("fillcam")
    except PackageNotFoundError:
        try:
            import tomllib
            from pathlib import Path

            project_root = Path(__file__).parent.parent.parent.parent
            pyproject_path = project_root / "pyproject.toml"

            if pyproject_path.exists():
                with open(pyproject_path, "rb") as f:
                    data = tomllib.load(f)
                return data.get("project", {}).get("version", "unknown")
            else:
                return "unknown"

        except (OSError, ValueError):
            return "unknown"


def get_runtime_versions() -> Dict[str, str]:
    """Installed versions of the camera, UI and imaging libraries.

    Read from package metadata so that nothing is imported; a missing
    distribution is reported as "not installed".
    """
    versions = {}
    for name in RUNTIME_DISTRIBUTIONS:
        try:
            versions[name] = version(name)
        except PackageNotFoundError:
            versions[name] = "not installed"
    return versions


def describe_runtime() -> str:
    """One-line summary of FillCam and its runtime libraries."""
    libraries = ", ".join(f"{name} {ver}" for name, ver in get_runtime_versions().items())
    return f"FillCam {__version__} ({libraries})"


__version__ = get_version()
