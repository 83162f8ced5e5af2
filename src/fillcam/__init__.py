"""FillCam: full-screen camera capture with aspect-fill photo cropping."""

from fillcam.core.version import __version__

__all__ = ["__version__"]
