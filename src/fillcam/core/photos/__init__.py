"""Photo library persistence."""

from fillcam.core.photos.library import (
    DirectoryPhotoLibrary,
    PhotoLibraryWriter,
    default_library_dir,
)

__all__ = ["DirectoryPhotoLibrary", "PhotoLibraryWriter", "default_library_dir"]
