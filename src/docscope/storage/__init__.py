"""Remote store backends."""

from docscope.storage.drive import DriveStore

__all__ = ["DriveStore"]
