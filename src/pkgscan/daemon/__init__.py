"""Background maintenance tasks for pkgscan."""

from .refresher import DirectoryRefresher

__all__ = ["DirectoryRefresher"]
