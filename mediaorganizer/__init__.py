"""Organize media files into date-based folders with duplicate detection and a resumable journal."""

__version__ = "0.1.0"
__all__ = ["__version__"]