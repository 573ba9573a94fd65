"""
wextpack - package a browser extension source tree into a versioned zip.
"""

from .version import __version__

__all__ = ["__version__"]
