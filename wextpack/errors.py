from __future__ import annotations


class WextError(Exception):
    """Base error for wextpack. Also raised for filesystem failures."""


class UsageError(WextError):
    """The user supplied something we cannot work with (bad file, bad option)."""


class ManifestError(UsageError):
    """manifest.json is missing, unreadable or lacks required properties."""
