# errors.py
"""
Error taxonomy for the scanner.

- StorageAccessError and SecurityFeedError are recovered where they occur:
  the failing account, object or feed is logged and skipped.
- FatalSetupError stops the run before any report is produced.
- PatternRegistryError is raised while loading detection rules, never mid-scan.
"""


class ScannerError(Exception):
    """Base class for all scanner errors."""


class StorageAccessError(ScannerError):
    """
    Raised by a storage backend when one account, container or object
    cannot be read (access denied, throttling, missing resource).
    """

    def __init__(self, resource: str, message: str):
        super().__init__(f"{resource}: {message}")
        self.resource = resource


class SecurityFeedError(ScannerError):
    """Raised when an alert or assessment feed cannot be queried."""

    def __init__(self, feed: str, message: str):
        super().__init__(f"{feed} feed unavailable: {message}")
        self.feed = feed


class FatalSetupError(ScannerError):
    """Authentication failure, invalid subscription or unusable input."""


class PatternRegistryError(ScannerError):
    """Malformed detection pattern configuration."""
