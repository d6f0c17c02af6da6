"""
Custom exceptions for Gofer.

All exceptions inherit from GoferError for easy catching.
"""


class GoferError(Exception):
    """Base exception for all Gofer errors."""
    pass


class ConfigError(GoferError):
    """Configuration-related errors."""
    pass


class ExecutionError(GoferError):
    """Host process could not be spawned or did not finish."""
    pass


class WatcherError(GoferError):
    """Desktop watcher errors."""
    pass


class CaptureError(WatcherError):
    """Screenshot capture or decoding failed (transient)."""
    pass


class ResourceAcquisitionError(WatcherError):
    """A per-watch resource (inhibitor, temp directory) could not be acquired."""
    pass


class ClassifierError(GoferError):
    """AI classifier provider errors."""
    pass


class NotificationError(GoferError):
    """Notification channel errors."""
    pass
