"""Exception types raised by beatcut."""

from typing import Any, Optional


class BeatcutError(Exception):
    """Base class for all beatcut errors."""


class ConfigurationError(BeatcutError):
    """Invalid configuration. Raised before any analysis work starts."""

    def __init__(self, field_name: str, value: Any, message: str):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid configuration for '{field_name}' ({value!r}): {message}")


class ProcessingInProgress(BeatcutError):
    """An analysis session is already running on this pipeline."""


class ProcessingCancelled(BeatcutError):
    """The session was cancelled and its output discarded."""


class ProcessingFailed(BeatcutError):
    """The session failed for a reason other than a single malformed buffer."""


class AnalysisFailed(BeatcutError):
    """One buffer could not be analyzed. Only that buffer is dropped."""

    def __init__(self, message: str, timestamp: Optional[float] = None):
        self.timestamp = timestamp
        super().__init__(message)
