"""Standardized exception hierarchy for ResumeWright.

Exception Hierarchy:
    ResumewrightError (base)
    +-- ConfigurationError
    +-- InvalidProgressError
    +-- PersistenceError
        +-- CorruptStateError

None of these escape the public ``ProgressStore`` API: the store catches
them at its boundary and logs them, since losing resume state must never
take down the host application.
"""

from typing import Any, Dict, Optional


class ResumewrightError(Exception):
    """Base exception for all ResumeWright errors.

    Attributes:
        message: Human-readable error description
        details: Optional dictionary with additional context
        cause: Original exception that caused this error (if any)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(ResumewrightError):
    """Invalid configuration.

    Examples:
        - Admission band with min_percent >= max_percent
        - Unknown write_mode or backend type
        - Negative continue-watching limit
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        valid_values: Optional[list] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = config_value
        if valid_values:
            details["valid_values"] = valid_values
        super().__init__(message, details=details, cause=cause)


class InvalidProgressError(ResumewrightError):
    """Playback telemetry that cannot be stored.

    Raised for empty content ids and for non-finite, negative or
    non-numeric positions and durations.
    """

    def __init__(
        self,
        message: str,
        content_id: Optional[str] = None,
        field_name: Optional[str] = None,
        value: Optional[Any] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if content_id:
            details["content_id"] = content_id
        if field_name:
            details["field"] = field_name
        if value is not None:
            details["value"] = value
        super().__init__(message, details=details)


class PersistenceError(ResumewrightError):
    """Backend read or write failure."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        backend: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if key:
            details["key"] = key
        if backend:
            details["backend"] = backend
        super().__init__(message, details=details, cause=cause)


class CorruptStateError(PersistenceError):
    """A persisted blob exists but cannot be decoded."""


def get_exception_class(error_type: str) -> type:
    """Get exception class by name.

    Args:
        error_type: Name of the exception class

    Returns:
        Exception class, or ResumewrightError if not found
    """
    exception_classes = {
        "ResumewrightError": ResumewrightError,
        "ConfigurationError": ConfigurationError,
        "InvalidProgressError": InvalidProgressError,
        "PersistenceError": PersistenceError,
        "CorruptStateError": CorruptStateError,
    }
    return exception_classes.get(error_type, ResumewrightError)
