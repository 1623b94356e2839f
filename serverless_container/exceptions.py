"""Exceptions raised while translating Lambda events.

Exception Hierarchy:
- ContainerError (base)
  - InvalidRequestEventError (event could not be read)
  - InvalidResponseObjectError (app response could not be written)
  - ContainerInitializationError (handler misconfigured)
"""

from typing import Any, Dict, Optional


class ContainerError(Exception):
    """Base exception for all container errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context) if context else {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class InvalidRequestEventError(ContainerError):
    """Raised when an incoming event is not a supported proxy event."""
    pass


class InvalidResponseObjectError(ContainerError):
    """Raised when the application's response cannot be turned into a proxy response."""
    pass


class ContainerInitializationError(ContainerError):
    """Raised when the container handler is constructed with an invalid setup."""
    pass


def get_error_context(error: Exception) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, ContainerError):
        return error.to_dict()
    return {
        "error_type": error.__class__.__name__,
        "message": str(error),
    }
