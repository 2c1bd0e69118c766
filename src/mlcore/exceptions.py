"""
Exception hierarchy for the mlcore inference framework.

All framework errors inherit from MLCoreError and carry a message plus an
optional details dictionary for structured logging.
"""

from typing import Any, Dict, Optional


class MLCoreError(Exception):
    """Base exception for all mlcore errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ModelStateError(MLCoreError):
    """Raised when an operation is attempted outside its valid model state."""

    def __init__(self, message: str, state: Any, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.state = state


class ModelLoadError(MLCoreError):
    """Raised when a model artifact cannot be loaded by the backend."""
    pass


class ModelNotRegisteredError(MLCoreError, KeyError):
    """Raised when a registry lookup requires an id that was never registered."""

    def __str__(self) -> str:
        # KeyError would otherwise wrap the message in quotes
        return self.message


class ShapeError(MLCoreError, ValueError):
    """Raised when tensor dimensions do not match the requested operation."""
    pass
