"""
Exception hierarchy for polylog.

Only construction, lifecycle misuse and strict-mode category checks raise;
ordinary log calls never propagate errors into caller code.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PolylogError(Exception):
    """Root of every error raised by polylog."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PolylogError, ValueError):
    """Invalid construction options."""

    @classmethod
    def from_validation(cls, error: Exception) -> "ConfigurationError":
        errors = getattr(error, "errors", None)
        details = {"errors": errors()} if callable(errors) else {}
        return cls(f"Invalid Loggers options: {error}", details=details)


class LifecycleError(PolylogError, RuntimeError):
    """A lifecycle transition was requested from the wrong state."""

    def __init__(self, message: str, *, state: str) -> None:
        super().__init__(message, details={"state": state})
        self.state = state


class CategoryError(PolylogError, TypeError):
    """A category was given as something other than a string (strict mode only)."""

    def __init__(self, value: Any) -> None:
        type_name = type(value).__name__
        super().__init__(f"Invalid datatype for category: {type_name}", details={"type": type_name})
