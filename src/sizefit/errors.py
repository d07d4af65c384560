"""Exception hierarchy for the compression driver."""
from __future__ import annotations

from typing import Any, Dict, Optional


class SizefitError(Exception):
    """Base class for every error raised by sizefit."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidInput(SizefitError, ValueError):
    """The request cannot be satisfied and no encode was attempted."""


class ProbeFailure(SizefitError, RuntimeError):
    """The size or duration of a file could not be determined."""


class OracleFailure(SizefitError, RuntimeError):
    """The external encoder raised, exited non-zero or timed out."""


__all__ = ["SizefitError", "InvalidInput", "ProbeFailure", "OracleFailure"]
