"""Logging entry point backed by structlog."""
from __future__ import annotations

from typing import Any

from structlog import get_logger as _get_logger


def get_logger(name: str) -> Any:
    return _get_logger(name)


__all__ = ["get_logger"]
