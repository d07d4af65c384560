"""Dependency helpers for the sizefit API."""
from __future__ import annotations

from functools import lru_cache

from ..config import CONFIG
from ..services import CompressionService


def ensure_storage_directories() -> None:
    """Ensure all configured storage directories exist."""

    for directory in (CONFIG.storage.root_dir, CONFIG.storage.output_dir):
        directory.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_compression_service() -> CompressionService:
    ensure_storage_directories()
    return CompressionService()


def reset_dependencies() -> None:
    """Clear cached dependency singletons (primarily for tests)."""

    get_compression_service.cache_clear()


__all__ = ["ensure_storage_directories", "get_compression_service", "reset_dependencies"]
