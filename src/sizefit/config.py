"""Configuration helpers for the sizefit compression driver."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def _env_path(name: str, default: str) -> Path:
    value = os.getenv(name, default)
    return Path(value).expanduser().resolve()


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(slots=True)
class StorageConfig:
    """Where encoded candidates and uploads are written."""

    root_dir: Path = _env_path("SIZEFIT_DATA_DIR", "data")
    output_dir_name: str = os.getenv("SIZEFIT_OUTPUT_DIR", "outputs")

    @property
    def output_dir(self) -> Path:
        return self.root_dir / self.output_dir_name


@dataclass(slots=True)
class SearchConfig:
    """Knobs for the bounded quality search."""

    max_iterations: int = int(os.getenv("SIZEFIT_MAX_ITERATIONS", "8"))
    min_quality: float = float(os.getenv("SIZEFIT_MIN_QUALITY", "0.01"))
    max_quality: float = float(os.getenv("SIZEFIT_MAX_QUALITY", "1.0"))
    step: float = float(os.getenv("SIZEFIT_QUALITY_STEP", "0.01"))
    tolerance: float = float(os.getenv("SIZEFIT_TOLERANCE", "0.05"))
    oracle_timeout_seconds: Optional[float] = float(os.getenv("SIZEFIT_ORACLE_TIMEOUT", "120")) or None


@dataclass(slots=True)
class BitrateConfig:
    """Baselines and floors (bits per second) for time-based media."""

    audio_baseline: int = int(os.getenv("SIZEFIT_AUDIO_BASELINE_BPS", "320000"))
    video_baseline: int = int(os.getenv("SIZEFIT_VIDEO_BASELINE_BPS", "5000000"))
    audio_floor: int = int(os.getenv("SIZEFIT_AUDIO_FLOOR_BPS", "32000"))
    video_floor: int = int(os.getenv("SIZEFIT_VIDEO_FLOOR_BPS", "100000"))


@dataclass(slots=True)
class ApiConfig:
    host: str = os.getenv("SIZEFIT_API_HOST", "0.0.0.0")
    port: int = int(os.getenv("SIZEFIT_API_PORT", "8080"))
    cors_allow_origin: Optional[str] = os.getenv("SIZEFIT_CORS_ALLOW_ORIGIN")
    cors_allow_origins: List[str] = field(default_factory=lambda: _env_list("SIZEFIT_CORS_ALLOW_ORIGINS"))


@dataclass(slots=True)
class SizefitConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    bitrate: BitrateConfig = field(default_factory=BitrateConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


CONFIG = SizefitConfig()
