"""Bitrate derivation for time-based media.

Audio and video output size is close to linear in bitrate, so instead of
searching we compute the bitrate from size and duration and encode once.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Optional

from .config import CONFIG, BitrateConfig
from .errors import InvalidInput
from .logging import get_logger
from .search import validate_target

log = get_logger(__name__)


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class Mode(str, Enum):
    QUALITY = "quality"
    TARGET_SIZE = "targetSize"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _baseline(kind: MediaKind, config: BitrateConfig) -> int:
    return config.audio_baseline if kind is MediaKind.AUDIO else config.video_baseline


def _floor(kind: MediaKind, config: BitrateConfig) -> int:
    return config.audio_floor if kind is MediaKind.AUDIO else config.video_floor


def _validate_quality(quality_fraction: Optional[float]) -> float:
    if (
        quality_fraction is None
        or isinstance(quality_fraction, bool)
        or not math.isfinite(quality_fraction)
        or not 0 < quality_fraction <= 1
    ):
        raise InvalidInput("Quality must be a fraction in (0, 1].", {"quality_fraction": quality_fraction})
    return float(quality_fraction)


def derive_bitrate(
    mode: Mode | str,
    media_kind: MediaKind | str,
    quality_fraction: Optional[float] = None,
    target_bytes: Optional[float] = None,
    original_size_bytes: Optional[int] = None,
    duration_seconds: Optional[float] = None,
    config: BitrateConfig | None = None,
) -> int:
    """Return the encode bitrate in bits per second.

    Raises ``InvalidInput`` for an unusable quality or target, or when a
    target size is requested for media of unknown duration.
    """

    config = config or CONFIG.bitrate
    try:
        mode, kind = Mode(mode), MediaKind(media_kind)
    except ValueError as exc:
        raise InvalidInput(str(exc), {"mode": mode, "media_kind": media_kind}) from exc
    has_duration = duration_seconds is not None and duration_seconds > 0

    if mode is Mode.QUALITY:
        quality = _validate_quality(quality_fraction)
        if original_size_bytes and original_size_bytes > 0 and has_duration:
            bitrate = _round_half_up(original_size_bytes * 8 / duration_seconds * quality)
        else:
            bitrate = _round_half_up(_baseline(kind, config) * quality)
    else:
        validate_target(target_bytes, original_size_bytes)
        if not has_duration:
            raise InvalidInput(
                f"Could not determine {kind.value} duration.",
                {"duration_seconds": duration_seconds},
            )
        bitrate = _round_half_up(target_bytes * 8 / duration_seconds)

    floored = max(bitrate, _floor(kind, config))
    log.info("bitrate.derived", mode=mode.value, kind=kind.value, raw=bitrate, bitrate=floored)
    return floored


__all__ = ["MediaKind", "Mode", "derive_bitrate"]
