"""Byte-size helpers for user-entered targets and display."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import InvalidInput

KIB = 1024
MIB = 1024 * KIB

_UNITS = {"kb": KIB, "mb": MIB}
_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


@dataclass(frozen=True, slots=True)
class QualityPreset:
    label: str
    value: float


QUALITY_PRESETS: List[QualityPreset] = [
    QualityPreset(label=f"{pct}%", value=pct / 100) for pct in range(10, 100, 10)
]


def _lenient_float(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match is None:
            return None
        return float(match.group(0))
    return None


def parse_target_size(value: object, unit: str = "KB") -> int:
    """Convert a target such as ``("1.5", "MB")`` to a byte count.

    Strings are read the way a text field would be: the leading number is
    used and trailing characters are ignored. Anything that does not yield
    a finite positive number is rejected.
    """

    amount = _lenient_float(value)
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise InvalidInput("Please enter a valid target size.", {"value": value})
    multiplier = _UNITS.get(unit.strip().lower())
    if multiplier is None:
        raise InvalidInput(f"Unsupported size unit: {unit}", {"unit": unit})
    return int(amount * multiplier)


def format_size(size_bytes: Optional[int]) -> str:
    if not size_bytes:
        return "—"
    if size_bytes < KIB:
        return f"{size_bytes} B"
    if size_bytes < MIB:
        return f"{size_bytes / KIB:.1f} KB"
    return f"{size_bytes / MIB:.2f} MB"


def reduction_percent(original_bytes: Optional[int], compressed_bytes: Optional[int]) -> Optional[int]:
    if not original_bytes or not compressed_bytes:
        return None
    return math.floor((1 - compressed_bytes / original_bytes) * 100 + 0.5)


__all__ = [
    "KIB",
    "MIB",
    "QUALITY_PRESETS",
    "QualityPreset",
    "format_size",
    "parse_target_size",
    "reduction_percent",
]
