"""Bounded bisection over an encoder's quality parameter.

The encoder is treated as a black box: each call produces a candidate file
whose size is only known after probing it. The search narrows a quality
interval until a candidate lands within tolerance of the byte budget, the
interval collapses, or the iteration budget runs out, in which case the
encoder is asked for its smallest output once more.
"""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from .config import CONFIG, SearchConfig
from .errors import InvalidInput, OracleFailure, ProbeFailure
from .logging import get_logger

log = get_logger(__name__)

Oracle = Callable[[str, float], Awaitable[str]]
SizeProbe = Callable[[str], Optional[int]]


@dataclass(slots=True)
class SearchState:
    """Closed quality interval still worth probing."""

    low: float
    high: float

    @property
    def width(self) -> float:
        return self.high - self.low

    @property
    def midpoint(self) -> float:
        return (self.low + self.high) / 2


@dataclass(slots=True)
class SearchStep:
    parameter: float
    output_uri: str
    size_bytes: Optional[int]
    low: float
    high: float
    accepted: bool = False
    converged: bool = False


@dataclass(slots=True)
class CompressionResult:
    output_uri: str
    output_size_bytes: Optional[int]
    target_bytes: Optional[int]
    parameter: float
    oracle_calls: int
    steps: List[SearchStep] = field(default_factory=list)
    fallback: bool = False

    @property
    def met_target(self) -> bool:
        if self.target_bytes is None:
            return True
        return self.output_size_bytes is not None and self.output_size_bytes <= self.target_bytes


def validate_target(target_bytes: object, original_size_bytes: Optional[int] = None) -> None:
    """Reject budgets that cannot describe a meaningful size reduction."""

    if isinstance(target_bytes, bool) or not isinstance(target_bytes, (int, float)):
        raise InvalidInput("Please enter a valid target size.", {"target_bytes": target_bytes})
    if not math.isfinite(target_bytes) or target_bytes <= 0:
        raise InvalidInput("Please enter a valid target size.", {"target_bytes": target_bytes})
    if original_size_bytes and target_bytes >= original_size_bytes:
        raise InvalidInput(
            "Target size must be smaller than the original size.",
            {"target_bytes": target_bytes, "original_size_bytes": original_size_bytes},
        )


async def call_oracle(oracle: Oracle, source_uri: str, parameter: float, timeout: Optional[float]) -> str:
    """Run one encode, converting crashes and timeouts into ``OracleFailure``."""

    try:
        return await asyncio.wait_for(oracle(source_uri, parameter), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise OracleFailure(
            f"Encoder did not finish within {timeout} seconds",
            {"source": source_uri, "parameter": parameter},
        ) from exc
    except OracleFailure:
        raise
    except Exception as exc:
        raise OracleFailure(
            f"Encoder failed: {exc}",
            {"source": source_uri, "parameter": parameter},
        ) from exc


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


async def search_by_target_size(
    source_uri: str,
    target_bytes: int,
    oracle: Oracle,
    size_of: SizeProbe,
    original_size_bytes: Optional[int] = None,
    config: SearchConfig | None = None,
) -> CompressionResult:
    """Find the encoder quality whose output best fits ``target_bytes``.

    Returns the largest candidate not exceeding the target, or the first
    candidate within ``config.tolerance`` of it (over or under). When nothing
    qualifies, the output at ``config.min_quality`` is returned even if it is
    still too large; ``CompressionResult.met_target`` tells the two apart.

    The search also stops once ``low`` and ``high`` meet. After clamping, a
    collapsed interval stays collapsed, so probing it again would only spend
    the remaining budget on the same quality.
    """

    config = config or CONFIG.search
    validate_target(target_bytes, original_size_bytes)

    state = SearchState(low=config.min_quality, high=config.max_quality)
    steps: List[SearchStep] = []
    best: Optional[SearchStep] = None
    calls = 0

    for iteration in range(config.max_iterations):
        mid = state.midpoint
        candidate = await call_oracle(oracle, source_uri, mid, config.oracle_timeout_seconds)
        calls += 1
        size = size_of(candidate)
        if not size:
            log.warning("search.probe_failed", iteration=iteration, parameter=mid, uri=candidate)
            break

        step = SearchStep(parameter=mid, output_uri=candidate, size_bytes=size, low=state.low, high=state.high)
        if size <= target_bytes:
            step.accepted = True
            best = step
            state.low = mid + config.step
        else:
            state.high = mid - config.step

        if abs(size - target_bytes) / target_bytes < config.tolerance:
            step.converged = True
            best = step

        state.low = _clamp(state.low, config.min_quality, config.max_quality)
        state.high = _clamp(state.high, config.min_quality, config.max_quality)
        step.low, step.high = state.low, state.high
        steps.append(step)
        log.debug(
            "search.iteration",
            iteration=iteration,
            parameter=round(mid, 4),
            size=size,
            target=target_bytes,
            low=round(state.low, 4),
            high=round(state.high, 4),
        )

        if step.converged:
            break
        if state.low >= state.high:
            log.debug("search.interval_exhausted", low=state.low, high=state.high)
            break

    if best is None:
        log.info("search.fallback", parameter=config.min_quality, calls=calls)
        candidate = await call_oracle(oracle, source_uri, config.min_quality, config.oracle_timeout_seconds)
        calls += 1
        size = size_of(candidate)
        if not size:
            raise ProbeFailure("Could not determine the size of the compressed output", {"uri": candidate})
        return CompressionResult(
            output_uri=candidate,
            output_size_bytes=size,
            target_bytes=target_bytes,
            parameter=config.min_quality,
            oracle_calls=calls,
            steps=steps,
            fallback=True,
        )

    log.info("search.completed", parameter=round(best.parameter, 4), size=best.size_bytes, calls=calls)
    return CompressionResult(
        output_uri=best.output_uri,
        output_size_bytes=best.size_bytes,
        target_bytes=target_bytes,
        parameter=best.parameter,
        oracle_calls=calls,
        steps=steps,
    )


__all__ = [
    "CompressionResult",
    "Oracle",
    "SearchState",
    "SearchStep",
    "SizeProbe",
    "call_oracle",
    "search_by_target_size",
    "validate_target",
]
