"""High level services that turn a user request into a compressed file."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Callable, Optional

from .bitrate import MediaKind, Mode, derive_bitrate
from .config import CONFIG, BitrateConfig, SearchConfig
from .errors import InvalidInput, OracleFailure, ProbeFailure
from .logging import get_logger
from .notify import Level, Notification, Notifier, log_notifier
from .oracles import FfmpegBitrateOracle, ImageQualityOracle, file_size, probe_duration
from .search import CompressionResult, Oracle, SizeProbe, call_oracle, search_by_target_size

log = get_logger(__name__)

DurationProbe = Callable[[str], Optional[float]]
MediaOracleFactory = Callable[[MediaKind], Oracle]


@dataclass(slots=True)
class CompressionRequest:
    """One user action. ``media_kind`` of ``None`` means a still image."""

    source: str
    mode: Mode = Mode.QUALITY
    quality_fraction: Optional[float] = 0.5
    target_bytes: Optional[float] = None
    original_size_bytes: Optional[int] = None
    media_kind: Optional[MediaKind] = None
    duration_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        self.mode = Mode(self.mode)
        if self.media_kind is not None:
            self.media_kind = MediaKind(self.media_kind)


def _default_media_oracle(kind: MediaKind) -> Oracle:
    return FfmpegBitrateOracle(kind, storage=CONFIG.storage)


class CompressionService:
    """Pick the direct, search or bitrate path for a request and run it."""

    def __init__(
        self,
        image_oracle: Oracle | None = None,
        media_oracle_factory: MediaOracleFactory | None = None,
        size_of: SizeProbe = file_size,
        duration_probe: DurationProbe = probe_duration,
        notifier: Notifier = log_notifier,
        search_config: SearchConfig | None = None,
        bitrate_config: BitrateConfig | None = None,
    ) -> None:
        self.image_oracle = image_oracle or ImageQualityOracle(CONFIG.storage)
        self.media_oracle_factory = media_oracle_factory or _default_media_oracle
        self.size_of = size_of
        self.duration_probe = duration_probe
        self.notifier = notifier
        self.search_config = search_config or CONFIG.search
        self.bitrate_config = bitrate_config or CONFIG.bitrate

    async def compress(self, request: CompressionRequest) -> CompressionResult:
        try:
            if request.media_kind is None:
                return await self.compress_image(request)
            return await self.compress_media(request)
        except InvalidInput as exc:
            if "target_bytes" in exc.details:
                self.notifier(Notification("Invalid size", exc.message, Level.ALERT))
            else:
                self.notifier(Notification("Error", exc.message, Level.ERROR))
            raise
        except (OracleFailure, ProbeFailure) as exc:
            log.warning("service.compression_failed", source=request.source, error=exc.message)
            kind = request.media_kind.value if request.media_kind else "image"
            self.notifier(Notification("Error", f"Failed to compress {kind}. Please try again.", Level.ERROR))
            raise

    def _original_size(self, request: CompressionRequest) -> Optional[int]:
        if request.original_size_bytes is not None:
            return request.original_size_bytes
        return self.size_of(request.source)

    def _single_result(self, uri: str, parameter: float, target_bytes: Optional[float]) -> CompressionResult:
        size = self.size_of(uri)
        if size is None:
            raise ProbeFailure("Could not determine the size of the compressed output", {"uri": uri})
        return CompressionResult(
            output_uri=uri,
            output_size_bytes=size,
            target_bytes=target_bytes,
            parameter=parameter,
            oracle_calls=1,
        )

    async def compress_image(self, request: CompressionRequest) -> CompressionResult:
        original = self._original_size(request)
        if request.mode is Mode.TARGET_SIZE:
            return await search_by_target_size(
                request.source,
                request.target_bytes,
                self.image_oracle,
                self.size_of,
                original_size_bytes=original,
                config=self.search_config,
            )

        quality = request.quality_fraction
        if quality is None or isinstance(quality, bool) or not 0 < quality <= 1:
            raise InvalidInput("Quality must be a fraction in (0, 1].", {"quality_fraction": quality})
        uri = await call_oracle(self.image_oracle, request.source, quality, self.search_config.oracle_timeout_seconds)
        return self._single_result(uri, quality, None)

    async def compress_media(self, request: CompressionRequest) -> CompressionResult:
        kind = request.media_kind or MediaKind.VIDEO
        original = self._original_size(request)
        duration = request.duration_seconds
        if duration is None:
            duration = await asyncio.to_thread(self.duration_probe, request.source)
        bitrate = derive_bitrate(
            request.mode,
            kind,
            quality_fraction=request.quality_fraction,
            target_bytes=request.target_bytes,
            original_size_bytes=original,
            duration_seconds=duration,
            config=self.bitrate_config,
        )
        oracle = self.media_oracle_factory(kind)
        uri = await call_oracle(oracle, request.source, bitrate, self.search_config.oracle_timeout_seconds)
        target = request.target_bytes if request.mode is Mode.TARGET_SIZE else None
        return self._single_result(uri, bitrate, target)


class CompressionSession:
    """Keeps only the result of the most recently submitted request.

    Each submission takes a new token; a compression that finishes after a
    newer one was submitted is dropped instead of replacing ``latest``.
    """

    def __init__(self, service: CompressionService | None = None) -> None:
        self.service = service or CompressionService()
        self._tokens = itertools.count(1)
        self._current = 0
        self.latest: Optional[CompressionResult] = None

    def issue_token(self) -> int:
        self._current = next(self._tokens)
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current

    async def submit(self, request: CompressionRequest) -> Optional[CompressionResult]:
        token = self.issue_token()
        result = await self.service.compress(request)
        if not self.is_current(token):
            log.info("session.stale_result_discarded", token=token, current=self._current, source=request.source)
            return None
        self.latest = result
        return result


__all__ = [
    "CompressionRequest",
    "CompressionService",
    "CompressionSession",
]
