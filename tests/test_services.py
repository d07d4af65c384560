from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, List, Optional

import pytest

from sizefit.bitrate import MediaKind
from sizefit.config import BitrateConfig, SearchConfig
from sizefit.errors import InvalidInput, OracleFailure
from sizefit.notify import Level, Notification
from sizefit.services import CompressionRequest, CompressionService, CompressionSession


class SizeTable:
    def __init__(self, initial: Dict[str, int]) -> None:
        self.sizes: Dict[str, Optional[int]] = dict(initial)

    def __call__(self, uri: str) -> Optional[int]:
        return self.sizes.get(uri)


class StubOracle:
    def __init__(self, table: SizeTable, size_fn: Callable[[float], Optional[int]]) -> None:
        self.table = table
        self.size_fn = size_fn
        self.calls: List[tuple] = []

    async def __call__(self, source_uri: str, parameter: float) -> str:
        uri = f"{source_uri}.out{len(self.calls)}"
        self.calls.append((source_uri, parameter))
        self.table.sizes[uri] = self.size_fn(parameter)
        return uri


def _service(table: SizeTable, image_oracle=None, media_oracle=None, duration: Optional[float] = 30.0):
    notes: List[Notification] = []
    service = CompressionService(
        image_oracle=image_oracle,
        media_oracle_factory=(lambda kind: media_oracle) if media_oracle else None,
        size_of=table,
        duration_probe=lambda uri: duration,
        notifier=notes.append,
        search_config=SearchConfig(
            max_iterations=8, min_quality=0.01, max_quality=1.0, step=0.01, tolerance=0.05, oracle_timeout_seconds=5
        ),
        bitrate_config=BitrateConfig(
            audio_baseline=320_000, video_baseline=5_000_000, audio_floor=32_000, video_floor=100_000
        ),
    )
    return service, notes


def test_image_quality_mode_is_a_single_encode() -> None:
    table = SizeTable({"/src/photo.jpg": 1_000_000})
    oracle = StubOracle(table, lambda q: round(1_000_000 * q))
    service, notes = _service(table, image_oracle=oracle)

    result = asyncio.run(service.compress(CompressionRequest(source="/src/photo.jpg", quality_fraction=0.3)))

    assert oracle.calls == [("/src/photo.jpg", 0.3)]
    assert result.output_size_bytes == 300_000
    assert result.oracle_calls == 1
    assert result.met_target is True
    assert notes == []


def test_image_target_mode_searches_using_measured_original() -> None:
    table = SizeTable({"/src/photo.jpg": 1_000_000})
    oracle = StubOracle(table, lambda q: round(1_000_000 * q))
    service, _ = _service(table, image_oracle=oracle)

    request = CompressionRequest(source="/src/photo.jpg", mode="targetSize", target_bytes=200_000)
    result = asyncio.run(service.compress(request))

    assert 1 < len(oracle.calls) <= 9
    assert abs(result.output_size_bytes - 200_000) / 200_000 < 0.05


def test_image_target_larger_than_original_is_rejected_and_notified() -> None:
    table = SizeTable({"/src/photo.jpg": 400})
    oracle = StubOracle(table, lambda q: 100)
    service, notes = _service(table, image_oracle=oracle)

    with pytest.raises(InvalidInput):
        asyncio.run(service.compress(CompressionRequest(source="/src/photo.jpg", mode="targetSize", target_bytes=500)))

    assert oracle.calls == []
    assert [(note.title, note.level) for note in notes] == [("Invalid size", Level.ALERT)]


def test_video_target_mode_encodes_once_at_derived_bitrate() -> None:
    table = SizeTable({"/src/clip.mp4": 5_000_000})
    media = StubOracle(table, lambda bitrate: round(bitrate * 30 / 8))
    service, _ = _service(table, media_oracle=media)

    request = CompressionRequest(
        source="/src/clip.mp4",
        mode="targetSize",
        target_bytes=1_048_576,
        media_kind=MediaKind.VIDEO,
        duration_seconds=30,
    )
    result = asyncio.run(service.compress(request))

    assert media.calls == [("/src/clip.mp4", 279_620)]
    assert result.parameter == 279_620
    assert result.output_size_bytes == 1_048_575
    assert result.met_target is True


def test_audio_quality_mode_looks_up_duration() -> None:
    table = SizeTable({"/src/song.mp3": 5_000_000})
    media = StubOracle(table, lambda bitrate: 1000)
    service, _ = _service(table, media_oracle=media, duration=60.0)

    request = CompressionRequest(source="/src/song.mp3", quality_fraction=0.5, media_kind="audio")
    asyncio.run(service.compress(request))

    assert media.calls == [("/src/song.mp3", 333_333)]


def test_duration_lookup_does_not_block_the_event_loop() -> None:
    table = SizeTable({"/src/song.mp3": 5_000_000})
    media = StubOracle(table, lambda bitrate: 1000)
    service, _ = _service(table, media_oracle=media)
    looked_up: List[str] = []

    def slow_duration(uri: str) -> float:
        looked_up.append(uri)
        time.sleep(0.5)
        return 60.0

    service.duration_probe = slow_duration

    async def scenario() -> float:
        gaps: List[float] = []

        async def ticker() -> None:
            last = time.monotonic()
            while True:
                await asyncio.sleep(0.02)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        ticking = asyncio.create_task(ticker())
        await asyncio.sleep(0)
        request = CompressionRequest(source="/src/song.mp3", quality_fraction=0.5, media_kind="audio")
        await service.compress(request)
        ticking.cancel()
        return max(gaps)

    longest_gap = asyncio.run(scenario())

    assert looked_up == ["/src/song.mp3"]
    assert media.calls == [("/src/song.mp3", 333_333)]
    assert longest_gap < 0.3


def test_unknown_duration_blocks_target_mode() -> None:
    table = SizeTable({"/src/song.mp3": 5_000_000})
    media = StubOracle(table, lambda bitrate: 1000)
    service, notes = _service(table, media_oracle=media, duration=None)

    request = CompressionRequest(source="/src/song.mp3", mode="targetSize", target_bytes=100_000, media_kind="audio")
    with pytest.raises(InvalidInput, match="duration"):
        asyncio.run(service.compress(request))

    assert media.calls == []
    assert notes[0].title == "Error"


def test_encoder_failure_is_notified_and_raised() -> None:
    async def broken(source_uri: str, parameter: float) -> str:
        raise RuntimeError("native encoder crashed")

    table = SizeTable({"/src/photo.jpg": 1_000_000})
    service, notes = _service(table, image_oracle=broken)

    with pytest.raises(OracleFailure):
        asyncio.run(service.compress(CompressionRequest(source="/src/photo.jpg")))

    assert notes == [Notification("Error", "Failed to compress image. Please try again.", Level.ERROR)]


def test_session_discards_results_of_superseded_requests() -> None:
    table = SizeTable({"/src/slow.jpg": 1_000_000, "/src/fast.jpg": 1_000_000})

    async def scenario():
        release = asyncio.Event()
        inner = StubOracle(table, lambda q: 1234)

        async def gated(source_uri: str, parameter: float) -> str:
            if source_uri == "/src/slow.jpg":
                await release.wait()
            return await inner(source_uri, parameter)

        service, _ = _service(table, image_oracle=gated)
        session = CompressionSession(service)
        slow = asyncio.create_task(session.submit(CompressionRequest(source="/src/slow.jpg")))
        await asyncio.sleep(0)
        fast = await session.submit(CompressionRequest(source="/src/fast.jpg"))
        release.set()
        stale = await slow
        return fast, stale, session.latest

    fast, stale, latest = asyncio.run(scenario())

    assert stale is None
    assert fast is not None
    assert fast.output_uri.startswith("/src/fast.jpg")
    assert latest is fast
