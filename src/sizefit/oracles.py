"""Encoder adapters and probes backed by Pillow and FFmpeg."""
from __future__ import annotations

import asyncio
import contextlib
import subprocess
import uuid
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from .bitrate import MediaKind
from .config import StorageConfig
from .errors import OracleFailure
from .logging import get_logger

log = get_logger(__name__)

ProgressCallback = Callable[[float], None]


def file_size(uri: str) -> Optional[int]:
    path = Path(uri)
    if not path.is_file():
        return None
    return path.stat().st_size


def probe_duration(uri: str) -> Optional[float]:
    """Container duration in seconds as reported by ffprobe, if any."""

    command = [
        "ffprobe",
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(uri),
    ]
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        log.warning("oracle.ffprobe_failed", uri=str(uri), error=str(exc))
        return None
    raw = result.stdout.strip()
    if raw in ("", "N/A"):
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _output_path(storage: StorageConfig, source: Path, suffix: str) -> Path:
    storage.output_dir.mkdir(parents=True, exist_ok=True)
    return storage.output_dir / f"{source.stem}_{uuid.uuid4().hex[:12]}{suffix}"


class ImageQualityOracle:
    """Re-encode an image as JPEG at a quality fraction in (0, 1]."""

    def __init__(self, storage: StorageConfig | None = None) -> None:
        self.storage = storage or StorageConfig()

    @staticmethod
    def jpeg_quality(fraction: float) -> int:
        return max(1, min(100, int(round(fraction * 100))))

    def _encode(self, source_uri: str, fraction: float) -> str:
        source = Path(source_uri)
        target = _output_path(self.storage, source, ".jpg")
        quality = self.jpeg_quality(fraction)
        with Image.open(source) as image:
            if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
                rgba = image.convert("RGBA")
                flattened = Image.new("RGB", rgba.size, (255, 255, 255))
                flattened.paste(rgba, mask=rgba.split()[-1])
            else:
                flattened = image.convert("RGB")
            flattened.save(target, format="JPEG", quality=quality, optimize=True)
        log.debug("oracle.jpeg_written", path=str(target), quality=quality)
        return str(target)

    async def __call__(self, source_uri: str, fraction: float) -> str:
        return await asyncio.to_thread(self._encode, source_uri, fraction)


class FfmpegBitrateOracle:
    """Re-encode audio or video at a fixed bitrate (bits per second)."""

    def __init__(
        self,
        media_kind: MediaKind | str,
        storage: StorageConfig | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.media_kind = MediaKind(media_kind)
        self.storage = storage or StorageConfig()
        self.on_progress = on_progress

    def build_command(self, source: Path, target: Path, bitrate: int) -> list[str]:
        command = ["ffmpeg", "-y", "-hide_banner", "-loglevel", "error", "-i", str(source)]
        if self.media_kind is MediaKind.VIDEO:
            command += [
                "-c:v",
                "libx264",
                "-b:v",
                str(bitrate),
                "-maxrate",
                str(bitrate),
                "-bufsize",
                str(bitrate * 2),
                "-pix_fmt",
                "yuv420p",
                "-c:a",
                "aac",
                "-movflags",
                "+faststart",
            ]
        else:
            command += ["-vn", "-c:a", "aac", "-b:a", str(bitrate)]
        command.append(str(target))
        return command

    async def _encode(self, source_uri: str, bitrate: int) -> str:
        source = Path(source_uri)
        suffix = ".mp4" if self.media_kind is MediaKind.VIDEO else ".m4a"
        target = _output_path(self.storage, source, suffix)
        command = self.build_command(source, target, bitrate)
        log.debug("oracle.ffmpeg", command=" ".join(command))
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            # a timed-out or abandoned encode must not outlive its caller
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            log.warning("oracle.ffmpeg_killed", pid=process.pid, bitrate=bitrate)
            raise
        if process.returncode != 0:
            raise OracleFailure(
                f"ffmpeg exited with status {process.returncode}",
                {"stderr": stderr.decode("utf-8", "replace").strip()[-2000:], "bitrate": bitrate},
            )
        return str(target)

    async def __call__(self, source_uri: str, bitrate: float) -> str:
        if self.on_progress:
            self.on_progress(0.0)
        output = await self._encode(source_uri, int(bitrate))
        if self.on_progress:
            self.on_progress(1.0)
        return output


__all__ = ["FfmpegBitrateOracle", "ImageQualityOracle", "file_size", "probe_duration"]
