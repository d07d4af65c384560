"""FastAPI surface for target-size media compression."""
from __future__ import annotations

from pathlib import Path
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..bitrate import MediaKind, Mode
from ..config import CONFIG
from ..errors import InvalidInput, OracleFailure, ProbeFailure
from ..models import CompressImageRequest, CompressMediaRequest, CompressionResponse
from ..search import CompressionResult
from ..services import CompressionRequest, CompressionService
from ..sizes import format_size, parse_target_size, reduction_percent
from . import deps

app = FastAPI(title="sizefit", version="1.0.0")

cors_origins: List[str]
if CONFIG.api.cors_allow_origins:
    cors_origins = CONFIG.api.cors_allow_origins
elif CONFIG.api.cors_allow_origin:
    cors_origins = [CONFIG.api.cors_allow_origin]
else:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup() -> None:
    deps.ensure_storage_directories()


@app.on_event("shutdown")
def _shutdown() -> None:
    deps.reset_dependencies()


def _validate_source(path: Path) -> Path:
    resolved = path.expanduser().resolve()
    if not resolved.is_file():
        raise HTTPException(status_code=404, detail=f"Source not found: {resolved}")
    return resolved


def _to_request(payload: CompressImageRequest, source: Path, media_kind: MediaKind | None) -> CompressionRequest:
    mode = Mode(payload.mode)
    target_bytes = None
    if mode is Mode.TARGET_SIZE:
        try:
            target_bytes = parse_target_size(payload.target_size, payload.target_unit)
        except InvalidInput as exc:
            raise HTTPException(status_code=400, detail=exc.to_dict()) from exc
    return CompressionRequest(
        source=str(source),
        mode=mode,
        quality_fraction=payload.quality,
        target_bytes=target_bytes,
        media_kind=media_kind,
        duration_seconds=getattr(payload, "duration_seconds", None),
    )


def _to_response(result: CompressionResult, original_size: int | None) -> CompressionResponse:
    return CompressionResponse(
        output_path=result.output_uri,
        output_size_bytes=result.output_size_bytes,
        original_size_bytes=original_size,
        output_size=format_size(result.output_size_bytes),
        original_size=format_size(original_size),
        reduction_percent=reduction_percent(original_size, result.output_size_bytes),
        target_bytes=int(result.target_bytes) if result.target_bytes is not None else None,
        met_target=result.met_target,
        parameter=result.parameter,
        oracle_calls=result.oracle_calls,
    )


async def _run(service: CompressionService, request: CompressionRequest) -> CompressionResponse:
    original_size = service.size_of(request.source)
    request.original_size_bytes = original_size
    try:
        result = await service.compress(request)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=exc.to_dict()) from exc
    except ProbeFailure as exc:
        raise HTTPException(status_code=422, detail=exc.to_dict()) from exc
    except OracleFailure as exc:
        raise HTTPException(status_code=502, detail=exc.to_dict()) from exc
    return _to_response(result, original_size)


@app.post("/compress/image", response_model=CompressionResponse)
async def compress_image(
    payload: CompressImageRequest,
    service: CompressionService = Depends(deps.get_compression_service),
) -> CompressionResponse:
    source = _validate_source(Path(payload.source_path))
    return await _run(service, _to_request(payload, source, None))


@app.post("/compress/audio", response_model=CompressionResponse)
async def compress_audio(
    payload: CompressMediaRequest,
    service: CompressionService = Depends(deps.get_compression_service),
) -> CompressionResponse:
    source = _validate_source(Path(payload.source_path))
    return await _run(service, _to_request(payload, source, MediaKind.AUDIO))


@app.post("/compress/video", response_model=CompressionResponse)
async def compress_video(
    payload: CompressMediaRequest,
    service: CompressionService = Depends(deps.get_compression_service),
) -> CompressionResponse:
    source = _validate_source(Path(payload.source_path))
    return await _run(service, _to_request(payload, source, MediaKind.VIDEO))


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


__all__ = ["app"]
