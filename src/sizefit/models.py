"""API request/response models."""
from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


class CompressImageRequest(BaseModel):
    source_path: str = Field(..., description="Path to the source image on the server")
    mode: Literal["quality", "targetSize"] = Field("quality", description="Direct quality or target-size search")
    quality: float = Field(0.5, gt=0.0, le=1.0, description="Quality fraction used in quality mode")
    target_size: Optional[Union[float, str]] = Field(default=None, description="Target size as entered by the user")
    target_unit: Literal["KB", "MB"] = Field("KB", description="Unit of target_size")


class CompressMediaRequest(CompressImageRequest):
    target_unit: Literal["KB", "MB"] = Field("MB", description="Unit of target_size")
    duration_seconds: Optional[float] = Field(
        default=None, gt=0.0, description="Media duration; probed with ffprobe when omitted"
    )


class CompressionResponse(BaseModel):
    output_path: str
    output_size_bytes: Optional[int]
    original_size_bytes: Optional[int]
    output_size: str
    original_size: str
    reduction_percent: Optional[int]
    target_bytes: Optional[int] = None
    met_target: bool
    parameter: float
    oracle_calls: int


__all__ = ["CompressImageRequest", "CompressMediaRequest", "CompressionResponse"]
