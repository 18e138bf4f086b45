from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    version: str
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EnvCheckResponse(BaseModel):
    ffmpeg: bool
    ffprobe: bool


class VideoCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=256, json_schema_extra={"example": "Boots in the rain"})
    description: Optional[str] = Field(default=None, json_schema_extra={"example": "Shot on a phone."})


class VideoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: Optional[str]
    video_url: Optional[str]
    thumbnail_url: Optional[str]
    created_at: datetime
    updated_at: datetime


class VideoUploadResponse(BaseModel):
    video_url: str
    storage_key: str
    orientation: str = Field(description="landscape | portrait | other")


class ThumbnailUploadResponse(BaseModel):
    thumbnail_url: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    detail: Optional[Any] = None


__all__ = [
    "HealthResponse",
    "EnvCheckResponse",
    "VideoCreateRequest",
    "VideoResponse",
    "VideoUploadResponse",
    "ThumbnailUploadResponse",
    "ErrorResponse",
]
