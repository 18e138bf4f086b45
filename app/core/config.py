from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.ingest.thumbnails import EXTENSIONS as THUMBNAIL_EXTENSIONS


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="REELCAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for JWT validation.")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Reelcast API."""

    model_config = SettingsConfigDict(
        env_prefix="REELCAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Reelcast API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./reelcast.db",
        description="SQLAlchemy compatible DSN.",
    )

    scratch_root: Path = Field(default_factory=lambda: Path("scratch"), description="Root for ingest scratch files.")
    assets_root: Path = Field(default_factory=lambda: Path("assets"), description="Root for public thumbnail assets.")
    public_base_url: str = Field(default="http://localhost:8091", description="Base URL the assets mount is served from.")

    storage_backend: Literal["s3", "local"] = Field(default="local", description="Active object storage implementation.")
    local_storage_base_path: Path | None = Field(
        default=None,
        description="Override base path for local object storage (defaults to <assets_root>/objects).",
    )
    s3_bucket: Optional[str] = None
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Custom endpoint for S3 compatible stores.")

    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")
    tool_timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional bound on ffmpeg/ffprobe runtime. Unset means wait indefinitely.",
    )

    max_video_upload_bytes: int = Field(default=1 << 30, description="Hard limit for video uploads (1 GiB).")
    max_thumbnail_upload_bytes: int = Field(default=10 << 20, description="Hard limit for thumbnail uploads (10 MiB).")
    accepted_video_type: str = Field(default="video/mp4")
    accepted_thumbnail_types: tuple[str, ...] = Field(default=("image/jpeg", "image/png"))

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @field_validator("accepted_thumbnail_types")
    @classmethod
    def _thumbnail_types_have_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [media_type for media_type in value if media_type not in THUMBNAIL_EXTENSIONS]
        if unknown:
            raise ValueError(f"no file extension registered for thumbnail types: {', '.join(unknown)}")
        return value

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def object_storage_path(self) -> Path:
        return self.local_storage_base_path or (self.assets_root / "objects")


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "REELCAST_ENV": "REELCAST_ENVIRONMENT",
        "REELCAST_DB_URL": "REELCAST_DATABASE_URL",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()

    # Secrets come from the environment today; a vault lookup would slot in here.
    secrets = Secrets.from_settings(settings)

    if settings.environment_lower == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")
    if settings.storage_backend == "s3" and not settings.s3_bucket:
        raise ValueError("REELCAST_S3_BUCKET is required when the s3 storage backend is selected.")

    settings.secrets = secrets
    return settings


__all__ = ["Settings", "Secrets", "get_settings"]
