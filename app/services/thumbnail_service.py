from __future__ import annotations

import asyncio
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings
from app.core.errors import BadInput, StorageUnavailable
from app.core.logging import get_logger
from app.db.repository import VideoStore
from app.ingest.thumbnails import write_thumbnail

from .ingest_service import UploadedArtifact, check_upload_limits, load_owned_video


class ThumbnailService:
    """Single-stage sibling of the video pipeline: validate, write, point the record at it."""

    def __init__(self, settings: Settings, store: VideoStore):
        self.settings = settings
        self.store = store
        self.logger = get_logger(component="thumbnail_upload")

    async def upload(self, *, owner_id: str, video_id: str, artifact: UploadedArtifact) -> str:
        if not video_id:
            raise BadInput("missing video id")
        check_upload_limits(
            artifact,
            max_bytes=self.settings.max_thumbnail_upload_bytes,
            accepted_types=tuple(self.settings.accepted_thumbnail_types),
        )
        video = await load_owned_video(self.store, owner_id=owner_id, video_id=video_id)

        assets_root = Path(self.settings.assets_root)
        try:
            path = await asyncio.to_thread(write_thumbnail, assets_root, artifact.source, artifact.media_type)
        except OSError as exc:
            raise StorageUnavailable("could not store the thumbnail", detail=str(exc)) from exc

        url = f"{self.settings.public_base_url.rstrip('/')}/assets/{path.name}"
        video.thumbnail_url = url
        try:
            await self.store.update(video)
        except SQLAlchemyError as exc:
            path.unlink(missing_ok=True)
            raise StorageUnavailable("could not record the thumbnail") from exc

        self.logger.info("thumbnail_uploaded", video_id=video_id, path=str(path))
        return url


__all__ = ["ThumbnailService"]
