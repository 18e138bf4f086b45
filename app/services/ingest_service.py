from __future__ import annotations

import asyncio
import shutil
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings
from app.core.errors import BadInput, Forbidden, NotFound, PayloadTooLarge, StorageUnavailable, UnsupportedMediaType
from app.core.logging import get_logger
from app.core.storage import ObjectStorage, StorageWriteError
from app.db.models import Video
from app.db.repository import VideoStore
from app.ingest.keys import make_key
from app.ingest.probe import MediaProber, Orientation
from app.ingest.process import ProcessRunner, SubprocessRunner
from app.ingest.remux import FastStartRemuxer, output_path_for
from app.ingest.scratch import ScratchFile

COPY_CHUNK_BYTES = 1024 * 1024


@dataclass(slots=True)
class UploadedArtifact:
    """An inbound file as declared by the client."""

    source: BinaryIO
    media_type: str
    size: int


@dataclass(slots=True, frozen=True)
class PublishedReference:
    url: str
    key: str
    orientation: Orientation


def check_upload_limits(
    artifact: UploadedArtifact,
    *,
    max_bytes: int,
    accepted_types: tuple[str, ...],
) -> None:
    if artifact.size > max_bytes:
        raise PayloadTooLarge(f"upload exceeds {max_bytes} bytes", detail={"size": artifact.size})
    if artifact.media_type not in accepted_types:
        raise UnsupportedMediaType(
            f"unsupported media type {artifact.media_type!r}",
            detail={"accepted": list(accepted_types)},
        )


async def load_owned_video(store: VideoStore, *, owner_id: str, video_id: str) -> Video:
    try:
        video = await store.get(video_id)
    except SQLAlchemyError as exc:
        raise StorageUnavailable("could not read the video record", detail={"video_id": video_id}) from exc
    if video is None:
        raise NotFound("video not found", detail={"video_id": video_id})
    if video.user_id != owner_id:
        raise Forbidden("you do not own this video")
    return video


class VideoIngestService:
    """Validates, fast-starts, classifies and publishes one uploaded video.

    Each call owns two scratch files under ``settings.scratch_root``. Both are
    registered for deletion before they can exist on disk, so every exit path
    removes them. The record's ``video_url`` is only written after the object
    store acknowledged the upload.
    """

    def __init__(
        self,
        settings: Settings,
        storage: ObjectStorage,
        store: VideoStore,
        *,
        runner: Optional[ProcessRunner] = None,
    ):
        self.settings = settings
        self.storage = storage
        self.store = store
        runner = runner or SubprocessRunner(timeout_s=settings.tool_timeout_s)
        self.remuxer = FastStartRemuxer(runner, binary=settings.ffmpeg_binary)
        self.prober = MediaProber(runner, binary=settings.ffprobe_binary)
        self.logger = get_logger(component="video_ingest")

    async def ingest(self, *, owner_id: str, video_id: str, artifact: UploadedArtifact) -> PublishedReference:
        if not video_id:
            raise BadInput("missing video id")
        check_upload_limits(
            artifact,
            max_bytes=self.settings.max_video_upload_bytes,
            accepted_types=(self.settings.accepted_video_type,),
        )
        video = await load_owned_video(self.store, owner_id=owner_id, video_id=video_id)

        logger = self.logger.bind(video_id=video_id, owner_id=owner_id)
        logger.info("ingest_started", size=artifact.size, media_type=artifact.media_type)

        scratch_root = Path(self.settings.scratch_root)
        with ExitStack() as cleanup:
            original = cleanup.enter_context(ScratchFile(scratch_root / f"{video_id}.mp4", logger=logger))
            await asyncio.to_thread(self._write_scratch, original.path, artifact.source)

            processed = cleanup.enter_context(ScratchFile(output_path_for(original.path), logger=logger))
            remuxed_path = await asyncio.to_thread(self.remuxer.remux, original.path)
            original.release()

            orientation = await asyncio.to_thread(self.prober.classify_orientation, remuxed_path)
            key = make_key(orientation)
            await asyncio.to_thread(self._publish, remuxed_path, key, artifact.media_type, logger)
            processed.release()

        reference = PublishedReference(url=self.storage.public_url(key), key=key, orientation=orientation)
        video.video_url = reference.url
        try:
            await self.store.update(video)
        except SQLAlchemyError as exc:
            logger.error("ingest_record_update_failed", key=key, error=str(exc))
            raise StorageUnavailable("could not record the published video", detail={"key": key}) from exc

        logger.info("ingest_finished", key=key, orientation=orientation.value, url=reference.url)
        return reference

    @staticmethod
    def _write_scratch(target: Path, source: BinaryIO) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                shutil.copyfileobj(source, handle, length=COPY_CHUNK_BYTES)
        except OSError as exc:
            raise StorageUnavailable("could not stage the upload", detail=str(exc)) from exc

    def _publish(self, path: Path, key: str, content_type: str, logger: Any) -> None:
        try:
            with path.open("rb") as handle:
                self.storage.put(key, handle, content_type=content_type)
        except (StorageWriteError, OSError) as exc:
            logger.warning("ingest_publish_failed", key=key, error=str(exc))
            raise StorageUnavailable("object storage rejected the upload", detail=str(exc)) from exc


__all__ = [
    "UploadedArtifact",
    "PublishedReference",
    "VideoIngestService",
    "check_upload_limits",
    "load_owned_video",
]
