from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import AuthContext, get_auth_context
from app.core.config import Settings, get_settings
from app.core.storage import ObjectStorage
from app.db.repository import VideoRepository
from app.ingest.process import ProcessRunner
from app.services.ingest_service import VideoIngestService
from app.services.thumbnail_service import ThumbnailService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover - misconfigured app
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_storage(request: Request) -> ObjectStorage:
    storage: ObjectStorage = request.app.state.storage
    return storage


def get_process_runner(request: Request) -> ProcessRunner:
    runner: ProcessRunner = request.app.state.process_runner
    return runner


def get_app_settings() -> Settings:
    return get_settings()


def get_video_repository(session: AsyncSession = Depends(get_session)) -> VideoRepository:
    return VideoRepository(session)


def get_ingest_service(
    repository: VideoRepository = Depends(get_video_repository),
    storage: ObjectStorage = Depends(get_storage),
    runner: ProcessRunner = Depends(get_process_runner),
    settings: Settings = Depends(get_app_settings),
) -> VideoIngestService:
    return VideoIngestService(settings, storage, repository, runner=runner)


def get_thumbnail_service(
    repository: VideoRepository = Depends(get_video_repository),
    settings: Settings = Depends(get_app_settings),
) -> ThumbnailService:
    return ThumbnailService(settings, repository)


Repository = Annotated[VideoRepository, Depends(get_video_repository)]
IngestDependency = Annotated[VideoIngestService, Depends(get_ingest_service)]
ThumbnailDependency = Annotated[ThumbnailService, Depends(get_thumbnail_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]


__all__ = [
    "get_session",
    "get_storage",
    "get_process_runner",
    "get_app_settings",
    "get_video_repository",
    "get_ingest_service",
    "get_thumbnail_service",
    "Repository",
    "IngestDependency",
    "ThumbnailDependency",
    "AuthDependency",
]
