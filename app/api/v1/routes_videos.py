from __future__ import annotations

import os
from typing import List, Optional

from fastapi import APIRouter, File, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError

from app.api import deps
from app.core.errors import BadInput, StorageUnavailable
from app.core.logging import get_logger
from app.services.ingest_service import UploadedArtifact, load_owned_video

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])
logger = get_logger(component="routes_videos")

_ERRORS = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.ErrorResponse},
    status.HTTP_403_FORBIDDEN: {"model": schemas.ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse},
}


def _artifact_from_upload(upload: Optional[UploadFile], field: str) -> UploadedArtifact:
    if upload is None:
        raise BadInput(f"missing {field} file")
    size = upload.size
    if size is None:
        upload.file.seek(0, os.SEEK_END)
        size = upload.file.tell()
        upload.file.seek(0)
    return UploadedArtifact(
        source=upload.file,
        media_type=upload.content_type or "application/octet-stream",
        size=size,
    )


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    repository: deps.Repository,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    try:
        video = await repository.create(user_id=context.user_id, title=payload.title, description=payload.description)
    except SQLAlchemyError as exc:
        raise StorageUnavailable("could not create the video record") from exc
    logger.info("video_created", video_id=video.id, user_id=context.user_id)
    return schemas.VideoResponse.model_validate(video)


@router.get("", response_model=List[schemas.VideoResponse])
async def list_videos(repository: deps.Repository, context: deps.AuthDependency) -> List[schemas.VideoResponse]:
    try:
        videos = await repository.list_for_user(context.user_id)
    except SQLAlchemyError as exc:
        raise StorageUnavailable("could not list video records") from exc
    return [schemas.VideoResponse.model_validate(video) for video in videos]


@router.get("/{video_id}", response_model=schemas.VideoResponse, responses=_ERRORS)
async def get_video(video_id: str, repository: deps.Repository, context: deps.AuthDependency) -> schemas.VideoResponse:
    video = await load_owned_video(repository, owner_id=context.user_id, video_id=video_id)
    return schemas.VideoResponse.model_validate(video)


@router.post(
    "/{video_id}/upload",
    response_model=schemas.VideoUploadResponse,
    responses={
        **_ERRORS,
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": schemas.ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": schemas.ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": schemas.ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": schemas.ErrorResponse},
    },
)
async def upload_video(
    video_id: str,
    service: deps.IngestDependency,
    context: deps.AuthDependency,
    video: Optional[UploadFile] = File(default=None),
) -> schemas.VideoUploadResponse:
    artifact = _artifact_from_upload(video, "video")
    try:
        reference = await service.ingest(owner_id=context.user_id, video_id=video_id, artifact=artifact)
    finally:
        if video is not None:
            await video.close()
    return schemas.VideoUploadResponse(
        video_url=reference.url,
        storage_key=reference.key,
        orientation=reference.orientation.value,
    )


@router.post(
    "/{video_id}/thumbnail",
    response_model=schemas.ThumbnailUploadResponse,
    responses={
        **_ERRORS,
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": schemas.ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": schemas.ErrorResponse},
    },
)
async def upload_thumbnail(
    video_id: str,
    service: deps.ThumbnailDependency,
    context: deps.AuthDependency,
    thumbnail: Optional[UploadFile] = File(default=None),
) -> schemas.ThumbnailUploadResponse:
    artifact = _artifact_from_upload(thumbnail, "thumbnail")
    try:
        url = await service.upload(owner_id=context.user_id, video_id=video_id, artifact=artifact)
    finally:
        if thumbnail is not None:
            await thumbnail.close()
    return schemas.ThumbnailUploadResponse(thumbnail_url=url)


__all__ = ["router"]
