from __future__ import annotations

from typing import Protocol, Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Video


class VideoStore(Protocol):
    """The slice of the metadata store the ingest pipeline depends on."""

    async def get(self, video_id: str) -> Video | None: ...

    async def update(self, video: Video) -> Video: ...


class VideoRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, video_id: str) -> Video | None:
        return await self.session.get(Video, video_id)

    async def update(self, video: Video) -> Video:
        try:
            merged = await self.session.merge(video)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(merged)
        return merged

    async def create(self, *, user_id: str, title: str, description: str | None) -> Video:
        video = Video(id=str(uuid4()), user_id=user_id, title=title, description=description)
        self.session.add(video)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(video)
        return video

    async def list_for_user(self, user_id: str) -> Sequence[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()


__all__ = ["VideoStore", "VideoRepository"]
