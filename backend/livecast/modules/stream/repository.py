"""Stream repository for database operations.

Queries for streams, their analytics rows and likes. Repositories flush;
the service owns the transaction.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func as sql_func
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from livecast.modules.recording.paths import to_utc
from livecast.modules.stream.models import (
    Stream,
    StreamAnalytics,
    StreamLike,
    StreamStatus,
    WhoCanMessage,
)


class StreamRepository:
    """Repository for Stream CRUD and recording lookups."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(
        self,
        creator_id: uuid.UUID,
        title: str,
        stream_key: str,
        started_at: datetime,
        description: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        thumbnail: Optional[str] = None,
        is_public: bool = True,
        who_can_message: str = WhoCanMessage.EVERYONE.value,
        is_mature: bool = False,
    ) -> Stream:
        """Create a LIVE stream.

        Raises:
            IntegrityError: If the creator already has a LIVE stream
        """
        stream = Stream(
            id=uuid.uuid4(),
            creator_id=creator_id,
            title=title,
            description=description,
            category_id=category_id,
            thumbnail=thumbnail,
            is_public=is_public,
            who_can_message=who_can_message,
            is_mature=is_mature,
            status=StreamStatus.LIVE.value,
            started_at=started_at,
            total_views=0,
            total_likes=0,
            total_comments=0,
            peak_viewers=0,
            current_viewers=0,
            is_reported=False,
            is_deleted=False,
        )
        stream.stream_key = stream_key

        self.session.add(stream)
        await self.session.flush()
        return stream

    async def get_by_id(
        self, stream_id: uuid.UUID, include_deleted: bool = False
    ) -> Optional[Stream]:
        """Get stream by ID.

        Args:
            stream_id: Stream UUID
            include_deleted: Whether soft-deleted streams are returned

        Returns:
            Optional[Stream]: Stream if found, None otherwise
        """
        query = select(Stream).where(Stream.id == stream_id)
        if not include_deleted:
            query = query.where(Stream.is_deleted.is_(False))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_live_by_creator(self, creator_id: uuid.UUID) -> Optional[Stream]:
        result = await self.session.execute(
            select(Stream).where(
                Stream.creator_id == creator_id,
                Stream.status == StreamStatus.LIVE.value,
            )
        )
        return result.scalars().first()

    async def list_live(
        self,
        category_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Stream], int]:
        """Public LIVE streams, newest first.

        Returns:
            tuple[list[Stream], int]: Page of streams and total count
        """
        conditions = [
            Stream.status == StreamStatus.LIVE.value,
            Stream.is_public.is_(True),
            Stream.is_deleted.is_(False),
        ]
        if category_id is not None:
            conditions.append(Stream.category_id == category_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Stream.title.ilike(pattern), Stream.description.ilike(pattern))
            )

        total = await self.session.scalar(
            select(sql_func.count()).select_from(Stream).where(*conditions)
        )
        result = await self.session.execute(
            select(Stream)
            .where(*conditions)
            .order_by(Stream.started_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def list_by_creator(
        self,
        creator_id: uuid.UUID,
        status: Optional[StreamStatus] = None,
    ) -> list[Stream]:
        query = select(Stream).where(
            Stream.creator_id == creator_id,
            Stream.is_deleted.is_(False),
        )
        if status is not None:
            query = query.where(Stream.status == status.value)
        result = await self.session.execute(query.order_by(Stream.created_at.desc()))
        return list(result.scalars().all())

    async def list_recordings(
        self, limit: int = 20, offset: int = 0
    ) -> tuple[list[Stream], int]:
        """OFFLINE public streams that have a recording, most recent first."""
        conditions = [
            Stream.status == StreamStatus.OFFLINE.value,
            Stream.recording_path.is_not(None),
            Stream.is_public.is_(True),
            Stream.is_deleted.is_(False),
        ]
        total = await self.session.scalar(
            select(sql_func.count()).select_from(Stream).where(*conditions)
        )
        result = await self.session.execute(
            select(Stream)
            .where(*conditions)
            .order_by(Stream.ended_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def get_offline_without_recording(self) -> list[Stream]:
        """Streams the reconciler still has to find a recording for."""
        result = await self.session.execute(
            select(Stream).where(
                Stream.status == StreamStatus.OFFLINE.value,
                Stream.recording_path.is_(None),
                Stream.started_at.is_not(None),
                Stream.is_deleted.is_(False),
            )
        )
        return list(result.scalars().all())

    async def get_pending_start_minutes(
        self, exclude_stream_id: Optional[uuid.UUID] = None
    ) -> set[tuple[int, int, int, int, int]]:
        """UTC start minutes of OFFLINE streams still waiting for a recording."""
        minutes = set()
        for stream in await self.get_offline_without_recording():
            if stream.id == exclude_stream_id:
                continue
            started = to_utc(stream.started_at)
            minutes.add((started.year, started.month, started.day, started.hour, started.minute))
        return minutes

    async def get_claimed_recording_paths(self) -> set[str]:
        """Recording paths already assigned to some stream."""
        result = await self.session.execute(
            select(Stream.recording_path).where(Stream.recording_path.is_not(None))
        )
        return set(result.scalars().all())

    async def set_recording(
        self,
        stream: Stream,
        recording_path: str,
        playback_url: Optional[str],
    ) -> Stream:
        """Attach a recording inside a savepoint.

        Raises:
            IntegrityError: If another stream already holds ``recording_path``;
                only the savepoint is rolled back
        """
        try:
            async with self.session.begin_nested():
                stream.recording_path = recording_path
                stream.playback_url = playback_url
        except IntegrityError:
            # The rolled back savepoint expired the row
            await self.session.refresh(stream)
            raise
        return stream

    async def save(self, stream: Stream) -> Stream:
        await self.session.flush()
        return stream


class StreamAnalyticsRepository:
    """Repository for StreamAnalytics rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, stream_id: uuid.UUID) -> StreamAnalytics:
        analytics = StreamAnalytics(
            stream_id=stream_id,
            total_views=0,
            peak_concurrent_viewers=0,
            likes=0,
            comments=0,
        )
        self.session.add(analytics)
        await self.session.flush()
        return analytics

    async def get_by_stream_id(self, stream_id: uuid.UUID) -> Optional[StreamAnalytics]:
        result = await self.session.execute(
            select(StreamAnalytics).where(StreamAnalytics.stream_id == stream_id)
        )
        return result.scalar_one_or_none()

    async def save(self, analytics: StreamAnalytics) -> StreamAnalytics:
        await self.session.flush()
        return analytics


class StreamLikeRepository:
    """Repository for StreamLike rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, stream_id: uuid.UUID, user_id: uuid.UUID) -> Optional[StreamLike]:
        result = await self.session.execute(
            select(StreamLike).where(
                StreamLike.stream_id == stream_id,
                StreamLike.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, stream_id: uuid.UUID, user_id: uuid.UUID) -> StreamLike:
        like = StreamLike(stream_id=stream_id, user_id=user_id)
        self.session.add(like)
        await self.session.flush()
        return like

    async def delete(self, like: StreamLike) -> None:
        await self.session.delete(like)
        await self.session.flush()
