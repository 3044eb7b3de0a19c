"""Stream service for broadcast lifecycle operations.

Go-live / stop-live, reads that backfill recordings, the reconciling
recordings listing, discovery and audience counters.
"""

import logging
import math
import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from livecast.core.config import settings
from livecast.core.logging import log_info
from livecast.modules.auth.models import User
from livecast.modules.auth.repository import UserRepository
from livecast.modules.recording.paths import to_utc
from livecast.modules.stream.models import Stream, StreamAnalytics, StreamStatus
from livecast.modules.stream.reconciliation import (
    ReconciliationResult,
    ReconciliationService,
)
from livecast.modules.stream.repository import (
    StreamAnalyticsRepository,
    StreamLikeRepository,
    StreamRepository,
)
from livecast.modules.stream.schemas import (
    GoLiveRequest,
    IngestConfigResponse,
    PlaybackResponse,
    RecordingInfoResponse,
    StreamAnalyticsResponse,
    UpdateStreamRequest,
    WatchResponse,
)

logger = logging.getLogger(__name__)

# 16 random bytes, 32 hex characters
STREAM_KEY_BYTES = 16


class StreamServiceError(Exception):
    """Base exception for stream service errors."""
    pass


class StreamNotFoundError(StreamServiceError):
    """Exception raised when stream is not found."""
    pass


class LiveStreamConflictError(StreamServiceError):
    """Exception raised when the creator already has a LIVE stream."""

    def __init__(self, message: str, live_stream_id: Optional[uuid.UUID] = None):
        self.message = message
        self.live_stream_id = live_stream_id
        super().__init__(self.message)


class StreamNotLiveError(StreamServiceError):
    """Exception raised when ending a stream that is not LIVE."""
    pass


class StreamAccessDeniedError(StreamServiceError):
    """Exception raised when the caller may not act on the stream."""
    pass


class CreatorNotFoundError(StreamServiceError):
    pass


class CreatorInactiveError(StreamServiceError):
    pass


class IngestNotConfiguredError(StreamServiceError):
    """Exception raised when the managed video channel is not configured."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_duration_seconds(
    started_at: Optional[datetime],
    ended_at: datetime,
    supplied: Optional[int] = None,
) -> int:
    """Broadcast length: the supplied value, else whole seconds elapsed, never negative."""
    if supplied is not None:
        return max(0, supplied)
    if started_at is None:
        return 0
    elapsed = (to_utc(ended_at) - to_utc(started_at)).total_seconds()
    return max(0, math.floor(elapsed))


class StreamService:
    """Service for stream lifecycle operations."""

    def __init__(
        self,
        session: AsyncSession,
        reconciliation: Optional[ReconciliationService] = None,
        stream_repository: Optional[StreamRepository] = None,
        analytics_repository: Optional[StreamAnalyticsRepository] = None,
        like_repository: Optional[StreamLikeRepository] = None,
        user_repository: Optional[UserRepository] = None,
    ):
        """Initialize stream service.

        Args:
            session: Async SQLAlchemy session
            reconciliation: Recording reconciler; recordings are not looked up without one
        """
        self.session = session
        self.reconciliation = reconciliation
        self.stream_repository = stream_repository or StreamRepository(session)
        self.analytics_repository = analytics_repository or StreamAnalyticsRepository(session)
        self.like_repository = like_repository or StreamLikeRepository(session)
        self.user_repository = user_repository or UserRepository(session)

    # ============================================
    # Lifecycle
    # ============================================

    async def go_live(self, creator_id: uuid.UUID, request: GoLiveRequest) -> Stream:
        """Start a broadcast.

        Args:
            creator_id: Broadcasting user
            request: Stream metadata

        Returns:
            Stream: The new LIVE stream, with its broadcast credential set

        Raises:
            CreatorNotFoundError: If the creator does not exist
            CreatorInactiveError: If the creator is blocked
            LiveStreamConflictError: If the creator is already live
        """
        creator = await self.user_repository.get_by_id(creator_id)
        if creator is None:
            raise CreatorNotFoundError(f"Creator {creator_id} not found")
        if not creator.is_active():
            raise CreatorInactiveError(f"Creator {creator_id} is not active")

        existing = await self.stream_repository.get_live_by_creator(creator_id)
        if existing is not None:
            raise LiveStreamConflictError(
                "Creator already has a live stream",
                live_stream_id=existing.id,
            )

        try:
            stream = await self.stream_repository.create(
                creator_id=creator_id,
                title=request.title,
                description=request.description,
                category_id=request.category_id,
                thumbnail=request.thumbnail,
                is_public=request.is_public,
                who_can_message=request.who_can_message.value,
                is_mature=request.is_mature,
                stream_key=secrets.token_hex(STREAM_KEY_BYTES),
                started_at=_utcnow(),
            )
            await self.analytics_repository.create(stream.id)
            await self.user_repository.increment_total_streams(creator)
            await self.session.commit()
        except IntegrityError:
            # Lost a race against a concurrent go-live on the partial unique index
            await self.session.rollback()
            raise LiveStreamConflictError("Creator already has a live stream")

        log_info(logger, "Stream went live", stream_id=str(stream.id), creator_id=str(creator_id))
        return stream

    async def end_live(
        self,
        stream_id: uuid.UUID,
        user: User,
        duration_seconds: Optional[int] = None,
    ) -> Stream:
        """End a broadcast and try to attach its recording right away.

        Raises:
            StreamNotFoundError: If stream not found
            StreamAccessDeniedError: If caller is neither owner nor admin
            StreamNotLiveError: If stream is not LIVE
        """
        stream = await self._get_or_raise(stream_id)
        self._ensure_owner_or_admin(stream, user)
        if not stream.is_live():
            raise StreamNotLiveError(f"Stream {stream_id} is not live")

        self._mark_offline(stream, duration_seconds)
        await self.stream_repository.save(stream)
        await self.session.commit()

        log_info(
            logger,
            "Stream ended",
            stream_id=str(stream.id),
            duration_seconds=stream.duration_seconds,
        )

        # Recordings usually land minutes later; a miss here is normal.
        # Only the exact start minute is tried, the day scan is left to
        # later reads and the bulk pass.
        await self._backfill(stream, broaden=False)
        return stream

    async def get_stream(self, stream_id: uuid.UUID, viewer: Optional[User] = None) -> Stream:
        """Get a stream, attaching its recording first when one has appeared.

        Raises:
            StreamNotFoundError: If stream not found or deleted
            StreamAccessDeniedError: If the stream is private to someone else
        """
        stream = await self._get_visible(stream_id, viewer)
        await self._backfill(stream)
        return stream

    async def list_recordings(
        self, page: int = 1, limit: int = 20
    ) -> tuple[list[Stream], int, ReconciliationResult]:
        """Reconcile the channel, then page through streams that have recordings."""
        result = await self.reconcile_recordings()
        streams, total = await self.stream_repository.list_recordings(
            limit=limit, offset=(page - 1) * limit
        )
        return streams, total, result

    async def reconcile_recordings(self) -> ReconciliationResult:
        """Run the bulk pass and persist every match."""
        if self.reconciliation is None:
            return ReconciliationResult(skipped=True)
        result = await self.reconciliation.reconcile_channel(self.stream_repository)
        if result.matched:
            await self.session.commit()
        return result

    async def get_watch_info(
        self, stream_id: uuid.UUID, viewer: Optional[User] = None
    ) -> WatchResponse:
        """Live playback URL for LIVE streams, recording URL otherwise."""
        stream = await self.get_stream(stream_id, viewer)
        if stream.is_live():
            playback_url = settings.IVS_PLAYBACK_URL or None
        else:
            playback_url = self._recording_url(stream)

        return WatchResponse(
            stream_id=stream.id,
            status=StreamStatus(stream.status),
            is_live=stream.is_live(),
            playback_url=playback_url,
            title=stream.title,
            current_viewers=stream.current_viewers or 0,
        )

    async def get_playback(
        self, stream_id: uuid.UUID, viewer: Optional[User] = None
    ) -> PlaybackResponse:
        stream = await self.get_stream(stream_id, viewer)
        return PlaybackResponse(
            stream_id=stream.id,
            recording_available=stream.has_recording(),
            recording_path=stream.recording_path,
            playback_url=self._recording_url(stream),
        )

    async def get_recording_info(
        self, stream_id: uuid.UUID, viewer: Optional[User] = None
    ) -> RecordingInfoResponse:
        stream = await self.get_stream(stream_id, viewer)
        return RecordingInfoResponse(
            stream_id=stream.id,
            recording_available=stream.has_recording(),
            recording_path=stream.recording_path,
            playback_url=self._recording_url(stream),
            title=stream.title,
            duration_seconds=stream.duration_seconds,
            started_at=stream.started_at,
            ended_at=stream.ended_at,
        )

    # ============================================
    # Discovery and metadata
    # ============================================

    async def list_live(
        self,
        category_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Stream], int]:
        return await self.stream_repository.list_live(
            category_id=category_id,
            search=search.strip() if search else None,
            limit=limit,
            offset=(page - 1) * limit,
        )

    async def list_my_streams(
        self, creator_id: uuid.UUID, status: Optional[StreamStatus] = None
    ) -> list[Stream]:
        return await self.stream_repository.list_by_creator(creator_id, status)

    async def update_stream(
        self, stream_id: uuid.UUID, user: User, request: UpdateStreamRequest
    ) -> Stream:
        """Update stream metadata. Only the owner may do this.

        Raises:
            StreamNotFoundError: If stream not found
            StreamAccessDeniedError: If caller is not the owner
        """
        stream = await self._get_or_raise(stream_id)
        if stream.creator_id != user.id:
            raise StreamAccessDeniedError("Only the stream owner can update it")

        for field, value in request.model_dump(exclude_unset=True).items():
            if field == "who_can_message" and value is not None:
                value = value.value
            if field in ("title", "is_public", "is_mature", "who_can_message") and value is None:
                continue
            setattr(stream, field, value)

        await self.stream_repository.save(stream)
        await self.session.commit()
        return stream

    async def delete_stream(self, stream_id: uuid.UUID) -> Stream:
        """Soft-delete a stream; a LIVE stream is ended first."""
        stream = await self._get_or_raise(stream_id)
        if stream.is_live():
            self._mark_offline(stream, None)
        stream.is_deleted = True
        await self.stream_repository.save(stream)
        await self.session.commit()
        log_info(logger, "Stream deleted", stream_id=str(stream.id))
        return stream

    # ============================================
    # Audience
    # ============================================

    async def join_stream(self, stream_id: uuid.UUID) -> Stream:
        """Count a view; concurrent viewers only move while LIVE."""
        stream = await self._get_or_raise(stream_id)
        analytics = await self._get_analytics(stream)

        stream.total_views = (stream.total_views or 0) + 1
        analytics.total_views = (analytics.total_views or 0) + 1
        if stream.is_live():
            stream.current_viewers = (stream.current_viewers or 0) + 1
            stream.peak_viewers = max(stream.peak_viewers or 0, stream.current_viewers)
            analytics.peak_concurrent_viewers = max(
                analytics.peak_concurrent_viewers or 0, stream.current_viewers
            )

        await self.stream_repository.save(stream)
        await self.analytics_repository.save(analytics)
        await self.session.commit()
        return stream

    async def leave_stream(self, stream_id: uuid.UUID) -> Stream:
        stream = await self._get_or_raise(stream_id)
        stream.current_viewers = max(0, (stream.current_viewers or 0) - 1)
        await self.stream_repository.save(stream)
        await self.session.commit()
        return stream

    async def toggle_like(self, stream_id: uuid.UUID, user_id: uuid.UUID) -> tuple[Stream, bool]:
        """Like or unlike a stream.

        Returns:
            tuple[Stream, bool]: The stream and whether it is now liked
        """
        stream = await self._get_or_raise(stream_id)
        analytics = await self._get_analytics(stream)
        existing = await self.like_repository.get(stream.id, user_id)

        if existing is None:
            await self.like_repository.create(stream.id, user_id)
            stream.total_likes = (stream.total_likes or 0) + 1
            liked = True
        else:
            await self.like_repository.delete(existing)
            stream.total_likes = max(0, (stream.total_likes or 0) - 1)
            liked = False
        analytics.likes = stream.total_likes

        await self.stream_repository.save(stream)
        await self.analytics_repository.save(analytics)
        await self.session.commit()
        return stream, liked

    async def get_analytics(self, stream_id: uuid.UUID, user: User) -> StreamAnalyticsResponse:
        stream = await self._get_or_raise(stream_id)
        if stream.creator_id != user.id and not user.is_admin():
            raise StreamAccessDeniedError("Only the stream owner can view analytics")

        analytics = await self._get_analytics(stream)
        return StreamAnalyticsResponse(
            stream_id=stream.id,
            total_views=analytics.total_views or 0,
            peak_concurrent_viewers=analytics.peak_concurrent_viewers or 0,
            likes=analytics.likes or 0,
            comments=analytics.comments or 0,
            current_viewers=stream.current_viewers or 0,
            duration_seconds=stream.duration_seconds,
        )

    def get_ingest_config(self) -> IngestConfigResponse:
        """Static ingest settings.

        Raises:
            IngestNotConfiguredError: If any required setting is empty
        """
        if not (
            settings.IVS_INGEST_ENDPOINT
            and settings.IVS_STREAM_KEY
            and settings.IVS_PLAYBACK_URL
        ):
            raise IngestNotConfiguredError("Live video ingest is not configured")
        return IngestConfigResponse(
            ingest_endpoint=settings.IVS_INGEST_ENDPOINT,
            stream_key=settings.IVS_STREAM_KEY,
            playback_url=settings.IVS_PLAYBACK_URL,
            channel_arn=settings.IVS_CHANNEL_ARN or None,
        )

    # ============================================
    # Helpers
    # ============================================

    async def _get_or_raise(self, stream_id: uuid.UUID) -> Stream:
        stream = await self.stream_repository.get_by_id(stream_id)
        if stream is None:
            raise StreamNotFoundError(f"Stream {stream_id} not found")
        return stream

    async def _get_visible(self, stream_id: uuid.UUID, viewer: Optional[User]) -> Stream:
        stream = await self._get_or_raise(stream_id)
        if not stream.is_public:
            if viewer is None or (stream.creator_id != viewer.id and not viewer.is_admin()):
                raise StreamAccessDeniedError("This stream is private")
        return stream

    async def _get_analytics(self, stream: Stream) -> StreamAnalytics:
        analytics = await self.analytics_repository.get_by_stream_id(stream.id)
        if analytics is None:
            analytics = await self.analytics_repository.create(stream.id)
        return analytics

    @staticmethod
    def _ensure_owner_or_admin(stream: Stream, user: User) -> None:
        if stream.creator_id != user.id and not user.is_admin():
            raise StreamAccessDeniedError("Only the stream owner or an admin can end it")

    @staticmethod
    def _mark_offline(stream: Stream, duration_seconds: Optional[int]) -> None:
        ended_at = _utcnow()
        stream.ended_at = ended_at
        stream.duration_seconds = compute_duration_seconds(
            stream.started_at, ended_at, duration_seconds
        )
        stream.status = StreamStatus.OFFLINE.value
        stream.current_viewers = 0

    async def _backfill(self, stream: Stream, broaden: bool = True) -> None:
        if self.reconciliation is None or not stream.needs_recording():
            return
        if await self.reconciliation.backfill_stream(
            stream, self.stream_repository, broaden=broaden
        ):
            await self.session.commit()

    def _recording_url(self, stream: Stream) -> Optional[str]:
        if not stream.recording_path:
            return None
        if stream.playback_url:
            return stream.playback_url
        if self.reconciliation is None:
            return None
        return self.reconciliation.playback_url_for(stream.recording_path)
