"""Stream router for broadcast and recording API endpoints."""

import uuid
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from livecast.core.config import settings
from livecast.core.database import get_db
from livecast.modules.auth.jwt import (
    get_current_user,
    get_optional_user,
    require_admin,
    require_creator,
)
from livecast.modules.auth.models import User
from livecast.modules.stream.models import Stream, StreamStatus
from livecast.modules.stream.reconciliation import (
    ReconciliationService,
    get_reconciliation_service,
)
from livecast.modules.stream.schemas import (
    MAX_PAGE_LIMIT,
    GoLiveRequest,
    GoLiveResponse,
    IngestConfigResponse,
    LikeToggleResponse,
    PaginatedMeta,
    PlaybackResponse,
    ReconciliationSummary,
    RecordingInfoResponse,
    RecordingListResponse,
    StopLiveRequest,
    StreamAnalyticsResponse,
    StreamListResponse,
    StreamResponse,
    UpdateStreamRequest,
    ViewerCountResponse,
    WatchResponse,
)
from livecast.modules.stream.service import (
    CreatorInactiveError,
    CreatorNotFoundError,
    IngestNotConfiguredError,
    LiveStreamConflictError,
    StreamAccessDeniedError,
    StreamNotFoundError,
    StreamNotLiveError,
    StreamService,
    StreamServiceError,
)

router = APIRouter(prefix="/streams", tags=["streams"])

_ERROR_STATUS = {
    StreamNotFoundError: status.HTTP_404_NOT_FOUND,
    CreatorNotFoundError: status.HTTP_404_NOT_FOUND,
    LiveStreamConflictError: status.HTTP_409_CONFLICT,
    StreamNotLiveError: status.HTTP_400_BAD_REQUEST,
    StreamAccessDeniedError: status.HTTP_403_FORBIDDEN,
    CreatorInactiveError: status.HTTP_403_FORBIDDEN,
    IngestNotConfiguredError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_stream_service(
    session: AsyncSession = Depends(get_db),
    reconciliation: ReconciliationService = Depends(get_reconciliation_service),
) -> StreamService:
    """Dependency for getting stream service."""
    return StreamService(session, reconciliation=reconciliation)


def _raise_http(e: StreamServiceError) -> NoReturn:
    status_code = _ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=status_code, detail=str(e))


def _stream_response(stream: Stream) -> StreamResponse:
    return StreamResponse.model_validate(stream)


@router.post(
    "/go-live",
    response_model=GoLiveResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a broadcast",
)
async def go_live(
    request: GoLiveRequest,
    user: User = Depends(require_creator),
    service: StreamService = Depends(get_stream_service),
) -> GoLiveResponse:
    """Start a broadcast for the calling creator.

    The response is the only place the broadcast credential is returned.

    Raises:
        HTTPException: 409 if already live, 404/403 for unknown or blocked creators
    """
    try:
        stream = await service.go_live(user.id, request)
    except StreamServiceError as e:
        _raise_http(e)

    return GoLiveResponse(
        **_stream_response(stream).model_dump(),
        stream_key=stream.stream_key,
        ingest_endpoint=settings.IVS_INGEST_ENDPOINT or None,
        live_playback_url=settings.IVS_PLAYBACK_URL or None,
    )


@router.get(
    "/live",
    response_model=StreamListResponse,
    summary="List live streams",
)
async def list_live_streams(
    category_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_LIMIT),
    service: StreamService = Depends(get_stream_service),
) -> StreamListResponse:
    streams, total = await service.list_live(category_id, search, page, limit)
    return StreamListResponse(
        items=[_stream_response(s) for s in streams],
        meta=PaginatedMeta.build(total, page, limit),
    )


@router.get(
    "/my-streams",
    response_model=list[StreamResponse],
    summary="List the caller's streams",
)
async def list_my_streams(
    status_filter: Optional[StreamStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    service: StreamService = Depends(get_stream_service),
) -> list[StreamResponse]:
    streams = await service.list_my_streams(user.id, status_filter)
    return [_stream_response(s) for s in streams]


@router.get(
    "/recordings",
    response_model=RecordingListResponse,
    summary="List recorded streams",
    description="Reconcile the channel's recordings with ended streams, then list streams that have one. Admin only.",
)
async def list_recordings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_LIMIT),
    admin: User = Depends(require_admin),
    service: StreamService = Depends(get_stream_service),
) -> RecordingListResponse:
    streams, total, result = await service.list_recordings(page, limit)
    return RecordingListResponse(
        items=[_stream_response(s) for s in streams],
        meta=PaginatedMeta.build(total, page, limit),
        reconciliation=ReconciliationSummary(**result.to_dict()),
    )


@router.get(
    "/ingest-config",
    response_model=IngestConfigResponse,
    summary="Get ingest settings",
)
async def get_ingest_config(
    user: User = Depends(require_creator),
    service: StreamService = Depends(get_stream_service),
) -> IngestConfigResponse:
    try:
        return service.get_ingest_config()
    except StreamServiceError as e:
        _raise_http(e)


@router.get(
    "/{stream_id}",
    response_model=StreamResponse,
    summary="Get a stream",
)
async def get_stream(
    stream_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    service: StreamService = Depends(get_stream_service),
) -> StreamResponse:
    try:
        stream = await service.get_stream(stream_id, viewer)
    except StreamServiceError as e:
        _raise_http(e)
    return _stream_response(stream)


@router.patch(
    "/{stream_id}",
    response_model=StreamResponse,
    summary="Update stream metadata",
)
async def update_stream(
    stream_id: uuid.UUID,
    request: UpdateStreamRequest,
    user: User = Depends(get_current_user),
    service: StreamService = Depends(get_stream_service),
) -> StreamResponse:
    try:
        stream = await service.update_stream(stream_id, user, request)
    except StreamServiceError as e:
        _raise_http(e)
    return _stream_response(stream)


@router.delete(
    "/{stream_id}",
    response_model=StreamResponse,
    summary="Delete a stream (admin)",
)
async def delete_stream(
    stream_id: uuid.UUID,
    admin: User = Depends(require_admin),
    service: StreamService = Depends(get_stream_service),
) -> StreamResponse:
    try:
        stream = await service.delete_stream(stream_id)
    except StreamServiceError as e:
        _raise_http(e)
    return _stream_response(stream)


@router.patch(
    "/{stream_id}/stop-live",
    response_model=StreamResponse,
    summary="End a broadcast",
)
async def stop_live(
    stream_id: uuid.UUID,
    request: Optional[StopLiveRequest] = None,
    user: User = Depends(get_current_user),
    service: StreamService = Depends(get_stream_service),
) -> StreamResponse:
    """End a broadcast. Owner or admin only.

    A recording lookup runs afterwards; not finding one is not an error.
    """
    duration = request.duration_seconds if request else None
    try:
        stream = await service.end_live(stream_id, user, duration)
    except StreamServiceError as e:
        _raise_http(e)
    return _stream_response(stream)


@router.get(
    "/{stream_id}/watch",
    response_model=WatchResponse,
    summary="Get the playback target for viewers",
)
async def watch_stream(
    stream_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    service: StreamService = Depends(get_stream_service),
) -> WatchResponse:
    try:
        return await service.get_watch_info(stream_id, viewer)
    except StreamServiceError as e:
        _raise_http(e)


@router.get(
    "/{stream_id}/playback",
    response_model=PlaybackResponse,
    summary="Get the recording playback URL",
)
async def get_playback(
    stream_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    service: StreamService = Depends(get_stream_service),
) -> PlaybackResponse:
    try:
        return await service.get_playback(stream_id, viewer)
    except StreamServiceError as e:
        _raise_http(e)


@router.get(
    "/{stream_id}/recording",
    response_model=RecordingInfoResponse,
    summary="Get recording details",
)
async def get_recording(
    stream_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    service: StreamService = Depends(get_stream_service),
) -> RecordingInfoResponse:
    try:
        return await service.get_recording_info(stream_id, viewer)
    except StreamServiceError as e:
        _raise_http(e)


@router.post(
    "/{stream_id}/view",
    response_model=ViewerCountResponse,
    summary="Join a stream as a viewer",
)
async def join_stream(
    stream_id: uuid.UUID,
    service: StreamService = Depends(get_stream_service),
) -> ViewerCountResponse:
    try:
        stream = await service.join_stream(stream_id)
    except StreamServiceError as e:
        _raise_http(e)
    return ViewerCountResponse(
        stream_id=stream.id,
        current_viewers=stream.current_viewers,
        total_views=stream.total_views,
        peak_viewers=stream.peak_viewers,
    )


@router.post(
    "/{stream_id}/leave",
    response_model=ViewerCountResponse,
    summary="Leave a stream",
)
async def leave_stream(
    stream_id: uuid.UUID,
    service: StreamService = Depends(get_stream_service),
) -> ViewerCountResponse:
    try:
        stream = await service.leave_stream(stream_id)
    except StreamServiceError as e:
        _raise_http(e)
    return ViewerCountResponse(
        stream_id=stream.id,
        current_viewers=stream.current_viewers,
        total_views=stream.total_views,
        peak_viewers=stream.peak_viewers,
    )


@router.post(
    "/{stream_id}/like",
    response_model=LikeToggleResponse,
    summary="Like or unlike a stream",
)
async def toggle_like(
    stream_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: StreamService = Depends(get_stream_service),
) -> LikeToggleResponse:
    try:
        stream, liked = await service.toggle_like(stream_id, user.id)
    except StreamServiceError as e:
        _raise_http(e)
    return LikeToggleResponse(stream_id=stream.id, liked=liked, total_likes=stream.total_likes)


@router.get(
    "/{stream_id}/analytics",
    response_model=StreamAnalyticsResponse,
    summary="Get stream analytics (owner)",
)
async def get_analytics(
    stream_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: StreamService = Depends(get_stream_service),
) -> StreamAnalyticsResponse:
    try:
        return await service.get_analytics(stream_id, user)
    except StreamServiceError as e:
        _raise_http(e)
