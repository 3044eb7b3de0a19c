"""Pydantic schemas for stream module.

Request/response schemas for the broadcast lifecycle, discovery and
recordings.
"""

import math
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from livecast.modules.stream.models import StreamStatus, WhoCanMessage

# Validation constants
MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_PAGE_LIMIT = 100


class GoLiveRequest(BaseModel):
    """Request schema for starting a broadcast."""

    title: str = Field(..., min_length=MIN_TITLE_LENGTH, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    category_id: Optional[uuid.UUID] = None
    thumbnail: Optional[str] = Field(None, max_length=512)
    is_public: bool = True
    who_can_message: WhoCanMessage = WhoCanMessage.EVERYONE
    is_mature: bool = False

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_TITLE_LENGTH:
            raise ValueError(f"Title must be at least {MIN_TITLE_LENGTH} characters")
        return v


class StopLiveRequest(BaseModel):
    """Request schema for ending a broadcast."""

    duration_seconds: Optional[int] = Field(None, ge=0)


class UpdateStreamRequest(BaseModel):
    """Request schema for updating stream metadata."""

    title: Optional[str] = Field(None, min_length=MIN_TITLE_LENGTH, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    category_id: Optional[uuid.UUID] = None
    thumbnail: Optional[str] = Field(None, max_length=512)
    is_public: Optional[bool] = None
    who_can_message: Optional[WhoCanMessage] = None
    is_mature: Optional[bool] = None


class StreamResponse(BaseModel):
    """Response schema for a stream. Never carries the broadcast credential."""

    id: uuid.UUID
    creator_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    title: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    is_public: bool
    who_can_message: str
    is_mature: bool
    status: StreamStatus
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    recording_path: Optional[str] = None
    playback_url: Optional[str] = None
    total_views: int = 0
    total_likes: int = 0
    total_comments: int = 0
    peak_viewers: int = 0
    current_viewers: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GoLiveResponse(StreamResponse):
    """Go-live response with the ingest details the broadcaster needs."""

    stream_key: Optional[str] = None
    ingest_endpoint: Optional[str] = None
    live_playback_url: Optional[str] = None


class PaginatedMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_page: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "PaginatedMeta":
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_page=math.ceil(total / limit) if limit else 0,
        )


class StreamListResponse(BaseModel):
    items: list[StreamResponse]
    meta: PaginatedMeta


class ReconciliationSummary(BaseModel):
    """What the bulk pass did before the listing was built."""

    matched: int = 0
    exact: int = 0
    same_day: int = 0
    artifacts: int = 0
    orphaned: int = 0
    pages: int = 0
    partial: bool = False
    truncated: bool = False
    skipped: bool = False


class RecordingListResponse(StreamListResponse):
    reconciliation: ReconciliationSummary


class WatchResponse(BaseModel):
    """Where a viewer should point the player."""

    stream_id: uuid.UUID
    status: StreamStatus
    is_live: bool
    playback_url: Optional[str] = None
    title: str
    current_viewers: int = 0


class PlaybackResponse(BaseModel):
    stream_id: uuid.UUID
    recording_available: bool
    recording_path: Optional[str] = None
    playback_url: Optional[str] = None


class RecordingInfoResponse(PlaybackResponse):
    title: str
    duration_seconds: Optional[int] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class StreamAnalyticsResponse(BaseModel):
    stream_id: uuid.UUID
    total_views: int
    peak_concurrent_viewers: int
    likes: int
    comments: int
    current_viewers: int = 0
    duration_seconds: Optional[int] = None

    class Config:
        from_attributes = True


class ViewerCountResponse(BaseModel):
    stream_id: uuid.UUID
    current_viewers: int
    total_views: int
    peak_viewers: int


class LikeToggleResponse(BaseModel):
    stream_id: uuid.UUID
    liked: bool
    total_likes: int


class IngestConfigResponse(BaseModel):
    """Static ingest settings issued by the managed video service."""

    ingest_endpoint: str
    stream_key: str
    playback_url: str
    channel_arn: Optional[str] = None
