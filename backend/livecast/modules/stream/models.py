"""Stream models for broadcast lifecycle and recordings.

Stream, StreamCategory, StreamAnalytics and StreamLike.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from livecast.core.database import Base
from livecast.core.encryption import decrypt_token, encrypt_token, is_encrypted


class StreamStatus(str, Enum):
    """Status of a stream."""

    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    OFFLINE = "OFFLINE"


class WhoCanMessage(str, Enum):
    """Who may post in the stream chat."""

    EVERYONE = "everyone"
    FOLLOWERS = "followers"


class StreamCategory(Base):
    """Category a stream can be filed under."""

    __tablename__ = "stream_categories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<StreamCategory(id={self.id}, name={self.name})>"


class Stream(Base):
    """A single broadcast by a creator.

    The broadcast credential is encrypted at rest. ``recording_path`` is the
    storage-relative session directory and is only ever set from a storage
    listing.
    """

    __tablename__ = "streams"
    __table_args__ = (
        Index(
            "uq_streams_one_live_per_creator",
            "creator_id",
            unique=True,
            postgresql_where=text("status = 'LIVE'"),
        ),
        Index("ix_streams_status_recording", "status", "recording_path"),
        Index(
            "uq_streams_recording_path",
            "recording_path",
            unique=True,
            postgresql_where=text("recording_path IS NOT NULL"),
        ),
        CheckConstraint(
            "status <> 'OFFLINE' OR ended_at IS NOT NULL",
            name="ck_streams_offline_has_ended_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stream_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Metadata
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    who_can_message: Mapped[str] = mapped_column(
        String(20), default=WhoCanMessage.EVERYONE.value
    )
    is_mature: Mapped[bool] = mapped_column(Boolean, default=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20), default=StreamStatus.SCHEDULED.value, index=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    ended_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Recording
    recording_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    playback_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    # Broadcast credential (encrypted)
    _stream_key: Mapped[Optional[str]] = mapped_column(
        "stream_key", Text, nullable=True
    )

    # Cached counters
    total_views: Mapped[int] = mapped_column(Integer, default=0)
    total_likes: Mapped[int] = mapped_column(Integer, default=0)
    total_comments: Mapped[int] = mapped_column(Integer, default=0)
    peak_viewers: Mapped[int] = mapped_column(Integer, default=0)
    current_viewers: Mapped[int] = mapped_column(Integer, default=0)

    # Moderation
    is_reported: Mapped[bool] = mapped_column(Boolean, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    analytics: Mapped[Optional["StreamAnalytics"]] = relationship(
        "StreamAnalytics",
        back_populates="stream",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def stream_key(self) -> Optional[str]:
        """Get decrypted broadcast credential.

        Returns:
            Optional[str]: Decrypted key or None
        """
        if not self._stream_key:
            return None
        return decrypt_token(self._stream_key)

    @stream_key.setter
    def stream_key(self, value: Optional[str]) -> None:
        if value is None:
            self._stream_key = None
        else:
            self._stream_key = encrypt_token(value)

    def is_stream_key_encrypted(self) -> bool:
        return self._stream_key is None or is_encrypted(self._stream_key)

    def is_live(self) -> bool:
        """Check if stream is currently live."""
        return self.status == StreamStatus.LIVE.value

    def is_offline(self) -> bool:
        return self.status == StreamStatus.OFFLINE.value

    def has_recording(self) -> bool:
        return bool(self.recording_path)

    def needs_recording(self) -> bool:
        """OFFLINE, started at some point, and no recording found yet."""
        return self.is_offline() and self.started_at is not None and not self.recording_path

    def __repr__(self) -> str:
        return f"<Stream(id={self.id}, title={self.title}, status={self.status})>"


class StreamAnalytics(Base):
    """Per-stream audience statistics, one row per stream."""

    __tablename__ = "stream_analytics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    stream_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("streams.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    total_views: Mapped[int] = mapped_column(Integer, default=0)
    peak_concurrent_viewers: Mapped[int] = mapped_column(Integer, default=0)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    stream: Mapped["Stream"] = relationship("Stream", back_populates="analytics")


class StreamLike(Base):
    """A viewer's like on a stream."""

    __tablename__ = "stream_likes"
    __table_args__ = (
        UniqueConstraint("stream_id", "user_id", name="uq_stream_likes_stream_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    stream_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("streams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
