"""Initial schema.

Revision ID: 001
Revises:
Create Date: 2026-01-05 00:00:00.000000

Creates users, stream_categories, streams, stream_analytics and stream_likes.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("channel_name", sa.String(100), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="viewer"),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("total_streams", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    op.create_table(
        "stream_categories",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "streams",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("creator_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("thumbnail", sa.String(512), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("who_can_message", sa.String(20), nullable=False, server_default="everyone"),
        sa.Column("is_mature", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("status", sa.String(20), nullable=False, server_default="SCHEDULED"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("recording_path", sa.String(1024), nullable=True),
        sa.Column("playback_url", sa.String(2048), nullable=True),
        sa.Column("stream_key", sa.Text(), nullable=True),
        sa.Column("total_views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_comments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("peak_viewers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_viewers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_reported", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
        sa.CheckConstraint(
            "status <> 'OFFLINE' OR ended_at IS NOT NULL",
            name="ck_streams_offline_has_ended_at",
        ),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["category_id"], ["stream_categories.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_streams_creator_id"), "streams", ["creator_id"], unique=False)
    op.create_index(op.f("ix_streams_category_id"), "streams", ["category_id"], unique=False)
    op.create_index(op.f("ix_streams_status"), "streams", ["status"], unique=False)
    op.create_index(op.f("ix_streams_is_deleted"), "streams", ["is_deleted"], unique=False)
    op.create_index(
        "ix_streams_status_recording",
        "streams",
        ["status", "recording_path"],
        unique=False,
    )
    op.create_index(
        "uq_streams_one_live_per_creator",
        "streams",
        ["creator_id"],
        unique=True,
        postgresql_where=sa.text("status = 'LIVE'"),
    )
    op.create_index(
        "uq_streams_recording_path",
        "streams",
        ["recording_path"],
        unique=True,
        postgresql_where=sa.text("recording_path IS NOT NULL"),
    )

    op.create_table(
        "stream_analytics",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("stream_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("total_views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("peak_concurrent_viewers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comments", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["stream_id"], ["streams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stream_id"),
    )

    op.create_table(
        "stream_likes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("stream_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["stream_id"], ["streams.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stream_id", "user_id", name="uq_stream_likes_stream_user"),
    )
    op.create_index(op.f("ix_stream_likes_stream_id"), "stream_likes", ["stream_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_stream_likes_stream_id"), table_name="stream_likes")
    op.drop_table("stream_likes")
    op.drop_table("stream_analytics")
    op.drop_index("uq_streams_recording_path", table_name="streams")
    op.drop_index("uq_streams_one_live_per_creator", table_name="streams")
    op.drop_index("ix_streams_status_recording", table_name="streams")
    op.drop_index(op.f("ix_streams_is_deleted"), table_name="streams")
    op.drop_index(op.f("ix_streams_status"), table_name="streams")
    op.drop_index(op.f("ix_streams_category_id"), table_name="streams")
    op.drop_index(op.f("ix_streams_creator_id"), table_name="streams")
    op.drop_table("streams")
    op.drop_table("stream_categories")
    op.drop_index(op.f("ix_users_username"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
