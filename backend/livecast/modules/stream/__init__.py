"""Stream module: broadcast lifecycle, discovery and recordings.

Models are re-exported so Alembic and the app see every table.
"""

from livecast.modules.stream.models import (
    Stream,
    StreamAnalytics,
    StreamCategory,
    StreamLike,
    StreamStatus,
    WhoCanMessage,
)

__all__ = [
    "Stream",
    "StreamAnalytics",
    "StreamCategory",
    "StreamLike",
    "StreamStatus",
    "WhoCanMessage",
]
