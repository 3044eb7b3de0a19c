"""Core module for configuration and shared infrastructure."""

from livecast.core.config import settings
from livecast.core.database import Base, get_db

__all__ = [
    "Base",
    "get_db",
    "settings",
]
