"""Authentication: users, access tokens and role dependencies."""

from livecast.modules.auth.models import User, UserRole, UserStatus

__all__ = ["User", "UserRole", "UserStatus"]
