"""User records and preference management."""

from .models import User
from .settings import UserSettingsService

__all__ = ["User", "UserSettingsService"]
