"""Database models"""

from app.models.user import User
from app.models.security import RefreshToken
from app.models.achievement import Achievement, AchievementFile

__all__ = ["User", "RefreshToken", "Achievement", "AchievementFile"]
