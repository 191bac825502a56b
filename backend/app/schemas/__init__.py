"""Pydantic schemas for API validation"""

from app.schemas.user import (
    UserCreate,
    UserRegister,
    UserProfileUpdate,
    UserResponse,
    UserLogin,
    AdvisorAssignment,
    TokenResponse,
    LoginResponse,
    RefreshTokenRequest,
    SessionInfo,
    ActiveSessionsResponse,
)
from app.schemas.achievement import (
    AchievementCreate,
    AchievementUpdate,
    AchievementReject,
    AchievementResponse,
    AchievementFileResponse,
)
from app.schemas.response import APIResponse, ErrorResponse, HealthResponse

__all__ = [
    "UserCreate", "UserRegister", "UserProfileUpdate", "UserResponse", "UserLogin", "AdvisorAssignment",
    "TokenResponse", "LoginResponse", "RefreshTokenRequest", "SessionInfo", "ActiveSessionsResponse",
    "AchievementCreate", "AchievementUpdate", "AchievementReject",
    "AchievementResponse", "AchievementFileResponse",
    "APIResponse", "ErrorResponse", "HealthResponse"
]
