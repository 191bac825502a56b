"""User and authentication schemas"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from app.models.enums import UserRole

_EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class UserLogin(BaseModel):
    """User login schema"""
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=72)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserCreate(BaseModel):
    """User creation schema"""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=72)
    role: UserRole = UserRole.STUDENT
    student_number: Optional[str] = Field(None, max_length=32)
    advisor_id: Optional[int] = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Name must not be blank')
        return v.strip()


class UserRegister(BaseModel):
    """Self-registration; always creates a student account"""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=72)
    student_number: str = Field(..., min_length=1, max_length=32)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()

    @field_validator('name', 'student_number')
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError('Must not be blank')
        return v.strip()


class UserProfileUpdate(BaseModel):
    """Fields a user may change on their own account"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255, pattern=_EMAIL_PATTERN)
    password: Optional[str] = Field(None, min_length=8, max_length=72)
    student_number: Optional[str] = Field(None, min_length=1, max_length=32)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if v is not None else v

    @field_validator('name', 'student_number')
    @classmethod
    def not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Must not be blank')
        return v.strip() if v is not None else v


class AdvisorAssignment(BaseModel):
    """Assign (or clear, with null) a student's advisor"""
    advisor_id: Optional[int] = None


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    name: str
    email: str
    role: str
    student_number: Optional[str] = None
    advisor_id: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime]
    last_login: Optional[datetime]

    class Config:
        from_attributes = True


class RefreshTokenRequest(BaseModel):
    """Refresh/revoke request body"""
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """JWT token pair response"""
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class LoginResponse(TokenResponse):
    """Token pair plus the authenticated user"""
    user: UserResponse


class SessionInfo(BaseModel):
    """Active refresh-token record with the hash stripped"""
    id: int
    created_at: datetime
    last_used_at: Optional[datetime] = None
    expires_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    class Config:
        from_attributes = True


class ActiveSessionsResponse(BaseModel):
    """List of active sessions for the current user"""
    active_tokens: List[SessionInfo]
    total: int
