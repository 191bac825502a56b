"""Achievement schemas"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime


class AchievementCreate(BaseModel):
    """Create achievement schema"""
    title: str = Field(..., max_length=255)
    description: str
    category: str = Field(..., max_length=100)
    achievement_date: date


class AchievementUpdate(BaseModel):
    """Partial update of a draft achievement"""
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    achievement_date: Optional[date] = None


class AchievementReject(BaseModel):
    """Rejection request"""
    reason: str = Field(..., max_length=2000)


class AchievementResponse(BaseModel):
    """Achievement response schema"""
    id: int
    owner_id: int
    title: str
    description: str
    category: str
    achievement_date: date
    status: str
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AchievementFileResponse(BaseModel):
    """Attachment metadata"""
    id: int
    achievement_id: int
    filename: str
    content_type: str
    size: int
    uploaded_by: Optional[int] = None
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True
