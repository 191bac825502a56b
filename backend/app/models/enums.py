"""Closed enumerations shared by models, schemas and services"""

from enum import Enum


class UserRole(str, Enum):
    """User role enumeration"""
    STUDENT = "student"
    ADVISOR = "advisor"
    ADMIN = "admin"


class AchievementStatus(str, Enum):
    """Achievement workflow states"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
