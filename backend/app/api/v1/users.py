"""User management routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.database import get_db
from app.core.exceptions import AuthorizationError
from app.core.security import Identity
from app.models.enums import UserRole
from app.schemas.user import UserCreate, UserResponse, UserProfileUpdate, AdvisorAssignment
from app.schemas.response import APIResponse
from app.services.user_service import user_service
from app.api.deps import get_current_identity, get_current_user, require_admin
from app.models.user import User

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_my_profile(
    current_user: User = Depends(get_current_user)
):
    """
    Get current user profile

    Args:
        current_user: Current authenticated user

    Returns:
        User profile
    """
    return UserResponse.model_validate(current_user)


@router.put("/profile", response_model=UserResponse)
def update_my_profile(
    patch: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update name, email, password or student number of the caller"""
    user = user_service.update_profile(db, current_user.id, patch)
    return UserResponse.model_validate(user)


@router.get("/advisors", response_model=List[UserResponse])
def get_available_advisors(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Active advisors, by name"""
    return user_service.list_available_advisors(db)


@router.get("/", response_model=List[UserResponse])
def get_all_users(
    role: Optional[UserRole] = None,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Get all users (admin only)

    Args:
        role: Optional role filter
        db: Database session

    Returns:
        List of users
    """
    return user_service.list_users(db, role)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create new user (admin only)"""
    return user_service.create_user(db, user_data)


@router.put("/{user_id}/advisor", response_model=UserResponse)
def assign_advisor(
    user_id: int,
    assignment: AdvisorAssignment,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Assign or clear a student's advisor (admin only)"""
    return user_service.assign_advisor(db, user_id, assignment.advisor_id)


@router.get("/{user_id}/advisees", response_model=List[UserResponse])
def get_advisees(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Students assigned to an advisor; advisors may only see their own"""
    role = UserRole(identity.role)
    if role != UserRole.ADMIN and not (role == UserRole.ADVISOR and identity.user_id == user_id):
        raise AuthorizationError("You can only view your own advisees")
    return user_service.list_advisees(db, user_id)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
def deactivate_user(
    user_id: int,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Disable a user and revoke all of their sessions (admin only)"""
    return user_service.deactivate_user(db, user_id)


@router.delete("/{user_id}", status_code=status.HTTP_200_OK)
def delete_user(
    user_id: int,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Soft-delete a user and revoke all of their sessions (admin only)"""
    user_service.soft_delete_user(db, user_id)
    return APIResponse(message="User deleted")
