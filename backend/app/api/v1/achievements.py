"""Achievement routes - draft editing and the verification queue"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.database import get_db
from app.core.security import Identity
from app.models.enums import AchievementStatus
from app.schemas.achievement import (
    AchievementCreate,
    AchievementUpdate,
    AchievementReject,
    AchievementResponse,
)
from app.schemas.response import APIResponse
from app.services.achievement_workflow import achievement_workflow
from app.api.deps import get_current_identity

router = APIRouter()


@router.post("/", response_model=AchievementResponse, status_code=status.HTTP_201_CREATED)
def create_achievement(
    data: AchievementCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Create a draft achievement (students only)

    Args:
        data: Achievement fields
        identity: Caller identity
        db: Database session

    Returns:
        Created achievement
    """
    return achievement_workflow.create(
        db,
        identity,
        title=data.title,
        description=data.description,
        category=data.category,
        achievement_date=data.achievement_date,
    )


@router.get("/mine", response_model=List[AchievementResponse])
def list_my_achievements(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return achievement_workflow.list_by_owner(db, identity)


@router.get("/pending", response_model=List[AchievementResponse])
def list_pending(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Submitted achievements awaiting review, oldest first"""
    return achievement_workflow.list_pending(db, identity)


@router.get("/", response_model=List[AchievementResponse])
def list_achievements(
    status_filter: Optional[AchievementStatus] = Query(None, alias="status"),
    owner_id: Optional[int] = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """All achievements for reviewers, or one owner's list"""
    if owner_id is not None:
        return achievement_workflow.list_by_owner(db, identity, owner_id)
    return achievement_workflow.list_all(db, identity, status_filter)


@router.get("/{achievement_id}", response_model=AchievementResponse)
def get_achievement(
    achievement_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return achievement_workflow.get(db, identity, achievement_id)


@router.put("/{achievement_id}", response_model=AchievementResponse)
def update_achievement(
    achievement_id: int,
    patch: AchievementUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Edit a draft"""
    return achievement_workflow.update(db, identity, achievement_id, patch)


@router.delete("/{achievement_id}", status_code=status.HTTP_200_OK)
def delete_achievement(
    achievement_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Soft-delete a draft"""
    achievement_workflow.delete(db, identity, achievement_id)
    return APIResponse(message="Achievement deleted")


@router.post("/{achievement_id}/submit", response_model=AchievementResponse)
def submit_achievement(
    achievement_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return achievement_workflow.submit(db, identity, achievement_id)


@router.post("/{achievement_id}/verify", response_model=AchievementResponse)
def verify_achievement(
    achievement_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return achievement_workflow.verify(db, identity, achievement_id)


@router.post("/{achievement_id}/reject", response_model=AchievementResponse)
def reject_achievement(
    achievement_id: int,
    body: AchievementReject,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return achievement_workflow.reject(db, identity, achievement_id, body.reason)
