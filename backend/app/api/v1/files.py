"""Achievement evidence file routes"""

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import List

from app.core.database import get_db
from app.core.security import Identity
from app.schemas.achievement import AchievementFileResponse
from app.schemas.response import APIResponse
from app.services.attachment_service import attachment_service
from app.api.deps import get_current_identity

router = APIRouter()


@router.post(
    "/achievements/{achievement_id}",
    response_model=AchievementFileResponse,
    status_code=status.HTTP_201_CREATED
)
async def upload_file(
    achievement_id: int,
    file: UploadFile = File(...),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Attach an evidence file to an achievement (owner only)

    Args:
        achievement_id: Target achievement
        file: Multipart upload

    Returns:
        Stored file metadata
    """
    # One byte past the limit is enough to reject oversized uploads
    data = await file.read(attachment_service.max_size + 1)
    return attachment_service.upload(
        db, identity, achievement_id, file.filename or "", data, file.content_type
    )


@router.get("/achievements/{achievement_id}", response_model=List[AchievementFileResponse])
def list_files(
    achievement_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return attachment_service.list_files(db, identity, achievement_id)


@router.get("/{file_id}")
def download_file(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Send a stored file back to the owner or a reviewer"""
    record, path = attachment_service.locate_file(db, identity, file_id)
    return FileResponse(
        path=path,
        media_type=record.content_type,
        filename=record.filename
    )


@router.delete("/{file_id}", status_code=status.HTTP_200_OK)
def delete_file(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    attachment_service.delete_file(db, identity, file_id)
    return APIResponse(message="File deleted")
