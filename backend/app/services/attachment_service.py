"""Attachment service - evidence files for achievements"""

from pathlib import Path, PurePath
from typing import BinaryIO, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import (
    AuthorizationError,
    FileSystemError,
    PersistenceError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.security import Identity
from app.models.achievement import Achievement, AchievementFile
from app.models.enums import UserRole
from app.services.achievement_workflow import can_review
from app.services.blob_store import BlobStore, blob_store
import logging

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


class AttachmentService:
    """Upload, list, download and delete achievement evidence"""

    def __init__(
        self,
        store: BlobStore = blob_store,
        max_size: int = settings.MAX_UPLOAD_SIZE,
        allowed_extensions: Iterable[str] = tuple(settings.ALLOWED_UPLOAD_EXTENSIONS),
    ):
        self.store = store
        self.max_size = max_size
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}

    @staticmethod
    def extension_of(filename: str) -> str:
        return PurePath(filename).suffix.lower()

    def validate(self, filename: str, size: int) -> str:
        """
        Check the extension allow-list and size limit

        Returns:
            str: content type derived from the extension
        """
        if not filename or not PurePath(filename).name:
            raise ValidationError("Filename is required")
        ext = self.extension_of(filename)
        if ext not in self.allowed_extensions:
            raise ValidationError(
                "Invalid file type",
                details={"allowed": sorted(self.allowed_extensions)}
            )
        if size <= 0:
            raise ValidationError("File is empty")
        if size > self.max_size:
            raise ValidationError(
                f"File size exceeds {self.max_size // (1024 * 1024)}MB limit",
                details={"max_size": self.max_size}
            )
        return CONTENT_TYPES.get(ext, "application/octet-stream")

    @staticmethod
    def _achievement(db: Session, achievement_id: int) -> Achievement:
        achievement = db.query(Achievement).filter(
            Achievement.id == achievement_id,
            Achievement.is_deleted == False  # noqa: E712
        ).first()
        if not achievement:
            raise ResourceNotFoundError("Achievement")
        return achievement

    @staticmethod
    def _file(db: Session, file_id: int) -> AchievementFile:
        record = db.query(AchievementFile).filter(AchievementFile.id == file_id).first()
        if not record:
            raise ResourceNotFoundError("File")
        return record

    @staticmethod
    def _require_access(identity: Identity, achievement: Achievement) -> None:
        if achievement.owner_id != identity.user_id and not can_review(identity):
            raise AuthorizationError("Access denied")

    def upload(
        self,
        db: Session,
        identity: Identity,
        achievement_id: int,
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> AchievementFile:
        """
        Store an evidence file for one of the caller's achievements

        The client-declared ``content_type`` is informational only; the stored
        type always comes from the extension.
        """
        achievement = self._achievement(db, achievement_id)
        if achievement.owner_id != identity.user_id:
            raise AuthorizationError("You can only attach files to your own achievements")

        name = PurePath(filename or "").name
        declared_type = content_type
        content_type = self.validate(name, len(data))
        if declared_type and declared_type != content_type:
            logger.debug(f"Declared type {declared_type} for {name} replaced by {content_type}")

        handle = self.store.put(data, {
            "achievement_id": achievement_id,
            "uploaded_by": identity.user_id,
            "original_filename": name,
            "content_type": content_type,
        })
        record = AchievementFile(
            achievement_id=achievement_id,
            filename=name,
            content_type=content_type,
            size=len(data),
            storage_key=handle,
            uploaded_by=identity.user_id,
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError as exc:
            db.rollback()
            self.store.delete(handle)
            logger.error(f"Failed to save file metadata: {exc}")
            raise PersistenceError("Failed to store file metadata")

        logger.info(f"Uploaded {name} ({len(data)} bytes) to achievement {achievement_id}")
        return record

    def list_files(self, db: Session, identity: Identity, achievement_id: int) -> List[AchievementFile]:
        achievement = self._achievement(db, achievement_id)
        self._require_access(identity, achievement)
        return (
            db.query(AchievementFile)
            .filter(AchievementFile.achievement_id == achievement_id)
            .order_by(AchievementFile.uploaded_at.desc(), AchievementFile.id.desc())
            .all()
        )

    def open_file(self, db: Session, identity: Identity, file_id: int) -> Tuple[AchievementFile, BinaryIO]:
        record = self._file(db, file_id)
        self._require_access(identity, self._achievement(db, record.achievement_id))
        return record, self.store.get(record.storage_key)

    def locate_file(self, db: Session, identity: Identity, file_id: int) -> Tuple[AchievementFile, Path]:
        """Same access rules as open_file, returning the blob path for a file response"""
        record = self._file(db, file_id)
        self._require_access(identity, self._achievement(db, record.achievement_id))
        return record, self.store.path_of(record.storage_key)

    def delete_file(self, db: Session, identity: Identity, file_id: int) -> None:
        """Uploader or admin only"""
        record = self._file(db, file_id)
        if record.uploaded_by != identity.user_id and UserRole(identity.role) != UserRole.ADMIN:
            raise AuthorizationError("You can only delete your own files")

        handle = record.storage_key
        try:
            db.delete(record)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to delete file metadata {file_id}: {exc}")
            raise PersistenceError("Failed to delete file")

        # Row already committed; a leftover blob is only logged
        try:
            self.store.delete(handle)
        except FileSystemError as exc:
            logger.warning(f"File {file_id} deleted but blob {handle} was not removed: {exc.message}")
        logger.info(f"Deleted file {file_id}")


attachment_service = AttachmentService()
