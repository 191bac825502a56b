"""Achievement workflow - draft, submit, verify/reject with soft deletion"""

from datetime import date
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    PersistenceError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.security import Identity
from app.models.achievement import Achievement
from app.models.enums import AchievementStatus, UserRole
from app.schemas.achievement import AchievementUpdate
import logging

logger = logging.getLogger(__name__)

_REQUIRED_TEXT_FIELDS = ("title", "description", "category")


def _role_of(identity: Identity) -> UserRole:
    try:
        return UserRole(identity.role)
    except ValueError:
        raise AuthorizationError("Unknown role")


def can_review(identity: Identity) -> bool:
    """Whether the caller may verify, reject and see every achievement"""
    role = _role_of(identity)
    if role == UserRole.STUDENT:
        return False
    if role == UserRole.ADVISOR:
        return True
    if role == UserRole.ADMIN:
        return True
    raise AuthorizationError("Unknown role")


class AchievementWorkflow:
    """Service enforcing the achievement status lifecycle

    ``draft`` is initial; ``verified`` and ``rejected`` are terminal. Each
    transition is a single conditional UPDATE keyed on the expected prior
    status, so two concurrent callers cannot both move the same record.
    """

    def __init__(self, clock: Clock = utcnow):
        self._clock = clock

    @staticmethod
    def _fail(db: Session, action: str, exc: SQLAlchemyError) -> PersistenceError:
        db.rollback()
        logger.error(f"Achievement {action} failed: {exc}")
        return PersistenceError(f"Failed to {action} achievement")

    # Guards

    @staticmethod
    def _load(db: Session, achievement_id: int) -> Achievement:
        achievement = db.query(Achievement).filter(
            Achievement.id == achievement_id,
            Achievement.is_deleted == False  # noqa: E712
        ).first()
        if not achievement:
            raise ResourceNotFoundError("Achievement")
        return achievement

    @staticmethod
    def _require_owner(identity: Identity, achievement: Achievement) -> None:
        if achievement.owner_id != identity.user_id:
            raise AuthorizationError("You can only modify your own achievements")

    @staticmethod
    def _require_reviewer(identity: Identity) -> None:
        if not can_review(identity):
            raise AuthorizationError("Advisor or admin role required")

    @staticmethod
    def _require_status(achievement: Achievement, expected: AchievementStatus, action: str) -> None:
        if achievement.status != expected.value:
            raise InvalidStateError(
                f"Cannot {action} achievement in '{achievement.status}' status"
            )

    @staticmethod
    def _validate_text(values: dict) -> dict:
        cleaned = {}
        missing = []
        for field, value in values.items():
            if field in _REQUIRED_TEXT_FIELDS:
                value = (value or "").strip()
                if not value:
                    missing.append(field)
            cleaned[field] = value
        if missing:
            raise ValidationError(
                f"{', '.join(missing)} must not be empty",
                details={"fields": missing}
            )
        return cleaned

    def _transition(
        self,
        db: Session,
        achievement_id: int,
        expected: AchievementStatus,
        action: str,
        **values
    ) -> None:
        """Apply an update only if the record is still in ``expected`` and not deleted"""
        try:
            result = db.execute(
                update(Achievement)
                .where(
                    Achievement.id == achievement_id,
                    Achievement.status == expected.value,
                    Achievement.is_deleted == False  # noqa: E712
                )
                .values(updated_at=self._clock(), **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                raise InvalidStateError(f"Achievement not found or cannot {action} it")
            db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(db, action, exc)

    # Lifecycle

    def create(
        self,
        db: Session,
        identity: Identity,
        *,
        title: str,
        description: str,
        category: str,
        achievement_date: Optional[date],
    ) -> Achievement:
        """
        Create a draft achievement owned by the calling student

        Raises:
            AuthorizationError: caller is not a student
            ValidationError: a required field is empty
        """
        if _role_of(identity) != UserRole.STUDENT:
            raise AuthorizationError("Only students can create achievements")

        fields = self._validate_text(
            {"title": title, "description": description, "category": category}
        )
        if achievement_date is None:
            raise ValidationError("achievement_date is required", details={"fields": ["achievement_date"]})

        now = self._clock()
        achievement = Achievement(
            owner_id=identity.user_id,
            achievement_date=achievement_date,
            status=AchievementStatus.DRAFT.value,
            is_deleted=False,
            created_at=now,
            updated_at=now,
            **fields
        )
        try:
            db.add(achievement)
            db.commit()
            db.refresh(achievement)
        except SQLAlchemyError as exc:
            raise self._fail(db, "create", exc)

        logger.info(f"Created achievement {achievement.id} for student {identity.user_id}")
        return achievement

    def get(self, db: Session, identity: Identity, achievement_id: int) -> Achievement:
        achievement = self._load(db, achievement_id)
        if not can_review(identity) and achievement.owner_id != identity.user_id:
            raise AuthorizationError("You can only view your own achievements")
        return achievement

    def update(
        self,
        db: Session,
        identity: Identity,
        achievement_id: int,
        patch: AchievementUpdate
    ) -> Achievement:
        """
        Edit a draft achievement

        Raises:
            ResourceNotFoundError, AuthorizationError, InvalidStateError,
            ValidationError
        """
        achievement = self._load(db, achievement_id)
        self._require_owner(identity, achievement)
        self._require_status(achievement, AchievementStatus.DRAFT, "update")

        changes = patch.model_dump(exclude_unset=True)
        if "achievement_date" in changes and changes["achievement_date"] is None:
            raise ValidationError("achievement_date is required", details={"fields": ["achievement_date"]})
        changes = self._validate_text(changes)
        if not changes:
            return achievement

        self._transition(db, achievement_id, AchievementStatus.DRAFT, "update", **changes)
        return self._load(db, achievement_id)

    def delete(self, db: Session, identity: Identity, achievement_id: int) -> None:
        """Soft-delete a draft achievement"""
        achievement = self._load(db, achievement_id)
        self._require_owner(identity, achievement)
        self._require_status(achievement, AchievementStatus.DRAFT, "delete")

        self._transition(db, achievement_id, AchievementStatus.DRAFT, "delete", is_deleted=True)
        logger.info(f"Soft-deleted achievement {achievement_id}")

    def submit(self, db: Session, identity: Identity, achievement_id: int) -> Achievement:
        """draft -> submitted"""
        achievement = self._load(db, achievement_id)
        self._require_owner(identity, achievement)
        self._require_status(achievement, AchievementStatus.DRAFT, "submit")

        self._transition(
            db, achievement_id, AchievementStatus.DRAFT, "submit",
            status=AchievementStatus.SUBMITTED.value
        )
        logger.info(f"Achievement {achievement_id} submitted for verification")
        return self._load(db, achievement_id)

    def verify(self, db: Session, identity: Identity, achievement_id: int) -> Achievement:
        """submitted -> verified, stamped with the verifier"""
        achievement = self._load(db, achievement_id)
        self._require_reviewer(identity)
        self._require_status(achievement, AchievementStatus.SUBMITTED, "verify")

        self._transition(
            db, achievement_id, AchievementStatus.SUBMITTED, "verify",
            status=AchievementStatus.VERIFIED.value,
            verified_by=identity.user_id,
            verified_at=self._clock(),
        )
        logger.info(f"Achievement {achievement_id} verified by {identity.user_id}")
        return self._load(db, achievement_id)

    def reject(
        self,
        db: Session,
        identity: Identity,
        achievement_id: int,
        reason: str
    ) -> Achievement:
        """submitted -> rejected; a reason is mandatory"""
        achievement = self._load(db, achievement_id)
        self._require_reviewer(identity)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason is required", details={"fields": ["reason"]})
        self._require_status(achievement, AchievementStatus.SUBMITTED, "reject")

        self._transition(
            db, achievement_id, AchievementStatus.SUBMITTED, "reject",
            status=AchievementStatus.REJECTED.value,
            verified_by=identity.user_id,
            verified_at=self._clock(),
            rejection_reason=reason,
        )
        logger.info(f"Achievement {achievement_id} rejected by {identity.user_id}")
        return self._load(db, achievement_id)

    # Projections

    @staticmethod
    def _active(db: Session):
        return db.query(Achievement).filter(Achievement.is_deleted == False)  # noqa: E712

    def list_by_owner(
        self,
        db: Session,
        identity: Identity,
        owner_id: Optional[int] = None
    ) -> List[Achievement]:
        """Students may only list their own; reviewers may list anyone's"""
        owner_id = identity.user_id if owner_id is None else owner_id
        if not can_review(identity) and owner_id != identity.user_id:
            raise AuthorizationError("You can only view your own achievements")
        return (
            self._active(db)
            .filter(Achievement.owner_id == owner_id)
            .order_by(Achievement.created_at.desc(), Achievement.id.desc())
            .all()
        )

    def list_all(
        self,
        db: Session,
        identity: Identity,
        status: Optional[AchievementStatus] = None
    ) -> List[Achievement]:
        self._require_reviewer(identity)
        query = self._active(db)
        if status is not None:
            query = query.filter(Achievement.status == AchievementStatus(status).value)
        return query.order_by(Achievement.created_at.desc(), Achievement.id.desc()).all()

    def list_pending(self, db: Session, identity: Identity) -> List[Achievement]:
        """Verification queue, oldest submission first"""
        self._require_reviewer(identity)
        return (
            self._active(db)
            .filter(Achievement.status == AchievementStatus.SUBMITTED.value)
            .order_by(Achievement.updated_at.asc(), Achievement.id.asc())
            .all()
        )


# Singleton instance
achievement_workflow = AchievementWorkflow()
