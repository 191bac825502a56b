"""User service - credential lookups and identity management"""

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.clock import Clock, utcnow
from app.core.security import PasswordHasher, password_hasher
from app.core.exceptions import (
    PersistenceError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.user import UserCreate, UserProfileUpdate, UserRegister
from app.services.refresh_token_store import RefreshTokenStore, refresh_token_store
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for user management"""

    def __init__(
        self,
        hasher: PasswordHasher = password_hasher,
        token_store: RefreshTokenStore = refresh_token_store,
        clock: Clock = utcnow,
    ):
        self.hasher = hasher
        self.token_store = token_store
        self._clock = clock

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        """Get non-deleted user by email, active or not"""
        return db.query(User).filter(
            User.email == email.strip().lower(),
            User.is_deleted == False  # noqa: E712
        ).first()

    @staticmethod
    def get_active_by_email(db: Session, email: str) -> Optional[User]:
        """Credential-store lookup used at login"""
        return db.query(User).filter(
            User.email == email.strip().lower(),
            User.is_active == True,  # noqa: E712
            User.is_deleted == False  # noqa: E712
        ).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get non-deleted user by ID"""
        return db.query(User).filter(
            User.id == user_id,
            User.is_deleted == False  # noqa: E712
        ).first()

    @staticmethod
    def get_active_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(
            User.id == user_id,
            User.is_active == True,  # noqa: E712
            User.is_deleted == False  # noqa: E712
        ).first()

    @staticmethod
    def _taken(db: Session, column, value, exclude_id: Optional[int] = None) -> bool:
        # Soft-deleted rows still hold their unique values
        query = db.query(User.id).filter(column == value)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None

    def create_user(self, db: Session, user_data: UserCreate) -> User:
        """
        Create new user

        Args:
            db: Database session
            user_data: User creation data

        Returns:
            Created user
        """
        if self._taken(db, User.email, user_data.email):
            raise ResourceAlreadyExistsError(f"User with email '{user_data.email}'")

        if user_data.student_number and user_data.role != UserRole.STUDENT:
            raise ValidationError("Only students carry a student number")
        if user_data.student_number and self._taken(db, User.student_number, user_data.student_number):
            raise ResourceAlreadyExistsError(f"User with student number '{user_data.student_number}'")

        user = User(
            name=user_data.name,
            email=user_data.email,
            password_hash=self.hasher.hash(user_data.password),
            role=user_data.role.value,
            student_number=user_data.student_number,
            is_active=True,
            is_deleted=False,
        )
        db.add(user)
        db.flush()

        if user_data.advisor_id is not None:
            try:
                self._apply_advisor(db, user, user_data.advisor_id)
            except Exception:
                db.rollback()
                raise

        db.commit()
        db.refresh(user)

        logger.info(f"Created user: {user.email} (role: {user.role})")
        return user

    def register(self, db: Session, data: UserRegister) -> User:
        """
        Self-registration

        The account is always a student with no advisor; roles and advisor
        links are granted by an admin afterwards.

        Raises:
            ResourceAlreadyExistsError: email or student number already in use
        """
        user = self.create_user(
            db,
            UserCreate(
                name=data.name,
                email=data.email,
                password=data.password,
                role=UserRole.STUDENT,
                student_number=data.student_number,
            ),
        )
        logger.info(f"Student {user.email} registered")
        return user

    def _apply_advisor(self, db: Session, student: User, advisor_id: Optional[int]) -> None:
        if UserRole(student.role) != UserRole.STUDENT:
            raise ValidationError("Only students can be assigned an advisor")
        if advisor_id is None:
            student.advisor_id = None
            return
        advisor = self.get_user_by_id(db, advisor_id)
        if not advisor:
            raise ResourceNotFoundError("Advisor")
        if UserRole(advisor.role) != UserRole.ADVISOR:
            raise ValidationError("Assigned user must have the advisor role")
        student.advisor_id = advisor.id

    def assign_advisor(self, db: Session, student_id: int, advisor_id: Optional[int]) -> User:
        """
        Assign an advisor to a student, or clear it with None

        Raises:
            ValidationError: student is not a student, or target is not an advisor
        """
        student = self.get_user_by_id(db, student_id)
        if not student:
            raise ResourceNotFoundError("User")
        try:
            self._apply_advisor(db, student, advisor_id)
        except Exception:
            db.rollback()
            raise
        db.commit()
        db.refresh(student)
        logger.info(f"Assigned advisor {advisor_id} to student {student_id}")
        return student

    @staticmethod
    def list_users(db: Session, role: Optional[UserRole] = None) -> List[User]:
        """
        Get all non-deleted users, optionally filtered by role
        """
        query = db.query(User).filter(User.is_deleted == False)  # noqa: E712
        if role:
            query = query.filter(User.role == UserRole(role).value)
        return query.order_by(User.id).all()

    @staticmethod
    def list_advisees(db: Session, advisor_id: int) -> List[User]:
        return db.query(User).filter(
            User.advisor_id == advisor_id,
            User.is_deleted == False  # noqa: E712
        ).order_by(User.id).all()

    @staticmethod
    def list_available_advisors(db: Session) -> List[User]:
        """Active advisors a student can be assigned to"""
        return db.query(User).filter(
            User.role == UserRole.ADVISOR.value,
            User.is_active == True,  # noqa: E712
            User.is_deleted == False  # noqa: E712
        ).order_by(User.name, User.id).all()

    def deactivate_user(self, db: Session, user_id: int) -> User:
        """
        Disable login for a user and end all of their sessions
        """
        user = self.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")
        if UserRole(user.role) == UserRole.ADMIN:
            raise ValidationError("Cannot deactivate admin user")

        user.is_active = False
        db.commit()
        revoked = self.token_store.revoke_all_for_user(db, user.id)
        db.refresh(user)

        logger.info(f"Deactivated user {user.email}, revoked {revoked} sessions")
        return user

    def update_profile(self, db: Session, user_id: int, patch: UserProfileUpdate) -> User:
        """
        Apply a partial profile update for the account owner

        A new password ends every session of the user.

        Args:
            db: Database session
            user_id: Account being edited
            patch: Fields to change; unset or null fields are left alone

        Returns:
            Updated user
        """
        user = self.get_active_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")

        changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}
        if not changes:
            return user

        if "email" in changes and self._taken(db, User.email, changes["email"], exclude_id=user.id):
            raise ResourceAlreadyExistsError(f"User with email '{changes['email']}'")
        if "student_number" in changes:
            if UserRole(user.role) != UserRole.STUDENT:
                raise ValidationError("Only students carry a student number")
            if self._taken(db, User.student_number, changes["student_number"], exclude_id=user.id):
                raise ResourceAlreadyExistsError(f"User with student number '{changes['student_number']}'")

        password = changes.pop("password", None)
        password_hash = self.hasher.hash(password) if password is not None else None
        for field, value in changes.items():
            setattr(user, field, value)
        if password_hash is not None:
            user.password_hash = password_hash

        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to update profile of user {user_id}: {exc}")
            raise PersistenceError("Failed to update profile")

        if password is not None:
            revoked = self.token_store.revoke_all_for_user(db, user.id)
            logger.info(f"Password changed for user {user_id}, revoked {revoked} sessions")
        db.refresh(user)
        return user

    def soft_delete_user(self, db: Session, user_id: int) -> None:
        """
        Mark a user deleted and inactive, end their sessions and detach
        any students they advised
        """
        user = self.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")
        if UserRole(user.role) == UserRole.ADMIN:
            raise ValidationError("Cannot delete admin user")

        try:
            result = db.execute(
                update(User)
                .where(User.id == user_id, User.is_deleted == False)  # noqa: E712
                .values(is_deleted=True, is_active=False)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                raise ResourceNotFoundError("User")
            db.execute(
                update(User)
                .where(User.advisor_id == user_id)
                .values(advisor_id=None)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Failed to delete user {user_id}: {exc}")
            raise PersistenceError("Failed to delete user")

        db.expire_all()
        revoked = self.token_store.revoke_all_for_user(db, user_id)
        logger.info(f"Soft-deleted user {user_id}, revoked {revoked} sessions")

    def record_login(self, db: Session, user: User) -> None:
        user.last_login = self._clock()
        db.commit()

    def ensure_admin(self, db: Session, name: str, email: str, password: str) -> User:
        """Create the bootstrap admin if no user owns that email yet"""
        existing = self.get_by_email(db, email)
        if existing:
            return existing
        return self.create_user(
            db,
            UserCreate(name=name, email=email, password=password, role=UserRole.ADMIN),
        )


# Singleton instance
user_service = UserService()
