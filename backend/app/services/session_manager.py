"""Login, refresh-token rotation and logout orchestration."""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AccountInactiveError,
    AuthenticationError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    PersistenceError,
)
from app.core.security import (
    Identity,
    PasswordHasher,
    TokenPair,
    TokenSigner,
    hash_token,
    identity_from_claims,
    password_hasher,
    token_signer,
)
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.user import SessionInfo
from app.services.refresh_token_store import RefreshTokenStore, refresh_token_store
from app.services.user_service import UserService, user_service
import logging

logger = logging.getLogger(__name__)


class SessionManager:
    """Tie credentials, token signing and refresh-token persistence together.

    Each refresh record moves independently from issued to revoked or
    expired; a user may hold many records at once (one per device).
    """

    def __init__(
        self,
        signer: TokenSigner = token_signer,
        store: RefreshTokenStore = refresh_token_store,
        hasher: PasswordHasher = password_hasher,
        users: UserService = user_service,
    ):
        self.signer = signer
        self.store = store
        self.hasher = hasher
        self.users = users
        self._dummy_hash: Optional[str] = None

    def _check_against_dummy(self, password: str) -> None:
        """One bcrypt comparison against a throwaway hash, for unknown emails"""
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash("unused-dummy-password")
        self.hasher.matches(password, self._dummy_hash)

    def _persist_pair(
        self,
        db: Session,
        user_id: int,
        pair: TokenPair,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> int:
        return self.store.store(
            db,
            user_id=user_id,
            token_hash=hash_token(pair.refresh_token),
            expires_at=pair.refresh_expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def login(
        self,
        db: Session,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[User, TokenPair]:
        """
        Authenticate credentials and open a new session

        Raises:
            InvalidCredentialsError: unknown email or wrong password
            AccountInactiveError: correct password on a disabled account
            PersistenceError: the refresh record could not be stored
        """
        if not email or not password:
            raise InvalidCredentialsError()

        user = self.users.get_by_email(db, email)
        if not user:
            self._check_against_dummy(password)
            raise InvalidCredentialsError()

        self.hasher.verify(user.password_hash, password)
        if not user.is_active:
            raise AccountInactiveError()

        pair = self.signer.issue_pair(user.id, user.email, UserRole(user.role))
        self._persist_pair(db, user.id, pair, ip_address, user_agent)

        try:
            self.users.record_login(db, user)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to record last login for user %s: %s", user.id, exc)

        logger.info("User %s logged in", user.id)
        return user, pair

    def refresh(
        self,
        db: Session,
        refresh_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> TokenPair:
        """
        Rotate a refresh token into a new pair

        The new record is stored before the presented one is revoked. If the
        revoke finds the presented record already revoked, another request
        rotated it first: the record stored here is revoked again and the
        call fails.

        Raises:
            InvalidRefreshTokenError: any signature, type, storage-state or
            account failure
            PersistenceError: backing store failure
        """
        try:
            claims = self.signer.verify_refresh(refresh_token)
            record = self.store.find_valid(db, hash_token(refresh_token), claims.user_id)
        except AuthenticationError as exc:
            logger.debug("Refresh rejected: %s", exc.message)
            raise InvalidRefreshTokenError()

        user = self.users.get_active_by_id(db, claims.user_id)
        if not user:
            raise InvalidRefreshTokenError()

        presented_id = record.id
        pair = self.signer.issue_pair(user.id, user.email, UserRole(user.role))
        new_id = self._persist_pair(db, user.id, pair, ip_address, user_agent)

        try:
            self.store.touch(db, presented_id, ip_address, user_agent)
        except PersistenceError:
            logger.warning("Failed to update last-used metadata for refresh token %s", presented_id)

        if not self.store.revoke(db, presented_id):
            self.store.revoke(db, new_id)
            logger.warning("Refresh token %s was rotated concurrently; rejecting replay", presented_id)
            raise InvalidRefreshTokenError()

        return pair

    def authenticate(self, access_token: str) -> Identity:
        """Resolve the caller identity from an access token"""
        return identity_from_claims(self.signer.verify_access(access_token))

    def logout(self, db: Session, access_token: Optional[str]) -> bool:
        """
        Revoke every refresh token of the token's owner, best effort

        Never raises. Returns True when revocation went through.
        """
        if not access_token:
            return False
        try:
            identity = self.authenticate(access_token)
            self.store.revoke_all_for_user(db, identity.user_id)
        except (AuthenticationError, PersistenceError) as exc:
            logger.warning("Logout could not revoke refresh tokens: %s", exc.message)
            return False
        return True

    def logout_all(self, db: Session, access_token: str) -> int:
        identity = self.authenticate(access_token)
        return self.store.revoke_all_for_user(db, identity.user_id)

    def list_active_sessions(self, db: Session, access_token: str) -> List[SessionInfo]:
        identity = self.authenticate(access_token)
        records = self.store.list_active(db, identity.user_id)
        return [SessionInfo.model_validate(record) for record in records]

    def revoke_session(self, db: Session, refresh_token: str) -> None:
        """Revoke a single presented refresh token"""
        try:
            claims = self.signer.verify_refresh(refresh_token)
            record = self.store.find_valid(db, hash_token(refresh_token), claims.user_id)
        except AuthenticationError:
            raise InvalidRefreshTokenError()
        self.store.revoke(db, record.id)


session_manager = SessionManager()
