"""Persistence for refresh-token records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.exceptions import (
    PersistenceError,
    RefreshTokenExpiredError,
    RefreshTokenNotFoundError,
    RefreshTokenRevokedError,
)
from app.models.security import RefreshToken
import logging

logger = logging.getLogger(__name__)

IP_ADDRESS_MAX = RefreshToken.__table__.c.ip_address.type.length
USER_AGENT_MAX = RefreshToken.__table__.c.user_agent.type.length


def _clip(value: Optional[str], limit: int) -> Optional[str]:
    """Cut client metadata to its column width"""
    return value[:limit] if value else value


class RefreshTokenStore:
    """Store, look up, rotate and revoke refresh-token records.

    Records are only ever appended or flipped to revoked; a record is usable
    while ``is_revoked`` is false and ``now < expires_at``. ``revoke`` is a
    conditional update so that, of several callers racing on the same record,
    exactly one observes the transition.
    """

    def __init__(self, clock: Clock = utcnow):
        self._clock = clock

    @staticmethod
    def _naive_utc(dt: datetime) -> datetime:
        return dt.astimezone(timezone.utc).replace(tzinfo=None) if dt and dt.tzinfo else dt

    @staticmethod
    def _fail(db: Session, action: str, exc: SQLAlchemyError) -> PersistenceError:
        db.rollback()
        logger.error("Refresh token %s failed: %s", action, exc)
        return PersistenceError(f"Failed to {action} refresh token")

    def store(
        self,
        db: Session,
        *,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> int:
        record = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=self._clock(),
            is_revoked=False,
            ip_address=_clip(ip_address, IP_ADDRESS_MAX),
            user_agent=_clip(user_agent, USER_AGENT_MAX),
        )
        try:
            db.add(record)
            db.flush()
            record_id = record.id
            db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(db, "store", exc)
        return record_id

    def find_valid(self, db: Session, token_hash: str, user_id: int) -> RefreshToken:
        """
        Look up a usable refresh record

        Raises:
            RefreshTokenNotFoundError: no record for this hash and user
            RefreshTokenRevokedError: record exists but was revoked
            RefreshTokenExpiredError: record exists but is past expiry
        """
        try:
            record = (
                db.query(RefreshToken)
                .filter(RefreshToken.token_hash == token_hash, RefreshToken.user_id == user_id)
                .first()
            )
        except SQLAlchemyError as exc:
            raise self._fail(db, "look up", exc)

        if not record:
            raise RefreshTokenNotFoundError()
        if record.is_revoked:
            raise RefreshTokenRevokedError()
        if self._clock() >= self._naive_utc(record.expires_at):
            raise RefreshTokenExpiredError()
        return record

    def revoke(self, db: Session, record_id: int) -> bool:
        """
        Mark a record revoked

        Returns:
            bool: True if this call revoked it, False if it was already revoked
            or does not exist
        """
        try:
            result = db.execute(
                update(RefreshToken)
                .where(RefreshToken.id == record_id, RefreshToken.is_revoked == False)  # noqa: E712
                .values(is_revoked=True, revoked_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(db, "revoke", exc)
        return result.rowcount == 1

    def revoke_all_for_user(self, db: Session, user_id: int) -> int:
        try:
            result = db.execute(
                update(RefreshToken)
                .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked == False)  # noqa: E712
                .values(is_revoked=True, revoked_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(db, "bulk revoke", exc)
        logger.info("Revoked %d refresh tokens for user %s", result.rowcount, user_id)
        return result.rowcount

    def touch(
        self,
        db: Session,
        record_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        values = {"last_used_at": self._clock()}
        if ip_address is not None:
            values["ip_address"] = _clip(ip_address, IP_ADDRESS_MAX)
        if user_agent is not None:
            values["user_agent"] = _clip(user_agent, USER_AGENT_MAX)
        try:
            db.execute(
                update(RefreshToken)
                .where(RefreshToken.id == record_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(db, "touch", exc)

    def list_active(self, db: Session, user_id: int) -> List[RefreshToken]:
        try:
            return (
                db.query(RefreshToken)
                .filter(
                    RefreshToken.user_id == user_id,
                    RefreshToken.is_revoked == False,  # noqa: E712
                    RefreshToken.expires_at > self._clock(),
                )
                .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._fail(db, "list", exc)

    def sweep(self, db: Session) -> int:
        """Delete records past their expiry; returns the number removed"""
        try:
            result = db.execute(
                delete(RefreshToken)
                .where(RefreshToken.expires_at < self._clock())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(db, "sweep", exc)
        return result.rowcount


refresh_token_store = RefreshTokenStore()
