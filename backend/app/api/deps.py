"""API dependencies - authentication and authorization"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import Identity
from app.models.enums import UserRole
from app.models.user import User
from app.services.session_manager import session_manager
from app.services.user_service import user_service

# HTTP Bearer token scheme; missing headers surface as AuthenticationError
security = HTTPBearer(auto_error=False)


def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Raw bearer token from the Authorization header"""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    return credentials.credentials


def get_current_identity(token: str = Depends(get_access_token)) -> Identity:
    """
    Resolve the caller from the access token alone

    Raises:
        AuthenticationError: expired, tampered, malformed or refresh-type token
    """
    return session_manager.authenticate(token)


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
) -> User:
    """Load the caller's user row; disabled accounts are refused"""
    user = user_service.get_active_by_id(db, identity.user_id)
    if not user:
        raise AuthenticationError("User not found or inactive")
    return user


def _require_roles(identity: Identity, *roles: UserRole) -> Identity:
    try:
        role = UserRole(identity.role)
    except ValueError:
        raise AuthorizationError("Unknown role")
    if role not in roles:
        raise AuthorizationError(
            f"{' or '.join(r.value for r in roles).capitalize()} access required"
        )
    return identity


def require_student(identity: Identity = Depends(get_current_identity)) -> Identity:
    return _require_roles(identity, UserRole.STUDENT)


def require_reviewer(identity: Identity = Depends(get_current_identity)) -> Identity:
    return _require_roles(identity, UserRole.ADVISOR, UserRole.ADMIN)


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    return _require_roles(identity, UserRole.ADMIN)
