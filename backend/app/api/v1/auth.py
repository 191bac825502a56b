"""Authentication routes"""

from fastapi import APIRouter, Depends, status, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from app.core.database import get_db
from app.schemas.user import (
    UserLogin,
    UserRegister,
    LoginResponse,
    TokenResponse,
    UserResponse,
    RefreshTokenRequest,
    ActiveSessionsResponse,
)
from app.schemas.response import APIResponse
from app.services.session_manager import session_manager
from app.services.user_service import user_service
from app.api.deps import security, get_access_token, get_current_user
from app.models.user import User

router = APIRouter()


def _client_meta(request: Request):
    """Client IP and User-Agent for refresh-token bookkeeping"""
    client_ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    return client_ip, user_agent


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: UserLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - authenticate and open a new session

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Access/refresh token pair and user info
    """
    client_ip, user_agent = _client_meta(request)
    user, pair = session_manager.login(
        db, credentials.email, credentials.password, client_ip, user_agent
    )

    return LoginResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
        user=UserResponse.model_validate(user)
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: UserRegister,
    db: Session = Depends(get_db)
):
    """
    Self-registration for students

    Args:
        data: Name, email, password and student number
        db: Database session

    Returns:
        The new student account; log in separately to get tokens
    """
    user = user_service.register(db, data)
    return UserResponse.model_validate(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Rotate a refresh token into a new pair"""
    client_ip, user_agent = _client_meta(request)
    pair = session_manager.refresh(db, req.refresh_token, client_ip, user_agent)

    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
    )


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
):
    """
    Logout endpoint - revoke every refresh token of the caller

    Always succeeds; a failed revocation is reported in the X-Warning header.
    """
    token = credentials.credentials if credentials else None
    revoked = session_manager.logout(db, token)
    if not revoked:
        response.headers["X-Warning"] = "Refresh tokens could not be revoked"

    return {
        "success": True,
        "message": "Logged out successfully",
        "refresh_tokens_revoked": revoked
    }


@router.post("/logout-all", status_code=status.HTTP_200_OK)
def logout_all(
    token: str = Depends(get_access_token),
    db: Session = Depends(get_db)
):
    """Revoke all sessions, failing loudly"""
    revoked = session_manager.logout_all(db, token)
    return {
        "success": True,
        "message": "All sessions revoked",
        "revoked_count": revoked
    }


@router.get("/sessions", response_model=ActiveSessionsResponse)
def list_sessions(
    token: str = Depends(get_access_token),
    db: Session = Depends(get_db)
):
    """Active refresh tokens of the caller, newest first"""
    sessions = session_manager.list_active_sessions(db, token)
    return ActiveSessionsResponse(active_tokens=sessions, total=len(sessions))


@router.post("/revoke", status_code=status.HTTP_200_OK)
def revoke_token(
    req: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Revoke a single refresh token"""
    session_manager.revoke_session(db, req.refresh_token)
    return APIResponse(message="Refresh token revoked")


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Current user information"""
    return UserResponse.model_validate(current_user)
