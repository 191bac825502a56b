"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password"""
    def __init__(self):
        super().__init__("Invalid email or password")


class AccountInactiveError(AuthenticationError):
    """Credentials are correct but the account is disabled"""
    def __init__(self):
        super().__init__("Account is inactive")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""
    def __init__(self):
        super().__init__("Token has expired")


class TokenInvalidError(AuthenticationError):
    """JWT signature or issuer does not verify"""
    def __init__(self):
        super().__init__("Invalid token")


class TokenMalformedError(AuthenticationError):
    """JWT cannot be decoded or is missing required claims"""
    def __init__(self):
        super().__init__("Malformed token")


class WrongTokenTypeError(AuthenticationError):
    """Access token presented where a refresh token is expected, or vice versa"""
    def __init__(self, expected: str):
        super().__init__(f"Invalid token type: expected {expected} token")
        self.expected = expected


class InvalidRefreshTokenError(AuthenticationError):
    """Generic refresh failure exposed to clients"""
    def __init__(self):
        super().__init__("Invalid refresh token")


class RefreshTokenError(AuthenticationError):
    """Base for refresh-token storage state failures"""


class RefreshTokenNotFoundError(RefreshTokenError):
    def __init__(self):
        super().__init__("Refresh token not found")


class RefreshTokenRevokedError(RefreshTokenError):
    def __init__(self):
        super().__init__("Refresh token has been revoked")


class RefreshTokenExpiredError(RefreshTokenError):
    def __init__(self):
        super().__init__("Refresh token has expired")


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


# Workflow Errors
class InvalidStateError(BaseAPIException):
    """Operation not allowed from the record's current state"""
    def __init__(self, message: str = "Operation not allowed in the current state"):
        super().__init__(message, status_code=409)


# System Errors
class PersistenceError(BaseAPIException):
    """Database operation failed"""
    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message, status_code=500)


class FileSystemError(BaseAPIException):
    """File system operation failed"""
    def __init__(self, message: str = "File system operation failed"):
        super().__init__(message, status_code=500)
