"""Security utilities - JWT, password hashing, authentication"""

import calendar
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import bcrypt
from jose import JWTError, jwt

from app.config import settings
from app.core.clock import Clock, utcnow
from app.core.exceptions import (
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    TokenMalformedError,
    ValidationError,
    WrongTokenTypeError,
)
from app.models.enums import UserRole


ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only considers the first 72 bytes of input
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Salted one-way password hashing backed by bcrypt"""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt

        Args:
            password: Plain text password

        Returns:
            str: Hashed password (salt embedded)
        """
        raw = password.encode('utf-8')
        if not raw:
            raise ValidationError("Password is required")
        if len(raw) > _BCRYPT_MAX_BYTES:
            raise ValidationError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes")
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self.rounds)).decode('utf-8')

    def matches(self, password: str, hashed_password: str) -> bool:
        raw = password.encode('utf-8')
        if not raw or len(raw) > _BCRYPT_MAX_BYTES:
            return False
        try:
            return bcrypt.checkpw(raw, hashed_password.encode('utf-8'))
        except ValueError:
            # Malformed stored hash
            return False

    def verify(self, hashed_password: str, password: str) -> None:
        """
        Verify a password against its hash

        Raises:
            InvalidCredentialsError: If the password does not match
        """
        if not self.matches(password, hashed_password):
            raise InvalidCredentialsError()


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a bearer token, used as the storage key"""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


@dataclass(frozen=True)
class TokenClaims:
    """Verified JWT claims"""

    user_id: int
    email: str
    role: UserRole
    token_type: str
    issued_at: datetime
    expires_at: datetime
    jti: str


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh token pair handed to clients"""

    access_token: str
    refresh_token: str
    refresh_expires_at: datetime
    expires_in: int
    token_type: str = "Bearer"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller resolved from a valid access token"""

    user_id: int
    email: str
    role: UserRole


class TokenSigner:
    """Create and verify signed access/refresh tokens.

    Validity is decided by signature, issuer, expiry and the ``token_type``
    claim alone; nothing here touches the database. The signing key is fixed
    for the lifetime of the signer, so changing it invalidates every token
    issued before.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        issuer: str = "achievement-reporting-api",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Clock = utcnow,
    ):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._issuer = issuer
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @staticmethod
    def _timestamp(dt: datetime) -> int:
        return calendar.timegm(dt.utctimetuple())

    def _issue(self, user_id: int, email: str, role: UserRole, token_type: str, ttl: timedelta) -> str:
        now = self._clock()
        to_encode: Dict[str, Any] = {
            "sub": str(user_id),
            "user_id": user_id,
            "email": email,
            "role": UserRole(role).value,
            "token_type": token_type,
            "iss": self._issuer,
            "iat": self._timestamp(now),
            "exp": self._timestamp(now + ttl),
            "jti": secrets.token_urlsafe(32),  # Unique token ID
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def issue_access(self, user_id: int, email: str, role: UserRole) -> str:
        return self._issue(user_id, email, role, ACCESS_TOKEN_TYPE, self.access_ttl)

    def issue_refresh(self, user_id: int, email: str, role: UserRole) -> str:
        return self._issue(user_id, email, role, REFRESH_TOKEN_TYPE, self.refresh_ttl)

    def issue_pair(self, user_id: int, email: str, role: UserRole) -> TokenPair:
        """
        Create both access and refresh tokens

        Returns:
            TokenPair: tokens plus the refresh expiry the caller must persist
        """
        issued_at = self._clock()
        access_token = self.issue_access(user_id, email, role)
        refresh_token = self.issue_refresh(user_id, email, role)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_expires_at=issued_at + self.refresh_ttl,
            expires_in=int(self.access_ttl.total_seconds()),
        )

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and verify a token of either type

        Raises:
            TokenMalformedError: token cannot be parsed or lacks required claims
            TokenInvalidError: signature or issuer check failed
            TokenExpiredError: token is past its expiry
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError:
            raise TokenMalformedError()

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                # Expiry is checked below against the injected clock
                options={"verify_exp": False},
            )
        except JWTError:
            raise TokenInvalidError()

        claims = self._parse_claims(payload)
        if self._timestamp(self._clock()) >= self._timestamp(claims.expires_at):
            raise TokenExpiredError()
        return claims

    def verify_access(self, token: str) -> TokenClaims:
        claims = self.verify(token)
        if claims.token_type != ACCESS_TOKEN_TYPE:
            raise WrongTokenTypeError(ACCESS_TOKEN_TYPE)
        return claims

    def verify_refresh(self, token: str) -> TokenClaims:
        claims = self.verify(token)
        if claims.token_type != REFRESH_TOKEN_TYPE:
            raise WrongTokenTypeError(REFRESH_TOKEN_TYPE)
        return claims

    @staticmethod
    def _parse_claims(payload: Dict[str, Any]) -> TokenClaims:
        user_id = payload.get("user_id")
        email = payload.get("email")
        token_type = payload.get("token_type")
        iat = payload.get("iat")
        exp = payload.get("exp")
        jti = payload.get("jti")

        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise TokenMalformedError()
        if not isinstance(email, str) or not isinstance(jti, str):
            raise TokenMalformedError()
        if token_type not in (ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE):
            raise TokenMalformedError()
        if not isinstance(iat, int) or not isinstance(exp, int):
            raise TokenMalformedError()
        try:
            role = UserRole(payload.get("role"))
        except ValueError:
            raise TokenMalformedError()

        return TokenClaims(
            user_id=user_id,
            email=email,
            role=role,
            token_type=token_type,
            issued_at=datetime.fromtimestamp(iat, timezone.utc).replace(tzinfo=None),
            expires_at=datetime.fromtimestamp(exp, timezone.utc).replace(tzinfo=None),
            jti=jti,
        )


def identity_from_claims(claims: TokenClaims) -> Identity:
    return Identity(user_id=claims.user_id, email=claims.email, role=claims.role)


password_hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)


token_signer = TokenSigner(
    secret_key=settings.SECRET_KEY,
    algorithm=settings.ALGORITHM,
    issuer=settings.TOKEN_ISSUER,
    access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
)
