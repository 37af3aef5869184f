"""Security utilities - JWT codec, password hashing"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
import secrets

from taskmanager.config import Settings
from taskmanager.core.exceptions import ConfigurationError, TokenExpiredError, TokenInvalidError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def get_password_hash(password: str, rounds: int = 12) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password
        rounds: bcrypt cost factor

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=rounds)
    ).decode('utf-8')


@dataclass
class TokenPair:
    """Freshly signed access/refresh tokens with their expiry instants"""
    access_token: str
    refresh_token: str
    expires_at: datetime
    refresh_expires_at: datetime


class TokenCodec:
    """Sign and verify access/refresh JWTs with independent secrets."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _secret(self, token_type: str) -> str:
        if token_type == ACCESS_TOKEN_TYPE:
            secret, name = self.settings.ACCESS_TOKEN_SECRET, "ACCESS_TOKEN_SECRET"
        else:
            secret, name = self.settings.REFRESH_TOKEN_SECRET, "REFRESH_TOKEN_SECRET"
        if not secret:
            raise ConfigurationError(f"{name} is not defined in environment variables")
        return secret

    def access_expiry(self, now: Optional[datetime] = None) -> datetime:
        return (now or datetime.utcnow()) + timedelta(days=self.settings.ACCESS_TOKEN_EXPIRE_DAYS)

    def refresh_expiry(self, now: Optional[datetime] = None) -> datetime:
        return (now or datetime.utcnow()) + timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def _encode(self, subject: Any, token_type: str, expires_at: datetime) -> str:
        secret = self._secret(token_type)
        to_encode = {
            "sub": str(subject),
            "iss": self.settings.JWT_ISSUER,
            "aud": self.settings.JWT_AUDIENCE,
            "exp": expires_at,
            "iat": datetime.utcnow(),
            "jti": secrets.token_urlsafe(16),  # Unique token ID
            "typ": token_type,
        }
        return jwt.encode(to_encode, secret, algorithm=self.settings.ALGORITHM)

    def _decode(self, token: str, token_type: str) -> Dict[str, Any]:
        secret = self._secret(token_type)
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.ALGORITHM],
                audience=self.settings.JWT_AUDIENCE,
                issuer=self.settings.JWT_ISSUER,
            )
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise TokenInvalidError()

        if payload.get("typ") != token_type or not payload.get("sub"):
            raise TokenInvalidError("Invalid token payload")
        return payload

    def issue_access_token(self, subject: Any, expires_at: Optional[datetime] = None) -> str:
        """
        Create a signed access token

        Args:
            subject: User identifier placed in the `sub` claim
            expires_at: Explicit expiry, defaults to ACCESS_TOKEN_EXPIRE_DAYS from now

        Returns:
            str: Encoded JWT
        """
        return self._encode(subject, ACCESS_TOKEN_TYPE, expires_at or self.access_expiry())

    def issue_refresh_token(self, subject: Any, expires_at: Optional[datetime] = None) -> str:
        """Create a signed refresh token (REFRESH_TOKEN_EXPIRE_DAYS by default)"""
        return self._encode(subject, REFRESH_TOKEN_TYPE, expires_at or self.refresh_expiry())

    def issue_token_pair(self, subject: Any) -> TokenPair:
        now = datetime.utcnow()
        expires_at = self.access_expiry(now)
        refresh_expires_at = self.refresh_expiry(now)
        return TokenPair(
            access_token=self.issue_access_token(subject, expires_at),
            refresh_token=self.issue_refresh_token(subject, refresh_expires_at),
            expires_at=expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify an access token

        Raises:
            TokenExpiredError: Token is past its `exp`
            TokenInvalidError: Bad signature, claims or token type
        """
        return self._decode(token, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        """Decode and verify a refresh token (see verify_access_token)"""
        return self._decode(token, REFRESH_TOKEN_TYPE)
