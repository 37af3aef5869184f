"""API dependencies - services and bearer-token authentication"""

import logging
import random
from datetime import datetime
from functools import lru_cache
from typing import Optional, Tuple

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, sessionmaker

from taskmanager.config import Settings, get_settings
from taskmanager.core.database import get_db, get_session_factory
from taskmanager.core.exceptions import AuthenticationError, TokenExpiredError
from taskmanager.core.security import TokenCodec
from taskmanager.models.security import SessionToken
from taskmanager.models.user import User
from taskmanager.services.auth_service import AuthService
from taskmanager.services.token_service import ClientDevice
from taskmanager.services.token_sweeper import token_sweeper

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme; a missing header is reported as 401 below
security = HTTPBearer(auto_error=False)


class RequestAuthenticator:
    """Validate a bearer token against the codec and the session ledger."""

    def __init__(self, settings: Settings, codec: Optional[TokenCodec] = None) -> None:
        self.settings = settings
        self.codec = codec or TokenCodec(settings)

    def authenticate(self, db: Session, token: Optional[str]) -> Tuple[User, SessionToken]:
        """
        Resolve the user and ledger record behind an access token

        Args:
            db: Database session
            token: Raw bearer token (may be None)

        Returns:
            (user, session record)

        Raises:
            AuthenticationError: Missing, invalid, expired or revoked token
        """
        if not token:
            raise AuthenticationError("Access token required")

        # TokenExpiredError / TokenInvalidError carry distinct messages
        payload = self.codec.verify_access_token(token)

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise AuthenticationError("Invalid token payload")

        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            raise AuthenticationError("Invalid token or user not found")

        # A signature-valid token without a ledger entry has been revoked
        record = user.find_token(token)
        if record is None:
            logger.warning("Rejected revoked or expired token for user %s", user.id)
            raise AuthenticationError("Token has been revoked or expired")

        if record.expires_at <= datetime.utcnow():
            user.remove_token(token)
            raise TokenExpiredError()

        return user, record

    def should_sweep(self) -> bool:
        return random.random() < self.settings.TOKEN_SWEEP_SAMPLE_RATE


@lru_cache()
def get_auth_service() -> AuthService:
    """Application-wide AuthService built from the startup settings"""
    return AuthService(get_settings())


@lru_cache()
def get_authenticator() -> RequestAuthenticator:
    return RequestAuthenticator(get_settings(), get_auth_service().codec)


def get_client_device(request: Request) -> ClientDevice:
    """Describe the calling device from request headers"""
    return ClientDevice.from_headers(
        request.headers.get("user-agent"),
        request.client.host if request.client else None,
    )


async def get_current_user(
    request: Request,
    background_tasks: BackgroundTasks,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    authenticator: RequestAuthenticator = Depends(get_authenticator),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> User:
    """
    Get current authenticated user from the bearer token

    The user and raw token are also attached to `request.state`
    (`user`, `current_token`).

    Raises:
        AuthenticationError: If token is missing, invalid, expired or revoked
    """
    token = credentials.credentials if credentials else None
    user, _record = authenticator.authenticate(db, token)

    if authenticator.should_sweep():
        background_tasks.add_task(token_sweeper.sweep_user, user.id, session_factory)

    request.state.user = user
    request.state.current_token = token
    return user


def get_current_token(request: Request, current_user: User = Depends(get_current_user)) -> str:
    """Raw bearer token of the authenticated request"""
    return request.state.current_token
