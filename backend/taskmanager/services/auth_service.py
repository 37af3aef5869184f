"""Authentication service - register, login, refresh, logout and sessions"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional
import logging

from prometheus_client import Counter
from sqlalchemy.orm import Session

from taskmanager.config import Settings
from taskmanager.core.exceptions import BaseAPIException, ResourceNotFoundError, ValidationError
from taskmanager.core.security import TokenCodec, TokenPair
from taskmanager.models.user import User
from taskmanager.services.token_service import ClientDevice, TokenService
from taskmanager.services.user_service import UserService

logger = logging.getLogger(__name__)

AUTH_EVENTS = Counter(
    "taskmanager_auth_events_total",
    "Authentication events",
    ["event", "outcome"],
)


@dataclass
class AuthResult:
    """Outcome of register/login/refresh"""
    tokens: TokenPair
    user: Optional[User] = None


class AuthService:
    """Orchestrates the credential store, token codec and session ledger."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.codec = TokenCodec(settings)
        self.users = UserService(settings)
        self.tokens = TokenService(settings, self.codec)

    @staticmethod
    def _record(event: str, outcome: str) -> None:
        AUTH_EVENTS.labels(event, outcome).inc()

    def register(self, db: Session, name: str, email: str, password: str, device: ClientDevice) -> AuthResult:
        try:
            user = self.users.create_user(db, name, email, password)
            pair = self.tokens.issue_session(user, device)
        except Exception:
            # No account without its first session
            db.rollback()
            self._record("register", "failure")
            raise
        self._record("register", "success")
        logger.info("Registered user %s", user.id)
        return AuthResult(tokens=pair, user=user)

    def login(self, db: Session, email: str, password: str, device: ClientDevice) -> AuthResult:
        try:
            user = self.users.authenticate_user(db, email, password)
            user.clean_expired_tokens()
            pair = self.tokens.issue_session(user, device)
        except BaseAPIException as exc:
            self._record("login", type(exc).__name__)
            raise
        self._record("login", "success")
        return AuthResult(tokens=pair, user=user)

    def refresh(self, db: Session, refresh_token: Optional[str], device: ClientDevice) -> AuthResult:
        if not refresh_token:
            raise ValidationError("Refresh token required")
        try:
            user, pair = self.tokens.rotate_refresh_token(db, refresh_token, device)
        except BaseAPIException as exc:
            self._record("refresh", type(exc).__name__)
            raise
        self._record("refresh", "success")
        return AuthResult(tokens=pair, user=user)

    def logout(self, user: User, access_token: str) -> int:
        removed = user.remove_token(access_token)
        self._record("logout", "success")
        logger.info("User %s logged out (%d session(s) removed)", user.id, removed)
        return removed

    def logout_all(self, user: User) -> int:
        removed = user.remove_all_tokens()
        self._record("logout_all", "success")
        logger.info("User %s logged out from all devices (%d session(s) removed)", user.id, removed)
        return removed

    @staticmethod
    def list_sessions(user: User, current_token: Optional[str] = None) -> List[dict]:
        """Project the live ledger without exposing token values."""
        sessions = []
        for record in user.active_tokens():
            sessions.append({
                "id": record.id,
                "device_info": record.device_info,
                "created_at": record.created_at,
                "last_used": record.last_used or record.created_at,
                "expires_at": record.expires_at,
                "refresh_expires_at": record.refresh_expires_at,
                "is_current": current_token is not None and record.access_token == current_token,
            })
        return sessions

    def revoke_session(self, user: User, session_id: int) -> None:
        if not user.remove_session(session_id):
            raise ResourceNotFoundError("Session")
        self._record("revoke_session", "success")
        logger.info("User %s revoked session %s", user.id, session_id)

    @staticmethod
    def touch(user: User, token: str) -> None:
        user.update_token_activity(token)
