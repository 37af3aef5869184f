"""Session token issuance, rotation and expiry sweeps."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from taskmanager.config import Settings
from taskmanager.core.exceptions import (
    AuthenticationError,
    InvalidRefreshTokenError,
    RefreshTokenExpiredError,
    RefreshTokenNotFoundError,
)
from taskmanager.core.security import TokenCodec, TokenPair
from taskmanager.models.security import SessionToken
from taskmanager.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class ClientDevice:
    """Where a session was issued from"""
    user_agent: str = "Unknown"
    ip_address: str = "Unknown"

    @property
    def device_type(self) -> str:
        return "Mobile" if "Mobile" in (self.user_agent or "") else "Desktop"

    @classmethod
    def from_headers(cls, user_agent: Optional[str], ip_address: Optional[str]) -> "ClientDevice":
        return cls(user_agent=user_agent or "Unknown", ip_address=ip_address or "Unknown")


class TokenService:
    """Manage the per-user session ledger lifecycle."""

    def __init__(self, settings: Settings, codec: TokenCodec) -> None:
        self.settings = settings
        self.codec = codec

    def issue_session(self, user: User, device: ClientDevice) -> TokenPair:
        """Sign a fresh access/refresh pair and append it to the user's ledger."""
        pair = self.codec.issue_token_pair(user.id)
        record = SessionToken(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            user_agent=device.user_agent[:512],
            ip_address=device.ip_address[:64],
            device_type=device.device_type,
            is_active=True,
            expires_at=pair.expires_at,
            refresh_expires_at=pair.refresh_expires_at,
            created_at=datetime.utcnow(),
        )
        evicted = user.add_token(record, self.settings.MAX_CONCURRENT_SESSIONS)
        if evicted:
            logger.info("Evicted %d oldest session(s) for user %s (session limit reached)", len(evicted), user.id)
        return pair

    def rotate_refresh_token(
        self, db: Session, refresh_token: str, device: ClientDevice
    ) -> Tuple[User, TokenPair]:
        """
        Exchange a refresh token for a brand-new pair.

        Each refresh token is single-use: the record it belongs to is removed
        before the new pair is issued.
        """
        try:
            payload = self.codec.verify_refresh_token(refresh_token)
        except AuthenticationError:
            raise InvalidRefreshTokenError()

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise InvalidRefreshTokenError()

        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            raise InvalidRefreshTokenError("Invalid refresh token")

        record = user.find_token(refresh_token)
        if record is None:
            logger.warning("Refresh attempted with unknown or revoked token for user %s", user.id)
            raise RefreshTokenNotFoundError()

        if record.refresh_expires_at <= datetime.utcnow():
            user.remove_token(refresh_token)
            raise RefreshTokenExpiredError()

        user.remove_token(refresh_token)
        pair = self.issue_session(user, device)
        logger.info("Rotated refresh token for user %s", user.id)
        return user, pair

    @staticmethod
    def sweep_expired(db: Session, now: Optional[datetime] = None) -> int:
        """Delete every inactive or expired session record across all users."""
        now = now or datetime.utcnow()
        removed = (
            db.query(SessionToken)
            .filter(or_(SessionToken.is_active.is_(False), SessionToken.expires_at <= now))
            .delete(synchronize_session=False)
        )
        db.commit()
        return removed

    @staticmethod
    def sweep_user(db: Session, user_id: int) -> int:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return 0
        return user.clean_expired_tokens()
