"""User model"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import object_session, relationship
from taskmanager.core.database import Base
from taskmanager.models.security import SessionToken


class User(Base):
    """User account plus its ledger of issued session tokens"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login = Column(DateTime)
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime)

    # Relationships
    tokens = relationship(
        "SessionToken",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="SessionToken.created_at",
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"

    @property
    def is_locked(self) -> bool:
        return bool(self.locked_until and self.locked_until > datetime.utcnow())

    def to_dict(self):
        """Public representation (no password, ledger or lockout counters)"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None
        }

    # Session token ledger

    def _persist(self) -> None:
        db = object_session(self)
        if db is not None:
            db.commit()

    def _token_index(self) -> Tuple[Dict[str, SessionToken], Dict[str, SessionToken]]:
        # Both maps are derived from the same owned collection, so a removal
        # from `tokens` invalidates both at once.
        by_access: Dict[str, SessionToken] = {}
        by_refresh: Dict[str, SessionToken] = {}
        for record in self.tokens:
            by_access[record.access_token] = record
            by_refresh[record.refresh_token] = record
        return by_access, by_refresh

    def _prune(self, now: datetime) -> int:
        live = [record for record in self.tokens if record.is_live(now)]
        removed = len(self.tokens) - len(live)
        if removed:
            self.tokens = live
        return removed

    def active_tokens(self, now: Optional[datetime] = None) -> List[SessionToken]:
        """Live ledger records, oldest first"""
        now = now or datetime.utcnow()
        return sorted(
            (record for record in self.tokens if record.is_live(now)),
            key=SessionToken.age_key,
        )

    def add_token(self, record: SessionToken, max_sessions: int, now: Optional[datetime] = None) -> List[SessionToken]:
        """
        Append a session record, bounding the ledger at `max_sessions`.

        Inactive and expired records are dropped first; if the ledger is
        still full the oldest-created records are evicted (FIFO).

        Returns:
            The evicted records
        """
        now = now or datetime.utcnow()
        self._prune(now)

        evicted: List[SessionToken] = []
        remaining = sorted(self.tokens, key=SessionToken.age_key)
        while remaining and len(remaining) >= max(1, max_sessions):
            evicted.append(remaining.pop(0))
        if evicted:
            self.tokens = remaining

        self.tokens.append(record)
        self._persist()
        return evicted

    def remove_token(self, token_value: str) -> int:
        """Remove every record whose access or refresh token equals `token_value`"""
        kept = [
            record for record in self.tokens
            if record.access_token != token_value and record.refresh_token != token_value
        ]
        removed = len(self.tokens) - len(kept)
        if removed:
            self.tokens = kept
            self._persist()
        return removed

    def remove_all_tokens(self) -> int:
        removed = len(self.tokens)
        self.tokens = []
        self._persist()
        return removed

    def remove_session(self, session_id: int) -> bool:
        kept = [record for record in self.tokens if record.id != session_id]
        if len(kept) == len(self.tokens):
            return False
        self.tokens = kept
        self._persist()
        return True

    def find_token(self, token_value: str, now: Optional[datetime] = None) -> Optional[SessionToken]:
        """Return the live record whose access or refresh token equals `token_value`"""
        now = now or datetime.utcnow()
        by_access, by_refresh = self._token_index()
        record = by_access.get(token_value) or by_refresh.get(token_value)
        if record is None or not record.is_live(now):
            return None
        return record

    def update_token_activity(self, token_value: str) -> None:
        record = self.find_token(token_value)
        if record is None:
            return
        record.last_used = datetime.utcnow()
        self._persist()

    def clean_expired_tokens(self, now: Optional[datetime] = None) -> int:
        removed = self._prune(now or datetime.utcnow())
        if removed:
            self._persist()
        return removed
