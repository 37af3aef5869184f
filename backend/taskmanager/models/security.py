"""Security-related persistence models."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from taskmanager.core.database import Base


class SessionToken(Base):
    """One issued access/refresh pair and the device it was issued to."""

    __tablename__ = "session_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    access_token = Column(String(1024), unique=True, nullable=False, index=True)
    refresh_token = Column(String(1024), unique=True, nullable=False, index=True)
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)
    device_type = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    refresh_expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_used = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="tokens")

    __table_args__ = (
        Index("idx_session_tokens_user_expires", "user_id", "expires_at"),
    )

    def __repr__(self):
        return f"<SessionToken(id={self.id}, user_id={self.user_id}, device_type='{self.device_type}')>"

    def is_live(self, now: datetime) -> bool:
        # is_active is None only on a record that has not been flushed yet
        return self.is_active is not False and self.expires_at > now

    @staticmethod
    def age_key(record: "SessionToken"):
        return (record.created_at or datetime.utcnow(), record.id or 0)

    @property
    def device_info(self) -> dict:
        return {
            "user_agent": self.user_agent,
            "ip": self.ip_address,
            "device_type": self.device_type,
        }
