"""Database models"""

from taskmanager.models.security import SessionToken
from taskmanager.models.user import User

__all__ = ["User", "SessionToken"]
