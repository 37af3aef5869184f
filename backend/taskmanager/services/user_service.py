"""User service - credential store and login lockout"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, timedelta
from taskmanager.config import Settings
from taskmanager.models.user import User
from taskmanager.core.security import get_password_hash, verify_password
from taskmanager.core.exceptions import (
    InvalidCredentialsError,
    AccountLockedError,
    DuplicateEmailError,
)
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for user lookup, creation and password authentication"""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._dummy_hash: Optional[str] = None

    def _timing_hash(self) -> str:
        # Compared against on unknown emails so the response time matches a wrong password
        if self._dummy_hash is None:
            self._dummy_hash = get_password_hash("dummy-password", self.settings.BCRYPT_ROUNDS)
        return self._dummy_hash

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by (case-insensitive) email"""
        return db.query(User).filter(User.email == email.strip().lower()).first()

    def create_user(self, db: Session, name: str, email: str, password: str) -> User:
        """
        Create new user

        Args:
            db: Database session
            name: Display name
            email: Email address, stored lowercase
            password: Plain text password, hashed before storage

        Returns:
            Created (flushed, not yet committed) user

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        email = email.strip().lower()
        if self.get_user_by_email(db, email):
            raise DuplicateEmailError()

        user = User(
            name=name.strip(),
            email=email,
            password_hash=get_password_hash(password, self.settings.BCRYPT_ROUNDS),
            is_active=True,
            failed_login_attempts=0,
        )
        db.add(user)
        try:
            # Flushed only; the caller commits together with the first session
            db.flush()
        except IntegrityError:
            db.rollback()
            raise DuplicateEmailError()

        logger.info(f"Created user: id={user.id}")
        return user

    def _register_failed_attempt(self, db: Session, user: User) -> None:
        now = datetime.utcnow()
        if user.locked_until and user.locked_until <= now:
            # Previous lock has lapsed: start counting again
            user.locked_until = None
            user.failed_login_attempts = 1
        else:
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= self.settings.MAX_LOGIN_ATTEMPTS:
                user.locked_until = now + timedelta(minutes=self.settings.LOCK_TIME_MINUTES)
                logger.warning(f"Account locked for user id={user.id} until {user.locked_until.isoformat()}")
        db.commit()

    def authenticate_user(self, db: Session, email: str, password: str) -> User:
        """
        Authenticate user with account lockout protection

        Args:
            db: Database session
            email: Email address
            password: Password

        Returns:
            Authenticated user

        Raises:
            InvalidCredentialsError: Unknown email, inactive account or wrong password
            AccountLockedError: Too many recent failures
        """
        user = self.get_user_by_email(db, email)

        if not user or not user.is_active:
            verify_password(password, self._timing_hash())
            raise InvalidCredentialsError()

        if user.is_locked:
            raise AccountLockedError(user.locked_until.isoformat())

        if not verify_password(password, user.password_hash):
            self._register_failed_attempt(db, user)
            raise InvalidCredentialsError()

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = datetime.utcnow()
        db.commit()

        logger.info(f"User authenticated: id={user.id}")
        return user
