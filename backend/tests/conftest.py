import os
import tempfile

# Environment must be in place before taskmanager.config is imported
_log_dir = tempfile.mkdtemp(prefix="taskmanager_test_")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-not-for-production-0001")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-not-for-production-0002")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RUN_TOKEN_SWEEPER", "false")
os.environ.setdefault("TOKEN_SWEEP_SAMPLE_RATE", "0")
os.environ.setdefault("DB_INIT_MODE", "create_all")
os.environ.setdefault("LOG_FILE", os.path.join(_log_dir, "test.log"))

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from taskmanager.config import get_settings  # noqa: E402
from taskmanager.core.database import Base  # noqa: E402
from taskmanager.services.auth_service import AuthService  # noqa: E402
from taskmanager.services.token_service import ClientDevice  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return get_settings().model_copy()


@pytest.fixture
def auth_service(settings):
    return AuthService(settings)


@pytest.fixture
def device():
    return ClientDevice(user_agent="pytest-agent/1.0", ip_address="127.0.0.1")


@pytest.fixture
def registered(db, auth_service, device):
    """A registered user and the token pair issued at registration"""
    return auth_service.register(db, "Alice", "Alice@Example.com", "Secret123", device)
