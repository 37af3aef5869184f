from datetime import datetime, timedelta

from taskmanager.models.security import SessionToken
from taskmanager.models.user import User
from taskmanager.services.token_sweeper import TokenSweeper


def _seed(session_factory):
    db = session_factory()
    try:
        user = User(name="Sweep", email="sweep@example.com", password_hash="hash", is_active=True)
        now = datetime.utcnow()
        for label, expires_at, active in (
            ("live", now + timedelta(days=1), True),
            ("stale", now - timedelta(seconds=1), True),
            ("revoked", now + timedelta(days=1), False),
        ):
            user.tokens.append(
                SessionToken(
                    access_token=f"access-{label}",
                    refresh_token=f"refresh-{label}",
                    is_active=active,
                    expires_at=expires_at,
                    refresh_expires_at=now + timedelta(days=30),
                    created_at=now,
                )
            )
        db.add(user)
        db.commit()
        return user.id
    finally:
        db.close()


def _remaining(session_factory):
    db = session_factory()
    try:
        return sorted(r.access_token for r in db.query(SessionToken).all())
    finally:
        db.close()


def test_sweep_once_deletes_expired_and_inactive(session_factory):
    _seed(session_factory)
    sweeper = TokenSweeper(session_factory=session_factory, interval_seconds=60)

    assert sweeper.sweep_once() == 2
    assert _remaining(session_factory) == ["access-live"]
    assert sweeper.status()["removed_count"] == 2
    assert sweeper.sweep_once() == 0


def test_sweep_user_cleans_one_ledger(session_factory):
    user_id = _seed(session_factory)
    sweeper = TokenSweeper(session_factory=session_factory)

    assert sweeper.sweep_user(user_id) == 2
    assert sweeper.sweep_user(user_id + 1) == 0
    assert _remaining(session_factory) == ["access-live"]


class _BrokenSession:
    def __init__(self):
        self.rolled_back = False
        self.closed = False

    def query(self, *args, **kwargs):
        raise RuntimeError("database unavailable")

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


def test_sweep_failure_is_logged_and_reported_as_zero(caplog):
    broken = _BrokenSession()
    sweeper = TokenSweeper(session_factory=lambda: broken)

    with caplog.at_level("ERROR"):
        assert sweeper.sweep_once() == 0
        assert sweeper.sweep_user(1) == 0

    assert broken.rolled_back and broken.closed
    assert "Token sweep failed" in caplog.text
    assert "Token cleanup failed for user 1" in caplog.text


def test_start_and_stop(session_factory):
    sweeper = TokenSweeper(session_factory=session_factory, interval_seconds=0.1)
    assert sweeper.status()["running"] is False

    sweeper.start()
    try:
        assert sweeper.is_running()
        sweeper.start()
        assert sweeper.is_running()
    finally:
        sweeper.stop()

    assert not sweeper.is_running()
    assert sweeper.status()["last_heartbeat"] > 0


def test_sweep_user_uses_given_session_factory(session_factory):
    user_id = _seed(session_factory)

    def _unusable():
        raise AssertionError("default store must not be used")

    sweeper = TokenSweeper(session_factory=_unusable)

    assert sweeper.sweep_user(user_id, session_factory) == 2
    assert _remaining(session_factory) == ["access-live"]
