"""Background sweeper that deletes expired session tokens."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from taskmanager.config import settings
from taskmanager.core.database import SessionLocal
from taskmanager.services.token_service import TokenService

logger = logging.getLogger(__name__)


class TokenSweeper:
    """Periodic, DB-backed cleanup of inactive or expired ledger records."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._removed_count: int = 0
        self._lock = threading.Lock()

    @property
    def interval(self) -> float:
        value = self._interval if self._interval is not None else settings.TOKEN_SWEEP_INTERVAL_SECONDS
        return max(0.1, value)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="token-sweeper", daemon=True)
        self._thread.start()
        logger.info("Token sweeper started (interval %.1fs)", self.interval)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Token sweeper stopped")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "last_heartbeat": self._heartbeat,
            "removed_count": self._removed_count,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.sweep_once()
            self._heartbeat = time.time()
            self._stop_event.wait(self.interval)

    def sweep_once(self) -> int:
        """Run one sweep; failures are logged and reported as zero removals."""
        db = self._session_factory()
        try:
            removed = TokenService.sweep_expired(db)
        except Exception:
            logger.exception("Token sweep failed")
            db.rollback()
            return 0
        finally:
            db.close()

        with self._lock:
            self._removed_count += removed
        if removed:
            logger.info("Token sweep removed %d expired session(s)", removed)
        return removed

    def sweep_user(self, user_id: int, session_factory: Optional[Callable[[], Session]] = None) -> int:
        """
        Clean one user's ledger; used as a fire-and-forget request background task.

        `session_factory` overrides the sweeper's own store so the cleanup hits
        the same database the request was served from.
        """
        db = (session_factory or self._session_factory)()
        try:
            removed = TokenService.sweep_user(db, user_id)
        except Exception:
            logger.exception("Token cleanup failed for user %s", user_id)
            db.rollback()
            return 0
        finally:
            db.close()

        with self._lock:
            self._removed_count += removed
        return removed


token_sweeper = TokenSweeper()
