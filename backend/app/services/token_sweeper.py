"""Background housekeeping that deletes expired refresh-token records."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from prometheus_client import Counter
from sqlalchemy.orm import Session

from app.config import settings
from app.core.database import SessionLocal
from app.core.exceptions import PersistenceError
from app.services.refresh_token_store import RefreshTokenStore, refresh_token_store

logger = logging.getLogger(__name__)

SWEPT_TOKENS = Counter(
    "achievements_refresh_tokens_swept_total",
    "Expired refresh-token records deleted by the sweeper",
)


class TokenSweeper:
    """Periodic cleanup thread for the refresh-token table."""

    def __init__(
        self,
        store: RefreshTokenStore = refresh_token_store,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self.store = store
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._swept_count: int = 0
        self._lock = threading.Lock()

    @property
    def interval(self) -> float:
        if self._interval is not None:
            return self._interval
        return settings.TOKEN_SWEEP_INTERVAL_SECONDS

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="token-sweeper", daemon=True)
        self._thread.start()
        logger.info("Token sweeper started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Token sweeper stopped")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "last_heartbeat": self._heartbeat,
            "swept_count": self._swept_count,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except PersistenceError as exc:
                logger.error("Token sweep failed: %s", exc.message)
            self._heartbeat = time.time()
            self._stop_event.wait(max(1.0, self.interval))

    def run_once(self) -> int:
        """Delete expired records once and return how many went away."""
        db = self._session_factory()
        try:
            removed = self.store.sweep(db)
        finally:
            db.close()

        with self._lock:
            self._swept_count += removed
        if removed:
            SWEPT_TOKENS.inc(removed)
        return removed


token_sweeper = TokenSweeper()
