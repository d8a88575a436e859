"""
Connectivity watcher - triggers a sync when the replica comes back online.

The watcher polls the connectivity signal on a background thread and runs
exactly one sync per offline -> online transition. It never retries a
failed attempt on its own; the failure is kept in ``last_error`` and the
next attempt happens on the next reconnect or an explicit request.
"""

import threading
import time
from typing import Callable, Dict, Optional

from util.logging import logger

from .config import get_connectivity_poll_interval, is_sync_on_reconnect_enabled
from .errors import OfflineError, StoreUnavailable, SyncInProgressError
from .sync import SyncEngine, SyncResult


class ConnectivityWatcher:

    def __init__(self, engine: SyncEngine, is_online: Optional[Callable[[], bool]] = None,
                 interval_sec: Optional[float] = None,
                 sync_on_reconnect: Optional[bool] = None):
        if interval_sec is None:
            interval_sec = get_connectivity_poll_interval()
        if interval_sec <= 0:
            raise ValueError(f"Interval must be > 0 seconds: {interval_sec}")

        self.engine = engine
        self.is_online = is_online or engine.is_online
        self.interval_sec = interval_sec
        self.sync_on_reconnect = is_sync_on_reconnect_enabled() if sync_on_reconnect is None else sync_on_reconnect

        self.was_online: Optional[bool] = None
        self.running = False
        self.shutdown_event: Optional[threading.Event] = None
        self.last_check: Optional[float] = None
        self.last_error: Optional[Exception] = None
        self.sync_count = 0
        self._thread: Optional[threading.Thread] = None

    def handle_transition(self, online: bool) -> Optional[SyncResult]:
        """
        Record the latest connectivity reading and sync on offline -> online.

        The first reading only sets the baseline.
        """
        previous = self.was_online
        self.was_online = online
        self.last_check = time.monotonic()

        if not online or previous is not False:
            return None

        if not self.sync_on_reconnect:
            logger.info("Connectivity restored; sync on reconnect disabled")
            return None

        logger.info("Connectivity restored; starting sync")
        try:
            result = self.engine.sync()
        except (OfflineError, SyncInProgressError, StoreUnavailable) as e:
            self.last_error = e
            logger.warning(f"Sync after reconnect failed: {e}")
            return None

        self.sync_count += 1
        self.last_error = None
        return result

    def poll_once(self) -> Optional[SyncResult]:
        return self.handle_transition(bool(self.is_online()))

    def start(self):
        """Start polling on a daemon thread."""
        if self.running:
            raise RuntimeError("Connectivity watcher already running")

        self.running = True
        self.shutdown_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="epi-connectivity-watcher", daemon=True)
        self._thread.start()
        logger.info(f"Connectivity watcher started (every {self.interval_sec}s)")

    def _run(self):
        try:
            while self.running and not self.shutdown_event.is_set():
                try:
                    self.poll_once()
                except Exception as e:
                    # Signal or listener failure; keep watching
                    self.last_error = e
                    logger.error(f"Connectivity check failed: {e}")
                self.shutdown_event.wait(self.interval_sec)
        finally:
            self.running = False

    def stop(self, timeout: float = 2.0):
        """Stop the watcher and wait for the thread to exit."""
        if not self.running:
            return

        self.running = False
        if self.shutdown_event:
            self.shutdown_event.set()
        if self._thread:
            self._thread.join(timeout)
        logger.info("Connectivity watcher stopped")

    def get_status(self) -> Dict:
        """Return current watcher status for monitoring."""
        return {
            "status": "running" if self.running else "stopped",
            "online": self.was_online,
            "interval_sec": self.interval_sec,
            "sync_on_reconnect": self.sync_on_reconnect,
            "sync_count": self.sync_count,
            "last_error": str(self.last_error) if self.last_error else None,
        }
