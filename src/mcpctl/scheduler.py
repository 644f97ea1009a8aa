# ABOUTME: Background refresh loop driving SyncCoordinator.poll().
# ABOUTME: One daemon thread; a failing tick is logged and the loop keeps going.
import logging
import threading
from typing import Callable

from mcpctl.settings import DEFAULT_REFRESH_INTERVAL, clamp_refresh_interval
from mcpctl.sync import SyncCoordinator, SyncReport

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Calls poll() every `interval` seconds until stopped.

    The wait is on a threading.Event, so stop() returns promptly and
    set_interval() takes effect at the next tick rather than after the
    old interval elapses.
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        interval: int = DEFAULT_REFRESH_INTERVAL,
        auto_sync: Callable[[], bool] | bool = True,
    ) -> None:
        self.coordinator = coordinator
        self._interval = clamp_refresh_interval(interval)
        self._auto_sync = auto_sync
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None
        self.ticks = 0

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def set_interval(self, seconds: int) -> int:
        """Change the period; values are clamped to the supported range."""
        self._interval = clamp_refresh_interval(seconds)
        self._wake.set()
        logger.debug(f"Refresh interval set to {self._interval}s")
        return self._interval

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="mcpctl-refresh", daemon=True)
        self._thread.start()
        logger.info(f"Refresh scheduler started ({self._interval}s interval)")

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Refresh scheduler stopped")

    def tick(self) -> SyncReport | None:
        """Run one poll, logging instead of raising on failure."""
        persist = self._auto_sync() if callable(self._auto_sync) else self._auto_sync
        try:
            report = self.coordinator.poll(persist_pending=persist)
        except Exception as e:
            logger.exception(f"Refresh tick failed: {e}")
            return None
        finally:
            self.ticks += 1

        for line in report.errors:
            logger.error(line)
        return report

    def _run(self) -> None:
        while not self._stop.is_set():
            self._wake.wait(self._interval)
            if self._stop.is_set():
                break
            if self._wake.is_set():
                # Interval changed; restart the wait with the new value
                self._wake.clear()
                continue
            self.tick()
