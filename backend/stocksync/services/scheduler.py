# Overview: Background trigger source for reconciliation cycles (periodic timer + connectivity events).

from __future__ import annotations

import logging
import threading

from ..errors import Fatal

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Runs reconciler.run_cycle() on a daemon thread.

    A cycle fires every `interval` seconds and whenever trigger() is called
    (e.g. connectivity regained). Triggers that land while a cycle is running
    are coalesced by the reconciler itself. A failed cycle (Fatal or any
    other exception) is logged and kept as last_error; the loop keeps running
    so the next trigger retries. The stop flag is handed to run_cycle() as
    stop_event, so a cycle that starts during shutdown is cancelled before
    it reaches the network.
    """

    def __init__(self, app, reconciler, *, interval: float):
        self._app = app
        self._reconciler = reconciler
        self._interval = interval
        self._wake = threading.Event()
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        self._reason = "timer"
        self.last_error: Exception | None = None
        self.cycles_run = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._loop, name="stocksync-scheduler", daemon=True)
        self._thread.start()
        logger.info("sync scheduler started (interval=%.0fs)", self._interval)

    def trigger(self, reason: str = "manual") -> None:
        self._reason = reason
        self._wake.set()

    def notify_connectivity_regained(self) -> None:
        self.trigger("connectivity")

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stopping.set()
        self._reconciler.cancel()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        logger.info("sync scheduler stopped")

    def _loop(self) -> None:
        while not self._stopping.is_set():
            woken = self._wake.wait(self._interval)
            self._wake.clear()
            if self._stopping.is_set():
                break
            reason = self._reason if woken else "timer"
            self._reason = "timer"
            with self._app.app_context():
                try:
                    self._reconciler.run_cycle(trigger=reason, stop_event=self._stopping)
                    self.last_error = None
                except Fatal as exc:
                    self.last_error = exc
                    logger.exception("sync cycle aborted by a local store failure")
                except Exception as exc:
                    self.last_error = exc
                    logger.exception("sync cycle failed unexpectedly; retrying on the next trigger")
                finally:
                    self.cycles_run += 1
