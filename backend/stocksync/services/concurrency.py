# Overview: Retry helpers for short local-store transactions under lock contention.

from __future__ import annotations

import logging
import time

from ..errors import TransientIO

logger = logging.getLogger(__name__)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, sleep=time.sleep):
    """
    Execute a store operation with retry on transient lock failures.

    Retries on local TransientIO (SQLite "database is locked", busy timeouts).
    The caller's transaction scope has already rolled back when the error
    reaches this function, so `func` is re-run from the start.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except TransientIO as exc:
            if exc.source != "local":
                raise
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.debug("local store busy, retrying in %.3fs (attempt %d/%d)", delay, attempt + 1, attempts)
            sleep(delay)
    if last_exc:
        raise last_exc
