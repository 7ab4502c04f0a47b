from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from time import perf_counter

from utils.time_utils import utcnow


@contextmanager
def timed_block(
    name: str,
    *,
    logger_obj: logging.Logger | None = None,
    ping_every_seconds: int = 60,
):
    """Time a block of work.

    Logs START/END with elapsed seconds, and a "still running" ping every
    `ping_every_seconds` while the block has not finished (bulk stages on a
    large export can run for minutes).
    """

    started = utcnow()
    start = perf_counter()
    stop_event = threading.Event()

    def _ping_loop() -> None:
        while not stop_event.wait(ping_every_seconds):
            if logger_obj is not None:
                logger_obj.info("ping: still running '%s' (%.0fs)", name, perf_counter() - start)

    t = threading.Thread(target=_ping_loop, daemon=True)
    t.start()

    if logger_obj is not None:
        logger_obj.info("START %s", name)
    try:
        yield
    finally:
        stop_event.set()
        elapsed = perf_counter() - start
        if logger_obj is not None:
            logger_obj.info(
                "END %s | started=%s elapsed=%.2fs",
                name,
                started.isoformat(timespec="seconds"),
                elapsed,
            )
