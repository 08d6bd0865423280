from __future__ import annotations

import logging
import threading
from typing import Callable, Set


log = logging.getLogger(__name__)


class ThreadingScheduler:
    """
    One-shot delayed callbacks on daemon `threading.Timer` threads.

    Used for the computer's reply after a human move. Pending timers can be
    cancelled on shutdown with `cancel_all`.
    """

    def __init__(self) -> None:
        self._timers: Set[threading.Timer] = set()
        self._lock = threading.Lock()

    def schedule(self, delay: float, fn: Callable[..., object], *args: object) -> threading.Timer:
        timer: threading.Timer

        def run() -> None:
            try:
                fn(*args)
            finally:
                with self._lock:
                    self._timers.discard(timer)

        timer = threading.Timer(delay, run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            log.info("Cancelled %d pending timer(s)", len(timers))
