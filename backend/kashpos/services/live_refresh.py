# Overview: Periodic re-fetch of today's earnings for live dashboards.

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from .record_store import FetchError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30


class LiveEarningsPoller:
    """
    Calls fetch() every interval seconds and hands the result to on_update.

    A FetchError is passed to on_error and polling carries on; the next tick
    retries. Any other exception stops the poller.

    With idle_timeout set, the consumer must call heartbeat() at least that
    often; once it goes quiet for longer the poller stops by itself
    (stopped_idle is then True). stop() ends it at any time.

    run() polls in the calling thread (used by the CLI); start() runs the same
    loop in a daemon thread.
    """

    def __init__(
        self,
        fetch: Callable[[], Any],
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        idle_timeout: float | None = None,
        on_update: Callable[[Any], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if idle_timeout is not None and idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        self.fetch = fetch
        self.interval = interval
        self.idle_timeout = idle_timeout
        self.on_update = on_update
        self.on_error = on_error
        self.clock = clock
        self.last_result: Any = None
        self.polls = 0
        self.failures = 0
        self.stopped_idle = False
        self._last_heartbeat = clock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def heartbeat(self) -> None:
        """Consumer is still watching."""
        self._last_heartbeat = self.clock()

    def is_idle(self) -> bool:
        if self.idle_timeout is None:
            return False
        return self.clock() - self._last_heartbeat >= self.idle_timeout

    def poll_once(self) -> Any:
        self.polls += 1
        try:
            result = self.fetch()
        except FetchError as exc:
            self.failures += 1
            logger.warning("Live earnings refresh failed: %s", exc)
            if self.on_error is not None:
                self.on_error(exc)
            return None
        self.last_result = result
        if self.on_update is not None:
            self.on_update(result)
        return result

    def run(self, max_polls: int | None = None) -> None:
        self._stop.clear()
        self.stopped_idle = False
        self.heartbeat()
        count = 0
        while not self._stop.is_set():
            if self.is_idle():
                logger.info("Live earnings consumer idle for %ss; stopping", self.idle_timeout)
                self.stopped_idle = True
                self._stop.set()
                break
            self.poll_once()
            count += 1
            if max_polls is not None and count >= max_polls:
                break
            self._stop.wait(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="live-earnings", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
