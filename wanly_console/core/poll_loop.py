"""
Fixed-cadence poll loop.

Each tick issues one fetch through the dispatcher and re-arms the timer
straight away, so the cadence does not depend on how long a request takes.
Responses are never cancelled, only ignored when they arrive stale.
"""

import logging
from typing import Any, Callable, Optional

from wanly_console.core.error_codes import ApiError

logger = logging.getLogger(__name__)


class PollLoop:
    """
    Polls `fetch` every `interval_ms` between start() and stop().

    `should_issue()` is asked before each request; returning False skips the
    tick. `capture()` runs when a request is issued and its value is handed
    to `should_apply(token)` when the response arrives; returning False
    drops the response. A response older than one already applied is always
    dropped.
    """

    def __init__(self, scheduler, dispatcher, interval_ms: int,
                 fetch: Callable[[], Any],
                 on_result: Callable[[Any], None],
                 on_error: Optional[Callable[[Exception], None]] = None,
                 should_issue: Optional[Callable[[], bool]] = None,
                 capture: Optional[Callable[[], Any]] = None,
                 should_apply: Optional[Callable[[Any], bool]] = None,
                 name: str = "poll"):
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.interval_ms = interval_ms
        self.fetch = fetch
        self.on_result = on_result
        self.on_error = on_error
        self.should_issue = should_issue
        self.capture = capture
        self.should_apply = should_apply
        self.name = name

        self._timer = None
        self._running = False
        self._issued = 0
        self._applied = 0

    def is_running(self) -> bool:
        return self._running

    def start(self):
        """Fetch immediately, then on every interval until stop()."""
        if self._running:
            return
        self._running = True
        logger.info("%s: polling every %d ms", self.name, self.interval_ms)
        self._tick()

    def stop(self):
        if not self._running:
            return
        self._running = False
        if self._timer is not None:
            self.scheduler.after_cancel(self._timer)
            self._timer = None
        logger.info("%s: stopped", self.name)

    def poll_now(self):
        """Issue an out-of-band fetch without disturbing the cadence."""
        if self._running:
            self._issue()

    def _tick(self):
        self._timer = None
        if not self._running:
            return
        self._timer = self.scheduler.after(self.interval_ms, self._tick)
        self._issue()

    def _issue(self):
        if self.should_issue and not self.should_issue():
            logger.debug("%s: tick skipped", self.name)
            return
        self._issued += 1
        seq = self._issued
        token = self.capture() if self.capture else None
        self.dispatcher.submit(
            self.fetch,
            lambda result: self._on_success(seq, token, result),
            lambda error: self._on_failure(seq, error),
        )

    def _on_success(self, seq: int, token, result):
        if not self._running:
            return
        if seq < self._applied:
            logger.debug("%s: response #%d older than #%d — dropped",
                         self.name, seq, self._applied)
            return
        if self.should_apply and not self.should_apply(token):
            logger.debug("%s: response #%d stale — dropped", self.name, seq)
            return
        self._applied = seq
        self.on_result(result)

    def _on_failure(self, seq: int, error: Exception):
        if not self._running:
            return
        if self.on_error:
            self.on_error(error)
        elif isinstance(error, ApiError):
            # Transient: the next tick retries
            logger.warning("%s: request #%d failed: %s", self.name, seq, error)
        else:
            logger.error("%s: request #%d failed: %s", self.name, seq, error,
                         exc_info=error)
