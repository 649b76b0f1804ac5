"""
Worker registry monitor: polls the registry and keeps a sorted worker list.
"""

import logging
from typing import Callable, Optional

from wanly_console.core.constants import REGISTRY_POLL_MS, WorkerStatus
from wanly_console.core.models import WorkerSummary
from wanly_console.core.poll_loop import PollLoop
from wanly_console.core.status_projection import worker_rank

logger = logging.getLogger(__name__)

LOAD_ERROR = "Failed to load workers"


class WorkerRegistryMonitor:
    """Unlike the queue view, a failed registry poll is reported via `error`."""

    def __init__(self, client, scheduler, dispatcher,
                 interval_ms: int = REGISTRY_POLL_MS,
                 on_change: Optional[Callable[[], None]] = None):
        self.client = client
        self.on_change = on_change
        self.workers: list[WorkerSummary] = []
        self.error = ""
        self.loaded = False
        self.poller = PollLoop(
            scheduler, dispatcher, interval_ms,
            fetch=client.list_workers,
            on_result=self._on_workers,
            on_error=self._on_error,
            name="registry-poll",
        )

    def mount(self):
        self.poller.start()

    def unmount(self):
        self.poller.stop()

    @property
    def online_count(self) -> int:
        return sum(1 for w in self.workers if w.status != WorkerStatus.OFFLINE)

    def _on_workers(self, workers: list[WorkerSummary]):
        # sorted() is stable, registry order is kept within a status
        self.workers = sorted(workers, key=lambda w: worker_rank(w.status))
        self.error = ""
        self.loaded = True
        self._notify()

    def _on_error(self, error: Exception):
        logger.warning("Worker registry poll failed: %s", error)
        self.error = LOAD_ERROR
        self.loaded = True
        self._notify()

    def _notify(self):
        if self.on_change:
            self.on_change()
