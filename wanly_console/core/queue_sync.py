"""
Queue synchronisation session.
Ties one OrderedQueueView to the server through a poll loop and a reorder
controller. One instance per mounted queue view; nothing is global.
"""

import logging
from typing import Callable, Optional

from wanly_console.core.constants import QUEUE_POLL_MS, DEFAULT_ROWS_PER_PAGE
from wanly_console.core.error_codes import ApiError
from wanly_console.core.models import JobPage
from wanly_console.core.poll_loop import PollLoop
from wanly_console.core.queue_model import OrderedQueueView
from wanly_console.core.reorder import ReorderController, DragOperation

logger = logging.getLogger(__name__)


class QueueSync:
    """
    Poll loop → OrderedQueueView → on_change, with drag/reorder in between.

    The poll loop only writes to the view while no drag or reorder is
    outstanding, and only with responses requested after the last local
    write.
    """

    def __init__(self, client, scheduler, dispatcher, config=None,
                 on_change: Optional[Callable[[], None]] = None):
        self.client = client
        self.on_change = on_change

        interval_ms = config.queue_poll_ms if config is not None else QUEUE_POLL_MS
        rows = config.rows_per_page if config is not None else DEFAULT_ROWS_PER_PAGE

        self.view = OrderedQueueView(rows_per_page=rows)
        # Bumped when mode, filter or paging changes
        self._generation = 0
        self.reorder = ReorderController(
            self.view, client, dispatcher, on_change=self._notify,
        )
        self.poller = PollLoop(
            scheduler, dispatcher, interval_ms,
            fetch=self._fetch,
            on_result=self._on_page,
            on_error=self._on_poll_error,
            should_issue=lambda: not self.reorder.busy,
            capture=lambda: (self.reorder.epoch, self._generation),
            should_apply=self._should_apply,
            name="queue-poll",
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    def mount(self):
        self.poller.start()

    def unmount(self):
        self.poller.stop()

    def refresh(self):
        self.poller.poll_now()

    # ── Polling ───────────────────────────────────────────────────────

    def _fetch(self) -> JobPage:
        return self.client.list_jobs(**self.view.list_params())

    def _should_apply(self, token) -> bool:
        return not self.reorder.busy and token == (self.reorder.epoch, self._generation)

    def _on_page(self, page: JobPage):
        self.view.replace(page)
        self._notify()

    def _on_poll_error(self, error: Exception):
        # A missed poll is transient; the view keeps the last good state
        if isinstance(error, ApiError):
            logger.warning("Queue poll failed: %s", error)
        else:
            logger.error("Queue poll failed: %s", error, exc_info=error)
        if not self.view.loaded:
            self.view.loaded = True
            self._notify()

    def _notify(self):
        if self.on_change:
            self.on_change()

    # ── View controls ─────────────────────────────────────────────────

    def sort_by(self, key: str):
        self.view.sort_by(key)
        self._view_changed()

    def reset_priority(self):
        self.view.reset_priority()
        self._view_changed()

    def set_filter(self, statuses):
        self.view.set_filter(statuses)
        self._view_changed()

    def set_page(self, page: int):
        self.view.set_page(page)
        self._view_changed()

    def set_rows_per_page(self, rows: int):
        self.view.set_rows_per_page(rows)
        self._view_changed()

    def _view_changed(self):
        self._generation += 1
        self._notify()
        self.refresh()

    # ── Drag ──────────────────────────────────────────────────────────

    def begin_drag(self, source_id: str, index: int) -> Optional[DragOperation]:
        return self.reorder.begin_drag(source_id, index)

    def end_drag(self, to_index: Optional[int] = None, canceled: bool = False) -> bool:
        return self.reorder.end_drag(to_index=to_index, canceled=canceled)

    @property
    def is_dragging(self) -> bool:
        return self.reorder.is_dragging
