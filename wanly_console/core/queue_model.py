"""
Local queue model: the client's working copy of the server's job list.
"""

import logging
from datetime import datetime, timezone

from wanly_console.core.constants import (
    QueueMode, SortDir, SORT_KEYS, DEFAULT_SORT_KEY,
    PRIORITY_SORT_PARAM, PRIORITY_PAGE_LIMIT,
    DEFAULT_ROWS_PER_PAGE, ROWS_PER_PAGE_OPTIONS,
)
from wanly_console.core.models import JobPage, JobSummary
from wanly_console.core.status_projection import is_drag_locked, status_rank

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_value(job: JobSummary, key: str):
    if key == 'name':
        return job.name.casefold()
    if key == 'status':
        return status_rank(job.status)
    if key == 'fps':
        return job.fps
    if key == 'created_at':
        return job.created_ts or _EPOCH
    if key == 'updated_at':
        return job.updated_ts or _EPOCH
    raise ValueError(f"Unknown sort key: {key!r}")


class OrderedQueueView:
    """
    Ordered sequence of JobSummary mirroring the last known server state.

    `items` holds the raw order (server priority order, or the optimistic
    order after a local reorder). `displayed()` is what the operator sees
    and what drag indices refer to.
    """

    def __init__(self, rows_per_page: int = DEFAULT_ROWS_PER_PAGE):
        self.items: list[JobSummary] = []
        self.total = 0
        self.loaded = False
        self.mode = QueueMode.PRIORITY
        self.status_filter: list[str] = []
        self.sort_key = DEFAULT_SORT_KEY
        self.sort_dir = SortDir.DESC
        self.page = 0
        self.rows_per_page = rows_per_page

    # ── Contents ──────────────────────────────────────────────────────

    def replace(self, page: JobPage):
        """Replace the contents wholesale with a poll result."""
        self.items = list(page.items)
        self.total = page.total
        self.loaded = True

    def set_items(self, items):
        self.items = list(items)

    def snapshot(self) -> tuple:
        return tuple(self.items)

    def ids(self) -> list[str]:
        return [job.id for job in self.displayed()]

    def find(self, job_id: str) -> JobSummary | None:
        for job in self.items:
            if job.id == job_id:
                return job
        return None

    def displayed(self) -> list[JobSummary]:
        if self.mode == QueueMode.PRIORITY:
            # sorted() is stable: server order survives within a status group
            return sorted(self.items, key=lambda j: status_rank(j.status))
        return sorted(self.items,
                      key=lambda j: _sort_value(j, self.sort_key),
                      reverse=self.sort_dir == SortDir.DESC)

    # ── Drag policy ───────────────────────────────────────────────────

    @property
    def is_priority_mode(self) -> bool:
        return self.mode == QueueMode.PRIORITY

    def is_draggable(self, job: JobSummary) -> bool:
        return self.is_priority_mode and not is_drag_locked(job.status)

    # ── Server query ──────────────────────────────────────────────────

    def list_params(self) -> dict:
        """Keyword arguments for QueueApiClient.list_jobs in the current mode."""
        status_set = list(self.status_filter) or None
        if self.is_priority_mode:
            return {
                'status_set': status_set,
                'limit': PRIORITY_PAGE_LIMIT,
                'offset': 0,
                'sort': PRIORITY_SORT_PARAM,
            }
        return {
            'status_set': status_set,
            'limit': self.rows_per_page,
            'offset': self.page * self.rows_per_page,
            'sort': None,
        }

    # ── Mode / filter / paging ────────────────────────────────────────

    def sort_by(self, key: str):
        """Column header click. Leaves priority mode on first use."""
        if key not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {key!r}")
        if self.is_priority_mode:
            self.mode = QueueMode.SORTED
            self.sort_key = key
            self.sort_dir = SortDir.ASC if key == 'name' else SortDir.DESC
            self.page = 0
        elif self.sort_key == key:
            self.sort_dir = SortDir.DESC if self.sort_dir == SortDir.ASC else SortDir.ASC
        else:
            self.sort_key = key
            self.sort_dir = SortDir.ASC if key == 'name' else SortDir.DESC

    def reset_priority(self):
        self.mode = QueueMode.PRIORITY
        self.page = 0

    def set_filter(self, statuses):
        self.status_filter = [s for s in statuses if s]
        self.page = 0

    def set_page(self, page: int):
        self.page = max(0, int(page))

    def set_rows_per_page(self, rows: int):
        if rows not in ROWS_PER_PAGE_OPTIONS:
            raise ValueError(f"rows_per_page must be one of {ROWS_PER_PAGE_OPTIONS}")
        self.rows_per_page = rows
        self.page = 0
