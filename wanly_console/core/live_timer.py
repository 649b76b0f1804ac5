"""
Live duration timer for in-progress segments, plus the duration and
"time ago" formatting used next to it.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

from wanly_console.core.constants import ACTIVE_SEGMENT_STATUSES, LIVE_TICK_MS
from wanly_console.core.models import parse_timestamp

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_seconds(started_at, now: datetime) -> Optional[float]:
    """now − started_at in seconds (never negative), or None without a start time."""
    start = parse_timestamp(started_at)
    if start is None:
        return None
    return max(0.0, (now - start).total_seconds())


def format_duration(seconds: float) -> str:
    """90 -> '1m 30s', 42 -> '42s'."""
    minutes = int(seconds // 60)
    secs = int(round(seconds % 60))
    if secs == 60:
        minutes, secs = minutes + 1, 0
    return f"{minutes}m {secs}s" if minutes > 0 else f"{secs}s"


def time_ago(ts, now: datetime) -> str:
    start = parse_timestamp(ts)
    if start is None:
        return "-"
    seconds = max(0, math.floor((now - start).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


class LiveDurationTimer:
    """
    Elapsed-time clock for rows in an active status.

    The tick timer is armed only while at least one tracked row is active,
    and released as soon as the last one leaves or on stop(), so repeated
    mount/unmount cycles never leave timers behind.
    """

    def __init__(self, scheduler, now: Callable[[], datetime] = utc_now,
                 tick_ms: int = LIVE_TICK_MS,
                 on_tick: Optional[Callable[[], None]] = None):
        self.scheduler = scheduler
        self.now = now
        self.tick_ms = tick_ms
        self.on_tick = on_tick
        self._starts: dict[str, datetime] = {}
        self._timer = None

    @property
    def active(self) -> bool:
        return self._timer is not None

    def track(self, row_id: str, status: str, started_at):
        """Start, keep or stop the clock for a row depending on its status."""
        start = parse_timestamp(started_at)
        if status in ACTIVE_SEGMENT_STATUSES and start is not None:
            self._starts[row_id] = start
        else:
            self._starts.pop(row_id, None)
        self._arm()

    def untrack(self, row_id: str):
        self._starts.pop(row_id, None)
        self._arm()

    def sync(self, segments):
        """Track a full segment list; rows no longer present are dropped."""
        present = set()
        for seg in segments:
            present.add(seg.id)
            start = seg.claimed_ts
            if seg.status in ACTIVE_SEGMENT_STATUSES and start is not None:
                self._starts[seg.id] = start
            else:
                self._starts.pop(seg.id, None)
        for row_id in list(self._starts):
            if row_id not in present:
                del self._starts[row_id]
        self._arm()

    def elapsed(self, row_id: str) -> Optional[float]:
        start = self._starts.get(row_id)
        if start is None:
            return None
        return max(0.0, (self.now() - start).total_seconds())

    def tracked_ids(self) -> list[str]:
        return list(self._starts)

    def stop(self):
        self._starts.clear()
        self._cancel()

    def _arm(self):
        if self._starts and self._timer is None:
            self._timer = self.scheduler.after(self.tick_ms, self._tick)
        elif not self._starts:
            self._cancel()

    def _cancel(self):
        if self._timer is not None:
            self.scheduler.after_cancel(self._timer)
            self._timer = None

    def _tick(self):
        self._timer = None
        if not self._starts:
            return
        if self.on_tick:
            try:
                self.on_tick()
            except Exception as e:
                logger.error("Live timer tick failed: %s", e, exc_info=True)
        self._arm()
