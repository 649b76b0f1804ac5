"""
Drag/reorder controller for the priority queue.

A drag is captured as a DragOperation holding the logical indices from the
gesture's start and end callbacks only; intermediate positions reported by
the widget while the pointer moves are never used. A committed move is
applied to the local view immediately and then persisted as a full
replacement order. If the server rejects it, the view goes back to the last
known-good order.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from wanly_console.core.error_codes import ApiError
from wanly_console.core.status_projection import is_drag_locked, status_rank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DragOperation:
    source_id: str
    from_index: int
    to_index: Optional[int] = None
    canceled: bool = False

    def finish(self, to_index: int) -> "DragOperation":
        return replace(self, to_index=to_index)

    def cancel(self) -> "DragOperation":
        return replace(self, canceled=True)


def array_move(seq, from_index: int, to_index: int) -> list:
    """Remove the element at from_index and insert it at to_index."""
    result = list(seq)
    item = result.pop(from_index)
    result.insert(to_index, item)
    return result


def _movable_with(job, source) -> bool:
    return (not is_drag_locked(job.status)
            and status_rank(job.status) == status_rank(source.status))


def legal_window(displayed, from_index: int) -> Optional[tuple[int, int]]:
    """
    Index range the item at from_index may be dropped into, or None if it
    cannot move. The range is the unbroken run of unlocked items sharing its
    priority group, so a pending item never lands above the first pending
    one and the displayed grouping never has to re-sort a committed move.
    """
    if not 0 <= from_index < len(displayed):
        return None
    source = displayed[from_index]
    if is_drag_locked(source.status):
        return None
    low = high = from_index
    while low > 0 and _movable_with(displayed[low - 1], source):
        low -= 1
    while high < len(displayed) - 1 and _movable_with(displayed[high + 1], source):
        high += 1
    return low, high


def legal_target(displayed, from_index: int, to_index: int) -> Optional[int]:
    """Clamp a proposed drop index to the nearest legal one."""
    window = legal_window(displayed, from_index)
    if window is None:
        return None
    low, high = window
    return max(low, min(high, to_index))


def locks_preserved(before, after) -> bool:
    """True when every drag-locked item sits at the same index in both orders."""
    return all(
        after[i].id == job.id
        for i, job in enumerate(before)
        if is_drag_locked(job.status)
    )


class ReorderController:
    """
    Owns write access to an OrderedQueueView for the length of one gesture
    and reconciles optimistic reorders against the server.

    Persist calls are serialized: while one is in flight, the newest order
    waits behind it and replaces any older waiting order.
    """

    def __init__(self, view, client, dispatcher,
                 on_change: Optional[Callable[[], None]] = None):
        self.view = view
        self.client = client
        self.dispatcher = dispatcher
        self.on_change = on_change

        self.operation: Optional[DragOperation] = None
        self.last_operation: Optional[DragOperation] = None
        # Bumped on every local write; poll results requested under an
        # older epoch are stale.
        self.epoch = 0

        self._snapshot: Optional[list] = None
        self._rollback_items: Optional[tuple] = None
        self._rollback_deferred = False
        self._in_flight: Optional[list[str]] = None
        self._waiting: Optional[list[str]] = None

    # ── State ─────────────────────────────────────────────────────────

    @property
    def is_dragging(self) -> bool:
        return self.operation is not None

    @property
    def persist_pending(self) -> bool:
        return self._in_flight is not None

    @property
    def busy(self) -> bool:
        """True while a gesture is open or a reorder is unreconciled."""
        return self.is_dragging or self.persist_pending or self._rollback_deferred

    # ── Gesture ───────────────────────────────────────────────────────

    def begin_drag(self, source_id: str, index: int) -> Optional[DragOperation]:
        """Start a gesture. Returns None when the item may not be dragged."""
        if self.operation is not None:
            logger.warning("Drag of %s ignored: another drag is open", source_id)
            return None
        if not self.view.is_priority_mode:
            logger.debug("Drag of %s ignored: view is column-sorted", source_id)
            return None

        displayed = self.view.displayed()
        if not 0 <= index < len(displayed) or displayed[index].id != source_id:
            logger.warning("Drag of %s at index %d does not match the displayed order",
                           source_id, index)
            return None
        if not self.view.is_draggable(displayed[index]):
            logger.debug("Drag of %s ignored: status %s is locked",
                         source_id, displayed[index].status)
            return None

        self._snapshot = displayed
        self.operation = DragOperation(source_id=source_id, from_index=index)
        return self.operation

    def end_drag(self, to_index: Optional[int] = None, canceled: bool = False) -> bool:
        """
        Finish the open gesture. Returns True if a reorder was applied and
        sent to the server; cancelled, unchanged or illegal drops return
        False and leave the view untouched.
        """
        op = self.operation
        if op is None:
            return False
        snapshot = self._snapshot
        self.operation = None
        self._snapshot = None

        if canceled or to_index is None:
            self.last_operation = op.cancel()
            logger.debug("Drag of %s cancelled", op.source_id)
            self._settle_without_commit()
            return False

        op = op.finish(to_index)
        self.last_operation = op

        if not self.view.is_priority_mode:
            self._settle_without_commit()
            return False

        target = legal_target(snapshot, op.from_index, op.to_index)
        if target is None or target == op.from_index:
            logger.debug("Drag of %s is a no-op (from=%d to=%d clamped=%s)",
                         op.source_id, op.from_index, op.to_index, target)
            self._settle_without_commit()
            return False

        reordered = array_move(snapshot, op.from_index, target)
        if not locks_preserved(snapshot, reordered):
            logger.warning("Drag of %s rejected: would move a locked item", op.source_id)
            self._settle_without_commit()
            return False

        if self._rollback_items is None:
            self._rollback_items = self.view.snapshot()
        self._rollback_deferred = False

        logger.info("Reorder: %s moved %d → %d", op.source_id, op.from_index, target)
        self._apply(reordered)
        self._persist([job.id for job in reordered])
        return True

    # ── Reconciliation ────────────────────────────────────────────────

    def _apply(self, items):
        self.view.set_items(items)
        self.epoch += 1
        if self.on_change:
            self.on_change()

    def _persist(self, ids: list[str]):
        if self._in_flight is not None:
            self._waiting = ids
            return
        self._in_flight = ids
        self.dispatcher.submit(
            lambda: self.client.reorder_jobs(ids),
            lambda result: self._on_persisted(ids),
            lambda error: self._on_persist_failed(ids, error),
        )

    def _on_persisted(self, ids: list[str]):
        self._in_flight = None
        logger.info("Reorder of %d job(s) accepted", len(ids))
        if self._waiting is not None:
            # The accepted order is now the known-good fallback for the next one
            self._rollback_items = self._ordered_by(ids)
            waiting, self._waiting = self._waiting, None
            self._persist(waiting)
            return
        # Optimistic order stays until the next poll supersedes it
        self._rollback_items = None

    def _on_persist_failed(self, ids: list[str], error: Exception):
        self._in_flight = None
        if isinstance(error, ApiError):
            logger.warning("Reorder of %d job(s) rejected: %s", len(ids), error)
        else:
            logger.error("Reorder of %d job(s) failed: %s", len(ids), error,
                         exc_info=error)

        if self._waiting is not None:
            waiting, self._waiting = self._waiting, None
            logger.info("Newer order supersedes the rejected one")
            self._persist(waiting)
            return

        if self.is_dragging:
            # The open gesture will either supersede this order or fall back to it
            self._rollback_deferred = True
            return
        self._rollback()

    def _settle_without_commit(self):
        if self._rollback_deferred:
            self._rollback_deferred = False
            self._rollback()

    def _rollback(self):
        items, self._rollback_items = self._rollback_items, None
        if items is None:
            return
        logger.info("Rolling back queue to last known-good order")
        self._apply(items)

    def _ordered_by(self, ids: list[str]) -> tuple:
        by_id = {job.id: job for job in self.view.items}
        ordered = [by_id[i] for i in ids if i in by_id]
        placed = set(ids)
        ordered.extend(job for job in self.view.items if job.id not in placed)
        return tuple(ordered)
