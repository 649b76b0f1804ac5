"""
Status projection: maps a job/segment/worker status value to its display
style, drag-lock flag, available actions and grouping rank.
Pure lookups over declarative tables — no side effects.
"""

from dataclasses import dataclass

from wanly_console.core.constants import (
    JobStatus, SegmentStatus, WorkerStatus, JobAction,
)


@dataclass(frozen=True)
class StatusStyle:
    label: str
    bg: str
    fg: str


_NEUTRAL_BG = "#f5f5f5"
_NEUTRAL_FG = "#616161"

_STATUS_COLORS = {
    JobStatus.PENDING: ("#f5f5f5", "#616161"),
    JobStatus.PROCESSING: ("#e3f2fd", "#1565c0"),
    SegmentStatus.CLAIMED: ("#e3f2fd", "#1565c0"),
    JobStatus.AWAITING: ("#fff3e0", "#e65100"),
    SegmentStatus.COMPLETED: ("#e8f5e9", "#2e7d32"),
    JobStatus.FAILED: ("#ffebee", "#c62828"),
    JobStatus.PAUSED: ("#f3e5f5", "#6a1b9a"),
    JobStatus.FINALIZING: ("#e0f7fa", "#00838f"),
    JobStatus.FINALIZED: ("#e0f2f1", "#00695c"),
    JobStatus.ARCHIVED: ("#eceff1", "#455a64"),
}

# Items in these states never move and are never jumped over
DRAG_LOCKED_STATUSES = frozenset({
    JobStatus.FAILED,
    JobStatus.AWAITING,
    JobStatus.PROCESSING,
    JobStatus.FINALIZING,
    JobStatus.FINALIZED,
    JobStatus.ARCHIVED,
    SegmentStatus.COMPLETED,
})

_JOB_ACTIONS = {
    JobStatus.FAILED: (JobAction.RETRY, JobAction.DELETE),
    JobStatus.AWAITING: (JobAction.ADD_SEGMENT, JobAction.FINALIZE),
}

_SEGMENT_ACTIONS = {
    SegmentStatus.FAILED: (JobAction.RETRY, JobAction.DELETE),
}

_ACTION_TABLES = {
    'job': _JOB_ACTIONS,
    'segment': _SEGMENT_ACTIONS,
}

# Priority-mode grouping: heads of the list first, server order kept within a group
_STATUS_RANK = {
    JobStatus.FAILED: 0,
    JobStatus.AWAITING: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.FINALIZING: 3,
    JobStatus.PENDING: 4,
    JobStatus.PAUSED: 5,
    JobStatus.ARCHIVED: 6,
    JobStatus.FINALIZED: 7,
}
_UNKNOWN_RANK = 99

_WORKER_STYLES = {
    WorkerStatus.IDLE: StatusStyle("Idle", "#e8f5e9", "#4caf50"),
    WorkerStatus.BUSY: StatusStyle("Busy", "#fff3e0", "#ff9800"),
    WorkerStatus.OFFLINE: StatusStyle("Offline", _NEUTRAL_BG, "#9e9e9e"),
}

_WORKER_RANK = {
    WorkerStatus.BUSY: 0,
    WorkerStatus.IDLE: 1,
    WorkerStatus.OFFLINE: 2,
}


def status_label(status) -> str:
    if not status:
        return "Unknown"
    return str(status).replace('_', ' ').capitalize()


def status_style(status) -> StatusStyle:
    """Chip style for a job or segment status. Unknown values get the neutral style."""
    bg, fg = _STATUS_COLORS.get(status, (_NEUTRAL_BG, _NEUTRAL_FG))
    return StatusStyle(status_label(status), bg, fg)


def is_drag_locked(status) -> bool:
    return status in DRAG_LOCKED_STATUSES


def available_actions(status, kind: str = 'job') -> tuple:
    """Actions offered to the operator for an item in this status."""
    try:
        table = _ACTION_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown item kind: {kind!r}")
    return table.get(status, ())


def status_rank(status) -> int:
    return _STATUS_RANK.get(status, _UNKNOWN_RANK)


def worker_style(status) -> StatusStyle:
    style = _WORKER_STYLES.get(status)
    if style is None:
        return StatusStyle(status_label(status), _NEUTRAL_BG, _NEUTRAL_FG)
    return style


def worker_rank(status) -> int:
    return _WORKER_RANK.get(status, 9)
