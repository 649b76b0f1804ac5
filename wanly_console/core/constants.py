"""
Shared constants for WanlyConsole.
Single source of truth — imported by every other module.
"""

import pathlib

# ── Application identity ──────────────────────────────────────────────
APP_NAME = "WanlyConsole"
APP_DISPLAY_NAME = "Wanly Console"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
HOME = pathlib.Path.home()

APP_SUPPORT_DIR = HOME / "Library" / "Application Support" / APP_NAME
CONFIG_PATH = APP_SUPPORT_DIR / "config.json"
LOG_DIR = HOME / "Library" / "Logs" / "wanly-console"

# ── Backend endpoints ─────────────────────────────────────────────────
DEFAULT_API_URL = "http://localhost:8000/api"
DEFAULT_REGISTRY_URL = "http://localhost:8000/registry"
DEFAULT_REQUEST_TIMEOUT_SEC = 15

# ── Job status values (owned by the server) ───────────────────────────
class JobStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    AWAITING = "awaiting"
    FAILED = "failed"
    PAUSED = "paused"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"
    ARCHIVED = "archived"

ALL_JOB_STATUSES = (
    JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.AWAITING,
    JobStatus.FAILED, JobStatus.PAUSED, JobStatus.FINALIZING,
    JobStatus.FINALIZED, JobStatus.ARCHIVED,
)

# ── Segment status values ─────────────────────────────────────────────
class SegmentStatus:
    PENDING = "pending"
    CLAIMED = "claimed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

ALL_SEGMENT_STATUSES = (
    SegmentStatus.PENDING, SegmentStatus.CLAIMED, SegmentStatus.PROCESSING,
    SegmentStatus.COMPLETED, SegmentStatus.FAILED,
)

# Segments in these states have a live elapsed-time clock
ACTIVE_SEGMENT_STATUSES = frozenset({SegmentStatus.CLAIMED, SegmentStatus.PROCESSING})

# ── Worker registry status values ─────────────────────────────────────
class WorkerStatus:
    IDLE = "online-idle"
    BUSY = "online-busy"
    OFFLINE = "offline"

# ── Queue view ────────────────────────────────────────────────────────
class QueueMode:
    PRIORITY = "priority"
    SORTED = "sorted"

class SortDir:
    ASC = "asc"
    DESC = "desc"

SORT_KEYS = ("name", "status", "fps", "created_at", "updated_at")
DEFAULT_SORT_KEY = "updated_at"

PRIORITY_SORT_PARAM = "priority_asc"
PRIORITY_PAGE_LIMIT = 200
DEFAULT_ROWS_PER_PAGE = 25
ROWS_PER_PAGE_OPTIONS = (10, 25, 50, 100)

# ── User actions offered per status ───────────────────────────────────
class JobAction:
    RETRY = "retry"
    DELETE = "delete"
    ADD_SEGMENT = "add_segment"
    FINALIZE = "finalize"

# ── Cadences (milliseconds) ───────────────────────────────────────────
QUEUE_POLL_MS = 5000
JOB_DETAIL_POLL_MS = 5000
REGISTRY_POLL_MS = 10000
LIVE_TICK_MS = 1000

# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    # Retryable
    NETWORK_TRANSIENT = "ERR_NETWORK_TRANSIENT"
    TIMEOUT = "ERR_TIMEOUT"
    SERVER = "ERR_SERVER"

    # Non-retryable
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT = "ERR_CONFLICT"
    BAD_RESPONSE = "ERR_BAD_RESPONSE"
    REQUEST_FAILED = "ERR_REQUEST_FAILED"

RETRYABLE_ERRORS = {
    ErrorCode.NETWORK_TRANSIENT,
    ErrorCode.TIMEOUT,
    ErrorCode.SERVER,
}
