"""
Data models (plain dataclasses) for the queue service and worker registry.
Built from the JSON payloads returned by the API client.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (a trailing 'Z' is accepted). Naive values are UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class JobSummary:
    id: str
    name: str = ""
    status: str = "pending"
    width: int = 0
    height: int = 0
    fps: int = 0
    seed: Optional[int] = None
    starting_image: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    segment_count: int = 0
    completed_segment_count: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> "JobSummary":
        return cls(
            id=str(d['id']),
            name=d.get('name') or "",
            status=d.get('status') or "pending",
            width=int(d.get('width') or 0),
            height=int(d.get('height') or 0),
            fps=int(d.get('fps') or 0),
            seed=d.get('seed'),
            starting_image=d.get('starting_image'),
            created_at=d.get('created_at'),
            updated_at=d.get('updated_at'),
            segment_count=int(d.get('segment_count') or 0),
            completed_segment_count=int(d.get('completed_segment_count') or 0),
        )

    @property
    def created_ts(self) -> Optional[datetime]:
        return parse_timestamp(self.created_at)

    @property
    def updated_ts(self) -> Optional[datetime]:
        return parse_timestamp(self.updated_at)

    @property
    def dimensions(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass
class JobPage:
    items: list[JobSummary] = field(default_factory=list)
    total: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> "JobPage":
        items = []
        seen = set()
        for raw in d.get('items') or []:
            job = JobSummary.from_dict(raw)
            if job.id in seen:
                logger.warning("Duplicate job id %s in list response — dropped", job.id)
                continue
            seen.add(job.id)
            items.append(job)
        total = d.get('total')
        return cls(items=items, total=int(total) if total is not None else len(items))


@dataclass
class SegmentSummary:
    id: str
    job_id: str = ""
    index: int = 0
    prompt: str = ""
    duration_seconds: float = 0.0
    status: str = "pending"
    worker_id: Optional[str] = None
    worker_name: Optional[str] = None
    created_at: Optional[str] = None
    claimed_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "SegmentSummary":
        return cls(
            id=str(d['id']),
            job_id=str(d.get('job_id') or ""),
            index=int(d.get('index') or 0),
            prompt=d.get('prompt') or "",
            duration_seconds=float(d.get('duration_seconds') or 0.0),
            status=d.get('status') or "pending",
            worker_id=d.get('worker_id'),
            worker_name=d.get('worker_name'),
            created_at=d.get('created_at'),
            claimed_at=d.get('claimed_at'),
            completed_at=d.get('completed_at'),
            error_message=d.get('error_message'),
        )

    @property
    def claimed_ts(self) -> Optional[datetime]:
        return parse_timestamp(self.claimed_at)


@dataclass
class JobDetail:
    job: JobSummary
    segments: list[SegmentSummary] = field(default_factory=list)
    total_run_time: float = 0.0
    total_video_time: float = 0.0

    @classmethod
    def from_dict(cls, d: dict) -> "JobDetail":
        segments = [SegmentSummary.from_dict(s) for s in d.get('segments') or []]
        segments.sort(key=lambda s: s.index)
        return cls(
            job=JobSummary.from_dict(d),
            segments=segments,
            total_run_time=float(d.get('total_run_time') or 0.0),
            total_video_time=float(d.get('total_video_time') or 0.0),
        )

    @property
    def last_segment(self) -> Optional[SegmentSummary]:
        return self.segments[-1] if self.segments else None


@dataclass
class WorkerSummary:
    id: str
    friendly_name: str = ""
    hostname: str = ""
    ip_address: str = ""
    status: str = "offline"
    comfyui_running: bool = False
    last_heartbeat: Optional[str] = None
    registered_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "WorkerSummary":
        return cls(
            id=str(d['id']),
            friendly_name=d.get('friendly_name') or "",
            hostname=d.get('hostname') or "",
            ip_address=d.get('ip_address') or "",
            status=d.get('status') or "offline",
            comfyui_running=bool(d.get('comfyui_running')),
            last_heartbeat=d.get('last_heartbeat'),
            registered_at=d.get('registered_at'),
            updated_at=d.get('updated_at'),
        )
