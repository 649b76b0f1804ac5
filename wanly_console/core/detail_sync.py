"""
Job detail monitor: polls one job with its segments, keeps the live
duration clocks of active segments in step, and runs the operator actions
offered for the job's current status.
"""

import logging
from typing import Callable, Optional

from wanly_console.core.constants import JOB_DETAIL_POLL_MS, LIVE_TICK_MS, JobAction
from wanly_console.core.error_codes import ApiError
from wanly_console.core.live_timer import LiveDurationTimer, utc_now
from wanly_console.core.models import JobDetail
from wanly_console.core.poll_loop import PollLoop
from wanly_console.core.status_projection import available_actions

logger = logging.getLogger(__name__)

LOAD_ERROR = "Failed to load job"
FINALIZE_ERROR = "Failed to finalize job"


class JobDetailMonitor:

    def __init__(self, client, job_id: str, scheduler, dispatcher,
                 interval_ms: int = JOB_DETAIL_POLL_MS,
                 tick_ms: int = LIVE_TICK_MS, now=utc_now,
                 on_change: Optional[Callable[[], None]] = None):
        self.client = client
        self.job_id = job_id
        self.dispatcher = dispatcher
        self.on_change = on_change
        self.detail: Optional[JobDetail] = None
        self.error = ""
        self.timer = LiveDurationTimer(scheduler, now=now, tick_ms=tick_ms,
                                       on_tick=self._notify)
        self.poller = PollLoop(
            scheduler, dispatcher, interval_ms,
            fetch=lambda: client.get_job(job_id),
            on_result=self._on_detail,
            on_error=self._on_error,
            name=f"job-poll[{job_id}]",
        )

    def mount(self):
        self.poller.start()

    def unmount(self):
        self.poller.stop()
        self.timer.stop()

    # ── Actions ───────────────────────────────────────────────────────

    def job_actions(self) -> tuple:
        if self.detail is None:
            return ()
        return available_actions(self.detail.job.status, kind='job')

    def segment_actions(self, segment_id: str) -> tuple:
        for seg in self.detail.segments if self.detail else ():
            if seg.id == segment_id:
                return available_actions(seg.status, kind='segment')
        return ()

    def finalize(self) -> bool:
        if JobAction.FINALIZE not in self.job_actions():
            logger.warning("Finalize refused for job %s in status %s", self.job_id,
                           self.detail.job.status if self.detail else None)
            return False
        self._run(lambda: self.client.finalize_job(self.job_id), FINALIZE_ERROR)
        return True

    def retry_segment(self, segment_id: str) -> bool:
        if JobAction.RETRY not in self.segment_actions(segment_id):
            return False
        self._run(lambda: self.client.retry_segment(segment_id),
                  f"Failed to retry segment {segment_id}")
        return True

    def delete_segment(self, segment_id: str) -> bool:
        if JobAction.DELETE not in self.segment_actions(segment_id):
            return False
        self._run(lambda: self.client.delete_segment(segment_id),
                  f"Failed to delete segment {segment_id}")
        return True

    def _run(self, call, error_text: str):
        def failed(error):
            logger.warning("%s: %s", error_text, error)
            if not self.poller.is_running():
                return
            self.error = error_text
            self._notify()

        self.dispatcher.submit(call, lambda _result: self.poller.poll_now(), failed)

    # ── Polling ───────────────────────────────────────────────────────

    def _on_detail(self, detail: JobDetail):
        self.detail = detail
        self.error = ""
        self.timer.sync(detail.segments)
        self._notify()

    def _on_error(self, error: Exception):
        if not isinstance(error, ApiError):
            logger.error("Job %s poll failed: %s", self.job_id, error, exc_info=error)
        else:
            logger.warning("Job %s poll failed: %s", self.job_id, error)
        self.error = LOAD_ERROR
        self._notify()

    def _notify(self):
        if self.on_change:
            self.on_change()
