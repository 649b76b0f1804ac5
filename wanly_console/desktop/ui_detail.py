"""
Job detail window: one job with its segments, live durations and the
operator actions its status allows.
"""

import logging
import tkinter as tk
from tkinter import ttk

from wanly_console.core.constants import JobAction
from wanly_console.core.detail_sync import JobDetailMonitor
from wanly_console.core.live_timer import elapsed_seconds, format_duration
from wanly_console.core.models import parse_timestamp
from wanly_console.core.status_projection import status_style

logger = logging.getLogger(__name__)

_SEGMENT_COLUMNS = (("index", "#", 40), ("status", "Status", 90),
                    ("worker", "Worker", 120), ("duration", "Duration", 80),
                    ("prompt", "Prompt", 320))


class JobDetailWindow(tk.Toplevel):
    """Non-modal window polling one job until it is closed."""

    def __init__(self, parent, client, dispatcher, job_id: str, interval_ms=None):
        super().__init__(parent)
        self.title(f"Job {job_id}")
        self.geometry("720x420")
        self.protocol("WM_DELETE_WINDOW", self.close)

        kwargs = {'interval_ms': interval_ms} if interval_ms else {}
        self.monitor = JobDetailMonitor(client, job_id, self, dispatcher,
                                        on_change=self._refresh, **kwargs)
        self._build()
        self.monitor.mount()

    def _build(self):
        frame = ttk.Frame(self, padding=10)
        frame.pack(fill=tk.BOTH, expand=True)

        self.header_var = tk.StringVar(value="Loading...")
        ttk.Label(frame, textvariable=self.header_var,
                  font=("Helvetica", 12, "bold")).pack(fill=tk.X)
        self.summary_var = tk.StringVar(value="")
        ttk.Label(frame, textvariable=self.summary_var,
                  foreground="gray").pack(fill=tk.X, pady=(0, 5))
        self.error_label = ttk.Label(frame, text="", foreground="red")
        self.error_label.pack(fill=tk.X)

        self.tree = ttk.Treeview(frame, columns=[c for c, _, _ in _SEGMENT_COLUMNS],
                                 show="headings", selectmode="browse")
        for col, text, width in _SEGMENT_COLUMNS:
            self.tree.heading(col, text=text)
            self.tree.column(col, width=width, anchor=tk.W)
        self.tree.pack(fill=tk.BOTH, expand=True, pady=5)
        self.tree.bind("<<TreeviewSelect>>", lambda e: self._update_buttons())

        btn_frame = ttk.Frame(frame)
        btn_frame.pack(fill=tk.X)
        self.finalize_btn = ttk.Button(btn_frame, text="Finalize",
                                       command=self.monitor.finalize)
        self.finalize_btn.pack(side=tk.LEFT)
        self.delete_btn = ttk.Button(btn_frame, text="Delete Segment",
                                     command=lambda: self._on_segment(self.monitor.delete_segment))
        self.delete_btn.pack(side=tk.RIGHT)
        self.retry_btn = ttk.Button(btn_frame, text="Retry Segment",
                                    command=lambda: self._on_segment(self.monitor.retry_segment))
        self.retry_btn.pack(side=tk.RIGHT, padx=(0, 5))
        self._update_buttons()

    # ── Actions ───────────────────────────────────────────────────────

    def _selected_segment(self):
        selection = self.tree.selection()
        return selection[0] if selection else None

    def _on_segment(self, action):
        segment_id = self._selected_segment()
        if segment_id:
            action(segment_id)

    def _update_buttons(self):
        job_actions = self.monitor.job_actions()
        self.finalize_btn.configure(
            state=tk.NORMAL if JobAction.FINALIZE in job_actions else tk.DISABLED)
        segment_id = self._selected_segment()
        seg_actions = self.monitor.segment_actions(segment_id) if segment_id else ()
        self.retry_btn.configure(
            state=tk.NORMAL if JobAction.RETRY in seg_actions else tk.DISABLED)
        self.delete_btn.configure(
            state=tk.NORMAL if JobAction.DELETE in seg_actions else tk.DISABLED)

    # ── Refresh ───────────────────────────────────────────────────────

    def _duration(self, seg) -> str:
        live = self.monitor.timer.elapsed(seg.id)
        if live is not None:
            return format_duration(live)
        finished = parse_timestamp(seg.completed_at)
        if finished is not None:
            seconds = elapsed_seconds(seg.claimed_at, finished)
            if seconds is not None:
                return format_duration(seconds)
        return "-"

    def _refresh(self):
        self.error_label.configure(text=self.monitor.error)
        detail = self.monitor.detail
        if detail is None:
            self._update_buttons()
            return

        job = detail.job
        self.header_var.set(f"{job.name or job.id}  [{status_style(job.status).label}]")
        self.summary_var.set(
            f"{job.dimensions} @ {job.fps} fps  |  "
            f"{job.completed_segment_count}/{job.segment_count} segments  |  "
            f"run {format_duration(detail.total_run_time)}, "
            f"video {format_duration(detail.total_video_time)}")

        selected = self._selected_segment()
        self.tree.delete(*self.tree.get_children())
        for seg in detail.segments:
            self.tree.insert("", tk.END, iid=seg.id, values=(
                seg.index,
                status_style(seg.status).label,
                seg.worker_name or seg.worker_id or "-",
                self._duration(seg),
                seg.prompt,
            ))
        if selected and self.tree.exists(selected):
            self.tree.selection_set(selected)
        self._update_buttons()

    def close(self):
        self.monitor.unmount()
        self.destroy()
