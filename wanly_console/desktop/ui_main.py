"""
Main application window for WanlyConsole.
Built with tkinter — no external UI dependencies.
Shows the job queue (drag to reprioritise) and the worker registry.
"""

import logging
import tkinter as tk
from tkinter import ttk
from pathlib import Path

from wanly_console.core.constants import (
    APP_DISPLAY_NAME, APP_VERSION, APP_SUPPORT_DIR, LOG_DIR,
)
from wanly_console.core.api_client import QueueApiClient
from wanly_console.core.config import AppConfig
from wanly_console.core.live_timer import time_ago, utc_now
from wanly_console.core.queue_sync import QueueSync
from wanly_console.core.scheduling import ThreadDispatcher
from wanly_console.core.workers_sync import WorkerRegistryMonitor
from wanly_console.desktop.ui_components import QueueControls, QueueList, WorkersList
from wanly_console.desktop.ui_detail import JobDetailWindow

logger = logging.getLogger(__name__)


class MainWindow:
    """Main application window."""

    def __init__(self):
        self.root = tk.Tk()
        self.root.title(f"{APP_DISPLAY_NAME} v{APP_VERSION}")
        self.root.geometry("1000x650")
        self.root.minsize(800, 500)
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self._closed = False

        self._init_backend()
        self._build_ui()

        self.queue_sync.mount()
        self.workers.mount()

    def _init_backend(self):
        """Initialize config, API client and the sync sessions."""
        APP_SUPPORT_DIR.mkdir(parents=True, exist_ok=True)

        self.config = AppConfig()
        self.client = QueueApiClient.from_config(self.config)
        dispatcher = ThreadDispatcher(self.root)
        self.dispatcher = dispatcher
        self.detail_windows: dict[str, JobDetailWindow] = {}

        self.queue_sync = QueueSync(
            self.client, self.root, dispatcher, self.config,
            on_change=self._refresh_queue,
        )
        self.workers = WorkerRegistryMonitor(
            self.client, self.root, dispatcher,
            interval_ms=self.config.registry_poll_ms,
            on_change=self._refresh_workers,
        )

    def _build_ui(self):
        style = ttk.Style()
        try:
            style.theme_use('clam')
        except tk.TclError:
            pass

        self.notebook = ttk.Notebook(self.root)
        self.notebook.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)

        # ── Tab 1: Queue ──
        queue_tab = ttk.Frame(self.notebook)
        self.notebook.add(queue_tab, text="  Queue  ")

        btn_frame = ttk.Frame(queue_tab)
        btn_frame.pack(fill=tk.X, padx=10, pady=5)
        self.priority_btn = ttk.Button(btn_frame, text="Reset to priority order",
                                       command=self.queue_sync.reset_priority)
        self.refresh_btn = ttk.Button(btn_frame, text="Refresh",
                                      command=self.queue_sync.refresh)
        self.refresh_btn.pack(side=tk.RIGHT)

        self.controls = QueueControls(
            queue_tab,
            on_filter=self.queue_sync.set_filter,
            on_page=self.queue_sync.set_page,
            on_rows=self._on_rows_per_page,
        )
        self.controls.pack(fill=tk.X, padx=10)

        self.status_var = tk.StringVar(value="Loading...")
        status_bar = ttk.Label(queue_tab, textvariable=self.status_var,
                               relief=tk.SUNKEN, anchor=tk.W)
        status_bar.pack(side=tk.BOTTOM, fill=tk.X, padx=10, pady=(0, 5))

        self.queue_list = QueueList(
            queue_tab,
            on_drag_start=self.queue_sync.begin_drag,
            on_drag_end=self._on_drag_end,
            on_sort=self.queue_sync.sort_by,
            on_open=self._open_job,
        )
        self.queue_list.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

        # ── Tab 2: Workers ──
        workers_tab = ttk.Frame(self.notebook)
        self.notebook.add(workers_tab, text="  Workers  ")
        self.workers_list = WorkersList(workers_tab)
        self.workers_list.pack(fill=tk.BOTH, expand=True, padx=10, pady=10)

    # ── Event handlers ────────────────────────────────────────────────

    def _on_drag_end(self, to_index, canceled):
        committed = self.queue_sync.end_drag(to_index=to_index, canceled=canceled)
        if committed:
            self.status_var.set("Saving new order...")
        return committed

    def _on_rows_per_page(self, rows: int):
        self.config.set('rows_per_page', rows)
        self.queue_sync.set_rows_per_page(rows)

    def _open_job(self, job_id: str):
        window = self.detail_windows.get(job_id)
        if window is not None and window.winfo_exists():
            window.lift()
            return
        window = JobDetailWindow(self.root, self.client, self.dispatcher, job_id)
        self.detail_windows[job_id] = window
        logger.info("Opened job %s", job_id)

    # ── UI refresh ────────────────────────────────────────────────────

    def _refresh_queue(self):
        try:
            view = self.queue_sync.view
            self.queue_list.update_jobs(view.displayed(), draggable=view.is_draggable)
            self.controls.update_state(view.page, view.rows_per_page, view.total,
                                       paged=not view.is_priority_mode)
            if view.is_priority_mode:
                self.priority_btn.pack_forget()
            else:
                self.priority_btn.pack(side=tk.LEFT)
            if not view.items:
                self.status_var.set("No jobs match the selected filters."
                                    if view.status_filter else "No jobs yet.")
            else:
                self.status_var.set(f"{len(view.items)} of {view.total} job(s)")
        except Exception as e:
            logger.error("Error refreshing queue: %s", e)

    def _refresh_workers(self):
        now = utc_now()
        self.workers_list.update_workers(
            self.workers.workers, self.workers.online_count, self.workers.error,
            heartbeat=lambda ts: time_ago(ts, now),
        )

    # ── Run ───────────────────────────────────────────────────────────

    def run(self):
        """Start the application main loop."""
        self.root.mainloop()

    def _on_close(self):
        self.cleanup()
        self.root.destroy()

    def cleanup(self):
        """Stop polling and timers while the Tk root still exists; safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for window in self.detail_windows.values():
            window.monitor.unmount()
        self.queue_sync.unmount()
        self.workers.unmount()
        self.client.close()


def main():
    """Application entry point."""
    # Configure logging (only add file handler if not already configured)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            handlers=[
                logging.FileHandler(Path(LOG_DIR) / "app.log"),
            ],
        )

    app = MainWindow()
    try:
        app.run()
    finally:
        app.cleanup()


if __name__ == "__main__":
    main()
