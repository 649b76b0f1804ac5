"""
Reusable UI components for WanlyConsole.
Built with tkinter (ships with Python).
"""

import tkinter as tk
from tkinter import ttk
from typing import Callable, Optional

from wanly_console.core.constants import ALL_JOB_STATUSES, ROWS_PER_PAGE_OPTIONS, SORT_KEYS
from wanly_console.core.status_projection import status_style, worker_style

DRAG_THRESHOLD_PX = 5

_COLUMNS = ("name", "status", "segments", "dimensions", "fps", "created_at", "updated_at")
_HEADINGS = {
    "name": "Name",
    "status": "Status",
    "segments": "Segments",
    "dimensions": "Dimensions",
    "fps": "FPS",
    "created_at": "Created",
    "updated_at": "Updated",
}


class QueueList(ttk.LabelFrame):
    """
    Job queue table. Pressing a row and moving the pointer starts a drag;
    releasing ends it. Indices are taken from the order shown when the drag
    started. Double-click opens the job.
    """

    def __init__(self, parent, on_drag_start: Callable[[str, int], object] = None,
                 on_drag_end: Callable[[Optional[int], bool], bool] = None,
                 on_sort: Callable[[str], None] = None,
                 on_open: Callable[[str], None] = None, **kwargs):
        super().__init__(parent, text="  Job Queue  ", padding=5, **kwargs)
        self.on_drag_start = on_drag_start
        self.on_drag_end = on_drag_end
        self.on_sort = on_sort
        self.on_open = on_open
        self._press = None
        self._drag_ids: Optional[list[str]] = None
        self._build()

    def _build(self):
        self.tree = ttk.Treeview(self, columns=_COLUMNS, show="headings",
                                 selectmode="browse")
        for col in _COLUMNS:
            command = (lambda c=col: self._sort(c)) if col in SORT_KEYS else ""
            self.tree.heading(col, text=_HEADINGS[col], command=command)
            self.tree.column(col, width=90 if col != "name" else 220, anchor=tk.W)

        for status in ALL_JOB_STATUSES:
            style = status_style(status)
            self.tree.tag_configure(status, background=style.bg, foreground=style.fg)

        scrollbar = ttk.Scrollbar(self, orient=tk.VERTICAL, command=self.tree.yview)
        self.tree.configure(yscrollcommand=scrollbar.set)
        self.tree.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)

        self.tree.bind("<ButtonPress-1>", self._on_press)
        self.tree.bind("<B1-Motion>", self._on_motion)
        self.tree.bind("<ButtonRelease-1>", self._on_release)
        self.tree.bind("<Double-1>", self._on_double_click)
        self.tree.bind("<Escape>", self._on_escape)

    def _sort(self, key: str):
        if self.on_sort:
            self.on_sort(key)

    def update_jobs(self, jobs, draggable: Callable = None):
        """Refresh the entire table."""
        self.tree.delete(*self.tree.get_children())
        for job in jobs:
            handle = "≡ " if draggable and draggable(job) else "  "
            self.tree.insert("", tk.END, iid=job.id, tags=(job.status,), values=(
                handle + job.name,
                status_style(job.status).label,
                f"{job.completed_segment_count}/{job.segment_count}",
                job.dimensions,
                job.fps,
                job.created_at or "-",
                job.updated_at or "-",
            ))

    # ── Drag gesture ──────────────────────────────────────────────────

    def _on_press(self, event):
        self._press = None
        if self.tree.identify_region(event.x, event.y) != "cell":
            return
        row = self.tree.identify_row(event.y)
        if row:
            self._press = (row, event.x, event.y)

    def _on_motion(self, event):
        # A press only becomes a drag once the pointer has moved
        if self._press is None or self._drag_ids is not None or not self.on_drag_start:
            return
        row, x, y = self._press
        if max(abs(event.x - x), abs(event.y - y)) < DRAG_THRESHOLD_PX:
            return
        self._press = None
        ids = list(self.tree.get_children())
        if row in ids and self.on_drag_start(row, ids.index(row)) is not None:
            self._drag_ids = ids
            self.tree.focus_set()

    def _on_double_click(self, event):
        row = self.tree.identify_row(event.y)
        if row and self.on_open:
            self.on_open(row)

    def _on_release(self, event):
        self._press = None
        if self._drag_ids is None:
            return
        ids, self._drag_ids = self._drag_ids, None
        row = self.tree.identify_row(event.y)
        if not row or row not in ids:
            # Dropped outside the table
            self.on_drag_end(None, True)
            return
        self.on_drag_end(ids.index(row), False)

    def _on_escape(self, event):
        if self._drag_ids is None:
            return
        self._drag_ids = None
        self.on_drag_end(None, True)


class QueueControls(ttk.Frame):
    """Status filter and paging controls above the queue table."""

    def __init__(self, parent, on_filter: Callable[[list], None] = None,
                 on_page: Callable[[int], None] = None,
                 on_rows: Callable[[int], None] = None, **kwargs):
        super().__init__(parent, **kwargs)
        self.on_filter = on_filter
        self.on_page = on_page
        self.on_rows = on_rows
        self._page = 0
        self._build()

    def _build(self):
        filter_btn = ttk.Menubutton(self, text="Status filter")
        menu = tk.Menu(filter_btn, tearoff=False)
        self.status_vars = {}
        for status in ALL_JOB_STATUSES:
            var = tk.BooleanVar(value=False)
            self.status_vars[status] = var
            menu.add_checkbutton(label=status_style(status).label, variable=var,
                                 command=self._filter_changed)
        menu.add_separator()
        menu.add_command(label="Clear", command=self._clear_filter)
        filter_btn["menu"] = menu
        filter_btn.pack(side=tk.LEFT)

        self.rows_var = tk.StringVar()
        rows = ttk.Combobox(self, textvariable=self.rows_var, width=4, state="readonly",
                            values=[str(n) for n in ROWS_PER_PAGE_OPTIONS])
        rows.bind("<<ComboboxSelected>>", self._rows_changed)
        rows.pack(side=tk.RIGHT)
        ttk.Label(self, text="Rows:").pack(side=tk.RIGHT, padx=(10, 2))

        self.next_btn = ttk.Button(self, text="›", width=2,
                                   command=lambda: self._go(self._page + 1))
        self.next_btn.pack(side=tk.RIGHT)
        self.page_var = tk.StringVar(value="")
        ttk.Label(self, textvariable=self.page_var).pack(side=tk.RIGHT, padx=5)
        self.prev_btn = ttk.Button(self, text="‹", width=2,
                                   command=lambda: self._go(self._page - 1))
        self.prev_btn.pack(side=tk.RIGHT)

    def update_state(self, page: int, rows_per_page: int, total: int, paged: bool):
        """Reflect the view's paging; in priority mode paging is disabled."""
        self._page = page
        self.rows_var.set(str(rows_per_page))
        last_page = max(0, (total - 1) // rows_per_page)
        if not paged:
            self.page_var.set("All")
            self.prev_btn.configure(state=tk.DISABLED)
            self.next_btn.configure(state=tk.DISABLED)
            return
        start = page * rows_per_page + 1 if total else 0
        end = min(total, (page + 1) * rows_per_page)
        self.page_var.set(f"{start}-{end} of {total}")
        self.prev_btn.configure(state=tk.NORMAL if page > 0 else tk.DISABLED)
        self.next_btn.configure(state=tk.NORMAL if page < last_page else tk.DISABLED)

    def _go(self, page: int):
        if self.on_page and page >= 0:
            self.on_page(page)

    def _filter_changed(self):
        if self.on_filter:
            self.on_filter([s for s, var in self.status_vars.items() if var.get()])

    def _clear_filter(self):
        for var in self.status_vars.values():
            var.set(False)
        self._filter_changed()

    def _rows_changed(self, event=None):
        if self.on_rows:
            self.on_rows(int(self.rows_var.get()))


class WorkersList(ttk.LabelFrame):
    """Worker registry table."""

    def __init__(self, parent, **kwargs):
        super().__init__(parent, text="  Workers  ", padding=5, **kwargs)
        self.summary_var = tk.StringVar(value="")
        ttk.Label(self, textvariable=self.summary_var).pack(fill=tk.X)
        self.error_label = ttk.Label(self, text="", foreground="red")
        self.error_label.pack(fill=tk.X)
        self.tree = ttk.Treeview(self, columns=("name", "status", "host", "heartbeat"),
                                 show="headings")
        for col, text in (("name", "Name"), ("status", "Status"),
                          ("host", "Hostname"), ("heartbeat", "Last Heartbeat")):
            self.tree.heading(col, text=text)
        self.tree.pack(fill=tk.BOTH, expand=True)

    def update_workers(self, workers, online: int, error: str, heartbeat: Callable):
        self.summary_var.set(f"{online} online / {len(workers)} total")
        self.error_label.configure(text=error)
        self.tree.delete(*self.tree.get_children())
        for w in workers:
            self.tree.insert("", tk.END, iid=w.id, values=(
                w.friendly_name, worker_style(w.status).label,
                w.hostname, heartbeat(w.last_heartbeat),
            ))
