"""
Timer and dispatch helpers shared by the poll loops, the reorder
controller and the live duration timer.

A "scheduler" is anything with tkinter's timer API:
    after(ms, callback) -> handle
    after_cancel(handle)
so a Tk root window can be passed in directly.

A "dispatcher" runs a blocking call (an HTTP request) and delivers the
outcome back on the scheduler's thread:
    submit(fn, on_success, on_error)
"""

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class ThreadDispatcher:
    """Runs each call on a daemon thread; results come back via scheduler.after(0, ...)."""

    def __init__(self, scheduler):
        self.scheduler = scheduler

    def submit(self, fn: Callable, on_success: Callable, on_error: Callable):
        def run():
            try:
                result = fn()
            except Exception as e:
                self.scheduler.after(0, lambda err=e: on_error(err))
                return
            self.scheduler.after(0, lambda: on_success(result))

        threading.Thread(target=run, daemon=True).start()


class InlineDispatcher:
    """Runs the call synchronously on the caller's thread."""

    def submit(self, fn: Callable, on_success: Callable, on_error: Callable):
        try:
            result = fn()
        except Exception as e:
            on_error(e)
            return
        on_success(result)
