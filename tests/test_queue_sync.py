#!/usr/bin/env python3
"""
Unit tests for queue synchronisation: reorder controller, poll loop,
live duration timer, worker registry and job detail monitors.
"""

import itertools
import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest

from wanly_console.core.constants import (
    ErrorCode, JobStatus, QueueMode, SegmentStatus, WorkerStatus,
    PRIORITY_PAGE_LIMIT,
)
from wanly_console.core.detail_sync import JobDetailMonitor, LOAD_ERROR
from wanly_console.core.error_codes import ApiError
from wanly_console.core.live_timer import (
    LiveDurationTimer, elapsed_seconds, format_duration, time_ago,
)
from wanly_console.core.models import (
    JobDetail, JobPage, JobSummary, SegmentSummary, WorkerSummary,
)
from wanly_console.core.poll_loop import PollLoop
from wanly_console.core.queue_model import OrderedQueueView
from wanly_console.core.queue_sync import QueueSync
from wanly_console.core.reorder import (
    ReorderController, array_move, legal_target, legal_window, locks_preserved,
)
from wanly_console.core.scheduling import InlineDispatcher, ThreadDispatcher
from wanly_console.core.status_projection import is_drag_locked
from wanly_console.core.workers_sync import WorkerRegistryMonitor


# ── Test doubles ──────────────────────────────────────────────────────

class FakeScheduler:
    """tkinter-style after/after_cancel driven by advance()."""

    def __init__(self):
        self.now_ms = 0
        self._timers = {}
        self._next = 0

    def after(self, ms, callback):
        self._next += 1
        self._timers[self._next] = (self.now_ms + ms, callback)
        return self._next

    def after_cancel(self, handle):
        self._timers.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._timers)

    def advance(self, ms):
        target = self.now_ms + ms
        while True:
            due = [(when, handle) for handle, (when, _) in self._timers.items()
                   if when <= target]
            if not due:
                break
            when, handle = min(due)
            _, callback = self._timers.pop(handle)
            self.now_ms = when
            callback()
        self.now_ms = target


class QueuedScheduler:
    """Collects after() callbacks from any thread, like Tk's event queue."""

    def __init__(self):
        self._queue = []
        self._cond = threading.Condition()

    def after(self, ms, callback):
        with self._cond:
            self._queue.append(callback)
            self._cond.notify_all()

    def wait_for(self, count, timeout=5) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: len(self._queue) >= count, timeout)

    def run_pending(self):
        with self._cond:
            callbacks, self._queue = self._queue, []
        for callback in callbacks:
            callback()


class DeferredDispatcher:
    """Holds submitted calls until the test resolves them."""

    def __init__(self):
        self.calls = []

    def submit(self, fn, on_success, on_error):
        self.calls.append((fn, on_success, on_error))

    def resolve(self, index=0, result=None):
        fn, on_success, _ = self.calls.pop(index)
        on_success(fn() if result is None else result)

    def run(self, index=0):
        fn, on_success, on_error = self.calls.pop(index)
        try:
            result = fn()
        except Exception as e:
            on_error(e)
            return
        on_success(result)

    def fail(self, index=0, error=None):
        _, _, on_error = self.calls.pop(index)
        on_error(error or ApiError(ErrorCode.NETWORK_TRANSIENT, "down"))


class FakeClient:
    def __init__(self, jobs=None):
        self.jobs = list(jobs or [])
        self.list_calls = []
        self.reorder_calls = []
        self.fail_reorder = False
        self.fail_list = False

    def list_jobs(self, **params):
        self.list_calls.append(params)
        if self.fail_list:
            raise ApiError(ErrorCode.TIMEOUT, "slow")
        return JobPage(items=list(self.jobs), total=len(self.jobs))

    def reorder_jobs(self, ids):
        self.reorder_calls.append(list(ids))
        if self.fail_reorder:
            raise ApiError(ErrorCode.SERVER, "rejected")
        return []


def job(job_id, status=JobStatus.PENDING, **kwargs):
    return JobSummary(id=job_id, name=job_id, status=status, **kwargs)


def make_view(*jobs):
    view = OrderedQueueView()
    view.replace(JobPage(items=list(jobs), total=len(jobs)))
    return view


def ids(view):
    return [j.id for j in view.displayed()]


# ── Pure helpers ──────────────────────────────────────────────────────

class TestReorderHelpers(unittest.TestCase):

    def test_array_move(self):
        self.assertEqual(array_move("abcd", 3, 0), list("dabc"))
        self.assertEqual(array_move("abcd", 0, 2), list("bcad"))
        self.assertEqual(array_move("abcd", 1, 1), list("abcd"))

    def test_clamp_to_first_pending(self):
        displayed = [job("F", JobStatus.FAILED), job("P", JobStatus.PROCESSING),
                     job("A"), job("B")]
        self.assertEqual(legal_target(displayed, 3, 0), 2)
        self.assertEqual(legal_target(displayed, 3, 1), 2)
        self.assertEqual(legal_target(displayed, 2, 3), 3)

    def test_clamp_before_locked_tail(self):
        displayed = [job("A"), job("B"), job("X", JobStatus.ARCHIVED)]
        self.assertEqual(legal_target(displayed, 0, 2), 1)
        self.assertEqual(legal_target(displayed, 0, 99), 1)

    def test_nothing_movable(self):
        displayed = [job("F", JobStatus.FAILED), job("X", JobStatus.ARCHIVED)]
        self.assertIsNone(legal_target(displayed, 0, 1))

    def test_window_stays_inside_own_group(self):
        displayed = [job("F", JobStatus.FAILED), job("A"), job("B"),
                     job("Y", JobStatus.PAUSED), job("Z", JobStatus.PAUSED)]
        self.assertEqual(legal_window(displayed, 1), (1, 2))
        self.assertEqual(legal_window(displayed, 4), (3, 4))
        self.assertEqual(legal_target(displayed, 1, 4), 2)
        self.assertEqual(legal_target(displayed, 4, 0), 3)

    def test_unknown_statuses_share_a_group(self):
        displayed = [job("A"), job("U", "mystery"), job("V", "other")]
        self.assertEqual(legal_window(displayed, 2), (1, 2))
        self.assertEqual(legal_target(displayed, 1, 0), 1)

    def test_locked_row_splits_a_group(self):
        displayed = [job("U", "mystery"), job("C", "completed"), job("V", "other")]
        self.assertEqual(legal_window(displayed, 0), (0, 0))
        self.assertIsNone(legal_window(displayed, 1))

    def test_locks_preserved(self):
        before = [job("F", JobStatus.FAILED), job("A"), job("B")]
        self.assertTrue(locks_preserved(before, [before[0], before[2], before[1]]))
        self.assertFalse(locks_preserved(before, [before[1], before[0], before[2]]))


# ── Queue model ───────────────────────────────────────────────────────

class TestOrderedQueueView(unittest.TestCase):

    def test_priority_groups_keep_server_order(self):
        view = make_view(job("A"), job("F", JobStatus.FAILED), job("B"),
                         job("W", JobStatus.AWAITING), job("Z", JobStatus.PAUSED))
        self.assertEqual(ids(view), ["F", "W", "A", "B", "Z"])

    def test_list_params_by_mode(self):
        view = OrderedQueueView(rows_per_page=10)
        view.set_filter(["pending", "failed"])
        params = view.list_params()
        self.assertEqual(params['limit'], PRIORITY_PAGE_LIMIT)
        self.assertEqual(params['sort'], "priority_asc")
        self.assertEqual(params['status_set'], ["pending", "failed"])

        view.sort_by("fps")
        view.set_page(2)
        params = view.list_params()
        self.assertEqual((params['limit'], params['offset'], params['sort']), (10, 20, None))

    def test_sort_by_semantics(self):
        view = make_view(job("b", fps=24), job("a", fps=16), job("c", fps=30))
        view.sort_by("name")
        self.assertEqual(view.mode, QueueMode.SORTED)
        self.assertEqual(ids(view), ["a", "b", "c"])
        view.sort_by("name")
        self.assertEqual(ids(view), ["c", "b", "a"])
        view.sort_by("fps")
        self.assertEqual(ids(view), ["c", "b", "a"])
        view.reset_priority()
        self.assertEqual(ids(view), ["b", "a", "c"])

    def test_sort_by_timestamp(self):
        view = make_view(job("old", updated_at="2025-01-01T00:00:00Z"),
                         job("new", updated_at="2025-02-01T00:00:00Z"),
                         job("none"))
        view.sort_by("updated_at")
        self.assertEqual(ids(view), ["new", "old", "none"])

    def test_nothing_draggable_outside_priority_mode(self):
        view = make_view(job("A"))
        self.assertTrue(view.is_draggable(view.items[0]))
        view.sort_by("name")
        self.assertFalse(view.is_draggable(view.items[0]))

    def test_unknown_sort_key(self):
        with self.assertRaises(ValueError):
            OrderedQueueView().sort_by("seed")


# ── Reorder controller ────────────────────────────────────────────────

class TestReorderController(unittest.TestCase):

    def _controller(self, view, client=None, dispatcher=None):
        self.client = client or FakeClient()
        self.dispatcher = dispatcher or InlineDispatcher()
        self.changes = 0

        def changed():
            self.changes += 1

        return ReorderController(view, self.client, self.dispatcher, on_change=changed)

    def test_drag_last_to_top(self):
        view = make_view(job("A"), job("B"), job("C"))
        ctl = self._controller(view)
        self.assertIsNotNone(ctl.begin_drag("C", 2))
        self.assertTrue(ctl.is_dragging)
        self.assertTrue(ctl.end_drag(0))
        self.assertFalse(ctl.is_dragging)
        self.assertEqual(ids(view), ["C", "A", "B"])
        self.assertEqual(self.client.reorder_calls, [["C", "A", "B"]])
        self.assertFalse(ctl.busy)

    def test_pending_cannot_jump_locked_head(self):
        view = make_view(job("A", JobStatus.FAILED), job("B"))
        ctl = self._controller(view)
        self.assertIsNotNone(ctl.begin_drag("B", 1))
        self.assertFalse(ctl.end_drag(0))
        self.assertEqual(ids(view), ["A", "B"])
        self.assertEqual(self.client.reorder_calls, [])
        self.assertEqual(self.changes, 0)

    def test_noop_drag_for_every_item(self):
        view = make_view(job("F", JobStatus.FAILED), job("A"), job("B"),
                         job("C"), job("Z", JobStatus.PAUSED))
        ctl = self._controller(view)
        for index, item in enumerate(view.displayed()):
            if ctl.begin_drag(item.id, index) is None:
                continue
            self.assertFalse(ctl.end_drag(index))
        self.assertEqual(self.client.reorder_calls, [])
        self.assertEqual(ids(view), ["F", "A", "B", "C", "Z"])

    def test_locked_item_cannot_start_drag(self):
        view = make_view(job("F", JobStatus.FAILED), job("A"))
        ctl = self._controller(view)
        self.assertIsNone(ctl.begin_drag("F", 0))
        self.assertFalse(ctl.is_dragging)

    def test_stale_index_refused(self):
        view = make_view(job("A"), job("B"))
        ctl = self._controller(view)
        self.assertIsNone(ctl.begin_drag("A", 1))
        self.assertIsNone(ctl.begin_drag("A", 5))

    def test_sorted_mode_refuses_drag(self):
        view = make_view(job("A"), job("B"))
        view.sort_by("name")
        ctl = self._controller(view)
        self.assertIsNone(ctl.begin_drag("A", 0))

    def test_second_gesture_refused_while_open(self):
        view = make_view(job("A"), job("B"))
        ctl = self._controller(view)
        ctl.begin_drag("A", 0)
        self.assertIsNone(ctl.begin_drag("B", 1))

    def test_cancel_leaves_no_trace(self):
        view = make_view(job("A"), job("B"), job("C"))
        ctl = self._controller(view)
        before = view.snapshot()
        ctl.begin_drag("A", 0)
        self.assertFalse(ctl.end_drag(canceled=True))
        self.assertEqual(view.snapshot(), before)
        self.assertEqual(self.client.reorder_calls, [])
        self.assertEqual(self.changes, 0)
        self.assertTrue(ctl.last_operation.canceled)
        self.assertFalse(ctl.busy)

    def test_end_without_begin(self):
        ctl = self._controller(make_view(job("A")))
        self.assertFalse(ctl.end_drag(0))

    def test_locked_tail_keeps_its_position(self):
        view = make_view(job("F", JobStatus.FAILED), job("A"), job("B"),
                         job("X", JobStatus.ARCHIVED))
        ctl = self._controller(view)
        ctl.begin_drag("A", 1)
        self.assertTrue(ctl.end_drag(3))
        self.assertEqual(ids(view), ["F", "B", "A", "X"])
        self.assertEqual(self.client.reorder_calls, [["F", "B", "A", "X"]])

    def test_rollback_on_persist_failure(self):
        dispatcher = DeferredDispatcher()
        view = make_view(job("A"), job("B"))
        ctl = self._controller(view, dispatcher=dispatcher)
        original = view.snapshot()

        ctl.begin_drag("B", 1)
        self.assertTrue(ctl.end_drag(0))
        self.assertEqual(ids(view), ["B", "A"])
        self.assertTrue(ctl.busy)

        dispatcher.fail()
        self.assertEqual(view.snapshot(), original)
        self.assertEqual(ids(view), ["A", "B"])
        self.assertFalse(ctl.busy)

    def test_rollback_with_real_client_failure(self):
        client = FakeClient()
        client.fail_reorder = True
        view = make_view(job("A"), job("B"), job("C"))
        ctl = self._controller(view, client=client)
        ctl.begin_drag("C", 2)
        self.assertTrue(ctl.end_drag(0))
        self.assertEqual(client.reorder_calls, [["C", "A", "B"]])
        self.assertEqual(ids(view), ["A", "B", "C"])

    def test_success_keeps_optimistic_order(self):
        dispatcher = DeferredDispatcher()
        view = make_view(job("A"), job("B"))
        ctl = self._controller(view, dispatcher=dispatcher)
        ctl.begin_drag("B", 1)
        ctl.end_drag(0)
        dispatcher.resolve()
        self.assertEqual(ids(view), ["B", "A"])
        self.assertFalse(ctl.busy)

    def test_persist_calls_are_serialized(self):
        dispatcher = DeferredDispatcher()
        view = make_view(job("A"), job("B"), job("C"))
        ctl = self._controller(view, dispatcher=dispatcher)

        ctl.begin_drag("C", 2)
        ctl.end_drag(0)                       # C A B
        ctl.begin_drag("B", 2)
        ctl.end_drag(1)                       # C B A
        self.assertEqual(ids(view), ["C", "B", "A"])
        self.assertEqual(len(dispatcher.calls), 1)

        dispatcher.resolve()                  # first accepted, second goes out
        self.assertEqual(len(dispatcher.calls), 1)

        self.client.fail_reorder = True
        dispatcher.run()                      # second rejected
        self.assertEqual(self.client.reorder_calls, [["C", "A", "B"], ["C", "B", "A"]])
        self.assertEqual(ids(view), ["C", "A", "B"])
        self.assertFalse(ctl.busy)

    def test_newer_order_supersedes_rejected_one(self):
        dispatcher = DeferredDispatcher()
        view = make_view(job("A"), job("B"), job("C"))
        ctl = self._controller(view, dispatcher=dispatcher)

        ctl.begin_drag("C", 2)
        ctl.end_drag(0)
        ctl.begin_drag("B", 2)
        ctl.end_drag(1)
        dispatcher.fail()                     # first rejected, second still wanted
        self.assertEqual(ids(view), ["C", "B", "A"])
        self.assertEqual(len(dispatcher.calls), 1)

        dispatcher.fail()                     # second rejected too
        self.assertEqual(ids(view), ["A", "B", "C"])

    def test_failure_during_open_gesture_waits_for_it(self):
        dispatcher = DeferredDispatcher()
        view = make_view(job("A"), job("B"), job("C"))
        ctl = self._controller(view, dispatcher=dispatcher)

        ctl.begin_drag("C", 2)
        ctl.end_drag(0)                       # C A B in flight
        ctl.begin_drag("B", 2)
        dispatcher.fail()
        self.assertEqual(ids(view), ["C", "A", "B"])
        self.assertTrue(ctl.busy)

        ctl.end_drag(canceled=True)
        self.assertEqual(ids(view), ["A", "B", "C"])
        self.assertFalse(ctl.busy)

    def test_epoch_moves_only_on_local_write(self):
        view = make_view(job("A"), job("B"))
        ctl = self._controller(view, dispatcher=DeferredDispatcher())
        start = ctl.epoch
        ctl.begin_drag("B", 1)
        self.assertEqual(ctl.epoch, start)
        ctl.end_drag(canceled=True)
        ctl.begin_drag("B", 1)
        ctl.end_drag(1)
        self.assertEqual(ctl.epoch, start)

        ctl.begin_drag("B", 1)
        ctl.end_drag(0)
        self.assertGreater(ctl.epoch, start)

    def test_paused_row_cannot_join_pending_rows(self):
        view = make_view(job("F", JobStatus.FAILED), job("A"), job("Z", JobStatus.PAUSED))
        ctl = self._controller(view)
        ctl.begin_drag("Z", 2)
        self.assertFalse(ctl.end_drag(1))
        ctl.begin_drag("A", 1)
        self.assertFalse(ctl.end_drag(2))
        self.assertEqual(ids(view), ["F", "A", "Z"])
        self.assertEqual(self.client.reorder_calls, [])

    def test_committed_order_is_what_is_displayed(self):
        view = make_view(job("A"), job("Y", JobStatus.PAUSED), job("B"),
                         job("Z", JobStatus.PAUSED))
        ctl = self._controller(view)
        ctl.begin_drag("Z", 3)
        self.assertTrue(ctl.end_drag(0))
        self.assertEqual(ids(view), ["A", "B", "Z", "Y"])
        self.assertEqual(self.client.reorder_calls, [ids(view)])

    def test_every_drag_over_mixed_statuses(self):
        pool = (JobStatus.FAILED, JobStatus.AWAITING, JobStatus.PENDING,
                JobStatus.PAUSED, JobStatus.ARCHIVED, "mystery")
        for statuses in itertools.product(pool, repeat=4):
            jobs = [job(f"j{i}", status) for i, status in enumerate(statuses)]
            before = make_view(*jobs).displayed()
            pending_head = next((i for i, j in enumerate(before)
                                 if j.status == JobStatus.PENDING), None)
            for from_index, to_index in itertools.product(range(4), repeat=2):
                view = make_view(*jobs)
                ctl = self._controller(view)
                if ctl.begin_drag(before[from_index].id, from_index) is None:
                    self.assertTrue(is_drag_locked(before[from_index].status))
                    continue
                committed = ctl.end_drag(to_index)
                after = view.displayed()
                case = f"{statuses} {from_index}->{to_index}"

                for i, item in enumerate(before):
                    if is_drag_locked(item.status):
                        self.assertEqual(after[i].id, item.id, case)
                for i, item in enumerate(after):
                    if item.status == JobStatus.PENDING:
                        self.assertGreaterEqual(i, pending_head, case)
                if committed:
                    self.assertEqual(self.client.reorder_calls, [[j.id for j in after]], case)
                    target = legal_target(before, from_index, to_index)
                    self.assertEqual(after[target].id, before[from_index].id, case)
                else:
                    self.assertEqual(self.client.reorder_calls, [], case)
                    self.assertEqual(after, before, case)


# ── Poll loop ─────────────────────────────────────────────────────────

class TestPollLoop(unittest.TestCase):

    def test_fetches_on_start_and_every_interval(self):
        scheduler = FakeScheduler()
        results = []
        loop = PollLoop(scheduler, InlineDispatcher(), 5000,
                        fetch=lambda: len(results), on_result=results.append)
        loop.start()
        self.assertEqual(results, [0])
        scheduler.advance(4999)
        self.assertEqual(len(results), 1)
        scheduler.advance(1)
        self.assertEqual(len(results), 2)
        scheduler.advance(10000)
        self.assertEqual(len(results), 4)

    def test_failure_is_swallowed_and_retried(self):
        scheduler = FakeScheduler()
        attempts = []
        results = []

        def fetch():
            attempts.append(1)
            if len(attempts) == 1:
                raise ApiError(ErrorCode.NETWORK_TRANSIENT, "blip")
            return "ok"

        loop = PollLoop(scheduler, InlineDispatcher(), 1000,
                        fetch=fetch, on_result=results.append)
        loop.start()
        self.assertEqual(results, [])
        scheduler.advance(1000)
        self.assertEqual(results, ["ok"])

    def test_stop_releases_timer_and_ignores_late_response(self):
        scheduler = FakeScheduler()
        dispatcher = DeferredDispatcher()
        results = []
        loop = PollLoop(scheduler, dispatcher, 1000,
                        fetch=lambda: "late", on_result=results.append)
        loop.start()
        self.assertEqual(scheduler.pending, 1)
        loop.stop()
        self.assertEqual(scheduler.pending, 0)
        dispatcher.resolve()
        self.assertEqual(results, [])

    def test_older_response_dropped(self):
        scheduler = FakeScheduler()
        dispatcher = DeferredDispatcher()
        results = []
        loop = PollLoop(scheduler, dispatcher, 1000,
                        fetch=lambda: None, on_result=results.append)
        loop.start()
        scheduler.advance(1000)
        self.assertEqual(len(dispatcher.calls), 2)
        dispatcher.resolve(1, result="second")
        dispatcher.resolve(0, result="first")
        self.assertEqual(results, ["second"])

    def test_thread_dispatcher_marshals_back(self):
        done = threading.Event()
        seen = []

        class ImmediateScheduler:
            def after(self, ms, callback):
                callback()

        def on_success(value):
            seen.append(value)
            done.set()

        ThreadDispatcher(ImmediateScheduler()).submit(lambda: 7, on_success, seen.append)
        self.assertTrue(done.wait(5))
        self.assertEqual(seen, [7])

    def test_thread_dispatcher_delivers_error_later(self):
        scheduler = QueuedScheduler()
        errors = []
        ThreadDispatcher(scheduler).submit(lambda: 1 / 0, errors.append, errors.append)
        self.assertTrue(scheduler.wait_for(1))
        scheduler.run_pending()
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], ZeroDivisionError)

    def test_rejected_reorder_rolls_back_through_threads(self):
        scheduler = QueuedScheduler()
        client = FakeClient()
        client.fail_reorder = True
        view = make_view(job("A"), job("B"))
        ctl = ReorderController(view, client, ThreadDispatcher(scheduler))
        ctl.begin_drag("B", 1)
        self.assertTrue(ctl.end_drag(0))
        self.assertEqual(ids(view), ["B", "A"])

        self.assertTrue(scheduler.wait_for(1))
        scheduler.run_pending()
        self.assertEqual(ids(view), ["A", "B"])
        self.assertFalse(ctl.busy)


# ── Queue sync session ────────────────────────────────────────────────

class TestQueueSync(unittest.TestCase):

    def setUp(self):
        self.scheduler = FakeScheduler()
        self.dispatcher = DeferredDispatcher()
        self.client = FakeClient([job("A"), job("B"), job("C")])
        self.sync = QueueSync(self.client, self.scheduler, self.dispatcher)

    def test_mount_polls_and_unmount_stops(self):
        self.sync.mount()
        self.dispatcher.resolve()
        self.assertEqual(ids(self.sync.view), ["A", "B", "C"])
        self.assertEqual(self.client.list_calls[0]['sort'], "priority_asc")
        self.sync.unmount()
        self.assertEqual(self.scheduler.pending, 0)

    def test_poll_during_drag_is_ignored(self):
        self.sync.mount()
        self.dispatcher.resolve()
        self.scheduler.advance(5000)          # request issued before the drag
        self.client.jobs = [job("B"), job("A"), job("C")]

        self.sync.begin_drag("A", 0)
        self.dispatcher.resolve()
        self.assertEqual(ids(self.sync.view), ["A", "B", "C"])

        self.scheduler.advance(5000)          # no request while dragging
        self.assertEqual(self.dispatcher.calls, [])

        self.sync.end_drag(canceled=True)
        self.assertEqual(ids(self.sync.view), ["A", "B", "C"])

        self.scheduler.advance(5000)
        self.dispatcher.resolve()
        self.assertEqual(ids(self.sync.view), ["B", "A", "C"])

    def test_response_survives_drag_that_changed_nothing(self):
        self.sync.mount()
        self.dispatcher.resolve()
        self.scheduler.advance(5000)
        self.client.jobs = [job("C"), job("B"), job("A")]
        self.sync.begin_drag("B", 1)
        self.sync.end_drag(canceled=True)
        self.sync.begin_drag("B", 1)
        self.sync.end_drag(1)
        self.dispatcher.resolve()
        self.assertEqual(ids(self.sync.view), ["C", "B", "A"])

    def test_response_issued_before_commit_dropped(self):
        self.sync.mount()
        self.dispatcher.resolve()
        self.scheduler.advance(5000)          # poll outstanding
        self.client.jobs = [job("B"), job("A"), job("C")]
        self.sync.begin_drag("C", 2)
        self.assertTrue(self.sync.end_drag(0))
        self.dispatcher.resolve(1)            # reorder accepted
        self.dispatcher.resolve(0)            # older poll arrives afterwards
        self.assertEqual(ids(self.sync.view), ["C", "A", "B"])

    def test_poll_waits_for_reorder_reconciliation(self):
        self.sync.mount()
        self.dispatcher.resolve()
        self.sync.begin_drag("C", 2)
        self.assertTrue(self.sync.end_drag(0))
        self.assertEqual(len(self.dispatcher.calls), 1)   # the reorder

        self.scheduler.advance(5000)
        self.assertEqual(len(self.dispatcher.calls), 1)   # poll skipped

        self.dispatcher.fail()
        self.assertEqual(ids(self.sync.view), ["A", "B", "C"])
        self.scheduler.advance(5000)
        self.assertEqual(len(self.dispatcher.calls), 1)   # polling resumed

    def test_failed_poll_keeps_last_good_state(self):
        self.sync.mount()
        self.dispatcher.resolve()
        self.scheduler.advance(5000)
        self.dispatcher.fail()
        self.assertEqual(ids(self.sync.view), ["A", "B", "C"])

    def test_filter_change_refreshes_and_drops_old_response(self):
        self.sync.mount()
        self.dispatcher.resolve()
        self.scheduler.advance(5000)          # old-filter request outstanding
        self.sync.set_filter([JobStatus.FAILED])
        self.assertEqual(len(self.dispatcher.calls), 2)

        old_page = JobPage(items=[job("X")], total=1)
        new_page = JobPage(items=[job("F", JobStatus.FAILED)], total=1)
        self.dispatcher.resolve(0, result=old_page)
        self.assertEqual(ids(self.sync.view), ["A", "B", "C"])
        self.dispatcher.resolve(0, result=new_page)
        self.assertEqual(ids(self.sync.view), ["F"])

        self.scheduler.advance(5000)
        self.dispatcher.run()
        self.assertEqual(self.client.list_calls[-1]['status_set'], [JobStatus.FAILED])

    def test_on_change_fires_on_page(self):
        seen = []
        sync = QueueSync(self.client, self.scheduler, InlineDispatcher(),
                         on_change=lambda: seen.append(1))
        sync.mount()
        self.assertEqual(len(seen), 1)
        sync.unmount()


# ── Live duration timer ───────────────────────────────────────────────

T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestLiveTimer(unittest.TestCase):

    def setUp(self):
        self.scheduler = FakeScheduler()
        self.now = T0
        self.ticks = 0

        def tick():
            self.ticks += 1

        self.timer = LiveDurationTimer(self.scheduler, now=lambda: self.now,
                                       tick_ms=1000, on_tick=tick)

    def test_format_helpers(self):
        self.assertEqual(format_duration(42), "42s")
        self.assertEqual(format_duration(90), "1m 30s")
        self.assertEqual(format_duration(119.7), "2m 0s")
        self.assertEqual(elapsed_seconds("2025-03-01T11:59:00Z", T0), 60.0)
        self.assertIsNone(elapsed_seconds(None, T0))
        self.assertEqual(time_ago("2025-03-01T11:59:30Z", T0), "30s ago")
        self.assertEqual(time_ago("2025-03-01T09:00:00Z", T0), "3h ago")
        self.assertEqual(time_ago("2025-02-27T12:00:00Z", T0), "2d ago")

    def test_ticks_while_active(self):
        self.timer.track("s1", SegmentStatus.PROCESSING, "2025-03-01T11:58:00Z")
        self.assertTrue(self.timer.active)
        self.assertEqual(self.timer.elapsed("s1"), 120.0)
        self.now = T0 + timedelta(seconds=3)
        self.scheduler.advance(3000)
        self.assertEqual(self.ticks, 3)
        self.assertEqual(self.timer.elapsed("s1"), 123.0)

    def test_stops_when_row_leaves_active_status(self):
        self.timer.track("s1", SegmentStatus.CLAIMED, "2025-03-01T11:58:00Z")
        self.timer.track("s1", SegmentStatus.COMPLETED, "2025-03-01T11:58:00Z")
        self.assertFalse(self.timer.active)
        self.assertEqual(self.scheduler.pending, 0)
        self.assertIsNone(self.timer.elapsed("s1"))

    def test_inactive_or_unstarted_rows_not_tracked(self):
        self.timer.track("s1", SegmentStatus.PENDING, "2025-03-01T11:58:00Z")
        self.timer.track("s2", SegmentStatus.PROCESSING, None)
        self.assertFalse(self.timer.active)

    def test_sync_drops_missing_rows(self):
        segs = [SegmentSummary(id="s1", status=SegmentStatus.PROCESSING,
                               claimed_at="2025-03-01T11:58:00Z"),
                SegmentSummary(id="s2", status=SegmentStatus.CLAIMED,
                               claimed_at="2025-03-01T11:59:00Z")]
        self.timer.sync(segs)
        self.assertEqual(sorted(self.timer.tracked_ids()), ["s1", "s2"])
        self.timer.sync(segs[1:])
        self.assertEqual(self.timer.tracked_ids(), ["s2"])
        self.timer.sync([])
        self.assertFalse(self.timer.active)

    def test_repeated_mount_unmount_leaks_nothing(self):
        for _ in range(5):
            self.timer.track("s1", SegmentStatus.PROCESSING, "2025-03-01T11:58:00Z")
            self.timer.track("s2", SegmentStatus.PROCESSING, "2025-03-01T11:58:00Z")
            self.assertEqual(self.scheduler.pending, 1)
            self.timer.stop()
            self.assertEqual(self.scheduler.pending, 0)


# ── Registry and detail monitors ──────────────────────────────────────

class _RegistryClient:
    def __init__(self):
        self.fail = False
        self.workers = [
            WorkerSummary(id="w1", status=WorkerStatus.OFFLINE),
            WorkerSummary(id="w2", status=WorkerStatus.IDLE),
            WorkerSummary(id="w3", status=WorkerStatus.BUSY),
        ]

    def list_workers(self):
        if self.fail:
            raise ApiError(ErrorCode.NETWORK_TRANSIENT, "down")
        return list(self.workers)


class TestWorkerRegistryMonitor(unittest.TestCase):

    def test_sorted_and_error_surfaced(self):
        scheduler = FakeScheduler()
        client = _RegistryClient()
        monitor = WorkerRegistryMonitor(client, scheduler, InlineDispatcher(),
                                        interval_ms=10000)
        monitor.mount()
        self.assertEqual([w.id for w in monitor.workers], ["w3", "w2", "w1"])
        self.assertEqual(monitor.online_count, 2)
        self.assertEqual(monitor.error, "")

        client.fail = True
        scheduler.advance(10000)
        self.assertEqual(monitor.error, "Failed to load workers")
        self.assertEqual(len(monitor.workers), 3)

        client.fail = False
        scheduler.advance(10000)
        self.assertEqual(monitor.error, "")
        monitor.unmount()
        self.assertEqual(scheduler.pending, 0)


class _DetailClient:
    def __init__(self, status=JobStatus.AWAITING):
        self.status = status
        self.finalized = []
        self.retried = []
        self.fail_get = False

    def get_job(self, job_id):
        if self.fail_get:
            raise ApiError(ErrorCode.NOT_FOUND, "gone")
        return JobDetail(
            job=JobSummary(id=job_id, status=self.status),
            segments=[
                SegmentSummary(id="s1", status=SegmentStatus.FAILED),
                SegmentSummary(id="s2", status=SegmentStatus.PROCESSING,
                               claimed_at="2025-03-01T11:59:00Z"),
            ],
        )

    def finalize_job(self, job_id):
        self.finalized.append(job_id)

    def retry_segment(self, segment_id):
        self.retried.append(segment_id)

    def delete_segment(self, segment_id):
        pass


class TestJobDetailMonitor(unittest.TestCase):

    def _monitor(self, client):
        self.scheduler = FakeScheduler()
        return JobDetailMonitor(client, "j1", self.scheduler, InlineDispatcher(),
                                now=lambda: T0)

    def test_detail_drives_timer_and_actions(self):
        client = _DetailClient()
        monitor = self._monitor(client)
        monitor.mount()
        self.assertEqual(monitor.timer.elapsed("s2"), 60.0)
        self.assertTrue(monitor.finalize())
        self.assertEqual(client.finalized, ["j1"])
        self.assertTrue(monitor.retry_segment("s1"))
        self.assertFalse(monitor.retry_segment("s2"))
        self.assertEqual(client.retried, ["s1"])
        monitor.unmount()
        self.assertEqual(self.scheduler.pending, 0)

    def test_finalize_refused_unless_awaiting(self):
        client = _DetailClient(status=JobStatus.PROCESSING)
        monitor = self._monitor(client)
        monitor.mount()
        self.assertFalse(monitor.finalize())
        self.assertEqual(client.finalized, [])
        monitor.unmount()

    def test_load_error(self):
        client = _DetailClient()
        client.fail_get = True
        monitor = self._monitor(client)
        monitor.mount()
        self.assertEqual(monitor.error, LOAD_ERROR)
        self.assertIsNone(monitor.detail)
        monitor.unmount()


if __name__ == "__main__":
    unittest.main()
