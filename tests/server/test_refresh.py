"""Tests for the refresh loop and the watcher's change filter."""

import threading
import time

import pytest

from code_health.aggregate import aggregate
from code_health.ignore import IgnoreRules
from code_health.pipeline import AnalysisResult
from code_health.reports import ReportSet
from code_health.server.state import SnapshotStore
from code_health.server.watcher import ChangeFilter, RefreshLoop, RefreshState

DEBOUNCE = 0.2


class FakeCycle:
    """Counts cycles; ``gate`` (if set) holds collect() until released."""

    def __init__(self, gate=None, fail=False):
        self.gate = gate
        self.fail = fail
        self.collects = 0
        self.collect_times = []
        self.finish_times = []
        self.started = threading.Event()
        self._lock = threading.Lock()

    def collect(self):
        with self._lock:
            self.collects += 1
            self.collect_times.append(time.monotonic())
        self.started.set()
        if self.gate is not None:
            assert self.gate.wait(timeout=5)
        if self.fail:
            raise RuntimeError("tool exploded")
        return ReportSet()

    def aggregate(self, reports):
        self.finish_times.append(time.monotonic())
        return AnalysisResult(snapshot=aggregate(reports, "/p"), reports=reports, root="/p")


@pytest.fixture
def store():
    return SnapshotStore()


class TestCoalescing:
    def test_burst_within_debounce_window_runs_once(self, store):
        cycle = FakeCycle()
        loop = RefreshLoop(cycle, store, debounce_seconds=DEBOUNCE)
        for _ in range(5):
            loop.notify_change(["src/a.ts"])
            time.sleep(DEBOUNCE / 10)
        assert loop.wait_idle(timeout=5)
        assert cycle.collects == 1
        assert store.ready
        loop.stop()

    def test_changes_during_cycle_trigger_exactly_one_more(self, store):
        gate = threading.Event()
        cycle = FakeCycle(gate=gate)
        loop = RefreshLoop(cycle, store, debounce_seconds=DEBOUNCE)

        loop.notify_change(["src/a.ts"])
        assert cycle.started.wait(timeout=5)
        assert loop.state is RefreshState.RUNNING

        for _ in range(3):
            loop.notify_change(["src/b.ts"])
        assert loop.change_pending

        gate.set()
        assert loop.wait_idle(timeout=5)
        assert cycle.collects == 2
        assert not loop.change_pending
        loop.stop()

    def test_follow_up_starts_without_another_debounce(self, store):
        gate = threading.Event()
        cycle = FakeCycle(gate=gate)
        loop = RefreshLoop(cycle, store, debounce_seconds=1.0)

        loop.request_refresh()
        assert cycle.started.wait(timeout=5)
        loop.notify_change(["src/b.ts"])

        gate.set()
        assert loop.wait_idle(timeout=5)
        assert cycle.collects == 2
        assert cycle.collect_times[1] - cycle.finish_times[0] < 0.5
        loop.stop()

    def test_no_change_no_follow_up(self, store):
        cycle = FakeCycle()
        loop = RefreshLoop(cycle, store, debounce_seconds=DEBOUNCE)
        loop.run_now()
        assert cycle.collects == 1
        assert loop.wait_idle(timeout=1)
        assert cycle.collects == 1

    def test_request_refresh_during_cycle_is_coalesced(self, store):
        gate = threading.Event()
        cycle = FakeCycle(gate=gate)
        loop = RefreshLoop(cycle, store, debounce_seconds=DEBOUNCE)
        loop.start()
        assert cycle.started.wait(timeout=5)
        loop.request_refresh()
        loop.request_refresh()
        gate.set()
        assert loop.wait_idle(timeout=5)
        assert cycle.collects == 2
        loop.stop()


class TestFailures:
    def test_failed_cycle_keeps_last_snapshot(self, store):
        cycle = FakeCycle()
        loop = RefreshLoop(cycle, store, debounce_seconds=DEBOUNCE)
        loop.run_now()
        first = store.latest()

        cycle.fail = True
        loop.run_now()
        assert store.latest() is first
        assert loop.state is RefreshState.IDLE
        assert "tool exploded" in loop.status()["lastError"]

    def test_stop_cancels_pending_timer(self, store):
        cycle = FakeCycle()
        loop = RefreshLoop(cycle, store, debounce_seconds=DEBOUNCE)
        loop.notify_change()
        loop.stop()
        time.sleep(DEBOUNCE * 2)
        assert cycle.collects == 0
        loop.notify_change()
        time.sleep(DEBOUNCE * 2)
        assert cycle.collects == 0


class TestStatus:
    def test_status_shape(self, store):
        loop = RefreshLoop(FakeCycle(), store, debounce_seconds=DEBOUNCE)
        assert loop.status() == {
            "state": "idle",
            "changePending": False,
            "cyclesStarted": 0,
            "generatedAt": None,
            "lastError": None,
        }
        loop.run_now()
        status = loop.status()
        assert status["cyclesStarted"] == 1
        assert status["generatedAt"] == store.snapshot().generated_at


class TestChangeFilter:
    def test_filters_ignored_and_state_dirs(self, tmp_path):
        root = tmp_path / "proj"
        state_dir = tmp_path / "state"
        change_filter = ChangeFilter(
            root, IgnoreRules(patterns=("**/node_modules/**",)), exclude_dirs=(state_dir,)
        )
        assert change_filter(None, str(root / "src" / "a.ts"))
        assert not change_filter(None, str(root / "node_modules" / "x" / "i.js"))
        assert not change_filter(None, str(state_dir / ".reports" / "eslint.json"))
        assert not change_filter(None, str(tmp_path / "elsewhere.ts"))
