"""Change-triggered refresh loop and the file watcher that feeds it."""

from __future__ import annotations

import enum
import logging
import threading
import time
from pathlib import Path
from typing import Any, Optional, Protocol

from ..ignore import IgnoreRules
from ..pipeline import AnalysisResult
from ..reports import ReportSet
from .state import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.75

# watchfiles batches raw events for this long before yielding them
WATCH_BATCH_MS = 50


class RefreshState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    AGGREGATING = "aggregating"


class Cycle(Protocol):
    def collect(self) -> ReportSet: ...

    def aggregate(self, reports: ReportSet) -> AnalysisResult: ...


class RefreshLoop:
    """Coordinates re-analysis so at most one cycle runs at a time.

    Change events restart a debounce timer while idle.  Events arriving
    during a cycle set ``change_pending``; however many arrive, exactly one
    follow-up cycle starts as soon as the current one finishes, without
    another debounce wait.  A failed cycle is logged and the last good
    snapshot stays published.
    """

    def __init__(
        self,
        cycle: Cycle,
        store: SnapshotStore,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.cycle = cycle
        self.store = store
        self.debounce_seconds = debounce_seconds

        self._cond = threading.Condition(threading.RLock())
        self._state = RefreshState.IDLE
        self._change_pending = False
        self._timer: Optional[threading.Timer] = None
        self._stopped = False
        self.cycles_started = 0
        self.last_error: Optional[str] = None

    # ── events ────────────────────────────────────────────────────────

    def notify_change(self, paths: Optional[list[str]] = None) -> None:
        """Record a file-system change."""
        with self._cond:
            if self._stopped:
                return
            if self._state is RefreshState.IDLE:
                if self._timer is not None:
                    logger.debug("Change within debounce window, restarting timer")
                self._schedule(self.debounce_seconds)
            else:
                if not self._change_pending:
                    logger.debug("Change during %s cycle, queueing one more", self._state.value)
                self._change_pending = True
        if paths:
            logger.info("Detected %d changed file(s)", len(paths))

    def request_refresh(self) -> None:
        """Ask for a refresh now, coalescing with any cycle already underway."""
        with self._cond:
            if self._stopped:
                return
            if self._state is RefreshState.IDLE:
                self._schedule(0)
            else:
                self._change_pending = True

    def start(self) -> None:
        """Kick off the initial cycle without waiting for a change."""
        with self._cond:
            self._stopped = False
            if self._state is RefreshState.IDLE:
                self._schedule(0)

    def run_now(self) -> None:
        """Run one cycle on the calling thread (used for the initial analysis)."""
        with self._cond:
            if self._state is not RefreshState.IDLE:
                self._change_pending = True
                return
            self._cancel_timer()
            self._begin()
        self._run_cycles()

    def stop(self) -> None:
        with self._cond:
            self._stopped = True
            self._cancel_timer()
            self._change_pending = False
            self._cond.notify_all()

    # ── introspection ─────────────────────────────────────────────────

    @property
    def state(self) -> RefreshState:
        with self._cond:
            return self._state

    @property
    def change_pending(self) -> bool:
        with self._cond:
            return self._change_pending

    def status(self) -> dict[str, Any]:
        with self._cond:
            snapshot = self.store.snapshot()
            return {
                "state": self._state.value,
                "changePending": self._change_pending,
                "cyclesStarted": self.cycles_started,
                "generatedAt": snapshot.generated_at if snapshot is not None else None,
                "lastError": self.last_error,
            }

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no cycle is running or scheduled.  True on success."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._state is not RefreshState.IDLE or (
                self._timer is not None and not self._stopped
            ):
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    # ── internals ─────────────────────────────────────────────────────

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        timer = threading.Timer(delay, self._on_timer)
        timer.daemon = True
        timer.name = "code-health-refresh"
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        with self._cond:
            if self._stopped or self._timer is not threading.current_thread():
                return
            self._timer = None
            if self._state is not RefreshState.IDLE:
                self._change_pending = True
                return
            self._begin()
        self._run_cycles()

    def _begin(self) -> None:
        self._state = RefreshState.RUNNING
        self.cycles_started += 1
        logger.info("Starting analysis cycle %d", self.cycles_started)

    def _set_state(self, state: RefreshState) -> None:
        with self._cond:
            self._state = state
            self._cond.notify_all()

    def _run_cycles(self) -> None:
        """Run cycles until no change is pending, then return to idle."""
        rerun = True
        try:
            while rerun:
                self._run_cycle()
                with self._cond:
                    rerun = self._change_pending and not self._stopped
                    if rerun:
                        self._change_pending = False
                        logger.debug("Changes arrived during the cycle, running again now")
                        self._begin()
        finally:
            with self._cond:
                self._state = RefreshState.IDLE
                self._cond.notify_all()

    def _run_cycle(self) -> None:
        try:
            reports = self.cycle.collect()
            self._set_state(RefreshState.AGGREGATING)
            result = self.cycle.aggregate(reports)
            self.store.publish(result)
            self.last_error = None
            logger.info(
                "Cycle %d published snapshot %s", self.cycles_started, result.snapshot.generated_at
            )
        except Exception as exc:
            self.last_error = f"{type(exc).__name__}: {exc}"
            logger.exception("Analysis cycle failed; keeping the last good snapshot")


class FileWatcher:
    """Watches the analysis root and forwards changes to a :class:`RefreshLoop`.

    Uses ``watchfiles`` (Rust-backed) in a daemon thread.
    """

    def __init__(
        self,
        root: Path,
        loop: RefreshLoop,
        ignore: IgnoreRules,
        exclude_dirs: tuple[Path, ...] = (),
    ) -> None:
        self.root = Path(root).resolve()
        self.loop = loop
        self.filter = ChangeFilter(self.root, ignore, exclude_dirs)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="code-health-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        logger.debug("Stopping watcher thread...")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            if self._thread.is_alive():
                logger.warning("Watcher thread did not exit within 5 seconds")

    def _watch_loop(self) -> None:
        from watchfiles import watch

        logger.info("Watching %s for changes", self.root)
        try:
            for changes in watch(
                self.root,
                stop_event=self._stop_event,
                debounce=WATCH_BATCH_MS,
                rust_timeout=5000,
                watch_filter=self.filter,
            ):
                if self._stop_event.is_set():
                    break
                self.loop.notify_change([path for _change, path in changes])
        except Exception:
            logger.exception("File watcher stopped unexpectedly")


class ChangeFilter:
    """watchfiles filter: drop ignored paths and the reports directory."""

    def __init__(self, root: Path, ignore: IgnoreRules, exclude_dirs: tuple[Path, ...] = ()):
        self.root = root
        self.ignore = ignore
        self.exclude_dirs = tuple(Path(d).resolve() for d in exclude_dirs)

    def __call__(self, change: Any, path: str) -> bool:
        p = Path(path)
        for excluded in self.exclude_dirs:
            if p == excluded or excluded in p.parents:
                return False
        try:
            relative = p.relative_to(self.root).as_posix()
        except ValueError:
            return False
        return not self.ignore.is_ignored(relative)
