"""Thread-safe holder of the latest analysis result."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Optional

from ..pipeline import AnalysisResult
from ..snapshot import Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Holds the latest published :class:`AnalysisResult`.

    The refresh loop publishes from a worker thread; Starlette handlers read
    from the event loop.  A publish is a single reference swap, so readers see
    either the previous result or the new one, never a mix.

    Subscribers are ``asyncio.Queue`` objects.  Delivery is latest-wins: a
    subscriber that has not consumed the previous update gets only the newest.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._result: Optional[AnalysisResult] = None
        self._listeners: list[tuple[asyncio.Queue, Optional[asyncio.AbstractEventLoop]]] = []

    def publish(self, result: AnalysisResult) -> bool:
        """Make *result* the latest; returns False if it is older than the current one."""
        with self._lock:
            current = self._result
            if (
                current is not None
                and result.snapshot.generated_at < current.snapshot.generated_at
            ):
                logger.warning(
                    "Dropping out-of-order snapshot from %s", result.snapshot.generated_at
                )
                return False
            self._result = result
            listeners = list(self._listeners)

        message = update_message(result.snapshot)
        for queue, loop in listeners:
            if loop is None:
                self._send_to_queue(queue, message)
            else:
                try:
                    loop.call_soon_threadsafe(self._send_to_queue, queue, message)
                except RuntimeError:
                    # Event loop already closed; the subscriber is gone.
                    self.remove_listener(queue)
        return True

    def latest(self) -> Optional[AnalysisResult]:
        with self._lock:
            return self._result

    def snapshot(self) -> Optional[Snapshot]:
        result = self.latest()
        return result.snapshot if result is not None else None

    @property
    def ready(self) -> bool:
        return self.latest() is not None

    def add_listener(
        self, queue: asyncio.Queue, loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> None:
        """Register *queue*; *loop* is the event loop that owns it, if any."""
        with self._lock:
            self._listeners.append((queue, loop))

    def remove_listener(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._listeners = [(q, l) for q, l in self._listeners if q is not queue]

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def clear_listeners(self) -> int:
        with self._lock:
            count = len(self._listeners)
            self._listeners.clear()
        return count

    @staticmethod
    def _send_to_queue(queue: asyncio.Queue, message: dict[str, Any]) -> None:
        """Replace whatever is waiting in *queue* with *message*."""
        drained = 0
        while not queue.empty():
            try:
                queue.get_nowait()
                drained += 1
            except asyncio.QueueEmpty:
                break
        if drained:
            logger.debug("Dropped %d stale update(s) for a slow subscriber", drained)
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Subscriber queue full even after drain")


def update_message(snapshot: Snapshot) -> dict[str, Any]:
    return {"type": "update", "data": snapshot.to_dict()}
