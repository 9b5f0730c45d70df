"""Tests for server.state.SnapshotStore."""

import asyncio
import threading

from code_health.pipeline import AnalysisResult
from code_health.reports import ReportSet
from code_health.server.state import SnapshotStore, update_message
from code_health.snapshot import FileMetrics, Snapshot


def make_result(generated_at, files=()):
    snapshot = Snapshot(
        largest_files=files,
        complex_functions=(),
        max_line_offenders=(),
        cycles=(),
        dead_code=(),
        generated_at=generated_at,
    )
    return AnalysisResult(snapshot=snapshot, reports=ReportSet(), root="/p")


class TestSnapshotStore:
    def test_initially_not_ready(self):
        store = SnapshotStore()
        assert not store.ready
        assert store.snapshot() is None

    def test_publish_replaces(self):
        store = SnapshotStore()
        store.publish(make_result("2026-01-01T00:00:00.000Z"))
        second = make_result("2026-01-01T00:00:01.000Z")
        assert store.publish(second)
        assert store.latest() is second

    def test_older_snapshot_rejected(self):
        store = SnapshotStore()
        newer = make_result("2026-01-01T00:00:05.000Z")
        store.publish(newer)
        assert not store.publish(make_result("2026-01-01T00:00:01.000Z"))
        assert store.latest() is newer

    def test_listener_receives_update(self):
        store = SnapshotStore()
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        store.add_listener(queue)
        store.publish(make_result("2026-01-01T00:00:00.000Z"))
        message = queue.get_nowait()
        assert message["type"] == "update"
        assert message["data"]["generatedAt"] == "2026-01-01T00:00:00.000Z"

    def test_slow_listener_gets_only_latest(self):
        store = SnapshotStore()
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        store.add_listener(queue)
        for second in range(3):
            store.publish(make_result(f"2026-01-01T00:00:0{second}.000Z"))
        assert queue.qsize() == 1
        assert queue.get_nowait()["data"]["generatedAt"] == "2026-01-01T00:00:02.000Z"

    def test_remove_listener(self):
        store = SnapshotStore()
        queue: asyncio.Queue = asyncio.Queue()
        store.add_listener(queue)
        store.remove_listener(queue)
        store.publish(make_result("2026-01-01T00:00:00.000Z"))
        assert queue.empty()
        assert store.listener_count == 0

    def test_delivery_through_event_loop(self):
        store = SnapshotStore()

        async def scenario():
            queue: asyncio.Queue = asyncio.Queue(maxsize=1)
            store.add_listener(queue, asyncio.get_running_loop())
            publisher = threading.Thread(
                target=store.publish, args=(make_result("2026-01-01T00:00:00.000Z"),)
            )
            publisher.start()
            message = await asyncio.wait_for(queue.get(), timeout=5)
            publisher.join()
            return message

        message = asyncio.run(scenario())
        assert message["data"]["generatedAt"] == "2026-01-01T00:00:00.000Z"

    def test_clear_listeners(self):
        store = SnapshotStore()
        store.add_listener(asyncio.Queue())
        store.add_listener(asyncio.Queue())
        assert store.clear_listeners() == 2
        assert store.listener_count == 0


class TestAtomicPublish:
    def test_reader_never_sees_older_or_partial_snapshot(self):
        """Snapshot ``i`` carries ``i`` files; readers check both move together."""

        def numbered(i):
            files = tuple(
                FileMetrics(file=f"f{n}.ts", loc=1, code=1, comment=0, blank=0)
                for n in range(i)
            )
            return make_result(f"2026-01-01T00:{i // 60:02d}:{i % 60:02d}.000Z", files)

        store = SnapshotStore()
        store.publish(numbered(0))
        errors = []
        done = threading.Event()

        def reader():
            last = ""
            while not done.is_set():
                snapshot = store.snapshot()
                if snapshot.generated_at < last:
                    errors.append(f"went back from {last} to {snapshot.generated_at}")
                minutes, seconds = snapshot.generated_at[14:16], snapshot.generated_at[17:19]
                if len(snapshot.largest_files) != int(minutes) * 60 + int(seconds):
                    errors.append(f"partial snapshot {snapshot.generated_at}")
                last = snapshot.generated_at

        def writer():
            for i in range(1, 200):
                store.publish(numbered(i))
            done.set()

        threads = [threading.Thread(target=reader) for _ in range(3)]
        threads.append(threading.Thread(target=writer))
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert not errors
        assert store.snapshot().generated_at == "2026-01-01T00:03:19.000Z"


def test_update_message_shape():
    snapshot = make_result("2026-01-01T00:00:00.000Z").snapshot
    assert set(update_message(snapshot)) == {"type", "data"}
