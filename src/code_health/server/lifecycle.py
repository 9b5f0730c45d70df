"""Server lifecycle: startup, serving, graceful shutdown."""

from __future__ import annotations

import logging
import signal
import threading
import webbrowser
from pathlib import Path
from typing import Any, Optional

from rich.console import Console

from ..config import AnalysisConfig
from ..paths import get_reports_dir
from ..pipeline import AnalysisCycle
from .process import (
    find_available_port,
    remove_pid_file,
    validate_existing_server,
    write_pid_file,
)
from .state import SnapshotStore
from .watcher import FileWatcher, RefreshLoop

logger = logging.getLogger(__name__)


class ShutdownManager:
    """Stops every server resource exactly once, whoever asks first."""

    def __init__(self, state_dir: Path, console: Console) -> None:
        self.state_dir = state_dir
        self.console = console
        self._lock = threading.Lock()
        self._done = False
        self.watcher: Optional[FileWatcher] = None
        self.refresh: Optional[RefreshLoop] = None
        self.store: Optional[SnapshotStore] = None
        self.uvicorn_server: Any = None

    def shutdown(self) -> None:
        with self._lock:
            if self._done:
                return
            self._done = True

        steps = []
        if self.store is not None:
            count = self.store.clear_listeners()
            if count:
                steps.append(f"Closed {count} live connection{'s' if count != 1 else ''}")
        if self.watcher is not None:
            self.watcher.stop()
            steps.append("Stopped file watcher")
        if self.refresh is not None:
            self.refresh.stop()
            steps.append("Stopped refresh loop")
        if self.uvicorn_server is not None:
            self.uvicorn_server.should_exit = True
        if remove_pid_file(self.state_dir):
            steps.append("Cleaned up PID file")

        self.console.print()
        for step in steps:
            self.console.print(f"  [green]OK[/green] {step}")
        self.console.print("  [green]OK[/green] Server stopped cleanly")


def _print_summary(console: Console, store: SnapshotStore) -> None:
    snapshot = store.snapshot()
    if snapshot is None:
        console.print("[yellow]Analysis produced no results[/yellow]")
        return
    failed = [t.name for t in snapshot.tools if t.failed]
    console.print(
        f"[green]Ready[/green] -- {len(snapshot.largest_files)} files ranked, "
        f"{snapshot.issue_count} issue(s)"
    )
    if failed:
        console.print(f"[yellow]Tools without results:[/yellow] {', '.join(failed)}")


def launch_server(
    config: AnalysisConfig,
    console: Console,
    watch: bool = True,
) -> None:
    """Analyze, then serve the dashboard until interrupted.

    With ``watch=False`` the first snapshot is served as-is (``code-health
    analyze``); otherwise file changes trigger refresh cycles.
    """
    import uvicorn

    from .app import create_app

    root = config.root
    reports_dir = get_reports_dir(root)
    state_dir = reports_dir.parent
    host = config.host

    existing = validate_existing_server(state_dir, host)
    if existing is not None:
        url = f"http://{host}:{existing.port}"
        console.print(
            f"[bold]Dashboard[/bold] -> [link={url}]{url}[/link] "
            f"[dim](already running, PID {existing.pid})[/dim]"
        )
        return

    try:
        port = find_available_port(host, config.port)
    except RuntimeError as exc:
        console.print(f"[red]{exc}[/red]")
        return
    if port != config.port:
        console.print(f"[yellow]Port {config.port} in use, using {port} instead[/yellow]")

    shutdown_mgr = ShutdownManager(state_dir, console)
    store = SnapshotStore()
    cycle = AnalysisCycle(config, reports_dir=reports_dir)
    refresh = RefreshLoop(cycle, store, debounce_seconds=config.debounce_seconds)
    shutdown_mgr.store = store
    shutdown_mgr.refresh = refresh

    console.print(f"[bold]Analyzing[/bold] {root}")
    with console.status("[cyan]Running initial analysis..."):
        refresh.run_now()
    _print_summary(console, store)

    if watch:
        watcher = FileWatcher(root, refresh, cycle.ignore, exclude_dirs=(state_dir,))
        shutdown_mgr.watcher = watcher
        watcher.start()

    try:
        write_pid_file(state_dir, port, str(root))
    except OSError as exc:
        console.print(f"[yellow]Warning: Could not write PID file: {exc}[/yellow]")

    url = f"http://{host}:{port}"
    if config.open_browser:
        threading.Timer(1.0, lambda: webbrowser.open(url)).start()

    console.print()
    console.print(f"[bold]Dashboard[/bold] -> [link={url}]{url}[/link]")
    console.print(f"[dim]Reports:  {reports_dir}[/dim]")
    if watch:
        console.print("[dim]Watching for changes... (Ctrl+C to stop)[/dim]")
    else:
        console.print("[dim]Serving a static snapshot (Ctrl+C to stop)[/dim]")

    asgi_app = create_app(store, refresh if watch else None)
    server = uvicorn.Server(
        uvicorn.Config(
            asgi_app,
            host=host,
            port=port,
            log_level="info" if config.verbosity == "verbose" else "warning",
        )
    )
    shutdown_mgr.uvicorn_server = server

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _signal_handler(signum, frame):
        sig_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info("Received %s, initiating shutdown...", sig_name)
        server.should_exit = True

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        server.run()
    except SystemExit:
        pass
    except Exception as exc:
        logger.exception("Server error: %s", exc)
        console.print(f"[red]Server error:[/red] {exc}")
    finally:
        try:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
        except (OSError, ValueError):
            pass
        shutdown_mgr.shutdown()


class BackgroundDashboard:
    """A watching dashboard served from a daemon thread of this process.

    The MCP server runs dashboards this way because its main thread belongs
    to the stdio transport.  Console output goes to a quiet stderr console.
    """

    def __init__(self, config: AnalysisConfig, console: Optional[Console] = None) -> None:
        self.config = config
        self.console = console or Console(stderr=True, quiet=True)
        self.url: Optional[str] = None
        self.reused = False
        self._shutdown: Optional[ShutdownManager] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> str:
        """Run the initial analysis, then watch and serve.  Returns the URL.

        A dashboard another process already serves for the same project is
        reused instead.

        Raises:
            RuntimeError: No free port near ``config.port``
        """
        import uvicorn

        from .app import create_app

        root = self.config.root
        reports_dir = get_reports_dir(root)
        state_dir = reports_dir.parent
        host = self.config.host

        existing = validate_existing_server(state_dir, host)
        if existing is not None:
            self.reused = True
            self.url = f"http://{host}:{existing.port}"
            logger.info("Dashboard already running at %s (PID %d)", self.url, existing.pid)
            return self.url

        port = find_available_port(host, self.config.port)

        shutdown_mgr = ShutdownManager(state_dir, self.console)
        store = SnapshotStore()
        cycle = AnalysisCycle(self.config, reports_dir=reports_dir)
        refresh = RefreshLoop(cycle, store, debounce_seconds=self.config.debounce_seconds)
        shutdown_mgr.store = store
        shutdown_mgr.refresh = refresh
        refresh.run_now()

        watcher = FileWatcher(root, refresh, cycle.ignore, exclude_dirs=(state_dir,))
        shutdown_mgr.watcher = watcher
        watcher.start()

        server = uvicorn.Server(
            uvicorn.Config(
                create_app(store, refresh),
                host=host,
                port=port,
                log_config=None,
                access_log=False,
            )
        )
        shutdown_mgr.uvicorn_server = server
        try:
            write_pid_file(state_dir, port, str(root))
        except OSError as exc:
            logger.warning("Could not write PID file: %s", exc)

        self._shutdown = shutdown_mgr
        self._thread = threading.Thread(
            target=self._serve, args=(server,), name="code-health-dashboard", daemon=True
        )
        self._thread.start()
        self.url = f"http://{host}:{port}"
        logger.info("Dashboard for %s serving at %s", root, self.url)
        return self.url

    def _serve(self, server: Any) -> None:
        try:
            server.run()
        except SystemExit:
            logger.error("Dashboard server could not start at %s", self.url)
        except Exception:
            logger.exception("Dashboard server stopped unexpectedly")

    def stop(self) -> bool:
        """Shut down what :meth:`start` launched.  False if nothing was launched."""
        if self._shutdown is None:
            return False
        self._shutdown.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=5)
            if self._thread.is_alive():
                logger.warning("Dashboard thread did not exit within 5 seconds")
        self._shutdown = None
        self._thread = None
        return True
