"""PID file and port management for the dashboard server.

The PID file lives next to the reports (``~/.code-health/<hash>/server.pid``)
so a second ``code-health dashboard`` for the same root finds the first one.
"""

from __future__ import annotations

import json
import logging
import os
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_PORT

logger = logging.getLogger(__name__)

# Try up to 20 ports above the preferred one
PORT_SEARCH_RANGE = 20


@dataclass
class ServerInfo:
    """A running (or formerly running) dashboard server."""

    pid: int
    port: int
    project_path: str

    def to_dict(self) -> dict:
        return {"pid": self.pid, "port": self.port, "project_path": self.project_path}

    @classmethod
    def from_dict(cls, data: dict) -> ServerInfo:
        return cls(pid=data["pid"], port=data["port"], project_path=data["project_path"])


def pid_file_path(state_dir: Path) -> Path:
    return state_dir / "server.pid"


def _is_process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)  # Signal 0 = existence check
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by another user
        return True
    except OSError:
        return False


def is_port_in_use(host: str, port: int) -> bool:
    """Check if a port is currently bound."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    try:
        sock.connect((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def read_pid_file(state_dir: Path) -> Optional[ServerInfo]:
    """Parse the PID file; None if missing or malformed."""
    path = pid_file_path(state_dir)
    if not path.exists():
        return None
    try:
        return ServerInfo.from_dict(json.loads(path.read_text()))
    except (json.JSONDecodeError, KeyError, TypeError) as exc:
        logger.warning("Malformed PID file at %s: %s", path, exc)
        return None


def write_pid_file(state_dir: Path, port: int, project_path: str) -> Path:
    path = pid_file_path(state_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    info = ServerInfo(pid=os.getpid(), port=port, project_path=project_path)
    path.write_text(json.dumps(info.to_dict(), indent=2) + "\n")
    logger.debug("PID file written: %s", path)
    return path


def remove_pid_file(state_dir: Path) -> bool:
    """Remove the PID file.  Returns False if there was none."""
    try:
        pid_file_path(state_dir).unlink()
        return True
    except FileNotFoundError:
        return False


def validate_existing_server(state_dir: Path, host: str) -> Optional[ServerInfo]:
    """Return the live server recorded for this root, cleaning up stale records."""
    info = read_pid_file(state_dir)
    if info is None:
        return None
    if info.pid == os.getpid():
        return None
    if not _is_process_alive(info.pid):
        logger.info("Stale PID file found (process %d is dead), cleaning up", info.pid)
        remove_pid_file(state_dir)
        return None
    if not is_port_in_use(host, info.port):
        logger.info("Process %d alive but port %d not bound, cleaning up", info.pid, info.port)
        remove_pid_file(state_dir)
        return None
    return info


def find_available_port(host: str, preferred_port: int = DEFAULT_PORT) -> int:
    """First free port at or above *preferred_port*.

    Raises:
        RuntimeError: No port in the search range is free
    """
    last = preferred_port + PORT_SEARCH_RANGE
    for port in range(preferred_port, last + 1):
        if not is_port_in_use(host, port):
            return port
    raise RuntimeError(
        f"No available ports in range {preferred_port}-{last}. Stop some servers and try again."
    )
