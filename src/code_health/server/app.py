"""Starlette ASGI application for the live dashboard."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..exceptions import FileNotTrackedError, SnapshotNotReadyError
from . import api
from .state import SnapshotStore, update_message

if TYPE_CHECKING:
    from .watcher import RefreshLoop

logger = logging.getLogger(__name__)

PING_INTERVAL_SECONDS = 30
ANALYZING = {"status": "analyzing"}


def create_app(store: SnapshotStore, refresh: Optional[RefreshLoop] = None) -> Starlette:
    """Build the Starlette application wired to *store*.

    Args:
        store: Holder of the latest analysis result
        refresh: Refresh loop for ``POST /api/refresh`` and ``/api/status``
    """

    async def api_stats(request: Request) -> JSONResponse:
        try:
            return JSONResponse(api.get_stats(store))
        except SnapshotNotReadyError:
            return JSONResponse(ANALYZING, status_code=202)

    async def api_file_detail(request: Request) -> JSONResponse:
        reference = request.query_params.get("file")
        if not reference:
            return JSONResponse({"error": "File parameter is required"}, status_code=400)
        try:
            return JSONResponse(api.file_detail(store, reference))
        except SnapshotNotReadyError:
            return JSONResponse(ANALYZING, status_code=202)
        except FileNotTrackedError as e:
            return JSONResponse(api.not_found_body(e), status_code=404)

    async def api_status(request: Request) -> JSONResponse:
        if refresh is not None:
            return JSONResponse(refresh.status())
        snapshot = store.snapshot()
        return JSONResponse(
            {
                "state": "idle",
                "changePending": False,
                "generatedAt": snapshot.generated_at if snapshot is not None else None,
            }
        )

    async def api_refresh(request: Request) -> JSONResponse:
        """Request a re-analysis. POST /api/refresh"""
        if refresh is None:
            return JSONResponse(
                {"error": "Refresh not available (no watcher configured)"},
                status_code=503,
            )
        refresh.request_refresh()
        return JSONResponse({"status": "refresh_requested"}, status_code=202)

    async def api_export_json(request: Request) -> Response:
        """Download the snapshot as JSON."""
        snapshot = store.snapshot()
        if snapshot is None:
            return JSONResponse(ANALYZING, status_code=202)
        return Response(
            content=json.dumps(snapshot.to_dict(), indent=2),
            media_type="application/json",
            headers={
                "Content-Disposition": (
                    f'attachment; filename="{api.export_filename(snapshot.generated_at)}"'
                ),
            },
        )

    async def healthz(request: Request) -> JSONResponse:
        return JSONResponse(
            {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
        )

    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=1)
        store.add_listener(queue, asyncio.get_running_loop())
        get_task: Optional[asyncio.Task] = None
        receive_task: Optional[asyncio.Task] = None
        try:
            current = store.snapshot()
            if current is not None:
                await websocket.send_json(update_message(current))

            # Only this loop writes to the socket
            while True:
                if get_task is None:
                    get_task = asyncio.create_task(queue.get())
                if receive_task is None:
                    receive_task = asyncio.create_task(websocket.receive_text())
                done, _ = await asyncio.wait(
                    {get_task, receive_task},
                    timeout=PING_INTERVAL_SECONDS,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if not done:
                    await websocket.send_json({"type": "ping"})
                    continue
                if receive_task in done:
                    message = receive_task.result()
                    receive_task = None
                    if message == "ping":
                        await websocket.send_text("pong")
                if get_task in done:
                    await websocket.send_json(get_task.result())
                    get_task = None
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass
        except Exception as exc:
            logger.debug("WebSocket error: %s", exc)
        finally:
            for task in (get_task, receive_task):
                if task is not None:
                    task.cancel()
            store.remove_listener(queue)
            try:
                await websocket.close()
            except Exception:
                pass

    routes = [
        Route("/api/stats", api_stats),
        Route("/api/file-detail", api_file_detail),
        Route("/api/status", api_status),
        Route("/api/refresh", api_refresh, methods=["POST"]),
        Route("/api/export/json", api_export_json),
        Route("/healthz", healthz),
        WebSocketRoute("/ws", websocket_endpoint),
    ]

    return Starlette(routes=routes)
