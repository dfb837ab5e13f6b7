# ruff: noqa: B008
"""Log buffer endpoints and the change-notification socket."""

from __future__ import annotations

import asyncio
import contextlib

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status

from watchrun.api.context import AppContext, get_app_context, get_websocket_context
from watchrun.api.schemas import ProjectLogsResponse, buffer_to_response

router = APIRouter(tags=["logs"])


@router.get("/projects", response_model=list[str])
def list_projects(context: AppContext = Depends(get_app_context)) -> list[str]:
    return sorted(context.buffers)


@router.get("/projects/{name}/logs", response_model=ProjectLogsResponse)
def get_project_logs(
    name: str, context: AppContext = Depends(get_app_context)
) -> ProjectLogsResponse:
    buffer = context.buffers.get(name)
    if buffer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return buffer_to_response(name, buffer)


@router.websocket("/sync")
async def sync_events(websocket: WebSocket) -> None:
    context: AppContext = get_websocket_context(websocket)
    loop = asyncio.get_running_loop()
    # one pending signal is enough to tell the renderer to refresh
    queue: asyncio.Queue[None] = asyncio.Queue(maxsize=1)

    def _offer() -> None:
        with contextlib.suppress(asyncio.QueueFull):
            queue.put_nowait(None)

    remove = context.notifier.add_listener(lambda: loop.call_soon_threadsafe(_offer))
    await websocket.accept()

    async def _pump() -> None:
        while True:
            await queue.get()
            await websocket.send_json({"event": "sync"})

    pump = asyncio.create_task(_pump())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        remove()
        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError, RuntimeError):
            await pump


__all__ = ["router"]
