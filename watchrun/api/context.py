"""Application context helpers shared across routers."""

from dataclasses import dataclass, field
from typing import cast

from fastapi import Request, WebSocket

from watchrun.runner import LogBuffer, SyncNotifier


@dataclass(slots=True)
class AppContext:
    """Log buffers per project plus the notifier that signals changes."""

    buffers: dict[str, LogBuffer] = field(default_factory=dict)
    notifier: SyncNotifier = field(default_factory=SyncNotifier)


def get_app_context(request: Request) -> AppContext:
    """Return the configured :class:`AppContext`."""

    context = getattr(request.app.state, "context", None)
    if context is None:  # pragma: no cover - defensive guard
        raise RuntimeError("Application context missing")
    return cast(AppContext, context)


def get_websocket_context(websocket: WebSocket) -> AppContext:
    """Return the configured :class:`AppContext` from a WebSocket."""

    context = getattr(websocket.app.state, "context", None)
    if context is None:  # pragma: no cover - defensive guard
        raise RuntimeError("Application context missing")
    return cast(AppContext, context)


__all__ = ["AppContext", "get_app_context", "get_websocket_context"]
