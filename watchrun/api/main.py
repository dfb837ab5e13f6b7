"""FastAPI application entry point."""

from __future__ import annotations

from fastapi import FastAPI

from watchrun.api.context import AppContext
from watchrun.api.middleware import RequestLogMiddleware
from watchrun.api.routers import logs as log_router
from watchrun.api.schemas import APIMessage
from watchrun.version import __version__


def create_app(context: AppContext | None = None) -> FastAPI:
    """Instantiate the FastAPI application with all routers."""

    app = FastAPI(
        title="watchrun",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.context = context or AppContext()
    app.add_middleware(RequestLogMiddleware)

    app.include_router(log_router.router)

    @app.get("/healthz", response_model=APIMessage, tags=["system"])
    def healthz() -> APIMessage:
        return APIMessage(message="ok")

    return app


__all__ = ["create_app"]
