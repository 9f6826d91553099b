"""FastAPI application for the DairyDesk staff dashboard"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from dairydesk.app import build_session_context, initialize
from dairydesk.core.config import Settings
from dairydesk.core.session_context import SessionContext
from dairydesk.utils.exceptions import MisuseError
from dairydesk.utils.logger import get_logger
from .auth_middleware import RedirectRequired
from .auth_routes import router as auth_router

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[SessionContext] = None,
    settings_path: Optional[Path] = None,
) -> FastAPI:
    """
    Build the dashboard app around one SessionContext.

    The context is opened on startup (running the initial session refresh)
    and closed on shutdown.
    """
    if context is None:
        if settings is None:
            settings = initialize(settings_path)
        context = build_session_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await context.open()
        logger.info(
            "Session restored" if context.is_authenticated else "No active session",
            context=context.name,
            demo=context.is_demo,
        )
        try:
            yield
        finally:
            context.close()

    app = FastAPI(
        title="DairyDesk Staff Dashboard",
        version=settings.app.version if settings else "1.0.0",
        lifespan=lifespan,
    )
    app.state.session_context = context

    @app.exception_handler(RedirectRequired)
    async def redirect_handler(request: Request, exc: RedirectRequired):
        return RedirectResponse(exc.location, status_code=303)

    @app.exception_handler(MisuseError)
    async def misuse_handler(request: Request, exc: MisuseError):
        logger.error("Session context misuse", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "session_context_misuse", "detail": str(exc)})

    @app.get("/")
    async def root():
        return RedirectResponse("/dashboard", status_code=303)

    app.include_router(auth_router)
    return app
