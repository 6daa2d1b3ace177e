import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .context import GuildContext
from .db.monitoring import get_pool_snapshot
from .errors import ConnectivityError, GuildError, NotFoundError, ValidationError
from .hunter_routes import get_context, router as hunter_router
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConnectivityError, 503),
)


def _status_for(exc: GuildError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def _guild_error_handler(request: Request, exc: GuildError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


def create_app(context: Optional[GuildContext] = None) -> FastAPI:
    """Build the HTTP surface around an explicitly constructed guild context."""
    configure_logging()
    owns_context = context is None
    guild_context = context or GuildContext.from_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await guild_context.ready()
        except ConnectivityError as exc:
            logger.warning("Guild store not ready at startup: %s", exc)
        yield
        if owns_context:
            guild_context.close()

    app = FastAPI(title="Guild Log", version="0.1.0", lifespan=lifespan)
    app.state.context = guild_context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GuildError, _guild_error_handler)
    app.include_router(hunter_router)

    @app.get("/healthz")
    def health(context: GuildContext = Depends(get_context)) -> Dict[str, Any]:
        connectivity = context.monitor.snapshot()
        return {
            "status": "ok" if not context.monitor.degraded else "degraded",
            "connectivity": connectivity,
            "session_ready": context.technical_session.ready,
        }

    @app.get("/healthz/database")
    def database_health(context: GuildContext = Depends(get_context)) -> JSONResponse:
        try:
            context.database.ping()
        except SQLAlchemyError as exc:
            context.monitor.mark_degraded(f"health check: {exc.__class__.__name__}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": str(exc)})
        context.monitor.mark_online()
        return JSONResponse({"status": "ok", "pool": get_pool_snapshot(context.database.engine)})

    logger.info("Guild log API ready (database=%s)", guild_context.database.engine.url.render_as_string())
    return app


__all__ = ["create_app"]
