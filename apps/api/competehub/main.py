"""FastAPI application for the competition team and collaboration API."""
from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .core.config import settings
from .core.errors import register_exception_handlers
from .db.session import SessionLocal, get_session
from .routers import auth, messages, realtime, teams
from .services.chat import ChatGateway
from .services.signaling import SignalingRelay

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(session_factory: async_sessionmaker[AsyncSession] | None = None) -> FastAPI:
    """Build the application; realtime components use ``session_factory`` for persistence."""

    factory = session_factory or SessionLocal

    app = FastAPI(title="CompeteHub API", version="0.1.0")

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)

    app.state.chat_gateway = ChatGateway(factory)
    app.state.signaling_relay = SignalingRelay(factory)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(teams.router, prefix="/api/teams", tags=["teams"])
    app.include_router(messages.router, prefix="/api/messages", tags=["messages"])
    app.include_router(realtime.router)

    @app.get("/api/health", tags=["meta"])
    async def health() -> dict[str, str]:
        """Simple liveness probe."""

        return {"status": "ok"}

    @app.head("/api/health", tags=["meta"])
    async def health_head() -> Response:
        """Allow HEAD for uptime monitors that only need the status code."""

        return Response(status_code=200)

    @app.get("/api/health/db", tags=["meta"])
    async def health_db(session: AsyncSession = Depends(get_session)) -> Response:
        """Readiness probe that round-trips to the database."""

        try:
            await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Database health check failed: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "error", "database": "unavailable", "error": exc.__class__.__name__},
            )
        return JSONResponse(content={"status": "ok", "database": "connected"})

    if settings.app_env == "production" and settings.jwt_secret == "dev-secret-change-me":
        logger.warning("JWT_SECRET is using the development default")

    return app


app = create_app()
