from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from referral_engine.api.routes.health import router as health_router
from referral_engine.api.routes.notifications import router as notifications_router
from referral_engine.api.routes.referrals import router as referrals_router
from referral_engine.api.routes.reps import router as reps_router
from referral_engine.core.config import get_settings
from referral_engine.core.logging import configure_logging
from referral_engine.engine import ReferralEngine
from referral_engine.factory import build_engine

logger = structlog.get_logger(__name__)


def create_app(
    *,
    engine: ReferralEngine | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if session_factory is None:
            from referral_engine.db.session import SessionLocal

            app.state.session_factory = SessionLocal
        else:
            app.state.session_factory = session_factory
        app.state.engine = engine or build_engine(
            settings=settings,
            session_factory=app.state.session_factory,
        )
        logger.info("referral_engine_api_started", app_env=settings.app_env)
        try:
            yield
        finally:
            await app.state.engine.wait_for_deliveries()
            logger.info("referral_engine_api_stopped")

    app = FastAPI(
        title="Referral Engine API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(referrals_router)
    app.include_router(reps_router)
    app.include_router(notifications_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "referral_engine.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
