# backoffice/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.api.deps import build_services
from backoffice.api.routers.inventory import router as inventory_router
from backoffice.api.routers.purchasing import router as purchasing_router
from backoffice.api.routers.replenishment import router as replenishment_router
from backoffice.api.routers.stock_counts import router as stock_counts_router
from backoffice.api.routers.transfers import router as transfers_router
from backoffice.core.config import get_settings
from backoffice.core.logging import setup_logging
from backoffice.db.base import init_models
from backoffice.db.session import close_engine, get_session_factory
from backoffice.http_problem_handlers import register_exception_handlers
from backoffice.metrics import router as metrics_router

logger = logging.getLogger("backoffice")


def create_app(session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> FastAPI:
    """
    session_factory 为空时使用 DATABASE_URL 的全局工厂；测试传入自己的工厂。
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, json=settings.JSON_LOG)
    init_models()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if session_factory is None:
            await close_engine()

    app = FastAPI(title="Backoffice Inventory", version="1.0.0", lifespan=lifespan)
    app.state.services = build_services(session_factory or get_session_factory())
    register_exception_handlers(app)

    app.include_router(inventory_router)
    app.include_router(transfers_router)
    app.include_router(purchasing_router)
    app.include_router(stock_counts_router)
    app.include_router(replenishment_router)
    app.include_router(metrics_router)

    @app.get("/healthz", tags=["ops"])
    async def healthz():
        return {"status": "ok", "env": settings.ENV}

    logger.info("backoffice app created (env=%s)", settings.ENV)
    return app


app = create_app()
