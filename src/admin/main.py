"""
Главный файл FastAPI приложения аналитики админ-панели.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from src.admin.api import analytics, cache, system
from src.core.config import settings as app_settings
from src.core.logging_config import setup_logging
from src.db.redis_client import RedisClient
from src.db.session import DatabaseMonitor, async_engine, close_db
from src.services.analytics_cache import AdminCache, AnalyticsCache
from src.services.analytics_queries import AnalyticsQueryPlanner
from src.services.analytics_service import AnalyticsService
from src.services.health import HealthTracker

logger = logging.getLogger("src.admin.main")


def create_app(
    engine: Optional[AsyncEngine] = None,
    redis_client: Optional[RedisClient] = None,
    health: Optional[HealthTracker] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Сборка приложения.

    engine и redis_client можно передать явно (тесты); по умолчанию
    используются пул MySQL из настроек и новый клиент Redis.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if configure_logging:
            setup_logging()
        logger.info("Запуск %s %s", app_settings.APP_NAME, app_settings.APP_VERSION)

        tracker = health or HealthTracker()
        db_engine = engine if engine is not None else async_engine
        redis = redis_client or RedisClient(health=tracker)

        await redis.connect()
        monitor = DatabaseMonitor(db_engine, tracker)
        await monitor.probe()
        monitor.start()

        analytics_cache = AnalyticsCache(redis, tracker)
        app.state.health = tracker
        app.state.admin_cache = AdminCache(redis, tracker)
        app.state.analytics_service = AnalyticsService(
            planner=AnalyticsQueryPlanner(db_engine, tracker),
            cache=analytics_cache,
            health=tracker,
        )

        snapshot = tracker.snapshot()
        logger.info(
            "[Backend] Server listening on port %s (MySQL: %s, Redis: %s)",
            app_settings.BACKEND_PORT,
            "connected" if snapshot.mysql else "disconnected",
            "connected" if snapshot.redis else "disconnected",
        )

        yield

        # Shutdown
        logger.info("Остановка сервиса аналитики...")
        await monitor.stop()
        await redis.disconnect()
        await close_db(db_engine, tracker)

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Аналитика биллинга SHM для админ-панели",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Глобальный обработчик необработанных исключений."""
        logger.error("Необработанное исключение: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(analytics.router, prefix="/api")
    app.include_router(cache.router, prefix="/api")
    app.include_router(system.router, prefix="/api")

    return app


app = create_app()
