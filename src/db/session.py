"""Async SQLAlchemy engine and MySQL availability monitor."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.core.config import settings
from src.services.health import HealthTracker, Store

logger = logging.getLogger(__name__)


def create_engine_from_settings() -> AsyncEngine:
    """Пул соединений фиксированного размера (по умолчанию 10)."""
    return create_async_engine(
        settings.database_url,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # Проверка соединения перед использованием
        pool_recycle=3600,
    )


async_engine = create_engine_from_settings()


class DatabaseMonitor:
    """
    Следит за доступностью MySQL.

    При старте выполняет SELECT 1, затем, пока база недоступна,
    повторяет проверку раз в DB_HEALTH_CHECK_INTERVAL секунд.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        health: HealthTracker,
        interval: float | None = None,
    ) -> None:
        self._engine = engine
        self._health = health
        self._interval = interval if interval is not None else settings.DB_HEALTH_CHECK_INTERVAL
        self._task: Optional[asyncio.Task] = None

    async def probe(self) -> bool:
        self._health.on_connecting(Store.MYSQL)
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            self._health.on_error(Store.MYSQL, e)
            return False
        self._health.on_ready(Store.MYSQL)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if not self._health.is_store_ready(Store.MYSQL):
                await self.probe()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="mysql-monitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


async def close_db(engine: AsyncEngine, health: HealthTracker) -> None:
    """Закрытие пула соединений при остановке приложения."""
    await engine.dispose()
    health.on_close(Store.MYSQL)
    logger.info("Подключение к базе данных закрыто")
