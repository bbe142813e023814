"""
Сервис отчётов аналитики.

Порядок обработки запроса: проверка доступности MySQL -> чтение кэша ->
(промах) запросы -> метрики -> сборка ответа -> запись в кэш.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from src.core.config import settings
from src.services.analytics_assembler import build_analytics_payload, build_dashboard_payload, serialize
from src.services.analytics_cache import AnalyticsCache
from src.services.analytics_queries import (
    AnalyticsQueryPlanner,
    ReportPeriod,
    parse_analytics_period,
    parse_dashboard_period,
)
from src.services.errors import ConnectivityError
from src.services.health import HealthTracker, Store

logger = logging.getLogger(__name__)

DASHBOARD_REPORT = "dashboard"
ANALYTICS_REPORT = "detailed"


class AnalyticsService:
    """
    Построение отчётов с кэшированием.

    Возвращает готовую JSON-строку: при попадании в кэш это байт-в-байт
    то же, что было сохранено при первом построении.
    """

    def __init__(
        self,
        planner: AnalyticsQueryPlanner,
        cache: AnalyticsCache,
        health: HealthTracker,
        dashboard_ttl: Optional[int] = None,
        report_ttl: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.planner = planner
        self.cache = cache
        self.health = health
        self.dashboard_ttl = dashboard_ttl or settings.ANALYTICS_DASHBOARD_CACHE_TTL
        self.report_ttl = report_ttl or settings.ANALYTICS_REPORT_CACHE_TTL
        self.timeout = timeout if timeout is not None else settings.ANALYTICS_REQUEST_TIMEOUT

    async def get_dashboard(self, raw_period: Any = None) -> str:
        """Сводка дашборда за N дней (по умолчанию 7)."""
        period = parse_dashboard_period(raw_period)

        async def build() -> str:
            rows = await self.planner.plan_dashboard(period)
            return serialize(build_dashboard_payload(period, rows))

        return await self._cached_report(DASHBOARD_REPORT, period, self.dashboard_ttl, build, "[Dashboard]")

    async def get_analytics(self, raw_period: Any = None) -> str:
        """Детальный отчёт: "month" или N дней."""
        period = parse_analytics_period(raw_period)

        async def build() -> str:
            rows = await self.planner.plan_analytics(period)
            return serialize(build_analytics_payload(period, rows))

        return await self._cached_report(ANALYTICS_REPORT, period, self.report_ttl, build, "[Analytics]")

    async def _cached_report(
        self,
        report_name: str,
        period: ReportPeriod,
        ttl: int,
        build: Callable[[], Awaitable[str]],
        tag: str,
    ) -> str:
        if not self.health.is_store_ready(Store.MYSQL):
            logger.debug("%s Database not connected", tag)
            raise ConnectivityError()

        key = self.cache.key(report_name, period.label)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.info("%s Returning cached data (%s)", tag, key)
            return cached

        started = time.monotonic()
        try:
            payload = await asyncio.wait_for(build(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("%s Report timed out after %ss", tag, self.timeout)
            raise ConnectivityError()

        logger.info("%s Analytics fetched in %.3fs", tag, time.monotonic() - started)
        await self.cache.set(key, payload, ttl)
        return payload
