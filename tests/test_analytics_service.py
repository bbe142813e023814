"""Тесты сервиса отчётов: проверка доступности, кэш, таймаут."""

import asyncio
import logging
import json
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from src.services.analytics_cache import AnalyticsCache
from src.services.analytics_queries import AnalyticsQueryPlanner
from src.services.analytics_service import AnalyticsService
from src.services.errors import ConnectivityError
from src.services.health import Store


@pytest.mark.asyncio
async def test_database_down_raises_without_queries(health, fake_redis):
    health.on_ready(Store.REDIS)
    planner = Mock()
    planner.plan_dashboard = AsyncMock()
    service = AnalyticsService(planner, AnalyticsCache(fake_redis, health), health)

    with pytest.raises(ConnectivityError):
        await service.get_dashboard("7")

    planner.plan_dashboard.assert_not_awaited()
    assert fake_redis.calls == []


@pytest.mark.asyncio
async def test_timeout_is_reported_as_connectivity_error(ready_health, fake_redis):
    async def slow_plan(period, today=None):
        await asyncio.sleep(5)

    planner = Mock()
    planner.plan_analytics = slow_plan
    service = AnalyticsService(planner, AnalyticsCache(fake_redis, ready_health), ready_health, timeout=0.05)

    with pytest.raises(ConnectivityError):
        await service.get_analytics("month")

    assert "analytics:detailed:month" not in fake_redis.store


@pytest.mark.asyncio
async def test_dashboard_is_cached_and_byte_identical(billing_db, ready_health, fake_redis, query_counter_factory):
    engine = create_async_engine(billing_db)
    counter = query_counter_factory(engine)
    service = AnalyticsService(
        AnalyticsQueryPlanner(engine, ready_health),
        AnalyticsCache(fake_redis, ready_health),
        ready_health,
    )
    try:
        first = await service.get_dashboard("7")
        queries = counter.count
        second = await service.get_dashboard("7")
    finally:
        await engine.dispose()

    assert queries > 0
    assert counter.count == queries
    assert first == second
    assert fake_redis.store["analytics:dashboard:7"] == first
    assert fake_redis.ttls["analytics:dashboard:7"] == 60


@pytest.mark.asyncio
async def test_invalid_period_shares_default_cache_entry(billing_db, ready_health, fake_redis):
    engine = create_async_engine(billing_db)
    service = AnalyticsService(
        AnalyticsQueryPlanner(engine, ready_health),
        AnalyticsCache(fake_redis, ready_health),
        ready_health,
    )
    try:
        payload = json.loads(await service.get_analytics("not-a-period"))
    finally:
        await engine.dispose()

    assert payload["period"]["type"] == "month"
    assert payload["period"]["days"] == 30
    assert list(fake_redis.store) == ["analytics:detailed:month"]


@pytest.mark.asyncio
async def test_database_down_is_not_logged_per_request(health, fake_redis, caplog):
    planner = Mock()
    service = AnalyticsService(planner, AnalyticsCache(fake_redis, health), health)

    with caplog.at_level(logging.WARNING, logger="src.services.analytics_service"):
        for _ in range(3):
            with pytest.raises(ConnectivityError):
                await service.get_dashboard()

    assert [r for r in caplog.records if r.name == "src.services.analytics_service"] == []
