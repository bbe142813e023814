"""
Зависимости FastAPI для админ-панели.

Сервисы создаются в lifespan приложения и хранятся в app.state.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from src.services.analytics_cache import AdminCache
from src.services.analytics_service import AnalyticsService
from src.services.health import HealthTracker


def get_health(request: Request) -> HealthTracker:
    return request.app.state.health


def get_analytics_service(request: Request) -> AnalyticsService:
    return request.app.state.analytics_service


def get_admin_cache(request: Request) -> AdminCache:
    return request.app.state.admin_cache


HealthDep = Annotated[HealthTracker, Depends(get_health)]
AnalyticsServiceDep = Annotated[AnalyticsService, Depends(get_analytics_service)]
AdminCacheDep = Annotated[AdminCache, Depends(get_admin_cache)]
