"""
API endpoints аналитики дашборда.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, Response

from src.admin.dependencies import AnalyticsServiceDep
from src.services.errors import ConnectivityError, QueryError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analytics"])


def _error_response(tag: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, ConnectivityError):
        return JSONResponse(status_code=503, content={"error": "Database not connected"})
    logger.error("%s Error: %s", tag, exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to fetch analytics", "details": str(exc)},
    )


@router.get("/dashboard/analytics")
async def get_dashboard_analytics(
    service: AnalyticsServiceDep,
    period: Optional[str] = Query(None, description="Период в днях (по умолчанию 7)"),
):
    """Сводная аналитика дашборда за период."""
    try:
        payload = await service.get_dashboard(period)
    except (ConnectivityError, QueryError) as e:
        return _error_response("[Dashboard]", e)
    return Response(content=payload, media_type="application/json")


@router.get("/analytics")
async def get_analytics(
    service: AnalyticsServiceDep,
    period: Optional[str] = Query(None, description='"month" или число дней'),
):
    """Детальная аналитика за период."""
    try:
        payload = await service.get_analytics(period)
    except (ConnectivityError, QueryError) as e:
        return _error_response("[Analytics]", e)
    return Response(content=payload, media_type="application/json")
