"""
Системные endpoints: состояние хранилищ.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from src.admin.dependencies import HealthDep
from src.admin.models.schemas import HealthResponse

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health_check(health: HealthDep):
    """Проверка работоспособности API и доступности MySQL / Redis."""
    snapshot = health.snapshot()
    return HealthResponse(
        mysql=snapshot.mysql,
        redis=snapshot.redis,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
