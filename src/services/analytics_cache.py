"""
Cache-aside слой поверх Redis.

AnalyticsCache обслуживает отчёты аналитики: недоступный Redis означает
промах кэша, а не ошибку. AdminCache - общий кэш админ-панели с явным
удалением ключей (ключи аналитики им не затрагиваются).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from redis.exceptions import RedisError

from src.core.config import settings
from src.db.redis_client import RedisClient
from src.services.errors import CacheError
from src.services.health import HealthTracker, Store
from src.utils.cache_keys import build_admin_key, build_analytics_key

logger = logging.getLogger(__name__)


class AnalyticsCache:
    """Чтение и запись готовых JSON-отчётов с фиксированным TTL."""

    def __init__(self, client: RedisClient, health: HealthTracker) -> None:
        self._client = client
        self._health = health

    @staticmethod
    def key(report_name: str, period: str | int) -> str:
        return build_analytics_key(report_name, period)

    @property
    def available(self) -> bool:
        return self._health.is_store_ready(Store.REDIS)

    async def get(self, key: str) -> Optional[str]:
        """Сериализованный отчёт или None (промах, Redis недоступен или ошибка)."""
        if not self.available:
            logger.debug("[Cache] Redis not connected, skipping cache for %s", key)
            return None
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            logger.error("[Cache] Redis error on get %s: %s", key, e)
            return None

    async def set(self, key: str, payload: str, ttl: int) -> bool:
        """Запись отчёта. Ошибки логируются и не пробрасываются."""
        if not self.available:
            return False
        try:
            await self._client.set(key, payload, expire=ttl)
        except (RedisError, OSError) as e:
            logger.error("[Cache] Redis error on set %s: %s", key, e)
            return False
        logger.info("[Cache] %s cached for %ss", key, ttl)
        return True


class AdminCache:
    """Общий кэш админ-панели (префикс shm-admin:cache:)."""

    def __init__(self, client: RedisClient, health: HealthTracker) -> None:
        self._client = client
        self._health = health

    @property
    def available(self) -> bool:
        return self._health.is_store_ready(Store.REDIS)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(build_admin_key(key))
        except (RedisError, OSError) as e:
            raise CacheError(f"Failed to get cache: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    async def set(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        ttl = ttl if ttl and ttl > 0 else settings.ADMIN_CACHE_DEFAULT_TTL
        try:
            await self._client.set_json(build_admin_key(key), data, expire=ttl)
        except (RedisError, OSError) as e:
            raise CacheError(f"Failed to set cache: {e}") from e

    async def delete(self, key: str) -> int:
        try:
            return await self._client.delete(build_admin_key(key))
        except (RedisError, OSError) as e:
            raise CacheError(f"Failed to delete cache: {e}") from e

    async def clear(self) -> int:
        """Удаляет все ключи под префиксом админ-панели. Возвращает их число."""
        try:
            keys = await self._client.keys_with_prefix(settings.ADMIN_CACHE_PREFIX)
            if keys:
                await self._client.delete(*keys)
        except (RedisError, OSError) as e:
            raise CacheError(f"Failed to clear cache: {e}") from e
        return len(keys)
