"""
Клиент Redis для кэша аналитики и кэша админ-панели.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from src.core.config import settings
from src.services.health import HealthTracker, Store

logger = logging.getLogger(__name__)


def reconnect_delay_ms(attempt: int) -> int:
    """Задержка перед попыткой переподключения: attempt * 100 мс, не более 3000 мс."""
    return min(attempt * settings.REDIS_RETRY_STEP_MS, settings.REDIS_RETRY_MAX_DELAY_MS)


class RedisClient:
    """
    Асинхронный клиент Redis.

    Сообщает трекеру здоровья о подключении и потере соединения.
    После REDIS_MAX_RETRIES неудачных попыток подряд переподключение
    прекращается до перезапуска процесса.
    """

    def __init__(self, url: Optional[str] = None, health: Optional[HealthTracker] = None):
        self.url = url or settings.redis_url
        self.health = health or HealthTracker()
        self.redis: Optional[Redis] = None
        self._pool: Optional[ConnectionPool] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    async def connect(self) -> bool:
        """Подключение к Redis. Ошибка подключения запускает цикл переподключения."""
        if self.redis is None:
            self._pool = ConnectionPool.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            self.redis = Redis(connection_pool=self._pool)

        self.health.on_connecting(Store.REDIS)
        try:
            await self.redis.ping()
        except (RedisError, OSError) as e:
            logger.error("[Redis] Error: %s", e)
            self.health.on_error(Store.REDIS, e)
            self._schedule_reconnect()
            return False

        logger.info("[Redis] Connected to %s:%s", settings.REDIS_HOST, settings.REDIS_PORT)
        self.health.on_ready(Store.REDIS)
        return True

    async def disconnect(self):
        """Отключение от Redis"""
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None
        if self.redis:
            await self.redis.aclose()
            self.redis = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None
        self.health.on_close(Store.REDIS)

    def _schedule_reconnect(self) -> None:
        if self.health.status(Store.REDIS).abandoned:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop(), name="redis-reconnect")

    async def _reconnect_loop(self) -> None:
        attempt = 0
        while True:
            attempt += 1
            if attempt > settings.REDIS_MAX_RETRIES:
                logger.error("[Redis] Max retry attempts reached, giving up")
                self.health.abandon(Store.REDIS, "max retry attempts reached")
                return

            delay = reconnect_delay_ms(attempt)
            logger.info("[Redis] Retry attempt %s, waiting %sms", attempt, delay)
            await asyncio.sleep(delay / 1000)

            self.health.on_connecting(Store.REDIS)
            try:
                await self.redis.ping()
            except (RedisError, OSError) as e:
                self.health.on_error(Store.REDIS, e)
                continue

            logger.info("[Redis] Ready to accept commands")
            self.health.on_ready(Store.REDIS)
            return

    async def _execute(self, command: str, *args: Any, **kwargs: Any) -> Any:
        if self.redis is None:
            raise RedisError("Redis client is not connected")
        try:
            return await getattr(self.redis, command)(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self.health.on_error(Store.REDIS, e)
            self._schedule_reconnect()
            raise

    async def get(self, key: str) -> Optional[str]:
        """Получить значение по ключу"""
        return await self._execute("get", key)

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """
        Установить значение по ключу

        Args:
            key: Ключ
            value: Значение
            expire: Время жизни в секундах (опционально)

        Returns:
            bool: True если успешно
        """
        return bool(await self._execute("set", key, value, ex=expire))

    async def delete(self, *keys: str) -> int:
        """
        Удалить значения по ключам

        Returns:
            int: Количество удаленных ключей
        """
        if not keys:
            return 0
        return await self._execute("delete", *keys)

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        """Все ключи с указанным префиксом (через SCAN, без блокировки Redis)."""
        if self.redis is None:
            raise RedisError("Redis client is not connected")
        try:
            return [key async for key in self.redis.scan_iter(match=f"{prefix}*", count=500)]
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self.health.on_error(Store.REDIS, e)
            self._schedule_reconnect()
            raise

    async def get_json(self, key: str) -> Optional[Any]:
        """Получить JSON значение"""
        value = await self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None

    async def set_json(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """Установить JSON значение"""
        json_str = json.dumps(value, ensure_ascii=False)
        return await self.set(key, json_str, expire=expire)

