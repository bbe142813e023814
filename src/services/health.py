"""
Отслеживание доступности хранилищ (MySQL и Redis).

Состояние каждого хранилища меняется только колбэками жизненного цикла
клиентов (connecting / ready / error / close). Обработчики запросов
состояние только читают.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class Store(str, Enum):
    """Хранилища, за которыми следит трекер."""

    MYSQL = "mysql"
    REDIS = "redis"


class StoreState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


@dataclass(frozen=True)
class StoreStatus:
    """Неизменяемое состояние одного хранилища."""

    store: Store
    state: StoreState = StoreState.DISCONNECTED
    last_error: Optional[str] = None
    changed_at: Optional[datetime] = None
    abandoned: bool = False  # Переподключение прекращено до рестарта процесса

    @property
    def ready(self) -> bool:
        return self.state is StoreState.READY and not self.abandoned


@dataclass(frozen=True)
class HealthSnapshot:
    """Снимок состояния всех хранилищ на момент чтения."""

    stores: Dict[Store, StoreStatus]

    def is_ready(self, store: Union[Store, str]) -> bool:
        try:
            return self.stores[Store(store)].ready
        except (KeyError, ValueError):
            return False

    @property
    def mysql(self) -> bool:
        return self.is_ready(Store.MYSQL)

    @property
    def redis(self) -> bool:
        return self.is_ready(Store.REDIS)


class HealthTracker:
    """
    Трекер доступности MySQL и Redis.

    Создаётся при старте приложения и передаётся клиентам хранилищ
    и сервису аналитики явно (без глобальных флагов).
    """

    def __init__(self) -> None:
        self._stores: Dict[Store, StoreStatus] = {store: StoreStatus(store=store) for store in Store}

    # ------------------------------------------------------------------
    # Колбэки жизненного цикла
    # ------------------------------------------------------------------

    def on_connecting(self, store: Store) -> None:
        self._transition(store, StoreState.CONNECTING)

    def on_ready(self, store: Store) -> None:
        self._transition(store, StoreState.READY)

    def on_error(self, store: Store, error: Optional[BaseException] = None) -> None:
        self._transition(store, StoreState.DISCONNECTED, error=str(error) if error else None)

    def on_close(self, store: Store) -> None:
        self._transition(store, StoreState.DISCONNECTED)

    def abandon(self, store: Store, reason: str) -> None:
        """Помечает хранилище недоступным до перезапуска процесса."""
        current = self._stores[store]
        if current.abandoned:
            return
        self._stores[store] = replace(
            current,
            state=StoreState.DISCONNECTED,
            last_error=reason,
            changed_at=datetime.now(timezone.utc),
            abandoned=True,
        )
        logger.error("[%s] Переподключение прекращено: %s", store.value, reason)

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    def is_store_ready(self, store: Union[Store, str]) -> bool:
        """Последнее известное состояние хранилища. Никогда не бросает исключений."""
        try:
            return self._stores[Store(store)].ready
        except (KeyError, ValueError):
            return False

    def status(self, store: Store) -> StoreStatus:
        return self._stores[store]

    def snapshot(self) -> HealthSnapshot:
        return HealthSnapshot(stores=dict(self._stores))

    def _transition(self, store: Store, state: StoreState, error: Optional[str] = None) -> None:
        current = self._stores[store]
        if current.abandoned:
            return
        if current.state is state and current.last_error == error:
            return

        self._stores[store] = replace(
            current,
            state=state,
            last_error=error,
            changed_at=datetime.now(timezone.utc),
        )

        if state is StoreState.READY:
            logger.info("[%s] Готов к работе", store.value)
        elif state is StoreState.CONNECTING:
            logger.debug("[%s] Подключение...", store.value)
        elif current.state is not StoreState.DISCONNECTED:
            if error:
                logger.warning("[%s] Соединение потеряно: %s", store.value, error)
            else:
                logger.info("[%s] Соединение закрыто", store.value)
