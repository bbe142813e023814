"""Общие фикстуры: тестовая база SQLite с данными биллинга и Redis в памяти."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session

from src.db.models import Base, PayHistory, Server, Service, Spool, User, UserService, WithdrawHistory
from src.services.health import HealthTracker, Store


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_ago(days: int, hours: int = 0) -> datetime:
    return utc_now() - timedelta(days=days, hours=hours)


def seed_billing(session: Session) -> None:
    """
    Набор данных, на котором проверяются все отчёты.

    Окно 7 дней: 3 денежных платежа на 350 от двух пользователей,
    ручные начисления не учитываются. Окно 30 дней: ещё один платёж на 70.
    """
    now = utc_now()
    session.add_all([
        User(user_id=1, login="alice", created=days_ago(3)),
        User(user_id=2, login="bob", created=days_ago(40)),
        User(user_id=3, login="carol", created=days_ago(1)),
        User(user_id=4, login="dave", created=days_ago(1)),
    ])
    session.add_all([
        Service(service_id=1, name="VPN", cost=Decimal("300"), period=Decimal("30"), deleted=0),
        Service(service_id=2, name="Lifetime", cost=Decimal("1000"), period=Decimal("0"), deleted=0),
        Service(service_id=3, name="Old", cost=Decimal("50"), period=Decimal("30"), deleted=1),
    ])
    session.add_all([
        UserService(user_service_id=1, user_id=1, service_id=1, status="ACTIVE", created=days_ago(2), expire=None),
        UserService(user_service_id=2, user_id=2, service_id=1, status="active", created=days_ago(20),
                    expire=now + timedelta(days=10)),
        UserService(user_service_id=3, user_id=3, service_id=2, status="active", created=days_ago(1), expire=None),
        UserService(user_service_id=4, user_id=4, service_id=1, status="BLOCK", created=days_ago(35),
                    expire=now - timedelta(days=5)),
        UserService(user_service_id=5, user_id=2, service_id=1, status="active", created=days_ago(50),
                    expire=now - timedelta(days=1)),
    ])
    session.add_all([
        PayHistory(id=1, user_id=1, pay_system_id="yookassa", money=Decimal("100"), date=days_ago(1)),
        PayHistory(id=2, user_id=1, pay_system_id="yookassa", money=Decimal("50"), date=days_ago(2)),
        PayHistory(id=3, user_id=3, pay_system_id="stripe", money=Decimal("200"), date=days_ago(1, hours=1)),
        PayHistory(id=4, user_id=2, pay_system_id="manual", money=Decimal("1000"), date=days_ago(1)),
        PayHistory(id=5, user_id=2, pay_system_id="", money=Decimal("500"), date=days_ago(1)),
        PayHistory(id=6, user_id=2, pay_system_id=None, money=Decimal("500"), date=days_ago(1)),
        PayHistory(id=7, user_id=4, pay_system_id="0", money=Decimal("10"), date=days_ago(1)),
        PayHistory(id=8, user_id=2, pay_system_id="MANUAL", money=Decimal("20"), date=days_ago(1)),
        PayHistory(id=9, user_id=2, pay_system_id="yookassa", money=Decimal("70"), date=days_ago(20)),
    ])
    session.add_all([
        WithdrawHistory(withdraw_id=1, user_id=1, cost=Decimal("30"), create_date=days_ago(1)),
        WithdrawHistory(withdraw_id=2, user_id=2, cost=Decimal("20"), create_date=days_ago(10)),
    ])
    session.add_all([
        Server(server_id=1, server_gid=1, enabled=1),
        Server(server_id=2, server_gid=1, enabled=1),
        Server(server_id=3, server_gid=None, enabled=1),
        Server(server_id=4, server_gid=2, enabled=0),
    ])
    session.add_all([
        Spool(id=1, user_id=1, status="NEW", event="create", created=days_ago(1)),
        Spool(id=2, user_id=1, status="SUCCESS", event="create", created=days_ago(2)),
        Spool(id=3, user_id=2, status="FAIL", event="block", created=days_ago(3)),
        Spool(id=4, user_id=3, status="pending", event="create", created=days_ago(4)),
        Spool(id=5, user_id=4, status="completed", event="remove", created=days_ago(5)),
    ])
    session.commit()


@pytest.fixture
def billing_db(tmp_path) -> str:
    """Файл SQLite со схемой биллинга и тестовыми данными. Возвращает async URL."""
    path = tmp_path / "billing.sqlite"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        seed_billing(session)
    engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def empty_db(tmp_path) -> str:
    """Файл SQLite без таблиц: SELECT 1 проходит, запросы отчётов падают."""
    path = tmp_path / "empty.sqlite"
    engine = create_engine(f"sqlite:///{path}")
    with engine.connect():
        pass
    engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


class QueryCounter:
    """Считает SQL-запросы, отправленные движком."""

    def __init__(self, async_engine) -> None:
        self.statements: List[str] = []
        event.listen(async_engine.sync_engine, "before_cursor_execute", self._on_execute)

    def _on_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        if statement.strip().upper() != "SELECT 1":
            self.statements.append(statement)

    @property
    def count(self) -> int:
        return len(self.statements)

    def reset(self) -> None:
        self.statements.clear()


class FakeRedisClient:
    """
    Redis в памяти с тем же интерфейсом, что и RedisClient.

    available=False имитирует недоступный Redis, failing=True - ошибки
    соединения на каждой команде.
    """

    def __init__(self, health: HealthTracker, available: bool = True, failing: bool = False) -> None:
        self.health = health
        self.available = available
        self.failing = failing
        self.store: Dict[str, Any] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.calls: List[str] = []

    async def connect(self) -> bool:
        self.health.on_connecting(Store.REDIS)
        if not self.available:
            self.health.on_error(Store.REDIS, RedisConnectionError("connection refused"))
            return False
        self.health.on_ready(Store.REDIS)
        return True

    async def disconnect(self) -> None:
        self.health.on_close(Store.REDIS)

    def _check(self, command: str) -> None:
        self.calls.append(command)
        if self.failing:
            raise RedisConnectionError("Connection reset by peer")

    async def get(self, key: str) -> Optional[str]:
        self._check("get")
        return self.store.get(key)

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        self._check("set")
        self.store[key] = value
        self.ttls[key] = expire
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        self._check("scan")
        return [key for key in self.store if key.startswith(prefix)]

    async def set_json(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        return await self.set(key, json.dumps(value, ensure_ascii=False), expire=expire)


@pytest.fixture
def health() -> HealthTracker:
    return HealthTracker()


@pytest.fixture
def fake_redis(health) -> FakeRedisClient:
    return FakeRedisClient(health)


@pytest.fixture
def redis_factory():
    """FakeRedisClient с произвольными available / failing."""
    return FakeRedisClient


@pytest.fixture
def ready_health(health) -> HealthTracker:
    """Трекер, в котором оба хранилища готовы."""
    health.on_ready(Store.MYSQL)
    health.on_ready(Store.REDIS)
    return health


@pytest.fixture
def query_counter_factory():
    return QueryCounter
