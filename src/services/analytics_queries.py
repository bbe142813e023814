"""
Планировщик агрегирующих запросов аналитики.

Переводит запрошенный период в окно дат и выполняет фиксированный набор
параметризованных запросов к схеме биллинга SHM. Результат каждого
запроса возвращается как список строк без изменений; ошибка любого
запроса прерывает построение всего отчёта.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import Select

from src.db.models import PayHistory, Server, Service, Spool, User, UserService, WithdrawHistory
from src.services.errors import ConnectivityError, QueryError
from src.services.health import HealthTracker, Store

logger = logging.getLogger(__name__)

DASHBOARD_DEFAULT_DAYS = 7
ANALYTICS_DEFAULT_DAYS = 30
ANALYTICS_DEFAULT_PERIOD = "month"
MAX_PERIOD_DAYS = 36500

TOP_LIMIT = 10
RECENT_LIMIT = 5

MANUAL_PAY_SYSTEMS = ("", "0")
MANUAL_PAY_SYSTEM_NAME = "manual"
ACTIVE_STATUS = "active"

# Статусы spool в разных версиях SHM: NEW/SUCCESS/FAIL и pending/completed/failed
TASK_STATUS_GROUPS: Dict[str, tuple[str, ...]] = {
    "pending": ("new", "pending"),
    "completed": ("success", "completed"),
    "failed": ("fail", "failed"),
}

Row = Dict[str, Any]


@dataclass(frozen=True)
class ReportPeriod:
    """Нормализованный период: метка для ответа и ключа кэша плюс число дней."""

    label: str
    days: int


@dataclass(frozen=True)
class ReportWindow:
    """Окно отчёта, обе границы включительно."""

    start: date
    end: date

    @property
    def start_str(self) -> str:
        return self.start.isoformat()

    @property
    def end_str(self) -> str:
        return self.end.isoformat()

    @property
    def days(self) -> int:
        return (self.end - self.start).days


@dataclass
class RowSets:
    """Результаты всех запросов одного отчёта по именам."""

    window: ReportWindow
    rows: Dict[str, List[Row]] = field(default_factory=dict)

    def __getitem__(self, name: str) -> List[Row]:
        return self.rows[name]

    def get(self, name: str) -> List[Row]:
        return self.rows.get(name, [])

    def first(self, name: str) -> Row:
        rows = self.rows.get(name) or [{}]
        return rows[0]


# ----------------------------------------------------------------------
# Периоды
# ----------------------------------------------------------------------

def _positive_days(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        days = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    if days <= 0 or days > MAX_PERIOD_DAYS:
        return None
    return days


def parse_dashboard_period(raw: Any) -> ReportPeriod:
    """Период сводки: целое число дней, по умолчанию 7."""
    days = _positive_days(raw) or DASHBOARD_DEFAULT_DAYS
    return ReportPeriod(label=str(days), days=days)


def parse_analytics_period(raw: Any) -> ReportPeriod:
    """Период детального отчёта: "month" (30 дней) или целое число дней."""
    if isinstance(raw, str) and raw.strip().lower() == ANALYTICS_DEFAULT_PERIOD:
        return ReportPeriod(label=ANALYTICS_DEFAULT_PERIOD, days=ANALYTICS_DEFAULT_DAYS)
    days = _positive_days(raw)
    if days is None:
        return ReportPeriod(label=ANALYTICS_DEFAULT_PERIOD, days=ANALYTICS_DEFAULT_DAYS)
    return ReportPeriod(label=str(days), days=days)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def resolve_window(days: int, today: Optional[date] = None) -> ReportWindow:
    """end = сегодня (UTC), start = end - days."""
    end = today or utc_today()
    return ReportWindow(start=end - timedelta(days=days), end=end)


# ----------------------------------------------------------------------
# Общие условия
# ----------------------------------------------------------------------

def monetary_payment_filter():
    """Исключает ручные начисления: NULL, "", "0" и "manual" в любом регистре."""
    pay_system = PayHistory.pay_system_id
    return and_(
        pay_system.isnot(None),
        pay_system.not_in(MANUAL_PAY_SYSTEMS),
        func.lower(pay_system) != MANUAL_PAY_SYSTEM_NAME,
    )


def active_subscription_filter():
    """Статус active (без учёта регистра) и срок не истёк."""
    return and_(
        func.lower(UserService.status) == ACTIVE_STATUS,
        or_(UserService.expire.is_(None), UserService.expire > func.now()),
    )


def expired_subscription_filter():
    return and_(UserService.expire.isnot(None), UserService.expire < func.now())


def in_window(column, window: ReportWindow):
    """Календарная дата столбца внутри окна, границы включительно."""
    return func.date(column).between(window.start_str, window.end_str)


def _count(model, *criteria):
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return stmt.scalar_subquery()


def _status_bucket(statuses: Sequence[str]):
    return func.coalesce(
        func.sum(case((func.lower(Spool.status).in_(statuses), 1), else_=0)),
        0,
    )


# ----------------------------------------------------------------------
# Запросы
# ----------------------------------------------------------------------

def counts_query() -> Select:
    """Все скалярные счётчики одним запросом."""
    return select(
        _count(User).label("total_users"),
        _count(Service, Service.deleted == 0).label("total_services"),
        _count(Server, Server.enabled == 1).label("total_servers"),
        _count(UserService, active_subscription_filter()).label("active_user_services"),
        _count(PayHistory).label("total_payments"),
        _count(WithdrawHistory).label("total_withdraws"),
        _count(Spool, func.lower(Spool.status).in_(TASK_STATUS_GROUPS["pending"])).label("pending_tasks"),
    )


def payments_query(window: ReportWindow) -> Select:
    return (
        select(
            PayHistory.id,
            PayHistory.user_id,
            PayHistory.pay_system_id,
            PayHistory.money,
            PayHistory.date,
        )
        .where(in_window(PayHistory.date, window), monetary_payment_filter())
        .order_by(PayHistory.date.desc())
    )


def payment_timeline_query(window: ReportWindow) -> Select:
    day = func.date(PayHistory.date)
    return (
        select(
            day.label("payment_date"),
            func.sum(PayHistory.money).label("total"),
            func.count().label("count"),
            PayHistory.pay_system_id,
        )
        .where(in_window(PayHistory.date, window), monetary_payment_filter())
        .group_by(day, PayHistory.pay_system_id)
        .order_by(day)
    )


def pay_systems_query(window: ReportWindow, limit: Optional[int] = None) -> Select:
    total = func.sum(PayHistory.money)
    stmt = (
        select(
            PayHistory.pay_system_id,
            total.label("total"),
            func.count().label("count"),
        )
        .where(in_window(PayHistory.date, window), monetary_payment_filter())
        .group_by(PayHistory.pay_system_id)
        .order_by(total.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    return stmt


def new_users_timeline_query(window: ReportWindow) -> Select:
    day = func.date(User.created)
    return (
        select(day.label("date"), func.count().label("count"))
        .where(in_window(User.created, window))
        .group_by(day)
        .order_by(day)
    )


def withdraw_timeline_query(window: ReportWindow) -> Select:
    day = func.date(WithdrawHistory.create_date)
    return (
        select(
            day.label("date"),
            func.sum(WithdrawHistory.cost).label("total"),
            func.count().label("count"),
        )
        .where(in_window(WithdrawHistory.create_date, window))
        .group_by(day)
        .order_by(day)
    )


def subscriptions_by_status_and_service_query() -> Select:
    count = func.count()
    return (
        select(
            UserService.status,
            Service.name.label("service_name"),
            count.label("count"),
        )
        .select_from(UserService)
        .outerjoin(Service, UserService.service_id == Service.service_id)
        .group_by(UserService.status, Service.name)
        .order_by(count.desc())
    )


def subscriptions_by_status_query() -> Select:
    return select(UserService.status, func.count().label("count")).group_by(UserService.status)


def subscriptions_by_service_query() -> Select:
    count = func.count()
    return (
        select(Service.name, count.label("count"))
        .select_from(UserService)
        .join(Service, UserService.service_id == Service.service_id)
        .group_by(Service.service_id, Service.name)
        .order_by(count.desc())
        .limit(TOP_LIMIT)
    )


def subscriptions_timeline_query(window: ReportWindow) -> Select:
    day = func.date(UserService.created)
    return (
        select(day.label("date"), func.count().label("count"))
        .where(in_window(UserService.created, window))
        .group_by(day)
        .order_by(day)
    )


def subscription_totals_query() -> Select:
    return select(
        _count(UserService).label("total"),
        _count(UserService, expired_subscription_filter()).label("expired"),
    )


def top_services_query() -> Select:
    count = func.count(UserService.user_service_id)
    return (
        select(
            Service.name,
            count.label("count"),
            func.coalesce(func.sum(Service.cost), 0).label("revenue"),
        )
        .select_from(UserService)
        .join(Service, UserService.service_id == Service.service_id)
        .where(active_subscription_filter())
        .group_by(Service.service_id, Service.name)
        .order_by(count.desc())
        .limit(TOP_LIMIT)
    )


def server_groups_query() -> Select:
    count = func.count()
    return (
        select(Server.server_gid.label("group_name"), count.label("count"))
        .where(Server.enabled == 1)
        .group_by(Server.server_gid)
        .order_by(count.desc())
    )


def active_subscriptions_query() -> Select:
    """Строки для расчёта MRR: активные подписки с ценой и периодом услуги."""
    return (
        select(UserService.user_service_id, Service.cost, Service.period)
        .select_from(UserService)
        .join(Service, UserService.service_id == Service.service_id)
        .where(active_subscription_filter())
    )


def recent_payments_query() -> Select:
    return (
        select(
            PayHistory.id,
            PayHistory.user_id,
            PayHistory.money,
            PayHistory.date,
            PayHistory.pay_system_id,
            User.login,
        )
        .select_from(PayHistory)
        .outerjoin(User, PayHistory.user_id == User.user_id)
        .where(monetary_payment_filter())
        .order_by(PayHistory.date.desc())
        .limit(RECENT_LIMIT)
    )


def recent_tasks_query() -> Select:
    return (
        select(Spool.id, Spool.user_id, Spool.status, Spool.created, Spool.event)
        .order_by(Spool.created.desc())
        .limit(RECENT_LIMIT)
    )


def task_status_query() -> Select:
    return select(*(_status_bucket(statuses).label(name) for name, statuses in TASK_STATUS_GROUPS.items()))


def tasks_by_event_query() -> Select:
    count = func.count()
    return (
        select(Spool.event, count.label("count"))
        .group_by(Spool.event)
        .order_by(count.desc())
        .limit(TOP_LIMIT)
    )


def top_customers_query(window: ReportWindow) -> Select:
    total_spent = func.sum(PayHistory.money)
    return (
        select(
            User.user_id,
            User.login,
            total_spent.label("total_spent"),
            func.count(PayHistory.id).label("payment_count"),
        )
        .select_from(User)
        .join(PayHistory, User.user_id == PayHistory.user_id)
        .where(in_window(PayHistory.date, window), monetary_payment_filter())
        .group_by(User.user_id, User.login)
        .order_by(total_spent.desc())
        .limit(TOP_LIMIT)
    )


def dashboard_battery(window: ReportWindow) -> Dict[str, Select]:
    """Набор запросов сводки дашборда."""
    return {
        "counts": counts_query(),
        "payments": payments_query(window),
        "payment_timeline": payment_timeline_query(window),
        "pay_systems": pay_systems_query(window, limit=TOP_LIMIT),
        "new_users": new_users_timeline_query(window),
        "withdraw_timeline": withdraw_timeline_query(window),
        "services_stats": subscriptions_by_status_and_service_query(),
        "top_services": top_services_query(),
        "server_groups": server_groups_query(),
        "active_subscriptions": active_subscriptions_query(),
        "recent_payments": recent_payments_query(),
        "recent_tasks": recent_tasks_query(),
    }


def analytics_battery(window: ReportWindow) -> Dict[str, Select]:
    """Набор запросов детального отчёта."""
    return {
        "counts": counts_query(),
        "payments": payments_query(window),
        "payment_timeline": payment_timeline_query(window),
        "pay_systems": pay_systems_query(window),
        "new_users": new_users_timeline_query(window),
        "withdraw_timeline": withdraw_timeline_query(window),
        "subscription_totals": subscription_totals_query(),
        "subscriptions_by_status": subscriptions_by_status_query(),
        "subscriptions_by_service": subscriptions_by_service_query(),
        "subscriptions_timeline": subscriptions_timeline_query(window),
        "task_status": task_status_query(),
        "tasks_by_event": tasks_by_event_query(),
        "top_services": top_services_query(),
        "server_groups": server_groups_query(),
        "active_subscriptions": active_subscriptions_query(),
        "top_customers": top_customers_query(window),
    }


class AnalyticsQueryPlanner:
    """
    Выполняет набор запросов отчёта.

    Каждый запрос берёт соединение из пула и возвращает его до следующего
    запроса. Потеря соединения с MySQL сообщается трекеру здоровья и
    превращается в ConnectivityError, остальные ошибки SQL - в QueryError.
    """

    def __init__(self, engine: AsyncEngine, health: Optional[HealthTracker] = None) -> None:
        self._engine = engine
        self._health = health

    async def plan_dashboard(self, period: ReportPeriod, today: Optional[date] = None) -> RowSets:
        window = resolve_window(period.days, today)
        logger.info(
            "[Dashboard] Fetching analytics for period: %s days (%s to %s)",
            period.days, window.start_str, window.end_str,
        )
        return await self.run(window, dashboard_battery(window))

    async def plan_analytics(self, period: ReportPeriod, today: Optional[date] = None) -> RowSets:
        window = resolve_window(period.days, today)
        logger.info(
            "[Analytics] Fetching analytics for period: %s (%s to %s)",
            period.label, window.start_str, window.end_str,
        )
        return await self.run(window, analytics_battery(window))

    async def run(self, window: ReportWindow, battery: Mapping[str, Select]) -> RowSets:
        rowsets = RowSets(window=window)
        for name, stmt in battery.items():
            rowsets.rows[name] = await self._fetch(name, stmt)
        return rowsets

    async def _fetch(self, name: str, stmt: Select) -> List[Row]:
        try:
            async with self._engine.connect() as conn:
                try:
                    result = await conn.execute(stmt)
                    return [dict(row) for row in result.mappings().all()]
                except SQLAlchemyError as e:
                    if getattr(e, "connection_invalidated", False):
                        self._connection_lost(name, e)
                        raise ConnectivityError() from e
                    message = str(getattr(e, "orig", None) or e)
                    logger.error("[Analytics] Query %s failed: %s", name, message)
                    raise QueryError(name, message) from e
        except (OperationalError, InterfaceError, OSError) as e:
            # Соединение не выдано пулом: MySQL недоступен
            self._connection_lost(name, e)
            raise ConnectivityError() from e

    def _connection_lost(self, name: str, error: BaseException) -> None:
        logger.error("[Analytics] Query %s lost the database connection: %s", name, error)
        if self._health is not None:
            self._health.on_error(Store.MYSQL, error)
