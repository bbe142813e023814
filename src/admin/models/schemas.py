"""
Pydantic схемы ответов аналитики админ-панели.

Поля в Python называются в snake_case, в JSON отдаются в camelCase
(alias_generator). Строки последних платежей и задач отдаются
как есть, в snake_case.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Базовая модель ответа с camelCase-алиасами."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Общие элементы
# ============================================================================

class NameValue(CamelModel):
    name: Optional[str]
    value: float


class NameTally(CamelModel):
    """Счётчик по имени: value всегда целое."""
    name: Optional[str]
    value: int


class NameCount(CamelModel):
    name: Optional[str]
    count: int


class DateValue(CamelModel):
    """Точка временного ряда (дата в формате YYYY-MM-DD)."""
    day: str = Field(..., alias="date")
    value: float


class DateTally(CamelModel):
    day: str = Field(..., alias="date")
    value: int


class DateCount(CamelModel):
    day: str = Field(..., alias="date")
    count: int


class DateTotal(CamelModel):
    day: str = Field(..., alias="date")
    total: float


class TopService(CamelModel):
    name: Optional[str]
    count: int
    revenue: float


class ServersBlock(CamelModel):
    total: int
    by_group: List[NameTally]


# ============================================================================
# Сводка дашборда: GET /api/dashboard/analytics
# ============================================================================

class SummaryPeriod(CamelModel):
    days: int
    start_date: str
    end_date: str


class DashboardCounts(CamelModel):
    total_users: int
    total_services: int
    total_servers: int
    active_user_services: int
    recent_payments: int = Field(..., description="Общее число записей pays_history")
    total_withdraws: int
    pending_tasks: int


class PaymentTimelinePoint(CamelModel):
    day: str = Field(..., alias="date")
    value: float
    pay_system_id: Optional[str]


class DashboardPayments(CamelModel):
    total: float
    count: int
    by_pay_system: List[NameValue]
    timeline: List[PaymentTimelinePoint]


class DashboardUsers(CamelModel):
    total: int
    new_users: int
    timeline: List[DateTally]


class DashboardRevenue(CamelModel):
    total_revenue: float
    total_withdraws: float
    net_revenue: float
    revenue_timeline: List[DateValue]
    withdraw_timeline: List[DateValue]


class DashboardServices(CamelModel):
    total: int
    by_status: List[NameTally]
    top_services: List[TopService]


class DashboardFinancial(CamelModel):
    arpu: float
    arppu: float
    paying_users_count: int
    total_users: int
    conversion_rate: float


class MrrBlock(CamelModel):
    mrr: float
    active_subscriptions: int
    avg_subscription_value: float


class RecentPayment(BaseModel):
    id: int
    user_id: Optional[int]
    money: float
    date: Optional[str]
    pay_system_id: Optional[str]
    login: Optional[str]


class RecentTask(BaseModel):
    id: int
    user_id: Optional[int]
    status: Optional[str]
    created: Optional[str]
    event: Optional[str]


class RecentBlock(CamelModel):
    payments: List[RecentPayment]
    tasks: List[RecentTask]


class DashboardAnalytics(CamelModel):
    """Сводный отчёт дашборда."""
    period: SummaryPeriod
    counts: DashboardCounts
    payments: DashboardPayments
    users: DashboardUsers
    revenue: DashboardRevenue
    services: DashboardServices
    servers: ServersBlock
    financial: DashboardFinancial
    mrr: MrrBlock
    recent: RecentBlock


# ============================================================================
# Детальный отчёт: GET /api/analytics
# ============================================================================

class AnalyticsPeriod(CamelModel):
    type: str
    days: int
    start_date: str
    end_date: str


class PaymentTimelineEntry(CamelModel):
    day: str = Field(..., alias="date")
    total: float
    count: int
    pay_system_id: Optional[str]


class PaySystemTotal(CamelModel):
    name: Optional[str]
    total: float
    count: int


class AnalyticsPayments(CamelModel):
    total: float
    count: int
    timeline: List[PaymentTimelineEntry]
    by_pay_system: List[PaySystemTotal]


class AnalyticsUsers(CamelModel):
    total: int
    new_users: int
    timeline: List[DateCount]


class AnalyticsRevenue(CamelModel):
    total_revenue: float
    total_withdraws: float
    net_revenue: float
    revenue_timeline: List[DateTotal]
    withdraw_timeline: List[DateTotal]


class StatusCount(CamelModel):
    status: Optional[str]
    count: int


class UserServicesBlock(CamelModel):
    total: int
    by_status: List[StatusCount]
    by_service: List[NameCount]
    timeline: List[DateCount]


class TasksBlock(CamelModel):
    pending: int
    completed: int
    failed: int
    by_event: List[NameTally]


class AnalyticsFinancial(CamelModel):
    arpu: float
    arppu: float
    ltv: float
    churn_rate: float
    paying_users_count: int
    total_users: int
    avg_revenue_per_payment: float
    avg_payments_per_user: float
    conversion_rate: float


class TopCustomer(CamelModel):
    user_id: int
    username: Optional[str]
    total_spent: float
    payment_count: int


class AnalyticsMrr(MrrBlock):
    mrr_growth: float = 0


class DetailedAnalytics(CamelModel):
    """Детальный отчёт аналитики за период."""
    period: AnalyticsPeriod
    payments: AnalyticsPayments
    users: AnalyticsUsers
    revenue: AnalyticsRevenue
    user_services: UserServicesBlock
    tasks: TasksBlock
    top_services: List[TopService]
    servers: ServersBlock
    financial: AnalyticsFinancial
    top_customers: List[TopCustomer]
    mrr: AnalyticsMrr


# ============================================================================
# Служебные ответы
# ============================================================================

class HealthResponse(BaseModel):
    status: str = "ok"
    mysql: bool
    redis: bool
    timestamp: str


class CacheSetRequest(BaseModel):
    """Тело POST /api/cache/{key}."""
    data: Any = None
    ttl: int = Field(300, description="Время жизни в секундах")
