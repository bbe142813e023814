"""
Сборка ответов аналитики из строк запросов и рассчитанных метрик.

Здесь только группировка, переименование и приведение типов:
Decimal -> float, даты -> YYYY-MM-DD. Пропущенные дни во временных
рядах не дополняются нулями.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from src.admin.models.schemas import (
    AnalyticsFinancial,
    AnalyticsMrr,
    AnalyticsPayments,
    AnalyticsPeriod,
    AnalyticsRevenue,
    AnalyticsUsers,
    DashboardAnalytics,
    DashboardCounts,
    DashboardFinancial,
    DashboardPayments,
    DashboardRevenue,
    DashboardServices,
    DashboardUsers,
    DateCount,
    DateTally,
    DateTotal,
    DateValue,
    DetailedAnalytics,
    MrrBlock,
    NameCount,
    NameTally,
    NameValue,
    PaymentTimelineEntry,
    PaymentTimelinePoint,
    PaySystemTotal,
    RecentBlock,
    RecentPayment,
    RecentTask,
    ServersBlock,
    StatusCount,
    SummaryPeriod,
    TasksBlock,
    TopCustomer,
    TopService,
    UserServicesBlock,
)
from src.services.analytics_metrics import (
    FinancialMetrics,
    MrrSummary,
    compute_financial,
    compute_mrr,
    summarize_revenue,
    to_decimal,
)
from src.services.analytics_queries import ReportPeriod, RowSets

UNGROUPED = "ungrouped"


# ----------------------------------------------------------------------
# Приведение типов
# ----------------------------------------------------------------------

def as_float(value: Any) -> float:
    if isinstance(value, Decimal):
        return float(value)
    return float(to_decimal(value))


def as_int(value: Any) -> int:
    if value is None:
        return 0
    return int(value)


def format_day(value: Any) -> str:
    """Календарная дата в формате YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None:
        return ""
    return str(value)[:10]


def format_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


# ----------------------------------------------------------------------
# Группировки
# ----------------------------------------------------------------------

def sum_by_status(rows: Iterable[Mapping[str, Any]]) -> List[NameTally]:
    """Сворачивает строки (status, service_name, count) в счётчики по статусу."""
    totals: Dict[Optional[str], int] = {}
    for row in rows:
        status = optional_str(row.get("status"))
        totals[status] = totals.get(status, 0) + as_int(row.get("count"))
    return [NameTally(name=status, value=count) for status, count in totals.items()]


def merge_by_day(rows: Iterable[Mapping[str, Any]], day_key: str = "date") -> Dict[str, Decimal]:
    """Суммы total по дням, порядок дней сохраняется."""
    merged: Dict[str, Decimal] = {}
    for row in rows:
        day = format_day(row.get(day_key))
        merged[day] = merged.get(day, Decimal(0)) + to_decimal(row.get("total"))
    return merged


def server_groups(rows: Iterable[Mapping[str, Any]]) -> List[NameTally]:
    return [
        NameTally(
            name=UNGROUPED if row.get("group_name") is None else str(row.get("group_name")),
            value=as_int(row.get("count")),
        )
        for row in rows
    ]


def top_services(rows: Iterable[Mapping[str, Any]]) -> List[TopService]:
    return [
        TopService(name=row.get("name"), count=as_int(row.get("count")), revenue=as_float(row.get("revenue")))
        for row in rows
    ]


def _mrr_fields(mrr: MrrSummary) -> Dict[str, Any]:
    return {
        "mrr": as_float(mrr.mrr),
        "active_subscriptions": mrr.active_subscriptions,
        "avg_subscription_value": as_float(mrr.avg_subscription_value),
    }


# ----------------------------------------------------------------------
# Сводка дашборда
# ----------------------------------------------------------------------

def build_dashboard_payload(period: ReportPeriod, rows: RowSets) -> DashboardAnalytics:
    counts = rows.first("counts")
    total_users = as_int(counts.get("total_users"))
    active_services = as_int(counts.get("active_user_services"))

    revenue = summarize_revenue(rows.get("payments"), rows.get("withdraw_timeline"))
    financial: FinancialMetrics = compute_financial(revenue, total_users, active_subscriptions=active_services)
    mrr = compute_mrr(rows.get("active_subscriptions"))
    new_users = rows.get("new_users")

    return DashboardAnalytics(
        period=SummaryPeriod(
            days=period.days,
            start_date=rows.window.start_str,
            end_date=rows.window.end_str,
        ),
        counts=DashboardCounts(
            total_users=total_users,
            total_services=as_int(counts.get("total_services")),
            total_servers=as_int(counts.get("total_servers")),
            active_user_services=active_services,
            recent_payments=as_int(counts.get("total_payments")),
            total_withdraws=as_int(counts.get("total_withdraws")),
            pending_tasks=as_int(counts.get("pending_tasks")),
        ),
        payments=DashboardPayments(
            total=as_float(revenue.total_revenue),
            count=revenue.payment_count,
            by_pay_system=[
                NameValue(name=optional_str(row.get("pay_system_id")), value=as_float(row.get("total")))
                for row in rows.get("pay_systems")
            ],
            timeline=[
                PaymentTimelinePoint(
                    day=format_day(row.get("payment_date")),
                    value=as_float(row.get("total")),
                    pay_system_id=optional_str(row.get("pay_system_id")),
                )
                for row in rows.get("payment_timeline")
            ],
        ),
        users=DashboardUsers(
            total=total_users,
            new_users=sum(as_int(row.get("count")) for row in new_users),
            timeline=[DateTally(day=format_day(row.get("date")), value=as_int(row.get("count"))) for row in new_users],
        ),
        revenue=DashboardRevenue(
            total_revenue=as_float(revenue.total_revenue),
            total_withdraws=as_float(revenue.total_withdraws),
            net_revenue=as_float(revenue.net_revenue),
            revenue_timeline=[
                DateValue(day=day, value=as_float(total))
                for day, total in merge_by_day(rows.get("payment_timeline"), "payment_date").items()
            ],
            withdraw_timeline=[
                DateValue(day=format_day(row.get("date")), value=as_float(row.get("total")))
                for row in rows.get("withdraw_timeline")
            ],
        ),
        services=DashboardServices(
            total=active_services,
            by_status=sum_by_status(rows.get("services_stats")),
            top_services=top_services(rows.get("top_services")),
        ),
        servers=ServersBlock(
            total=as_int(counts.get("total_servers")),
            by_group=server_groups(rows.get("server_groups")),
        ),
        financial=DashboardFinancial(
            arpu=as_float(financial.arpu),
            arppu=as_float(financial.arppu),
            paying_users_count=financial.paying_users_count,
            total_users=financial.total_users,
            conversion_rate=as_float(financial.conversion_rate),
        ),
        mrr=MrrBlock(**_mrr_fields(mrr)),
        recent=RecentBlock(
            payments=[
                RecentPayment(
                    id=row["id"],
                    user_id=row.get("user_id"),
                    money=as_float(row.get("money")),
                    date=format_timestamp(row.get("date")),
                    pay_system_id=optional_str(row.get("pay_system_id")),
                    login=row.get("login"),
                )
                for row in rows.get("recent_payments")
            ],
            tasks=[
                RecentTask(
                    id=row["id"],
                    user_id=row.get("user_id"),
                    status=row.get("status"),
                    created=format_timestamp(row.get("created")),
                    event=optional_str(row.get("event")),
                )
                for row in rows.get("recent_tasks")
            ],
        ),
    )


# ----------------------------------------------------------------------
# Детальный отчёт
# ----------------------------------------------------------------------

def build_analytics_payload(period: ReportPeriod, rows: RowSets) -> DetailedAnalytics:
    counts = rows.first("counts")
    subscriptions = rows.first("subscription_totals")
    task_status = rows.first("task_status")
    total_users = as_int(counts.get("total_users"))

    revenue = summarize_revenue(rows.get("payments"), rows.get("withdraw_timeline"))
    financial = compute_financial(
        revenue,
        total_users,
        expired_subscriptions=as_int(subscriptions.get("expired")),
        active_subscriptions=as_int(counts.get("active_user_services")),
    )
    mrr = compute_mrr(rows.get("active_subscriptions"))
    new_users = rows.get("new_users")

    return DetailedAnalytics(
        period=AnalyticsPeriod(
            type=period.label,
            days=period.days,
            start_date=rows.window.start_str,
            end_date=rows.window.end_str,
        ),
        payments=AnalyticsPayments(
            total=as_float(revenue.total_revenue),
            count=revenue.payment_count,
            timeline=[
                PaymentTimelineEntry(
                    day=format_day(row.get("payment_date")),
                    total=as_float(row.get("total")),
                    count=as_int(row.get("count")),
                    pay_system_id=optional_str(row.get("pay_system_id")),
                )
                for row in rows.get("payment_timeline")
            ],
            by_pay_system=[
                PaySystemTotal(
                    name=optional_str(row.get("pay_system_id")),
                    total=as_float(row.get("total")),
                    count=as_int(row.get("count")),
                )
                for row in rows.get("pay_systems")
            ],
        ),
        users=AnalyticsUsers(
            total=total_users,
            new_users=sum(as_int(row.get("count")) for row in new_users),
            timeline=[DateCount(day=format_day(row.get("date")), count=as_int(row.get("count"))) for row in new_users],
        ),
        revenue=AnalyticsRevenue(
            total_revenue=as_float(revenue.total_revenue),
            total_withdraws=as_float(revenue.total_withdraws),
            net_revenue=as_float(revenue.net_revenue),
            revenue_timeline=[
                DateTotal(day=day, total=as_float(total))
                for day, total in merge_by_day(rows.get("payment_timeline"), "payment_date").items()
            ],
            withdraw_timeline=[
                DateTotal(day=format_day(row.get("date")), total=as_float(row.get("total")))
                for row in rows.get("withdraw_timeline")
            ],
        ),
        user_services=UserServicesBlock(
            total=as_int(subscriptions.get("total")),
            by_status=[
                StatusCount(status=optional_str(row.get("status")), count=as_int(row.get("count")))
                for row in rows.get("subscriptions_by_status")
            ],
            by_service=[
                NameCount(name=row.get("name"), count=as_int(row.get("count")))
                for row in rows.get("subscriptions_by_service")
            ],
            timeline=[
                DateCount(day=format_day(row.get("date")), count=as_int(row.get("count")))
                for row in rows.get("subscriptions_timeline")
            ],
        ),
        tasks=TasksBlock(
            pending=as_int(task_status.get("pending")),
            completed=as_int(task_status.get("completed")),
            failed=as_int(task_status.get("failed")),
            by_event=[
                NameTally(name=optional_str(row.get("event")), value=as_int(row.get("count")))
                for row in rows.get("tasks_by_event")
            ],
        ),
        top_services=top_services(rows.get("top_services")),
        servers=ServersBlock(
            total=as_int(counts.get("total_servers")),
            by_group=server_groups(rows.get("server_groups")),
        ),
        financial=AnalyticsFinancial(
            arpu=as_float(financial.arpu),
            arppu=as_float(financial.arppu),
            ltv=as_float(financial.ltv),
            churn_rate=as_float(financial.churn_rate),
            paying_users_count=financial.paying_users_count,
            total_users=financial.total_users,
            avg_revenue_per_payment=as_float(financial.avg_revenue_per_payment),
            avg_payments_per_user=as_float(financial.avg_payments_per_user),
            conversion_rate=as_float(financial.conversion_rate),
        ),
        top_customers=[
            TopCustomer(
                user_id=row["user_id"],
                username=row.get("login"),
                total_spent=as_float(row.get("total_spent")),
                payment_count=as_int(row.get("payment_count")),
            )
            for row in rows.get("top_customers")
        ],
        mrr=AnalyticsMrr(**_mrr_fields(mrr), mrr_growth=0),
    )


def serialize(payload: DashboardAnalytics | DetailedAnalytics) -> str:
    """Единственная сериализация отчёта: эта строка и кэшируется, и отдаётся клиенту."""
    return payload.model_dump_json(by_alias=True)
