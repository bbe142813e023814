"""
Расчёт финансовых метрик аналитики.

Чистые функции над строками запросов. Деление на ноль во всех метриках
даёт 0, а не ошибку.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

ZERO = Decimal(0)
HUNDRED = Decimal(100)
DAYS_IN_MONTH = Decimal(30)

MANUAL_PAY_SYSTEM_IDS = frozenset({"", "0", "manual"})


def to_decimal(value: Any) -> Decimal:
    """Приводит значение из БД (Decimal, int, float, str, None) к Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return ZERO


def safe_divide(numerator: Any, denominator: Any) -> Decimal:
    denominator = to_decimal(denominator)
    if denominator == ZERO:
        return ZERO
    return to_decimal(numerator) / denominator


def is_monetary_payment(pay_system_id: Optional[str]) -> bool:
    """False для ручных начислений: NULL, "", "0", "manual" (любой регистр)."""
    if pay_system_id is None:
        return False
    return str(pay_system_id).strip().lower() not in MANUAL_PAY_SYSTEM_IDS


# ----------------------------------------------------------------------
# Выручка
# ----------------------------------------------------------------------

def monetary_payments(payments: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return [p for p in payments if is_monetary_payment(p.get("pay_system_id"))]


def total_revenue(payments: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((to_decimal(p.get("money")) for p in monetary_payments(payments)), ZERO)


def total_withdraws(withdraw_rows: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((to_decimal(w.get("total")) for w in withdraw_rows), ZERO)


def paying_users_count(payments: Iterable[Mapping[str, Any]]) -> int:
    return len({p.get("user_id") for p in monetary_payments(payments)})


# ----------------------------------------------------------------------
# Метрики на пользователя
# ----------------------------------------------------------------------

def arpu(revenue: Any, total_users: int) -> Decimal:
    return safe_divide(revenue, total_users)


def arppu(revenue: Any, paying_users: int) -> Decimal:
    return safe_divide(revenue, paying_users)


def ltv(revenue: Any, paying_users: int) -> Decimal:
    """Упрощённый LTV: равен ARPPU."""
    return arppu(revenue, paying_users)


def conversion_rate(paying_users: int, total_users: int) -> Decimal:
    return safe_divide(paying_users, total_users) * HUNDRED


def avg_revenue_per_payment(revenue: Any, payment_count: int) -> Decimal:
    return safe_divide(revenue, payment_count)


def avg_payments_per_user(payment_count: int, paying_users: int) -> Decimal:
    return safe_divide(payment_count, paying_users)


def churn_rate(expired: int, active: int) -> Decimal:
    """Доля истёкших подписок среди истёкших и активных, в процентах."""
    return safe_divide(expired, to_decimal(expired) + to_decimal(active)) * HUNDRED


# ----------------------------------------------------------------------
# MRR
# ----------------------------------------------------------------------

def monthly_cost(cost: Any, period_days: Any) -> Optional[Decimal]:
    """Стоимость услуги, приведённая к 30 дням. None, если period <= 0 или не задан."""
    period = to_decimal(period_days)
    if period <= ZERO:
        return None
    return to_decimal(cost) * DAYS_IN_MONTH / period


@dataclass(frozen=True)
class RevenueSummary:
    total_revenue: Decimal
    total_withdraws: Decimal
    net_revenue: Decimal
    payment_count: int
    paying_users_count: int


@dataclass(frozen=True)
class FinancialMetrics:
    total_users: int
    paying_users_count: int
    arpu: Decimal
    arppu: Decimal
    ltv: Decimal
    conversion_rate: Decimal
    avg_revenue_per_payment: Decimal
    avg_payments_per_user: Decimal
    churn_rate: Decimal


@dataclass(frozen=True)
class MrrSummary:
    mrr: Decimal
    active_subscriptions: int
    avg_subscription_value: Decimal


def summarize_revenue(
    payments: Iterable[Mapping[str, Any]],
    withdraw_rows: Iterable[Mapping[str, Any]],
) -> RevenueSummary:
    paid = monetary_payments(payments)
    revenue = total_revenue(paid)
    withdraws = total_withdraws(withdraw_rows)
    return RevenueSummary(
        total_revenue=revenue,
        total_withdraws=withdraws,
        net_revenue=revenue - withdraws,
        payment_count=len(paid),
        paying_users_count=paying_users_count(paid),
    )


def compute_financial(
    revenue: RevenueSummary,
    total_users: int,
    expired_subscriptions: int = 0,
    active_subscriptions: int = 0,
) -> FinancialMetrics:
    total_users = int(total_users or 0)
    paying = revenue.paying_users_count
    return FinancialMetrics(
        total_users=total_users,
        paying_users_count=paying,
        arpu=arpu(revenue.total_revenue, total_users),
        arppu=arppu(revenue.total_revenue, paying),
        ltv=ltv(revenue.total_revenue, paying),
        conversion_rate=conversion_rate(paying, total_users),
        avg_revenue_per_payment=avg_revenue_per_payment(revenue.total_revenue, revenue.payment_count),
        avg_payments_per_user=avg_payments_per_user(revenue.payment_count, paying),
        churn_rate=churn_rate(expired_subscriptions, active_subscriptions),
    )


def compute_mrr(subscriptions: Iterable[Mapping[str, Any]]) -> MrrSummary:
    """
    MRR по активным подпискам.

    Подписки на услуги с period <= 0 в MRR не входят и не учитываются
    в знаменателе средней стоимости подписки.
    """
    mrr = ZERO
    counted = 0
    for row in subscriptions:
        monthly = monthly_cost(row.get("cost"), row.get("period"))
        if monthly is None:
            continue
        mrr += monthly
        counted += 1
    return MrrSummary(
        mrr=mrr,
        active_subscriptions=counted,
        avg_subscription_value=safe_divide(mrr, counted),
    )
