"""Тесты расчёта финансовых метрик."""

from decimal import Decimal

import pytest

from src.services import analytics_metrics as m


def test_safe_divide_by_zero_is_zero():
    assert m.safe_divide(100, 0) == Decimal(0)
    assert m.safe_divide(100, None) == Decimal(0)
    assert m.safe_divide(Decimal("10"), 4) == Decimal("2.5")


@pytest.mark.parametrize(
    "pay_system_id, expected",
    [
        ("yookassa", True),
        ("stripe", True),
        (None, False),
        ("", False),
        ("0", False),
        ("manual", False),
        ("Manual", False),
        ("MANUAL", False),
    ],
)
def test_is_monetary_payment(pay_system_id, expected):
    assert m.is_monetary_payment(pay_system_id) is expected


def test_zero_users_give_zero_metrics():
    revenue = m.summarize_revenue([], [])
    financial = m.compute_financial(revenue, total_users=0)

    assert financial.arpu == 0
    assert financial.arppu == 0
    assert financial.ltv == 0
    assert financial.conversion_rate == 0
    assert financial.avg_revenue_per_payment == 0
    assert financial.avg_payments_per_user == 0
    assert financial.churn_rate == 0


def test_revenue_summary_excludes_manual_payments():
    payments = [
        {"user_id": 1, "pay_system_id": "yookassa", "money": Decimal("100")},
        {"user_id": 1, "pay_system_id": "yookassa", "money": Decimal("50")},
        {"user_id": 3, "pay_system_id": "stripe", "money": Decimal("200")},
        {"user_id": 2, "pay_system_id": "manual", "money": Decimal("1000")},
        {"user_id": 2, "pay_system_id": None, "money": Decimal("500")},
    ]
    withdraws = [{"date": "2024-03-01", "total": Decimal("30")}]

    revenue = m.summarize_revenue(payments, withdraws)

    assert revenue.total_revenue == Decimal("350")
    assert revenue.total_withdraws == Decimal("30")
    assert revenue.net_revenue == Decimal("320")
    assert revenue.payment_count == 3
    assert revenue.paying_users_count == 2


def test_financial_metrics():
    revenue = m.RevenueSummary(
        total_revenue=Decimal("420"),
        total_withdraws=Decimal("50"),
        net_revenue=Decimal("370"),
        payment_count=4,
        paying_users_count=3,
    )

    financial = m.compute_financial(revenue, total_users=4, expired_subscriptions=2, active_subscriptions=3)

    assert financial.arpu == Decimal("105")
    assert financial.arppu == Decimal("140")
    assert financial.ltv == financial.arppu
    assert financial.conversion_rate == Decimal("75")
    assert financial.avg_revenue_per_payment == Decimal("105")
    assert financial.avg_payments_per_user.quantize(Decimal("0.0001")) == Decimal("1.3333")
    assert financial.churn_rate == Decimal("40")


def test_churn_without_subscriptions():
    assert m.churn_rate(0, 0) == 0
    assert m.churn_rate(5, 0) == Decimal("100")


@pytest.mark.parametrize(
    "cost, period, expected",
    [
        (Decimal("300"), Decimal("30"), Decimal("300")),
        (Decimal("300"), Decimal("90"), Decimal("100")),
        (Decimal("120"), Decimal("365"), Decimal("120") * 30 / Decimal("365")),
        (Decimal("1000"), Decimal("0"), None),
        (Decimal("1000"), None, None),
        (Decimal("1000"), Decimal("-1"), None),
    ],
)
def test_monthly_cost(cost, period, expected):
    assert m.monthly_cost(cost, period) == expected


def test_mrr_excludes_zero_period_services():
    subscriptions = [
        {"user_service_id": 1, "cost": Decimal("300"), "period": Decimal("30")},
        {"user_service_id": 2, "cost": Decimal("300"), "period": Decimal("30")},
        {"user_service_id": 3, "cost": Decimal("1000"), "period": Decimal("0")},
    ]

    mrr = m.compute_mrr(subscriptions)

    assert mrr.mrr == Decimal("600")
    assert mrr.active_subscriptions == 2
    assert mrr.avg_subscription_value == Decimal("300")


def test_mrr_only_zero_period_subscription():
    mrr = m.compute_mrr([{"user_service_id": 1, "cost": Decimal("1000"), "period": 0}])

    assert mrr.mrr == 0
    assert mrr.active_subscriptions == 0
    assert mrr.avg_subscription_value == 0


def test_to_decimal_handles_driver_types():
    assert m.to_decimal(None) == 0
    assert m.to_decimal(3) == Decimal(3)
    assert m.to_decimal(0.1) == Decimal("0.1")
    assert m.to_decimal("12.50") == Decimal("12.50")
    assert m.to_decimal("n/a") == 0
