"""Unit tests for receivables projection and delinquency risk"""

import pytest
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from caixa_gateway.domain.models import Expense, LedgerEntry, PaymentSchedule
from caixa_gateway.domain.projections import (
    build_projection_report,
    critical_due_dates,
    delinquent_clients_count,
    month_label,
    overdue_percentage,
    project,
    risk_level,
    semester_projection,
    trend,
)

TODAY = date(2024, 3, 15)


def _schedule(id, amount, due_date, client_id=None, client_name=None, status="pendente"):
    return PaymentSchedule(
        id=id,
        entry_id=f"entry-{id}",
        schedule_type="installment",
        installment_number=1,
        installments_total=1,
        due_date=due_date,
        amount=Decimal(amount),
        status=status,
        client_id=client_id,
        client_name=client_name,
    )


@pytest.fixture
def schedules():
    return [
        _schedule("a", "200.00", date(2024, 3, 25), "c1", "Ana"),
        _schedule("b", "100.00", date(2024, 4, 30), "c2", "Bruno"),
        _schedule("c", "300.00", date(2024, 6, 10), "c2", "Bruno"),
        _schedule("d", "150.00", date(2024, 3, 10), "c3", "Carla"),
        _schedule("e", "50.00", date(2024, 3, 1), "c3", "Carla"),
        _schedule("f", "999.00", date(2024, 3, 20), "c1", "Ana", status="pago"),
    ]


@pytest.fixture
def expenses():
    return [
        Expense(id="x1", kind="fixa", category="Aluguel", value=Decimal("100.00"), date=date(2024, 3, 1), status="pago"),
        Expense(id="x2", kind="variavel", category="Mercado", value=Decimal("50.00"), date=date(2024, 3, 2), status="pago"),
    ]


@pytest.mark.parametrize(
    "horizon,receivables,projected_expenses,balance",
    [
        (30, "200.00", "100.00", "100.00"),
        (60, "300.00", "200.00", "100.00"),
        (90, "600.00", "300.00", "300.00"),
    ],
)
def test_project_horizons(schedules, expenses, horizon, receivables, projected_expenses, balance):
    """Test pending receivables due in the window against fixed costs per started month"""
    projection = project(schedules, expenses, horizon, TODAY)

    assert projection.horizon_days == horizon
    assert projection.receivables == Decimal(receivables)
    assert projection.expenses == Decimal(projected_expenses)
    assert projection.balance == Decimal(balance)


def test_project_rejects_unsupported_horizon(schedules, expenses):
    with pytest.raises(ValueError):
        project(schedules, expenses, 45, TODAY)


def test_overdue_percentage(schedules):
    # 200 overdue of 800 pending
    assert overdue_percentage(schedules, TODAY) == 25.0


def test_overdue_percentage_without_pending():
    assert overdue_percentage([], TODAY) == 0.0


def test_delinquent_clients_count_distinct(schedules):
    assert delinquent_clients_count(schedules, TODAY) == 1


@pytest.mark.parametrize(
    "pct,delinquents,expected",
    [
        (0.0, 0, "low"),
        (15.0, 2, "low"),
        (15.1, 0, "medium"),
        (0.0, 3, "medium"),
        (30.1, 0, "high"),
        (0.0, 6, "high"),
    ],
)
def test_risk_level(pct, delinquents, expected):
    assert risk_level(pct, delinquents) == expected


@pytest.mark.parametrize("pct,expected", [(5.0, "positive"), (10.0, "neutral"), (20.0, "neutral"), (25.0, "negative")])
def test_trend(pct, expected):
    assert trend(pct) == expected


def test_critical_due_dates_order(schedules):
    """Test overdue rows come first, least overdue first, then soonest upcoming"""
    items = critical_due_dates(schedules, TODAY)

    assert [i.schedule_id for i in items] == ["d", "e", "a", "b", "c"]
    assert items[0].days_until_due == -5
    assert items[0].is_overdue is True
    assert items[2].days_until_due == 10
    assert items[2].is_overdue is False


def test_critical_due_dates_limit(schedules):
    items = critical_due_dates(schedules, TODAY, limit=3)
    assert [i.schedule_id for i in items] == ["d", "e", "a"]


def test_critical_due_dates_unknown_client():
    items = critical_due_dates([_schedule("x", "10.00", date(2024, 3, 16))], TODAY)
    assert items[0].client_name == "Cliente não identificado"


def test_build_projection_report(schedules, expenses):
    report = build_projection_report(schedules, expenses, TODAY)

    assert [p.horizon_days for p in report.projections] == [30, 60, 90]
    assert report.overdue_percentage == 25.0
    assert report.delinquent_clients_count == 1
    assert report.risk_level == "medium"
    assert report.trend == "negative"
    assert report.overdue_impact == Decimal("200.00")
    assert report.potential_recovery == Decimal("200.00")
    assert len(report.critical_due_dates) == 5


def test_build_projection_report_empty_ledger():
    report = build_projection_report([], [], TODAY)

    assert all(p.receivables == Decimal("0.00") for p in report.projections)
    assert report.risk_level == "low"
    assert report.trend == "positive"
    assert report.critical_due_dates == []


def test_semester_projection_buckets():
    """Test paid schedules count in their payment month and pending ones in their due month"""
    schedules = [
        replace(_schedule("paid-late", "100.00", date(2024, 2, 25), status="pago"),
                paid_at=datetime(2024, 3, 3, 9, 0, tzinfo=timezone.utc)),
        _schedule("april", "50.00", date(2024, 4, 10)),
        _schedule("beyond", "70.00", date(2024, 9, 1)),
        replace(_schedule("before", "80.00", date(2024, 2, 10), status="pago"),
                paid_at=datetime(2024, 2, 28, 9, 0, tzinfo=timezone.utc)),
    ]
    entries = [
        LedgerEntry(id="bare-paid", value=Decimal("30.00"), status="pago",
                    date=date(2024, 3, 31), payment_date=date(2024, 4, 2)),
        LedgerEntry(id="bare-pending", value=Decimal("20.00"), status="pendente", date=date(2024, 5, 5)),
        LedgerEntry(id="governed", value=Decimal("500.00"), status="pago", date=date(2024, 3, 1)),
    ]
    expenses = [
        Expense(id="x1", kind="fixa", category="Aluguel", value=Decimal("15.00"), date=date(2024, 3, 10), status="pago"),
        Expense(id="x2", kind="variavel", category="Mercado", value=Decimal("5.00"), date=date(2024, 8, 31),
                status="pendente"),
    ]

    months = semester_projection(entries, schedules, expenses, date(2024, 3, 15), governed_ids={"governed"})

    assert [m.month for m in months] == ["2024-03", "2024-04", "2024-05", "2024-06", "2024-07", "2024-08"]
    assert [m.revenue for m in months] == [Decimal(v) for v in ("100.00", "80.00", "20.00", "0.00", "0.00", "0.00")]
    assert [m.expenses for m in months] == [Decimal(v) for v in ("15.00", "0.00", "0.00", "0.00", "0.00", "5.00")]


def test_semester_projection_crosses_year():
    months = semester_projection([], [], [], date(2024, 11, 1), governed_ids=set())

    assert [m.label for m in months] == ["nov/24", "dez/24", "jan/25", "fev/25", "mar/25", "abr/25"]
    assert all(m.revenue == Decimal("0.00") for m in months)


def test_month_label():
    assert month_label(date(2024, 3, 1)) == "mar/24"
