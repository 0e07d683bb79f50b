"""Unit tests for ledger aggregation"""

import pytest
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from caixa_gateway.domain.aggregation import (
    daily_evolution,
    expenses_by_category,
    global_receivables,
    partition_entries,
    period_metrics,
    receivables_distribution,
    visual_status,
)
from caixa_gateway.domain.models import Expense, LedgerEntry, PaymentSchedule

TODAY = date(2024, 3, 15)
MARCH = (date(2024, 3, 1), date(2024, 3, 31))


def _entry(id, value, status, entry_date, due_date=None, payment_date=None):
    return LedgerEntry(
        id=id,
        value=Decimal(value),
        status=status,
        date=entry_date,
        due_date=due_date,
        payment_date=payment_date,
    )


def _schedule(id, entry_id, amount, due_date, status="pendente"):
    return PaymentSchedule(
        id=id,
        entry_id=entry_id,
        schedule_type="installment",
        installment_number=1,
        installments_total=3,
        due_date=due_date,
        amount=Decimal(amount),
        status=status,
    )


def _expense(id, value, expense_date, status="pago", kind="variavel", category="Outros"):
    return Expense(id=id, kind=kind, category=category, value=Decimal(value), date=expense_date, status=status)


@pytest.fixture
def entries():
    return [
        _entry("bare-paid", "100.00", "pago", date(2024, 3, 5), payment_date=date(2024, 3, 6)),
        # Governed entry: its own value and status are ignored
        _entry("governed", "300.00", "pago", date(2024, 3, 1)),
        _entry("bare-overdue", "50.00", "pendente", date(2024, 3, 1), due_date=date(2024, 3, 10)),
        _entry("bare-upcoming", "80.00", "pendente", date(2024, 3, 12), due_date=date(2024, 3, 20)),
    ]


@pytest.fixture
def schedules():
    return [
        _schedule("s1", "governed", "100.00", date(2024, 3, 10), status="pago"),
        _schedule("s2", "governed", "100.00", date(2024, 4, 10)),
        _schedule("s3", "governed", "100.00", date(2024, 5, 10)),
    ]


@pytest.fixture
def expenses():
    return [
        _expense("x1", "40.00", date(2024, 3, 2), kind="fixa", category="Aluguel"),
        _expense("x2", "20.00", date(2024, 3, 20), status="pendente", category="Mercado"),
        _expense("x3", "10.00", date(2024, 3, 1), status="pendente", category="Mercado"),
        _expense("x4", "999.00", date(2024, 2, 28), category="Fora do mês"),
    ]


def test_partition_entries(entries, schedules):
    bare, governed = partition_entries(entries, {s.entry_id for s in schedules})

    assert [e.id for e in governed] == ["governed"]
    assert {e.id for e in bare} == {"bare-paid", "bare-overdue", "bare-upcoming"}


def test_period_metrics_received_without_double_count(entries, schedules, expenses):
    """Test governed entry counts only through its schedules"""
    metrics = period_metrics(entries, schedules, expenses, *MARCH, today=TODAY)

    # 100 bare paid + 100 paid schedule, never the entry's own 300
    assert metrics.received == Decimal("200.00")
    assert metrics.paid_count == 2
    assert metrics.average_ticket == Decimal("100.00")


def test_period_metrics_pending_and_due_split(entries, schedules, expenses):
    metrics = period_metrics(entries, schedules, expenses, *MARCH, today=TODAY)

    assert metrics.pending == Decimal("130.00")
    assert metrics.overdue_value == Decimal("50.00")
    assert metrics.overdue_count == 1
    assert metrics.upcoming_value == Decimal("80.00")
    assert metrics.upcoming_count == 1


def test_period_metrics_expenses(entries, schedules, expenses):
    metrics = period_metrics(entries, schedules, expenses, *MARCH, today=TODAY)

    assert metrics.expenses == Decimal("70.00")
    assert metrics.expenses_paid == Decimal("40.00")
    assert metrics.expenses_upcoming == Decimal("20.00")
    assert metrics.expenses_overdue == Decimal("10.00")
    assert metrics.profit == Decimal("130.00")
    assert metrics.total_entries == 4


def test_period_metrics_paid_entry_uses_payment_date():
    """Test a bare entry paid after the period is not received in it"""
    entry = _entry("late", "75.00", "pago", date(2024, 3, 28), payment_date=date(2024, 4, 2))

    march = period_metrics([entry], [], [], *MARCH, today=TODAY)
    april = period_metrics([entry], [], [], date(2024, 4, 1), date(2024, 4, 30), today=TODAY)

    assert march.received == Decimal("0.00")
    assert april.received == Decimal("75.00")


def test_period_metrics_counts_entry_in_one_month_only():
    """Test entries crossing a month boundary land in the month of their payment or due date"""
    paid = _entry("paid", "75.00", "pago", date(2024, 1, 31), payment_date=date(2024, 2, 2))
    pending = _entry("pending", "60.00", "pendente", date(2024, 1, 20), due_date=date(2024, 2, 10))

    january = period_metrics([paid, pending], [], [], date(2024, 1, 1), date(2024, 1, 31), today=TODAY)
    february = period_metrics([paid, pending], [], [], date(2024, 2, 1), date(2024, 2, 29), today=TODAY)

    assert january.received == Decimal("0.00")
    assert january.pending == Decimal("0.00")
    assert january.total_entries == 2
    assert february.received == Decimal("75.00")
    assert february.pending == Decimal("60.00")
    assert february.overdue_value == Decimal("60.00")
    assert february.total_entries == 0


def test_period_metrics_governed_ids_override():
    """Test an entry stays governed when its schedules fall outside the read window"""
    entry = _entry("governed", "300.00", "pago", date(2024, 3, 1))

    metrics = period_metrics([entry], [], [], *MARCH, today=TODAY, governed_ids={"governed"})

    assert metrics.received == Decimal("0.00")
    assert metrics.average_ticket == Decimal("0.00")


def test_period_metrics_empty():
    metrics = period_metrics([], [], [], *MARCH, today=TODAY)

    assert metrics.received == Decimal("0.00")
    assert metrics.pending == Decimal("0.00")
    assert metrics.profit == Decimal("0.00")
    assert metrics.paid_count == 0


def test_global_receivables(entries, schedules):
    pending_schedules = [s for s in schedules if s.status == "pendente"]
    undated = _entry("undated", "45.00", "pendente", date(2024, 3, 3))

    result = global_receivables(entries + [undated], pending_schedules, TODAY)

    assert result.pending_value == Decimal("330.00")
    assert result.overdue_value == Decimal("50.00")
    assert result.overdue_count == 1
    assert result.upcoming_value == Decimal("280.00")
    assert result.upcoming_count == 3
    # 03-20 bare entry and 04-10 schedule fall within the next 30 days
    assert result.next_30_days_value == Decimal("180.00")


def test_global_receivables_fully_paid_schedules_stay_governed():
    """Test a pending-status entry whose schedules are all paid is not counted"""
    entry = _entry("governed", "300.00", "pendente", date(2024, 3, 1), due_date=date(2024, 3, 30))

    counted = global_receivables([entry], [], TODAY)
    governed = global_receivables([entry], [], TODAY, governed_ids={"governed"})

    assert counted.pending_value == Decimal("300.00")
    assert governed.pending_value == Decimal("0.00")


def test_expenses_by_category_largest_first(expenses):
    totals = expenses_by_category(expenses)

    assert [t.name for t in totals] == ["Fora do mês", "Aluguel", "Mercado"]
    assert totals[2].value == Decimal("30.00")


def test_expenses_by_category_limit():
    many = [_expense(f"x{i}", f"{i}.00", TODAY, category=f"C{i}") for i in range(1, 12)]

    totals = expenses_by_category(many)

    assert len(totals) == 8
    assert totals[0].name == "C11"


@pytest.mark.parametrize(
    "status,due_date,expected_status,expected_days",
    [
        ("pago", date(2024, 3, 1), "pago", None),
        ("pendente", None, "a_vencer", None),
        ("pendente", date(2024, 3, 15), "a_vencer", 0),
        ("pendente", date(2024, 3, 20), "a_vencer", 5),
        ("pendente", date(2024, 3, 10), "vencido", 5),
    ],
)
def test_visual_status(status, due_date, expected_status, expected_days):
    result = visual_status(status, due_date, TODAY)

    assert result.status == expected_status
    assert result.days == expected_days


def test_receivables_distribution(entries, schedules, expenses):
    metrics = period_metrics(entries, schedules, expenses, *MARCH, today=TODAY)

    distribution = receivables_distribution(metrics)

    assert distribution.received == Decimal("200.00")
    assert distribution.receivable == Decimal("80.00")
    assert distribution.overdue == Decimal("50.00")


def test_daily_evolution_is_cumulative():
    """Test paid schedules plot on their payment day and pending ones on their due day"""
    start, end = date(2024, 3, 1), date(2024, 3, 5)
    schedules = [
        replace(_schedule("late", "g1", "40.00", date(2024, 2, 20), status="pago"),
                paid_at=datetime(2024, 3, 2, 10, 0, tzinfo=timezone.utc)),
        _schedule("next", "g1", "25.00", date(2024, 3, 4)),
        replace(_schedule("old", "g2", "70.00", date(2024, 2, 1), status="pago"),
                paid_at=datetime(2024, 2, 2, 10, 0, tzinfo=timezone.utc)),
    ]
    entries = [
        _entry("g1", "65.00", "pago", date(2024, 3, 1)),
        _entry("bare-paid", "10.00", "pago", date(2024, 3, 1), payment_date=date(2024, 3, 3)),
        _entry("undated", "99.00", "pendente", date(2024, 3, 2)),
    ]
    expenses = [_expense("x1", "5.00", date(2024, 3, 1))]

    points = daily_evolution(entries, schedules, expenses, start, end)

    assert [p.day for p in points] == [date(2024, 3, d) for d in range(1, 6)]
    assert [p.received for p in points] == [Decimal(v) for v in ("0.00", "40.00", "50.00", "50.00", "50.00")]
    assert [p.receivable for p in points] == [Decimal(v) for v in ("0.00", "0.00", "0.00", "25.00", "25.00")]
    assert [p.expenses for p in points] == [Decimal("5.00")] * 5
