"""Receivables projection and delinquency risk"""

import math
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from caixa_gateway.domain.aggregation import (
    paid_on,
    partition_entries,
    pending_reference_date,
    received_date,
)
from caixa_gateway.domain.models import (
    CriticalDueDate,
    EntryStatus,
    Expense,
    ExpenseKind,
    LedgerEntry,
    MonthBar,
    PaymentSchedule,
    ProjectionReport,
    ReceivableProjection,
)
from caixa_gateway.utils.date_utils import add_days, add_months
from caixa_gateway.utils.money import ZERO, money_sum

HORIZONS = (30, 60, 90)
DAYS_PER_MONTH = 30
CRITICAL_LIMIT = 5
UNKNOWN_CLIENT = "Cliente não identificado"
SEMESTER_MONTHS = 6
MONTH_ABBREVIATIONS = ("jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez")


def _pending(schedules: Iterable[PaymentSchedule]) -> List[PaymentSchedule]:
    return [s for s in schedules if s.status == EntryStatus.PENDING]


def monthly_fixed_expenses(expenses: Iterable[Expense]) -> Decimal:
    """Total of recurring fixed expenses, taken as the monthly outflow"""
    return money_sum(e.value for e in expenses if e.kind == ExpenseKind.FIXED)


def project(
    schedules: Sequence[PaymentSchedule],
    expenses: Sequence[Expense],
    horizon_days: int,
    today: date,
) -> ReceivableProjection:
    """
    Project receivables against fixed costs over a horizon.

    Receivables are pending schedule amounts due in [today, today + horizon].
    Expenses assume every fixed expense recurs once per started 30 days.

    Raises:
        ValueError: If horizon_days is not 30, 60 or 90
    """
    if horizon_days not in HORIZONS:
        raise ValueError(f"Unsupported projection horizon: {horizon_days}")

    end = add_days(today, horizon_days)
    receivables = money_sum(s.amount for s in _pending(schedules) if today <= s.due_date <= end)

    months = math.ceil(horizon_days / DAYS_PER_MONTH)
    projected_expenses = monthly_fixed_expenses(expenses) * months

    return ReceivableProjection(
        horizon_days=horizon_days,
        receivables=receivables,
        expenses=projected_expenses,
        balance=receivables - projected_expenses,
    )


def overdue_value(schedules: Sequence[PaymentSchedule], today: date) -> Decimal:
    return money_sum(s.amount for s in _pending(schedules) if s.due_date < today)


def overdue_percentage(schedules: Sequence[PaymentSchedule], today: date) -> float:
    """Share of pending value already past due, 0-100"""
    total_pending = money_sum(s.amount for s in _pending(schedules))
    if total_pending == 0:
        return 0.0
    return float(overdue_value(schedules, today) / total_pending * 100)


def delinquent_clients_count(schedules: Sequence[PaymentSchedule], today: date) -> int:
    """Distinct clients holding at least one overdue schedule"""
    return len({
        s.client_id
        for s in _pending(schedules)
        if s.due_date < today and s.client_id
    })


def risk_level(overdue_pct: float, delinquent_count: int) -> str:
    if overdue_pct > 30 or delinquent_count > 5:
        return "high"
    if overdue_pct > 15 or delinquent_count > 2:
        return "medium"
    return "low"


def trend(overdue_pct: float) -> str:
    if overdue_pct > 20:
        return "negative"
    if overdue_pct < 10:
        return "positive"
    return "neutral"


def critical_due_dates(
    schedules: Sequence[PaymentSchedule],
    today: date,
    limit: int = CRITICAL_LIMIT,
) -> List[CriticalDueDate]:
    """
    Most pressing pending schedules.

    Overdue rows come first, least overdue first; then upcoming rows by
    ascending days until due.
    """
    items = []
    for s in _pending(schedules):
        days_until_due = (s.due_date - today).days
        items.append(
            CriticalDueDate(
                entry_id=s.entry_id,
                schedule_id=s.id,
                client_name=s.client_name or UNKNOWN_CLIENT,
                value=s.amount,
                due_date=s.due_date,
                days_until_due=days_until_due,
                is_overdue=days_until_due < 0,
            )
        )

    items.sort(key=lambda item: (not item.is_overdue, abs(item.days_until_due)))
    return items[:limit]


def build_projection_report(
    schedules: Sequence[PaymentSchedule],
    expenses: Sequence[Expense],
    today: date,
    horizons: Sequence[int] = HORIZONS,
    critical_limit: int = CRITICAL_LIMIT,
) -> ProjectionReport:
    """Main entry point: projections, risk and critical due dates in one report"""
    pct = overdue_percentage(schedules, today)
    delinquents = delinquent_clients_count(schedules, today)
    overdue = overdue_value(schedules, today)

    return ProjectionReport(
        projections=[project(schedules, expenses, h, today) for h in horizons],
        overdue_percentage=pct,
        delinquent_clients_count=delinquents,
        risk_level=risk_level(pct, delinquents),
        critical_due_dates=critical_due_dates(schedules, today, critical_limit),
        overdue_impact=overdue,
        potential_recovery=overdue,
        trend=trend(pct),
    )


def month_label(month_start: date) -> str:
    """Short month label, e.g. "mar/24" """
    return f"{MONTH_ABBREVIATIONS[month_start.month - 1]}/{month_start.year % 100:02d}"


def semester_projection(
    entries: Sequence[LedgerEntry],
    schedules: Sequence[PaymentSchedule],
    expenses: Sequence[Expense],
    first_month: date,
    governed_ids: Set[str],
    months: int = SEMESTER_MONTHS,
) -> List[MonthBar]:
    """
    Revenue and expenses for `months` calendar months starting at first_month.

    Paid schedule rows count in the month they were paid, pending rows in the
    month they fall due. Bare entries count by payment date when paid and by
    due date when pending, both falling back to the entry date. Expenses count
    by their date whatever their status.
    """
    starts = [add_months(first_month.replace(day=1), i) for i in range(months)]
    revenue: Dict[Tuple[int, int], Decimal] = {(m.year, m.month): ZERO for m in starts}
    spent: Dict[Tuple[int, int], Decimal] = {(m.year, m.month): ZERO for m in starts}

    def _add(bucket: Dict[Tuple[int, int], Decimal], day: Optional[date], value: Decimal) -> None:
        if day is not None and (day.year, day.month) in bucket:
            bucket[(day.year, day.month)] += value

    for s in schedules:
        day = paid_on(s) if s.status == EntryStatus.PAID else s.due_date
        _add(revenue, day, s.amount)

    bare, _ = partition_entries(entries, governed_ids)
    for e in bare:
        day = received_date(e) if e.status == EntryStatus.PAID else pending_reference_date(e)
        _add(revenue, day, e.value)

    for x in expenses:
        _add(spent, x.date, x.value)

    return [
        MonthBar(
            month=m.strftime("%Y-%m"),
            label=month_label(m),
            revenue=revenue[(m.year, m.month)],
            expenses=spent[(m.year, m.month)],
        )
        for m in starts
    ]
