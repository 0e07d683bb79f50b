"""Ledger aggregation - received/pending/overdue totals without double counting"""

import logging
from datetime import date, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set, Tuple

from caixa_gateway.domain.models import (
    CategoryTotal,
    EntryStatus,
    EvolutionPoint,
    Expense,
    GlobalReceivables,
    LedgerEntry,
    PaymentSchedule,
    PeriodMetrics,
    ReceivablesDistribution,
    VisualStatus,
)
from caixa_gateway.utils.date_utils import add_days, days_between
from caixa_gateway.utils.money import ZERO, money_sum, round_cents

logger = logging.getLogger(__name__)

NEXT_DAYS_WINDOW = 30
CATEGORY_LIMIT = 8


def _in_range(day: Optional[date], start: date, end: date) -> bool:
    return day is not None and start <= day <= end


def governed_entry_ids(schedules: Sequence[PaymentSchedule]) -> Set[str]:
    return {s.entry_id for s in schedules}


def partition_entries(
    entries: Sequence[LedgerEntry],
    governed_ids: Set[str],
) -> Tuple[List[LedgerEntry], List[LedgerEntry]]:
    """
    Split entries into (bare, governed).

    An entry is governed as soon as one schedule row references it; from then
    on its own value and status are ignored and only its schedules count.
    """
    bare = [e for e in entries if e.id not in governed_ids]
    governed = [e for e in entries if e.id in governed_ids]
    return bare, governed


def received_date(entry: LedgerEntry) -> date:
    """Date a paid bare entry counts as received on"""
    return entry.payment_date or entry.date


def pending_reference_date(entry: LedgerEntry) -> date:
    return entry.due_date or entry.date


def period_metrics(
    entries: Sequence[LedgerEntry],
    schedules: Sequence[PaymentSchedule],
    expenses: Sequence[Expense],
    start: date,
    end: date,
    today: date,
    governed_ids: Optional[Set[str]] = None,
) -> PeriodMetrics:
    """
    Aggregate a bounded period.

    A paid bare entry counts as received in the period holding its payment
    date, falling back to the entry date; a pending bare entry counts in the
    period holding its due date, falling back to the entry date. Each entry
    therefore lands in exactly one period.

    Args:
        entries: Candidate entries; any whose entry, payment or due date falls
            in the period. Only the dates above decide where an entry counts.
        schedules: Schedule rows; only rows due within [start, end] count
        expenses: Expenses; only those dated within [start, end] count
        start, end: Inclusive period bounds
        today: Reference day for upcoming/overdue splits
        governed_ids: Entry ids known to own schedules, when the caller read
            schedules through a window that may not include every row of an
            entry. Defaults to the entry ids present in `schedules`.
    """
    if governed_ids is None:
        governed_ids = governed_entry_ids(schedules)

    bare, _ = partition_entries(entries, governed_ids)
    period_schedules = [s for s in schedules if _in_range(s.due_date, start, end)]

    # Received
    paid_bare = [
        e for e in bare
        if e.status == EntryStatus.PAID and _in_range(received_date(e), start, end)
    ]
    paid_schedules = [s for s in period_schedules if s.status == EntryStatus.PAID]
    received = money_sum(e.value for e in paid_bare) + money_sum(s.amount for s in paid_schedules)

    # Pending
    pending_bare = [
        e for e in bare
        if e.status == EntryStatus.PENDING and _in_range(pending_reference_date(e), start, end)
    ]
    pending_schedules = [s for s in period_schedules if s.status == EntryStatus.PENDING]
    pending = money_sum(e.value for e in pending_bare) + money_sum(s.amount for s in pending_schedules)

    # Upcoming vs overdue, only rows with an actual due date
    dated_pending: List[Tuple[date, Decimal]] = [
        (e.due_date, e.value) for e in pending_bare if e.due_date is not None
    ]
    dated_pending.extend((s.due_date, s.amount) for s in pending_schedules)

    upcoming = [value for due, value in dated_pending if due >= today]
    overdue = [value for due, value in dated_pending if due < today]

    # Expenses
    period_expenses = [x for x in expenses if _in_range(x.date, start, end)]
    expenses_total = money_sum(x.value for x in period_expenses)
    expenses_paid = money_sum(x.value for x in period_expenses if x.status == EntryStatus.PAID)
    expenses_upcoming = money_sum(
        x.value for x in period_expenses if x.status == EntryStatus.PENDING and x.date >= today
    )
    expenses_overdue = money_sum(
        x.value for x in period_expenses if x.status == EntryStatus.PENDING and x.date < today
    )

    paid_count = len(paid_bare) + len(paid_schedules)
    average_ticket = round_cents(received / paid_count) if paid_count > 0 else ZERO

    logger.debug(
        "Period aggregated",
        extra={
            "start": start.isoformat(),
            "end": end.isoformat(),
            "bare_entries": len(bare),
            "period_schedules": len(period_schedules),
        },
    )

    return PeriodMetrics(
        start=start,
        end=end,
        received=received,
        pending=pending,
        expenses=expenses_total,
        expenses_paid=expenses_paid,
        expenses_upcoming=expenses_upcoming,
        expenses_overdue=expenses_overdue,
        profit=received - expenses_total,
        average_ticket=average_ticket,
        total_entries=sum(1 for e in entries if _in_range(e.date, start, end)),
        paid_count=paid_count,
        upcoming_value=money_sum(upcoming),
        upcoming_count=len(upcoming),
        overdue_value=money_sum(overdue),
        overdue_count=len(overdue),
    )


def global_receivables(
    entries: Sequence[LedgerEntry],
    schedules: Sequence[PaymentSchedule],
    today: date,
    governed_ids: Optional[Set[str]] = None,
) -> GlobalReceivables:
    """
    Receivables across every pending row, not windowed by any period.

    Schedule rows are taken as-is; bare entries contribute only when pending
    and carrying a due date. Pass `governed_ids` when `schedules` holds only
    pending rows, so entries whose schedules are all paid stay governed.
    """
    if governed_ids is None:
        governed_ids = governed_entry_ids(schedules)

    dated_pending: List[Tuple[date, Decimal]] = [
        (s.due_date, s.amount) for s in schedules if s.status == EntryStatus.PENDING
    ]
    dated_pending.extend(
        (e.due_date, e.value)
        for e in entries
        if e.id not in governed_ids and e.status == EntryStatus.PENDING and e.due_date is not None
    )

    horizon = add_days(today, NEXT_DAYS_WINDOW)
    upcoming = [value for due, value in dated_pending if due >= today]
    overdue = [value for due, value in dated_pending if due < today]
    next_30 = [value for due, value in dated_pending if today <= due <= horizon]

    return GlobalReceivables(
        pending_value=money_sum(value for _, value in dated_pending),
        upcoming_value=money_sum(upcoming),
        upcoming_count=len(upcoming),
        overdue_value=money_sum(overdue),
        overdue_count=len(overdue),
        next_30_days_value=money_sum(next_30),
    )


def expenses_by_category(expenses: Sequence[Expense], limit: int = CATEGORY_LIMIT) -> List[CategoryTotal]:
    """Expense totals per category, largest first"""
    totals: Dict[str, Decimal] = {}
    for expense in expenses:
        name = expense.category or expense.kind or "Outros"
        totals[name] = totals.get(name, ZERO) + expense.value

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(name=name, value=value) for name, value in ranked[:limit]]


def visual_status(status: str, due_date: Optional[date], today: date) -> VisualStatus:
    """
    Display bucket of an entry or schedule.

    Paid rows are "pago"; pending rows without a due date, or due today or
    later, are "a_vencer" with the days left; past-due rows are "vencido"
    with the days overdue.
    """
    if status == EntryStatus.PAID:
        return VisualStatus(status="pago")

    if due_date is None:
        return VisualStatus(status="a_vencer")

    delta = (due_date - today).days
    if delta >= 0:
        return VisualStatus(status="a_vencer", days=delta)
    return VisualStatus(status="vencido", days=-delta)


def paid_on(schedule: PaymentSchedule) -> Optional[date]:
    """UTC calendar day a paid schedule was settled on"""
    if schedule.paid_at is None:
        return None
    return schedule.paid_at.astimezone(timezone.utc).date()


def daily_evolution(
    entries: Sequence[LedgerEntry],
    schedules: Sequence[PaymentSchedule],
    expenses: Sequence[Expense],
    start: date,
    end: date,
    governed_ids: Optional[Set[str]] = None,
) -> List[EvolutionPoint]:
    """
    Cumulative received, receivable and expense totals for each day of a period.

    Unlike period_metrics, paid schedule rows land on the day they were paid,
    not on their due date. Pending rows land on their due date; undated pending
    bare entries are left out. Rows outside [start, end] are ignored.
    """
    if governed_ids is None:
        governed_ids = governed_entry_ids(schedules)
    bare, _ = partition_entries(entries, governed_ids)

    days = days_between(start, end)
    received: Dict[date, Decimal] = {day: ZERO for day in days}
    receivable: Dict[date, Decimal] = {day: ZERO for day in days}
    spent: Dict[date, Decimal] = {day: ZERO for day in days}

    def _add(bucket: Dict[date, Decimal], day: Optional[date], value: Decimal) -> None:
        if day in bucket:
            bucket[day] += value

    for s in schedules:
        if s.status == EntryStatus.PAID:
            _add(received, paid_on(s), s.amount)
        else:
            _add(receivable, s.due_date, s.amount)

    for e in bare:
        if e.status == EntryStatus.PAID:
            _add(received, received_date(e), e.value)
        elif e.due_date is not None:
            _add(receivable, e.due_date, e.value)

    for x in expenses:
        _add(spent, x.date, x.value)

    points = []
    acc_received = acc_receivable = acc_spent = ZERO
    for day in days:
        acc_received += received[day]
        acc_receivable += receivable[day]
        acc_spent += spent[day]
        points.append(EvolutionPoint(day=day, received=acc_received, receivable=acc_receivable, expenses=acc_spent))
    return points


def receivables_distribution(metrics: PeriodMetrics) -> ReceivablesDistribution:
    """Split of a period's revenue into received, still receivable and overdue"""
    return ReceivablesDistribution(
        received=metrics.received,
        receivable=metrics.upcoming_value,
        overdue=metrics.overdue_value,
    )
