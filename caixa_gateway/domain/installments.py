"""Installment and monthly-package schedule generation"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from caixa_gateway.domain.exceptions import InvalidCountError
from caixa_gateway.domain.models import (
    EntryStatus,
    PaymentSchedule,
    ScheduleDraft,
    ScheduleRequest,
    ScheduleSummary,
    ScheduleType,
)
from caixa_gateway.utils.date_utils import add_days
from caixa_gateway.utils.money import floor_cents, round_cents, to_money

DEFAULT_DUE_DAYS = 30


def distribute_amount(total: Decimal, count: int) -> List[Decimal]:
    """
    Split a total into `count` two-decimal amounts that sum back to it exactly.

    Every installment gets floor(total * 100 / count) / 100; the last one
    absorbs what is left over, so non-terminating splits stay cent-exact.

    Raises:
        InvalidCountError: If count is less than 1

    Example:
        100.00 / 3 → [33.33, 33.33, 33.34]
    """
    if count < 1:
        raise InvalidCountError(f"Installment count must be at least 1, got {count}")

    total = to_money(total)
    base = floor_cents(total / count)
    amounts = [base] * count

    remainder = round_cents(total - base * count)
    amounts[-1] = round_cents(amounts[-1] + remainder)

    return amounts


def calculate_due_date(first_due_date: date, index: int, interval_days: int) -> date:
    """Due date of the installment at `index` (0-based), by plain day-count addition"""
    return add_days(first_due_date, index * interval_days)


def build_schedules(request: ScheduleRequest) -> List[ScheduleDraft]:
    """
    Build the full pending schedule batch for an entry.

    Installment numbers run 1..N and due dates step by `interval_days` from
    `first_due_date`. The batch is meant to be inserted atomically.
    """
    amounts = distribute_amount(request.total_value, request.installments_total)

    return [
        ScheduleDraft(
            entry_id=request.entry_id,
            schedule_type=request.schedule_type,
            installment_number=index + 1,
            installments_total=request.installments_total,
            due_date=calculate_due_date(request.first_due_date, index, request.interval_days),
            amount=amount,
            status=EntryStatus.PENDING,
        )
        for index, amount in enumerate(amounts)
    ]


def summarize_schedules(schedules: Sequence[PaymentSchedule]) -> Optional[ScheduleSummary]:
    """Paid/pending counts and a short label for one entry's schedules"""
    if not schedules:
        return None

    total = len(schedules)
    paid = sum(1 for s in schedules if s.status == EntryStatus.PAID)
    pending = total - paid
    schedule_type = schedules[0].schedule_type

    if schedule_type == ScheduleType.INSTALLMENT:
        type_label = f"{total}x"
    elif schedule_type == ScheduleType.MONTHLY_PACKAGE:
        type_label = f"{total} meses"
    else:
        type_label = ""

    paid_word = "paga" if paid == 1 else "pagas"
    pending_word = "pendente" if pending == 1 else "pendentes"

    return ScheduleSummary(
        total=total,
        paid=paid,
        pending=pending,
        schedule_type=schedule_type,
        type_label=type_label,
        summary=f"{type_label} — {paid} {paid_word} / {pending} {pending_word}",
    )


def default_due_date(entry_date: date) -> date:
    """Default first due date for a new entry"""
    return add_days(entry_date, DEFAULT_DUE_DAYS)
