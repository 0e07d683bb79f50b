"""Data access layer - maps store rows into domain records and performs narrow writes"""

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from caixa_gateway.domain.exceptions import (
    InvalidRowError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ReadFailureError,
    ScheduleConflictError,
    TotalMismatchError,
)
from caixa_gateway.domain.installments import build_schedules, default_due_date
from caixa_gateway.domain.models import (
    CallerContext,
    EntryStatus,
    Expense,
    LedgerEntry,
    PaymentSchedule,
    ProfileUpdate,
    ScheduleRequest,
    ScheduleType,
    SubscriptionProfile,
)
from caixa_gateway.infrastructure.database.models import (
    Client,
    Entry,
    EntrySchedule,
    ExpenseRecord,
    Profile,
)
from caixa_gateway.utils.money import to_money

logger = logging.getLogger(__name__)

STATUSES = (EntryStatus.PENDING, EntryStatus.PAID)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """Stores without timezone support hand back naive UTC datetimes"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _status(value: str) -> str:
    if value not in STATUSES:
        raise ValueError(f"unknown status {value!r}")
    return value


def to_entry(row: Entry) -> LedgerEntry:
    try:
        return LedgerEntry(
            id=row.id,
            client_id=row.client_id,
            item_id=row.service_product_id,
            quantity=int(row.quantity or 1),
            value=to_money(row.value),
            payment_method=row.payment_method,
            status=_status(row.status),
            date=row.date,
            due_date=row.due_date,
            payment_date=row.payment_date,
        )
    except (ValueError, TypeError, ArithmeticError) as e:
        raise InvalidRowError(f"Invalid entry row {row.id}: {e}") from e


def to_schedule(row: EntrySchedule, client_id: Optional[str] = None, client_name: Optional[str] = None) -> PaymentSchedule:
    try:
        if row.schedule_type not in ScheduleType.ALL:
            raise ValueError(f"unknown schedule type {row.schedule_type!r}")
        return PaymentSchedule(
            id=row.id,
            entry_id=row.entry_id,
            schedule_type=row.schedule_type,
            installment_number=int(row.installment_number),
            installments_total=int(row.installments_total),
            due_date=row.due_date,
            amount=to_money(row.amount),
            status=_status(row.status),
            paid_at=_aware(row.paid_at),
            client_id=client_id,
            client_name=client_name,
            previous_status=row.previous_status,
            edited_by=row.edited_by,
            edited_at=_aware(row.edited_at),
        )
    except (ValueError, TypeError, ArithmeticError) as e:
        raise InvalidRowError(f"Invalid schedule row {row.id}: {e}") from e


def to_expense(row: ExpenseRecord) -> Expense:
    try:
        return Expense(
            id=row.id,
            kind=row.type,
            category=row.category or "",
            value=to_money(row.value),
            date=row.date,
            status=_status(row.status),
        )
    except (ValueError, TypeError, ArithmeticError) as e:
        raise InvalidRowError(f"Invalid expense row {row.id}: {e}") from e


def to_profile(row: Profile) -> SubscriptionProfile:
    return SubscriptionProfile(
        user_id=row.user_id,
        subscription_status=row.subscription_status,
        plan=row.subscription_plan,
        selected_plan=row.selected_plan,
        plan_type=row.plan_type,
        trial_start=_aware(row.trial_start_date),
        trial_end=_aware(row.trial_end_date),
        trial_days=row.trial_days,
        expiration_date=_aware(row.subscription_expiration_date),
        is_owner=bool(row.is_owner),
    )


class LedgerReader:
    """Read-only queries scoped to the caller's account"""

    def __init__(self, db: Session, caller: CallerContext):
        self.db = db
        self.caller = caller

    def list_entries(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[str] = None,
    ) -> List[LedgerEntry]:
        """Entries dated within [start, end], or all entries when unbounded"""
        try:
            query = self.db.query(Entry).filter(Entry.account_id == self.caller.account_id)
            if start is not None:
                query = query.filter(Entry.date >= start)
            if end is not None:
                query = query.filter(Entry.date <= end)
            if status is not None:
                query = query.filter(Entry.status == status)
            rows = query.order_by(Entry.date.desc()).all()
        except SQLAlchemyError as e:
            raise ReadFailureError(f"Failed to read entries: {e}") from e
        return [to_entry(row) for row in rows]

    def list_period_entries(self, start: date, end: date) -> List[LedgerEntry]:
        """Entries whose entry, payment or due date falls within [start, end]"""
        try:
            rows = (
                self.db.query(Entry)
                .filter(Entry.account_id == self.caller.account_id)
                .filter(
                    or_(
                        Entry.date.between(start, end),
                        Entry.payment_date.between(start, end),
                        Entry.due_date.between(start, end),
                    )
                )
                .order_by(Entry.date.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise ReadFailureError(f"Failed to read entries: {e}") from e
        return [to_entry(row) for row in rows]

    def list_schedules(
        self,
        due_start: Optional[date] = None,
        due_end: Optional[date] = None,
        status: Optional[str] = None,
        entry_id: Optional[str] = None,
        paid_start: Optional[date] = None,
        paid_end: Optional[date] = None,
    ) -> List[PaymentSchedule]:
        """
        Schedule rows with the owning entry's client attached.

        paid_start and paid_end bound the UTC day of paid_at, both inclusive.
        """
        try:
            query = (
                self.db.query(EntrySchedule, Entry.client_id, Client.name)
                .join(Entry, EntrySchedule.entry_id == Entry.id)
                .outerjoin(Client, Entry.client_id == Client.id)
                .filter(EntrySchedule.account_id == self.caller.account_id)
            )
            if due_start is not None:
                query = query.filter(EntrySchedule.due_date >= due_start)
            if due_end is not None:
                query = query.filter(EntrySchedule.due_date <= due_end)
            if status is not None:
                query = query.filter(EntrySchedule.status == status)
            if entry_id is not None:
                query = query.filter(EntrySchedule.entry_id == entry_id)
            if paid_start is not None:
                query = query.filter(EntrySchedule.paid_at >= _day_start(paid_start))
            if paid_end is not None:
                query = query.filter(EntrySchedule.paid_at < _day_start(paid_end + timedelta(days=1)))
            rows = query.order_by(EntrySchedule.due_date.asc(), EntrySchedule.installment_number.asc()).all()
        except SQLAlchemyError as e:
            raise ReadFailureError(f"Failed to read schedules: {e}") from e
        return [to_schedule(row, client_id, client_name) for row, client_id, client_name in rows]

    def governed_entry_ids(self) -> Set[str]:
        """Ids of every entry in the account that owns at least one schedule row"""
        try:
            rows = (
                self.db.query(EntrySchedule.entry_id)
                .filter(EntrySchedule.account_id == self.caller.account_id)
                .distinct()
                .all()
            )
        except SQLAlchemyError as e:
            raise ReadFailureError(f"Failed to read schedule ownership: {e}") from e
        return {entry_id for (entry_id,) in rows}

    def list_expenses(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        kind: Optional[str] = None,
    ) -> List[Expense]:
        try:
            query = self.db.query(ExpenseRecord).filter(ExpenseRecord.account_id == self.caller.account_id)
            if start is not None:
                query = query.filter(ExpenseRecord.date >= start)
            if end is not None:
                query = query.filter(ExpenseRecord.date <= end)
            if kind is not None:
                query = query.filter(ExpenseRecord.type == kind)
            rows = query.order_by(ExpenseRecord.date.desc()).all()
        except SQLAlchemyError as e:
            raise ReadFailureError(f"Failed to read expenses: {e}") from e
        return [to_expense(row) for row in rows]

    def get_profile(self) -> Optional[SubscriptionProfile]:
        try:
            row = self.db.query(Profile).filter(Profile.user_id == self.caller.user_id).first()
        except SQLAlchemyError as e:
            raise ReadFailureError(f"Failed to read profile: {e}") from e
        return to_profile(row) if row else None


class ScheduleRepository:
    """Writes on payment schedules"""

    def __init__(self, db: Session):
        self.db = db

    def create_batch(self, caller: CallerContext, request: ScheduleRequest) -> List[EntrySchedule]:
        """
        Insert an entry's whole schedule batch in one flush.

        Nothing is committed here; the caller commits or rolls back the
        transaction, so the batch lands entirely or not at all.

        Raises:
            NotFoundError: If the entry does not exist in the caller's account
            ScheduleConflictError: If the entry already owns schedule rows
            TotalMismatchError: If total_value differs from the entry value
            InvalidCountError: If installments_total is less than 1
        """
        entry = (
            self.db.query(Entry)
            .filter(Entry.id == request.entry_id, Entry.account_id == caller.account_id)
            .first()
        )
        if entry is None:
            raise NotFoundError(f"Entry {request.entry_id} not found")
        if entry.schedules:
            raise ScheduleConflictError(f"Entry {request.entry_id} already has {len(entry.schedules)} schedules")

        entry_value = to_money(entry.value)
        if request.total_value is None:
            request = replace(request, total_value=entry_value)
        elif to_money(request.total_value) != entry_value:
            raise TotalMismatchError(
                f"Schedule total {request.total_value} does not match entry value {entry_value}"
            )
        if request.first_due_date is None:
            request = replace(request, first_due_date=default_due_date(entry.date))

        drafts = build_schedules(request)
        rows = [
            EntrySchedule(
                account_id=caller.account_id,
                user_id=caller.user_id,
                entry_id=draft.entry_id,
                schedule_type=draft.schedule_type,
                installment_number=draft.installment_number,
                installments_total=draft.installments_total,
                due_date=draft.due_date,
                amount=draft.amount,
                status=draft.status,
            )
            for draft in drafts
        ]
        self.db.add_all(rows)
        self.db.flush()

        logger.info(
            "Schedules created",
            extra={"entry_id": request.entry_id, "installments": len(rows), "user_id": caller.user_id},
        )
        return rows

    def _get(self, caller: CallerContext, schedule_id: str) -> EntrySchedule:
        row = (
            self.db.query(EntrySchedule)
            .filter(EntrySchedule.id == schedule_id, EntrySchedule.account_id == caller.account_id)
            .first()
        )
        if row is None:
            raise NotFoundError(f"Schedule {schedule_id} not found")
        return row

    def mark_paid(self, caller: CallerContext, schedule_id: str, paid_at: datetime) -> EntrySchedule:
        """Mark a schedule paid; already-paid schedules keep their original paid_at"""
        row = self._get(caller, schedule_id)
        if row.status == EntryStatus.PAID:
            return row
        row.status = EntryStatus.PAID
        row.paid_at = paid_at
        self.db.flush()
        return row

    def revert_to_pending(self, caller: CallerContext, schedule_id: str, now: datetime) -> EntrySchedule:
        """
        Move a paid schedule back to pending, recording the prior status and actor.

        Raises:
            PermissionDeniedError: If the caller is not an admin
            InvalidTransitionError: If the schedule is not paid
        """
        if not caller.is_admin:
            raise PermissionDeniedError("Only administrators can revert payments")

        row = self._get(caller, schedule_id)
        if row.status != EntryStatus.PAID:
            raise InvalidTransitionError(f"Schedule {schedule_id} is not paid")

        row.previous_status = row.status
        row.status = EntryStatus.PENDING
        row.paid_at = None
        row.edited_by = caller.user_id
        row.edited_at = now
        self.db.flush()

        logger.info(
            "Schedule reverted",
            extra={"schedule_id": schedule_id, "user_id": caller.user_id, "previous_status": row.previous_status},
        )
        return row


class EntryRepository:
    """Writes on ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def mark_paid(self, caller: CallerContext, entry_id: str, payment_date: date) -> Entry:
        """Mark an entry paid; already-paid entries keep their original payment_date"""
        row = (
            self.db.query(Entry)
            .filter(Entry.id == entry_id, Entry.account_id == caller.account_id)
            .first()
        )
        if row is None:
            raise NotFoundError(f"Entry {entry_id} not found")
        if row.status == EntryStatus.PAID:
            return row
        row.status = EntryStatus.PAID
        row.payment_date = payment_date
        self.db.flush()
        return row


class ProfileRepository:
    """Subscription profile writes performed on behalf of the billing provider"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.email == email.strip().lower()).first()

    def apply_update(self, profile: Profile, update: ProfileUpdate) -> Profile:
        profile.subscription_status = update.subscription_status
        if update.plan is not None:
            profile.subscription_plan = update.plan
        if update.expiration_date is not None:
            profile.subscription_expiration_date = update.expiration_date
        self.db.flush()
        return profile
