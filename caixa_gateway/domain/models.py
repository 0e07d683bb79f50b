"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional


class EntryStatus:
    """Stored status values shared by entries, schedules and expenses"""

    PENDING = "pendente"
    PAID = "pago"


class ScheduleType:
    SINGLE = "single"
    INSTALLMENT = "installment"
    MONTHLY_PACKAGE = "monthly_package"

    ALL = (SINGLE, INSTALLMENT, MONTHLY_PACKAGE)


class ExpenseKind:
    FIXED = "fixa"
    VARIABLE = "variavel"


@dataclass(frozen=True)
class CallerContext:
    """Explicit identity of the caller, passed into every scoped computation"""

    user_id: str
    account_id: str
    is_admin: bool = False


@dataclass
class LedgerEntry:
    """Sale or service record"""

    id: str
    value: Decimal
    status: str
    date: date
    client_id: Optional[str] = None
    item_id: Optional[str] = None
    quantity: int = 1
    payment_method: Optional[str] = None
    due_date: Optional[date] = None
    payment_date: Optional[date] = None


@dataclass
class PaymentSchedule:
    """Single scheduled payment belonging to an entry"""

    id: str
    entry_id: str
    schedule_type: str
    installment_number: int
    installments_total: int
    due_date: date
    amount: Decimal
    status: str
    paid_at: Optional[datetime] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    previous_status: Optional[str] = None
    edited_by: Optional[str] = None
    edited_at: Optional[datetime] = None


@dataclass
class Expense:
    id: str
    kind: str  # "fixa" or "variavel"
    category: str
    value: Decimal
    date: date
    status: str


@dataclass
class SubscriptionProfile:
    """Raw subscription fields as written by billing callbacks or admins"""

    user_id: str
    subscription_status: Optional[str] = None
    plan: Optional[str] = None
    selected_plan: Optional[str] = None
    plan_type: Optional[str] = None  # "free" | "paid" | "owner"
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    trial_days: Optional[int] = None
    expiration_date: Optional[datetime] = None
    is_owner: bool = False


# Schedules


@dataclass
class ScheduleRequest:
    """Input for creating an entry's payment schedule batch"""

    entry_id: str
    total_value: Optional[Decimal]  # None takes the entry value
    installments_total: int
    first_due_date: Optional[date]  # None defaults to 30 days after the entry date
    interval_days: int
    schedule_type: str = ScheduleType.INSTALLMENT


@dataclass
class ScheduleDraft:
    """Schedule row ready to be inserted"""

    entry_id: str
    schedule_type: str
    installment_number: int
    installments_total: int
    due_date: date
    amount: Decimal
    status: str = EntryStatus.PENDING


@dataclass
class ScheduleSummary:
    total: int
    paid: int
    pending: int
    schedule_type: str
    type_label: str
    summary: str


# Aggregation


@dataclass
class PeriodMetrics:
    """Received/pending/overdue figures for a bounded date range"""

    start: date
    end: date
    received: Decimal
    pending: Decimal
    expenses: Decimal
    expenses_paid: Decimal
    expenses_upcoming: Decimal
    expenses_overdue: Decimal
    profit: Decimal
    average_ticket: Decimal
    total_entries: int
    paid_count: int
    upcoming_value: Decimal
    upcoming_count: int
    overdue_value: Decimal
    overdue_count: int


@dataclass
class GlobalReceivables:
    """Unwindowed receivables over every pending row"""

    pending_value: Decimal
    upcoming_value: Decimal
    upcoming_count: int
    overdue_value: Decimal
    overdue_count: int
    next_30_days_value: Decimal


@dataclass
class CategoryTotal:
    name: str
    value: Decimal


@dataclass
class VisualStatus:
    status: str  # "pago" | "a_vencer" | "vencido"
    days: Optional[int] = None


@dataclass
class EvolutionPoint:
    """Running totals up to and including one day of a period"""

    day: date
    received: Decimal
    receivable: Decimal
    expenses: Decimal


@dataclass
class ReceivablesDistribution:
    received: Decimal
    receivable: Decimal
    overdue: Decimal


# Projections


@dataclass
class ReceivableProjection:
    horizon_days: int
    receivables: Decimal
    expenses: Decimal
    balance: Decimal


@dataclass
class CriticalDueDate:
    entry_id: str
    schedule_id: str
    client_name: str
    value: Decimal
    due_date: date
    days_until_due: int
    is_overdue: bool


@dataclass
class MonthBar:
    """Revenue and expenses bucketed into one calendar month"""

    month: str  # "YYYY-MM"
    label: str
    revenue: Decimal
    expenses: Decimal


@dataclass
class ProjectionReport:
    projections: List[ReceivableProjection]
    overdue_percentage: float
    delinquent_clients_count: int
    risk_level: str
    critical_due_dates: List[CriticalDueDate]
    overdue_impact: Decimal
    potential_recovery: Decimal
    trend: str


# Cash intelligence


@dataclass
class ActivityStats:
    first_activity_date: Optional[date]
    last_activity_date: Optional[date]
    total_days_active: int
    learning_phase: int


@dataclass
class HealthScore:
    score: int
    status: str  # "stable" | "observation" | "attention"
    status_label: str


@dataclass
class CashAlert:
    type: str
    message: str
    priority: int


@dataclass
class CashInsight:
    type: str
    message: str
    priority: int


@dataclass
class ActiveMessage:
    type: str  # "alert" | "insight" | "educational"
    message: str
    title: Optional[str] = None


@dataclass
class CashIntelligence:
    activity: ActivityStats
    health_score: HealthScore
    alert: Optional[CashAlert]
    insight: Optional[CashInsight]
    active_message: Optional[ActiveMessage]


# Subscription


@dataclass
class SubscriptionState:
    status: str
    plan: Optional[str]
    is_active: bool
    is_blocked: bool
    trial_end: Optional[datetime]
    trial_days_remaining: Optional[int]
    expiration_date: Optional[datetime]
    days_remaining: Optional[int]


@dataclass
class ProfileUpdate:
    """Fields a billing event writes onto a subscription profile"""

    subscription_status: str
    plan: Optional[str] = None
    expiration_date: Optional[datetime] = None
