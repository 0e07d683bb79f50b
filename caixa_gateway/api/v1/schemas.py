"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from caixa_gateway.config import settings
from caixa_gateway.domain.models import ScheduleType


class DomainSchema(BaseModel):
    """Response schemas built straight from domain dataclasses"""

    model_config = ConfigDict(from_attributes=True)


# Schedules


class ScheduleCreateRequest(BaseModel):
    """Request body for POST /v1/entries/{entry_id}/schedules"""

    schedule_type: str = Field(ScheduleType.INSTALLMENT, pattern="^(single|installment|monthly_package)$")
    total_value: Optional[Decimal] = Field(None, ge=0, decimal_places=2, description="Entry total to split, must match the entry value")
    installments_total: int = Field(..., description="Number of schedule rows to create")
    first_due_date: Optional[date] = None
    interval_days: int = Field(settings.default_interval_days, ge=1)


class VisualStatusSchema(DomainSchema):
    status: str
    days: Optional[int] = None


class ScheduleSchema(DomainSchema):
    id: str
    entry_id: str
    schedule_type: str
    installment_number: int
    installments_total: int
    due_date: date
    amount: Decimal
    status: str
    paid_at: Optional[datetime] = None
    previous_status: Optional[str] = None
    edited_by: Optional[str] = None
    visual: Optional[VisualStatusSchema] = None


class ScheduleSummarySchema(DomainSchema):
    total: int
    paid: int
    pending: int
    schedule_type: str
    type_label: str
    summary: str


class ScheduleBatchResponse(BaseModel):
    entry_id: str
    schedules: List[ScheduleSchema]
    summary: Optional[ScheduleSummarySchema] = None


class EntryPaymentResponse(BaseModel):
    entry_id: str
    status: str
    payment_date: date


# Dashboard


class PeriodMetricsSchema(DomainSchema):
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


class GlobalReceivablesSchema(DomainSchema):
    pending_value: Decimal
    upcoming_value: Decimal
    upcoming_count: int
    overdue_value: Decimal
    overdue_count: int
    next_30_days_value: Decimal


class CategoryTotalSchema(DomainSchema):
    name: str
    value: Decimal


class ReceivablesDistributionSchema(DomainSchema):
    received: Decimal
    receivable: Decimal
    overdue: Decimal


class EvolutionPointSchema(DomainSchema):
    day: date
    received: Decimal
    receivable: Decimal
    expenses: Decimal


class DashboardResponse(BaseModel):
    """Response for GET /v1/dashboard"""

    month: str
    period: PeriodMetricsSchema
    global_receivables: GlobalReceivablesSchema
    expenses_by_category: List[CategoryTotalSchema]
    distribution: ReceivablesDistributionSchema
    evolution: List[EvolutionPointSchema]


# Projections


class ReceivableProjectionSchema(DomainSchema):
    horizon_days: int
    receivables: Decimal
    expenses: Decimal
    balance: Decimal


class CriticalDueDateSchema(DomainSchema):
    entry_id: str
    schedule_id: str
    client_name: str
    value: Decimal
    due_date: date
    days_until_due: int
    is_overdue: bool


class ProjectionReportResponse(DomainSchema):
    """Response for GET /v1/projections"""

    projections: List[ReceivableProjectionSchema]
    overdue_percentage: float
    delinquent_clients_count: int
    risk_level: str
    critical_due_dates: List[CriticalDueDateSchema]
    overdue_impact: Decimal
    potential_recovery: Decimal
    trend: str


class MonthBarSchema(DomainSchema):
    month: str
    label: str
    revenue: Decimal
    expenses: Decimal


class SemesterProjectionResponse(BaseModel):
    """Response for GET /v1/projections/semester"""

    months: List[MonthBarSchema]


# Cash intelligence


class ActivityStatsSchema(DomainSchema):
    first_activity_date: Optional[date]
    last_activity_date: Optional[date]
    total_days_active: int
    learning_phase: int


class HealthScoreSchema(DomainSchema):
    score: int
    status: str
    status_label: str


class DailyMessageSchema(DomainSchema):
    type: str
    message: str
    priority: int


class ActiveMessageSchema(DomainSchema):
    type: str
    message: str
    title: Optional[str] = None


class CashIntelligenceResponse(DomainSchema):
    """Response for GET /v1/cash-intelligence"""

    activity: ActivityStatsSchema
    health_score: HealthScoreSchema
    alert: Optional[DailyMessageSchema]
    insight: Optional[DailyMessageSchema]
    active_message: Optional[ActiveMessageSchema]


# Subscription


class SubscriptionResponse(DomainSchema):
    """Response for GET /v1/subscription"""

    status: str
    plan: Optional[str]
    is_active: bool
    is_blocked: bool
    can_access: bool = True
    trial_end: Optional[datetime]
    trial_days_remaining: Optional[int]
    expiration_date: Optional[datetime]
    days_remaining: Optional[int]


class BillingEventRequest(BaseModel):
    """Request body for POST /v1/billing/events, already authenticated upstream"""

    email: str = Field(..., min_length=3)
    event: str = Field(..., min_length=1)
    product: Optional[str] = None


class BillingEventResponse(BaseModel):
    normalized_event: str
    applied: bool
    subscription_status: Optional[str] = None
    plan: Optional[str] = None
    expiration_date: Optional[datetime] = None
