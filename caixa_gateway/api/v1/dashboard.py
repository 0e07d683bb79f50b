"""GET /v1/dashboard - Period and global ledger metrics"""

import time
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import sessionmaker

from caixa_gateway.api.dependencies import get_caller, get_request_id, get_today
from caixa_gateway.api.v1.schemas import DashboardResponse
from caixa_gateway.domain.aggregation import (
    daily_evolution,
    expenses_by_category,
    global_receivables,
    period_metrics,
    receivables_distribution,
)
from caixa_gateway.domain.exceptions import ReadFailureError
from caixa_gateway.domain.models import CallerContext, EntryStatus
from caixa_gateway.infrastructure.database.session import get_session_factory
from caixa_gateway.infrastructure.database.snapshot import gather_reads
from caixa_gateway.infrastructure.observability.logging import log_computation
from caixa_gateway.infrastructure.observability.metrics import computation_counter
from caixa_gateway.utils.date_utils import month_bounds

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    request: Request,
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="Month as YYYY-MM"),
    caller: CallerContext = Depends(get_caller),
    today: date = Depends(get_today),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Received, pending, upcoming and overdue figures for a month, plus the
    unwindowed receivables over every pending row.

    Flow:
    1. Fan out reads for the month and the global pending rows
    2. Join all reads (any failure aborts the whole computation)
    3. Aggregate period and global figures
    """
    start_time = time.time()
    request_id = get_request_id(request)
    month = month or today.strftime("%Y-%m")

    try:
        start, end = month_bounds(month)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid month: {month}")

    try:
        reads = await gather_reads(
            session_factory,
            caller,
            entries=lambda r: r.list_period_entries(start, end),
            period_schedules=lambda r: r.list_schedules(due_start=start, due_end=end),
            paid_schedules=lambda r: r.list_schedules(status=EntryStatus.PAID, paid_start=start, paid_end=end),
            pending_schedules=lambda r: r.list_schedules(status=EntryStatus.PENDING),
            pending_entries=lambda r: r.list_entries(status=EntryStatus.PENDING),
            governed_ids=lambda r: r.governed_entry_ids(),
            expenses=lambda r: r.list_expenses(start, end),
        )
    except ReadFailureError as e:
        logging.error(f"Dashboard read failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Financial data temporarily unavailable, please retry")

    period = period_metrics(
        reads["entries"],
        reads["period_schedules"],
        reads["expenses"],
        start,
        end,
        today,
        governed_ids=reads["governed_ids"],
    )
    receivables = global_receivables(
        reads["pending_entries"],
        reads["pending_schedules"],
        today,
        governed_ids=reads["governed_ids"],
    )
    # Paid rows plot on the day they were paid, pending rows on their due date
    evolution = daily_evolution(
        reads["entries"],
        [s for s in reads["period_schedules"] if s.status == EntryStatus.PENDING] + reads["paid_schedules"],
        reads["expenses"],
        start,
        end,
        governed_ids=reads["governed_ids"],
    )

    computation_counter.labels(kind="dashboard").inc()
    log_computation(
        request_id,
        caller.user_id,
        "dashboard",
        (time.time() - start_time) * 1000,
        month=month,
    )

    return {
        "month": month,
        "period": period,
        "global_receivables": receivables,
        "expenses_by_category": expenses_by_category(reads["expenses"]),
        "distribution": receivables_distribution(period),
        "evolution": evolution,
    }
