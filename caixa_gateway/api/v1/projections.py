"""GET /v1/projections - Receivables projection and delinquency risk"""

import time
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import sessionmaker

from caixa_gateway.api.dependencies import get_caller, get_request_id, get_today
from caixa_gateway.api.v1.schemas import ProjectionReportResponse, SemesterProjectionResponse
from caixa_gateway.config import settings
from caixa_gateway.domain.exceptions import ReadFailureError
from caixa_gateway.domain.models import CallerContext, EntryStatus, ExpenseKind
from caixa_gateway.domain.projections import SEMESTER_MONTHS, build_projection_report, semester_projection
from caixa_gateway.infrastructure.database.session import get_session_factory
from caixa_gateway.infrastructure.database.snapshot import gather_reads
from caixa_gateway.infrastructure.observability.logging import log_computation
from caixa_gateway.infrastructure.observability.metrics import computation_counter
from caixa_gateway.utils.date_utils import add_months, month_bounds

router = APIRouter()


@router.get("/projections", response_model=ProjectionReportResponse)
async def get_projections(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    today: date = Depends(get_today),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Project 30/60/90-day receivables against fixed costs.

    Returns:
        Projections, risk level, delinquent clients and the most critical due dates
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        reads = await gather_reads(
            session_factory,
            caller,
            schedules=lambda r: r.list_schedules(status=EntryStatus.PENDING),
            fixed_expenses=lambda r: r.list_expenses(kind=ExpenseKind.FIXED),
        )
    except ReadFailureError as e:
        logging.error(f"Projection read failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Financial data temporarily unavailable, please retry")

    report = build_projection_report(
        reads["schedules"],
        reads["fixed_expenses"],
        today,
        horizons=settings.projection_horizons,
        critical_limit=settings.critical_due_dates_limit,
    )

    computation_counter.labels(kind="projections").inc()
    log_computation(
        request_id,
        caller.user_id,
        "projections",
        (time.time() - start_time) * 1000,
        risk_level=report.risk_level,
    )

    return report


@router.get("/projections/semester", response_model=SemesterProjectionResponse)
async def get_semester_projection(
    request: Request,
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="First month as YYYY-MM"),
    caller: CallerContext = Depends(get_caller),
    today: date = Depends(get_today),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Monthly revenue against expenses for six months from the given month"""
    start_time = time.time()
    request_id = get_request_id(request)
    month = month or today.strftime("%Y-%m")

    try:
        first_start, _ = month_bounds(month)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid month: {month}")
    _, last_end = month_bounds(add_months(first_start, SEMESTER_MONTHS - 1).strftime("%Y-%m"))

    try:
        reads = await gather_reads(
            session_factory,
            caller,
            paid_schedules=lambda r: r.list_schedules(
                status=EntryStatus.PAID, paid_start=first_start, paid_end=last_end
            ),
            pending_schedules=lambda r: r.list_schedules(
                status=EntryStatus.PENDING, due_start=first_start, due_end=last_end
            ),
            entries=lambda r: r.list_period_entries(first_start, last_end),
            governed_ids=lambda r: r.governed_entry_ids(),
            expenses=lambda r: r.list_expenses(first_start, last_end),
        )
    except ReadFailureError as e:
        logging.error(f"Semester projection read failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Financial data temporarily unavailable, please retry")

    months = semester_projection(
        reads["entries"],
        reads["paid_schedules"] + reads["pending_schedules"],
        reads["expenses"],
        first_start,
        reads["governed_ids"],
    )

    computation_counter.labels(kind="semester").inc()
    log_computation(request_id, caller.user_id, "semester", (time.time() - start_time) * 1000, month=month)

    return {"months": months}
