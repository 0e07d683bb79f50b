"""Schedule and payment writes under /v1/entries and /v1/schedules"""

import logging
from dataclasses import asdict
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from caixa_gateway.api.dependencies import get_caller, get_now, get_request_id, get_today
from caixa_gateway.api.v1.schemas import (
    EntryPaymentResponse,
    ScheduleBatchResponse,
    ScheduleCreateRequest,
    ScheduleSchema,
)
from caixa_gateway.config import settings
from caixa_gateway.domain.exceptions import (
    InvalidCountError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ReadFailureError,
    ScheduleConflictError,
    TotalMismatchError,
)
from caixa_gateway.domain.aggregation import visual_status
from caixa_gateway.domain.installments import summarize_schedules
from caixa_gateway.domain.models import CallerContext, ScheduleRequest
from caixa_gateway.infrastructure.database.repositories import (
    EntryRepository,
    LedgerReader,
    ScheduleRepository,
    to_schedule,
)
from caixa_gateway.infrastructure.database.session import get_db
from caixa_gateway.infrastructure.observability.metrics import schedules_created_counter

router = APIRouter()

STORE_UNAVAILABLE = "Financial data temporarily unavailable, please retry"


@router.post("/entries/{entry_id}/schedules", response_model=ScheduleBatchResponse, status_code=201)
def create_schedules(
    entry_id: str,
    request_body: ScheduleCreateRequest,
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """
    Split an entry's total into its payment schedule.

    The whole batch is committed in one transaction; on any failure nothing
    is written. Amounts always sum back to the total to the cent.
    """
    request_id = get_request_id(request)

    if request_body.installments_total > settings.max_installments:
        raise HTTPException(
            status_code=422,
            detail=f"At most {settings.max_installments} installments are allowed",
        )

    schedule_request = ScheduleRequest(
        entry_id=entry_id,
        total_value=request_body.total_value,
        installments_total=request_body.installments_total,
        first_due_date=request_body.first_due_date,
        interval_days=request_body.interval_days,
        schedule_type=request_body.schedule_type,
    )

    try:
        rows = ScheduleRepository(db).create_batch(caller, schedule_request)
        db.commit()
        schedules = [to_schedule(row) for row in rows]

    except InvalidCountError as e:
        db.rollback()
        logging.warning(f"Invalid installment count: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except TotalMismatchError as e:
        db.rollback()
        logging.warning(f"Schedule total rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except ScheduleConflictError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Schedule batch failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)

    schedules_created_counter.labels(schedule_type=schedule_request.schedule_type).inc(len(schedules))

    return {
        "entry_id": entry_id,
        "schedules": schedules,
        "summary": summarize_schedules(schedules),
    }


@router.get("/entries/{entry_id}/schedules", response_model=ScheduleBatchResponse)
def list_entry_schedules(
    entry_id: str,
    request: Request,
    caller: CallerContext = Depends(get_caller),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
):
    """Schedules of one entry with their display status and paid/pending summary"""
    try:
        schedules = LedgerReader(db, caller).list_schedules(entry_id=entry_id)
    except ReadFailureError as e:
        logging.error(f"Schedule read failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)

    if not schedules:
        raise HTTPException(status_code=404, detail="No schedules for this entry")

    schedules.sort(key=lambda s: s.installment_number)
    return {
        "entry_id": entry_id,
        "schedules": [
            {**asdict(s), "visual": visual_status(s.status, s.due_date, today)} for s in schedules
        ],
        "summary": summarize_schedules(schedules),
    }


@router.post("/entries/{entry_id}/pay", response_model=EntryPaymentResponse)
def pay_entry(
    entry_id: str,
    request: Request,
    caller: CallerContext = Depends(get_caller),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
):
    """Mark a bare entry paid today"""
    request_id = get_request_id(request)

    try:
        row = EntryRepository(db).mark_paid(caller, entry_id, today)
        db.commit()
        response = EntryPaymentResponse(entry_id=row.id, status=row.status, payment_date=row.payment_date)

    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Entry payment failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)

    logging.info("Entry paid", extra={"request_id": request_id, "entry_id": entry_id, "user_id": caller.user_id})
    return response


@router.post("/schedules/{schedule_id}/pay", response_model=ScheduleSchema)
def pay_schedule(
    schedule_id: str,
    request: Request,
    caller: CallerContext = Depends(get_caller),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """Mark a schedule paid; paying twice keeps the first paid_at"""
    request_id = get_request_id(request)

    try:
        row = ScheduleRepository(db).mark_paid(caller, schedule_id, now)
        db.commit()
        schedule = to_schedule(row)

    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Schedule payment failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)

    return schedule


@router.post("/schedules/{schedule_id}/revert", response_model=ScheduleSchema)
def revert_schedule(
    schedule_id: str,
    request: Request,
    caller: CallerContext = Depends(get_caller),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """Admin-only: move a paid schedule back to pending"""
    request_id = get_request_id(request)

    try:
        row = ScheduleRepository(db).revert_to_pending(caller, schedule_id, now)
        db.commit()
        schedule = to_schedule(row)

    except PermissionDeniedError as e:
        db.rollback()
        logging.warning(f"Revert denied: {e}", extra={"request_id": request_id, "user_id": caller.user_id})
        raise HTTPException(status_code=403, detail=str(e))

    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except InvalidTransitionError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Schedule revert failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)

    return schedule
