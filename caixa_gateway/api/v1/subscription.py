"""Subscription state and billing provider events"""

import time
import logging
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from caixa_gateway.api.dependencies import get_caller, get_now, get_request_id
from caixa_gateway.api.v1.schemas import BillingEventRequest, BillingEventResponse, SubscriptionResponse
from caixa_gateway.config import settings
from caixa_gateway.domain.exceptions import ReadFailureError
from caixa_gateway.domain.models import CallerContext
from caixa_gateway.domain.subscription import (
    apply_billing_event,
    can_access,
    derive_state,
    normalize_billing_event,
)
from caixa_gateway.infrastructure.database.repositories import ProfileRepository
from caixa_gateway.infrastructure.database.session import get_db, get_session_factory
from caixa_gateway.infrastructure.database.snapshot import gather_reads
from caixa_gateway.infrastructure.observability.logging import log_computation
from caixa_gateway.infrastructure.observability.metrics import billing_event_counter, computation_counter

router = APIRouter()


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    now: datetime = Depends(get_now),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Derive the caller's subscription status.

    A missing profile or an unreadable status is reported as expired; only
    expired blocks access, and account admins are never blocked.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        reads = await gather_reads(session_factory, caller, profile=lambda r: r.get_profile())
    except ReadFailureError as e:
        logging.error(f"Subscription read failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Financial data temporarily unavailable, please retry")

    state = derive_state(reads["profile"], now, settings.trial_days)

    computation_counter.labels(kind="subscription").inc()
    log_computation(
        request_id,
        caller.user_id,
        "subscription",
        (time.time() - start_time) * 1000,
        status=state.status,
    )

    return {**asdict(state), "can_access": can_access(state, caller.is_admin)}


@router.post("/billing/events", response_model=BillingEventResponse)
def receive_billing_event(
    request_body: BillingEventRequest,
    request: Request,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """
    Apply a billing provider event to the profile with the given email.

    Unknown events are acknowledged without touching the profile.
    """
    request_id = get_request_id(request)
    normalized = normalize_billing_event(request_body.event)
    update = apply_billing_event(request_body.event, request_body.product, now)

    if update is None:
        logging.info(
            "Billing event ignored",
            extra={"request_id": request_id, "event": request_body.event},
        )
        return BillingEventResponse(normalized_event=normalized, applied=False)

    repo = ProfileRepository(db)
    try:
        profile = repo.get_by_email(request_body.email)
        if profile is None:
            raise HTTPException(status_code=404, detail="Profile not found")

        repo.apply_update(profile, update)
        db.commit()

    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Billing event failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Financial data temporarily unavailable, please retry")

    billing_event_counter.labels(status=update.subscription_status).inc()
    logging.info(
        "Billing event applied",
        extra={"request_id": request_id, "status": update.subscription_status, "plan": update.plan},
    )

    return BillingEventResponse(
        normalized_event=normalized,
        applied=True,
        subscription_status=update.subscription_status,
        plan=update.plan,
        expiration_date=update.expiration_date,
    )
