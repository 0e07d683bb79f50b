"""GET /v1/cash-intelligence - Health score and the daily cash message"""

import time
import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from caixa_gateway.api.dependencies import get_caller, get_request_id, get_today
from caixa_gateway.api.v1.schemas import CashIntelligenceResponse
from caixa_gateway.domain.exceptions import ReadFailureError
from caixa_gateway.domain.intelligence import IntelligenceInputs, evaluate
from caixa_gateway.domain.models import CallerContext
from caixa_gateway.infrastructure.database.session import get_session_factory
from caixa_gateway.infrastructure.database.snapshot import gather_reads
from caixa_gateway.infrastructure.observability.logging import log_computation
from caixa_gateway.infrastructure.observability.metrics import computation_counter, record_daily_message

router = APIRouter()


@router.get("/cash-intelligence", response_model=CashIntelligenceResponse)
async def get_cash_intelligence(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    today: date = Depends(get_today),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Evaluate the caller's learning phase, health score and daily message.

    At most one alert or insight is returned; an empty active message is the
    intentional silence once the caller is past the educational phase.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        reads = await gather_reads(
            session_factory,
            caller,
            entries=lambda r: r.list_entries(),
            schedules=lambda r: r.list_schedules(),
            expenses=lambda r: r.list_expenses(),
        )
    except ReadFailureError as e:
        logging.error(f"Cash intelligence read failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Financial data temporarily unavailable, please retry")

    result = evaluate(
        IntelligenceInputs(
            today=today,
            entries=reads["entries"],
            schedules=reads["schedules"],
            expenses=reads["expenses"],
        )
    )

    selected = result.alert or result.insight
    computation_counter.labels(kind="intelligence").inc()
    record_daily_message(
        result.active_message.type if result.active_message else "silence",
        selected.type if selected else None,
        result.health_score.score,
    )
    log_computation(
        request_id,
        caller.user_id,
        "intelligence",
        (time.time() - start_time) * 1000,
        score=result.health_score.score,
        learning_phase=result.activity.learning_phase,
    )

    return result
