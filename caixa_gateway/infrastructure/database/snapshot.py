"""Parallel read fan-out against the store, joined before any computation"""

import asyncio
import logging
from typing import Any, Callable, Dict

from sqlalchemy.orm import sessionmaker

from caixa_gateway.config import settings
from caixa_gateway.domain.exceptions import ReadFailureError
from caixa_gateway.domain.models import CallerContext
from caixa_gateway.infrastructure.database.repositories import LedgerReader
from caixa_gateway.infrastructure.observability.metrics import store_read_failures_counter

logger = logging.getLogger(__name__)

Read = Callable[[LedgerReader], Any]


def _run_read(session_factory: sessionmaker, caller: CallerContext, read: Read) -> Any:
    db = session_factory()
    try:
        return read(LedgerReader(db, caller))
    finally:
        db.close()


async def gather_reads(
    session_factory: sessionmaker,
    caller: CallerContext,
    timeout: float | None = None,
    **reads: Read,
) -> Dict[str, Any]:
    """
    Run independent reads in parallel, one session each, and wait for all.

    Either every read succeeds and all results are returned, or the first
    failure propagates; partial results are never handed back.

    Raises:
        ReadFailureError: On store errors, invalid rows or timeout
    """
    timeout = timeout or settings.read_timeout_seconds
    names = list(reads)

    try:
        results = await asyncio.wait_for(
            asyncio.gather(
                *(asyncio.to_thread(_run_read, session_factory, caller, reads[name]) for name in names)
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        store_read_failures_counter.labels(reason="timeout").inc()
        raise ReadFailureError(f"Store reads timed out after {timeout}s") from e
    except ReadFailureError:
        store_read_failures_counter.labels(reason="store").inc()
        raise

    logger.debug("Store reads joined", extra={"reads": names, "user_id": caller.user_id})
    return dict(zip(names, results))
