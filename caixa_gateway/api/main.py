"""FastAPI application factory"""

import logging
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.responses import Response

from caixa_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from caixa_gateway.api.v1 import dashboard, intelligence, projections, schedules, subscription
from caixa_gateway.domain.exceptions import DomainException, NotAuthenticatedError, NotFoundError, PermissionDeniedError
from caixa_gateway.infrastructure.database.session import get_session_factory
from caixa_gateway.infrastructure.observability.logging import setup_logging
from caixa_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)

# Domain errors that escape a route unhandled
DOMAIN_ERROR_STATUS = {
    NotAuthenticatedError: 401,
    PermissionDeniedError: 403,
    NotFoundError: 404,
}


async def domain_error_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = DOMAIN_ERROR_STATUS[type(exc)]
    logging.warning(
        f"{type(exc).__name__}: {exc}",
        extra={"request_id": getattr(request.state, "request_id", "unknown"), "status": status_code},
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Caixa Gateway",
        description="Cash-flow ledger aggregation, receivables projection, cash intelligence and subscriptions",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    for exc_class in DOMAIN_ERROR_STATUS:
        app.add_exception_handler(exc_class, domain_error_handler)

    # Liveness
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Readiness: the store must answer before computations can be served
    @app.get("/health/ready")
    def readiness_check(session_factory: sessionmaker = Depends(get_session_factory)):
        db = session_factory()
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logging.error(f"Store not ready: {e}")
            return JSONResponse(status_code=503, content={"status": "unavailable", "service": settings.service_name})
        finally:
            db.close()
        return {"status": "ready", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(dashboard.router, prefix="/v1", tags=["dashboard"])
    app.include_router(projections.router, prefix="/v1", tags=["projections"])
    app.include_router(intelligence.router, prefix="/v1", tags=["intelligence"])
    app.include_router(subscription.router, prefix="/v1", tags=["subscription"])
    app.include_router(schedules.router, prefix="/v1", tags=["schedules"])

    return app


app = create_app()
