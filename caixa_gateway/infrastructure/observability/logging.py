"""Structured JSON logging for computations and store access"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from caixa_gateway.config import settings

# Libraries whose INFO output would drown computation logs
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping each record with its creation time and the service name"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Route every logger through one JSON handler on stdout"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_computation(
    request_id: str,
    user_id: str,
    kind: str,
    duration_ms: float,
    **details: Any,
) -> None:
    """Log structured outcome of a dashboard, projection, intelligence or subscription computation"""
    logging.info(
        f"{kind.capitalize()} computed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": f"{kind}_complete",
            "duration_ms": round(duration_ms, 2),
            **details,
        },
    )
