"""Dependency injection for FastAPI endpoints"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import Depends, Header, Request

from caixa_gateway.domain.exceptions import NotAuthenticatedError
from caixa_gateway.domain.models import CallerContext

ADMIN_ROLES = {"admin", "system_admin"}


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_account_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CallerContext:
    """
    Resolve the caller identity forwarded by the auth collaborator.

    Raises:
        NotAuthenticatedError: If no user identity was forwarded
    """
    if not x_user_id:
        raise NotAuthenticatedError("No caller identity on request")

    return CallerContext(
        user_id=x_user_id,
        account_id=x_account_id or x_user_id,
        is_admin=(x_user_role or "").lower() in ADMIN_ROLES,
    )


def get_now() -> datetime:
    """Current instant; overridden in tests to pin the clock"""
    return datetime.now(timezone.utc)


def get_today(now: datetime = Depends(get_now)) -> date:
    return now.date()
