"""Subscription status derivation - fail-closed access control"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from caixa_gateway.domain.models import ProfileUpdate, SubscriptionProfile, SubscriptionState
from caixa_gateway.domain.rules import Rule, first_match
from caixa_gateway.utils.date_utils import ceil_days_between

TRIAL = "trial"
ACTIVE = "ativo"
PENDING = "pendente"
PAST_DUE = "em_atraso"
CANCELLED = "cancelado"
EXPIRED = "expirado"

STATUSES = (TRIAL, ACTIVE, PENDING, PAST_DUE, CANCELLED, EXPIRED)
PLANS = ("mensal", "semestral", "anual")

DEFAULT_TRIAL_DAYS = 14
UNKNOWN_EVENT = "unknown"


@dataclass
class StatusContext:
    profile: SubscriptionProfile
    raw: str


STATUS_RULES = [
    Rule("owner", lambda c: c.profile.is_owner or c.profile.plan_type == "owner", lambda c: ACTIVE),
    Rule("known_status", lambda c: c.raw in STATUSES, lambda c: c.raw),
    Rule("legacy_active", lambda c: c.raw == "active" or c.profile.plan_type == "paid", lambda c: ACTIVE),
    Rule("legacy_inactive", lambda c: c.raw == "inactive" or c.profile.plan_type == "free", lambda c: EXPIRED),
]


def normalize_status(profile: SubscriptionProfile) -> str:
    """Map the raw stored status onto a known state; anything unrecognised is expired"""
    raw = (profile.subscription_status or "").strip().lower()
    return first_match(STATUS_RULES, StatusContext(profile=profile, raw=raw)) or EXPIRED


def trial_end(profile: SubscriptionProfile, default_days: int = DEFAULT_TRIAL_DAYS) -> Optional[datetime]:
    if profile.trial_end is not None:
        return profile.trial_end
    if profile.trial_start is None:
        return None
    return profile.trial_start + timedelta(days=profile.trial_days or default_days)


def trial_days_remaining(end: Optional[datetime], now: datetime) -> Optional[int]:
    if end is None:
        return None
    return max(0, ceil_days_between(now, end))


def derive_state(
    profile: Optional[SubscriptionProfile],
    now: datetime,
    default_trial_days: int = DEFAULT_TRIAL_DAYS,
) -> SubscriptionState:
    """
    Derive the access-control status of a profile at `now`.

    Rules:
    - Owner profiles are always active and never expire
    - An active status past its expiration date becomes expired
    - A trial whose window has elapsed becomes expired
    - Missing profiles and unrecognised statuses are expired (fail-closed)
    """
    if profile is None:
        return SubscriptionState(
            status=EXPIRED,
            plan=None,
            is_active=False,
            is_blocked=True,
            trial_end=None,
            trial_days_remaining=None,
            expiration_date=None,
            days_remaining=None,
        )

    status = normalize_status(profile)
    is_owner = profile.is_owner or profile.plan_type == "owner"
    end = trial_end(profile, default_trial_days)
    remaining_trial = trial_days_remaining(end, now)

    if not is_owner:
        if status == ACTIVE and profile.expiration_date is not None and profile.expiration_date < now:
            status = EXPIRED
        elif status == TRIAL and end is not None and end <= now:
            status = EXPIRED

    days_remaining = None
    if status == ACTIVE and not is_owner and profile.expiration_date is not None:
        days_remaining = ceil_days_between(now, profile.expiration_date)

    plan = profile.plan if profile.plan in PLANS else None

    return SubscriptionState(
        status=status,
        plan=plan,
        is_active=status == ACTIVE,
        is_blocked=is_blocked(status),
        trial_end=end,
        trial_days_remaining=remaining_trial,
        expiration_date=None if is_owner else profile.expiration_date,
        days_remaining=days_remaining,
    )


def is_blocked(status: str) -> bool:
    """Only expired blocks; trial and pending are full-access grace states"""
    return status == EXPIRED


def can_access(state: SubscriptionState, is_admin: bool = False) -> bool:
    """Admins of the account are never blocked"""
    return is_admin or not state.is_blocked


# Billing provider events

EVENT_RULES = [
    (ACTIVE, ("compra_aprovada", "pagamento_aprovado", "assinatura_renovada", "order_approved",
              "payment_approved", "subscription_activated"), ("approved", "paid", "pago")),
    (CANCELLED, ("assinatura_cancelada", "subscription_canceled", "chargeback", "refund"), ()),
    (PAST_DUE, ("assinatura_atrasada", "payment_overdue", "late"), ()),
    (PENDING, ("pix_gerado", "boleto_gerado", "pending", "aguardando"), ()),
]


def normalize_billing_event(raw_event: Optional[str]) -> str:
    """Map a provider event name onto the status it sets, or "unknown" """
    event = re.sub(r"[\s_-]+", "_", (raw_event or "").lower())
    for status, fragments, exact in EVENT_RULES:
        if event in exact or any(fragment in event for fragment in fragments):
            return status
    return UNKNOWN_EVENT


def normalize_plan(raw_product: Optional[str]) -> Tuple[str, int]:
    """Plan name and its duration in days, monthly by default"""
    product = (raw_product or "").lower()
    if "anual" in product or "yearly" in product or "12" in product:
        return "anual", 365
    if "semestral" in product or "6" in product:
        return "semestral", 180
    return "mensal", 30


def apply_billing_event(raw_event: str, raw_product: Optional[str], now: datetime) -> Optional[ProfileUpdate]:
    """
    Profile fields a billing event writes, or None for unknown events.

    Activation sets the plan and pushes expiration to now + plan duration;
    other recognised events only change the status.
    """
    status = normalize_billing_event(raw_event)
    if status == UNKNOWN_EVENT:
        return None

    if status == ACTIVE:
        plan, duration_days = normalize_plan(raw_product)
        return ProfileUpdate(
            subscription_status=ACTIVE,
            plan=plan,
            expiration_date=now + timedelta(days=duration_days),
        )

    return ProfileUpdate(subscription_status=status)
