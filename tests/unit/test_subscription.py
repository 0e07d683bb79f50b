"""Unit tests for subscription status derivation and billing events"""

import pytest
from datetime import datetime, timedelta, timezone
from caixa_gateway.domain.models import SubscriptionProfile
from caixa_gateway.domain.subscription import (
    apply_billing_event,
    can_access,
    derive_state,
    normalize_billing_event,
    normalize_plan,
    normalize_status,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _profile(**fields) -> SubscriptionProfile:
    return SubscriptionProfile(user_id="user-1", **fields)


def test_elapsed_trial_with_inactive_status_is_expired():
    """Test a 14-day trial started 20 days ago with no payment blocks access"""
    profile = _profile(subscription_status="inactive", trial_start=NOW - timedelta(days=20), trial_days=14)

    state = derive_state(profile, NOW)

    assert state.trial_days_remaining == 0
    assert state.status == "expirado"
    assert state.is_blocked is True


def test_elapsed_trial_with_trial_status_is_expired():
    profile = _profile(subscription_status="trial", trial_start=NOW - timedelta(days=20), trial_days=14)

    state = derive_state(profile, NOW)

    assert state.status == "expirado"
    assert state.trial_end == NOW - timedelta(days=6)


def test_running_trial_keeps_access():
    profile = _profile(subscription_status="trial", trial_end=NOW + timedelta(days=4, hours=12))

    state = derive_state(profile, NOW)

    assert state.status == "trial"
    assert state.trial_days_remaining == 5
    assert state.is_blocked is False
    assert state.is_active is False


def test_trial_uses_default_days_when_unset():
    profile = _profile(subscription_status="trial", trial_start=NOW - timedelta(days=10))

    state = derive_state(profile, NOW, default_trial_days=14)

    assert state.status == "trial"
    assert state.trial_days_remaining == 4


def test_active_past_expiration_is_expired():
    profile = _profile(subscription_status="ativo", plan="mensal", expiration_date=NOW - timedelta(minutes=1))

    state = derive_state(profile, NOW)

    assert state.status == "expirado"
    assert state.is_active is False
    assert state.days_remaining is None


def test_active_before_expiration():
    profile = _profile(subscription_status="ativo", plan="mensal", expiration_date=NOW + timedelta(days=10))

    state = derive_state(profile, NOW)

    assert state.status == "ativo"
    assert state.is_active is True
    assert state.plan == "mensal"
    assert state.days_remaining == 10


def test_owner_never_expires():
    profile = _profile(subscription_status="expirado", is_owner=True, expiration_date=NOW - timedelta(days=400))

    state = derive_state(profile, NOW)

    assert state.status == "ativo"
    assert state.expiration_date is None
    assert state.days_remaining is None


def test_missing_profile_is_expired():
    state = derive_state(None, NOW)

    assert state.status == "expirado"
    assert state.is_blocked is True


@pytest.mark.parametrize("raw", [None, "", "unknown", "ACTIVE-ish", "premium"])
def test_unrecognised_status_fails_closed(raw):
    assert normalize_status(_profile(subscription_status=raw)) == "expirado"


@pytest.mark.parametrize(
    "fields,expected",
    [
        ({"subscription_status": "pendente"}, "pendente"),
        ({"subscription_status": " Em_Atraso "}, "em_atraso"),
        ({"subscription_status": "cancelado"}, "cancelado"),
        ({"subscription_status": "active"}, "ativo"),
        ({"subscription_status": None, "plan_type": "paid"}, "ativo"),
        ({"subscription_status": None, "plan_type": "free"}, "expirado"),
        ({"subscription_status": "inactive", "plan_type": "owner"}, "ativo"),
    ],
)
def test_normalize_status(fields, expected):
    assert normalize_status(_profile(**fields)) == expected


@pytest.mark.parametrize("status", ["trial", "pendente", "em_atraso", "cancelado"])
def test_only_expired_blocks(status):
    state = derive_state(_profile(subscription_status=status, trial_end=NOW + timedelta(days=3)), NOW)
    assert state.is_blocked is False


def test_admin_can_access_when_blocked():
    state = derive_state(None, NOW)

    assert can_access(state) is False
    assert can_access(state, is_admin=True) is True


@pytest.mark.parametrize(
    "event,expected",
    [
        ("compra_aprovada", "ativo"),
        ("Compra Aprovada", "ativo"),
        ("approved", "ativo"),
        ("assinatura_renovada", "ativo"),
        ("subscription_canceled", "cancelado"),
        ("chargeback", "cancelado"),
        ("assinatura-atrasada", "em_atraso"),
        ("pix_gerado", "pendente"),
        ("boleto_gerado", "pendente"),
        ("carrinho_abandonado", "unknown"),
        (None, "unknown"),
    ],
)
def test_normalize_billing_event(event, expected):
    assert normalize_billing_event(event) == expected


@pytest.mark.parametrize(
    "product,expected",
    [
        ("Plano Anual", ("anual", 365)),
        ("12 meses", ("anual", 365)),
        ("Plano Semestral", ("semestral", 180)),
        ("6 meses", ("semestral", 180)),
        ("Plano Mensal", ("mensal", 30)),
        (None, ("mensal", 30)),
    ],
)
def test_normalize_plan(product, expected):
    assert normalize_plan(product) == expected


def test_apply_billing_event_activation_sets_plan_and_expiration():
    update = apply_billing_event("compra_aprovada", "Plano Anual", NOW)

    assert update.subscription_status == "ativo"
    assert update.plan == "anual"
    assert update.expiration_date == NOW + timedelta(days=365)


def test_apply_billing_event_cancellation_only_changes_status():
    update = apply_billing_event("assinatura_cancelada", "Plano Anual", NOW)

    assert update.subscription_status == "cancelado"
    assert update.plan is None
    assert update.expiration_date is None


def test_apply_billing_event_unknown_is_ignored():
    assert apply_billing_event("carrinho_abandonado", None, NOW) is None
