"""Cash intelligence engine - learning phase, health score and the daily message"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set

from caixa_gateway.domain.aggregation import governed_entry_ids
from caixa_gateway.domain.models import (
    ActiveMessage,
    ActivityStats,
    CashAlert,
    CashInsight,
    CashIntelligence,
    EntryStatus,
    Expense,
    HealthScore,
    LedgerEntry,
    PaymentSchedule,
)
from caixa_gateway.domain.rules import Rule, first_match
from caixa_gateway.utils.date_utils import add_days, last_n_days
from caixa_gateway.utils.money import ZERO, money_sum

logger = logging.getLogger(__name__)

WEEK_WINDOW_DAYS = 7
SHORT_WINDOW_DAYS = 5
CONCENTRATION_SHARE = Decimal("0.6")
SCORE_SPIKE_FACTOR = Decimal("1.3")
INSIGHT_SPIKE_FACTOR = Decimal("1.25")
STABILITY_TOLERANCE = Decimal("0.1")
EDUCATIONAL_DAYS = 3

PHASE_SPENDING_MESSAGES = {
    1: "Hoje seus gastos ficaram acima do padrão inicial.",
    2: "Hoje seus gastos ficaram acima do que tem sido comum.",
    3: "Hoje seus gastos ficaram acima do seu padrão habitual.",
}

EDUCATIONAL_TITLE = "Dica para começar"
EDUCATIONAL_MESSAGE = (
    "Registre suas despesas e receitas regularmente. "
    "Quanto mais dados, mais precisos serão os insights sobre seu caixa."
)


@dataclass
class IntelligenceInputs:
    """Everything one evaluation reads; nothing is taken from ambient state"""

    today: date
    entries: Sequence[LedgerEntry]
    schedules: Sequence[PaymentSchedule]
    expenses: Sequence[Expense]


@dataclass
class CashSignals:
    """Behavioral signals derived once from the inputs, shared by score and rules"""

    today: date
    activity: ActivityStats
    activity_dates: Set[date]
    current_balance: Decimal
    days_since_last_activity: Optional[int]
    today_expense: Decimal
    avg_daily_expense: Decimal
    has_concentration: bool
    last_three_days: List[Decimal]
    recent_daily_totals: List[Decimal] = field(default_factory=list)
    short_window_category_counts: Dict[str, int] = field(default_factory=dict)


def learning_phase(total_days_active: int) -> int:
    """Activity-maturity bucket: 1 up to 7 active days, 2 up to 21, then 3"""
    if total_days_active <= 7:
        return 1
    if total_days_active <= 21:
        return 2
    return 3


def activity_stats(entries: Sequence[LedgerEntry], expenses: Sequence[Expense]) -> ActivityStats:
    dates = activity_dates(entries, expenses)
    ordered = sorted(dates)
    return ActivityStats(
        first_activity_date=ordered[0] if ordered else None,
        last_activity_date=ordered[-1] if ordered else None,
        total_days_active=len(ordered),
        learning_phase=learning_phase(len(ordered)),
    )


def activity_dates(entries: Sequence[LedgerEntry], expenses: Sequence[Expense]) -> Set[date]:
    return {e.date for e in entries} | {x.date for x in expenses}


def current_balance(
    entries: Sequence[LedgerEntry],
    schedules: Sequence[PaymentSchedule],
    expenses: Sequence[Expense],
) -> Decimal:
    """All-time received (bare entries plus schedules) minus every expense"""
    governed_ids = governed_entry_ids(schedules)
    received = money_sum(
        e.value for e in entries if e.id not in governed_ids and e.status == EntryStatus.PAID
    ) + money_sum(s.amount for s in schedules if s.status == EntryStatus.PAID)
    return received - money_sum(x.value for x in expenses)


def _within_variation(values: Sequence[Decimal]) -> bool:
    """True when every value stays within the tolerance of their positive average"""
    if not values:
        return False
    avg = money_sum(values) / len(values)
    if avg <= 0:
        return False
    return max(abs(v - avg) / avg for v in values) < STABILITY_TOLERANCE


def collect_signals(inputs: IntelligenceInputs) -> CashSignals:
    today = inputs.today
    stats = activity_stats(inputs.entries, inputs.expenses)
    dates = activity_dates(inputs.entries, inputs.expenses)

    week_start = add_days(today, -WEEK_WINDOW_DAYS)
    short_start = add_days(today, -SHORT_WINDOW_DAYS)
    recent = [x for x in inputs.expenses if week_start <= x.date <= today]

    daily: Dict[date, Decimal] = {}
    categories: Dict[str, Decimal] = {}
    for expense in recent:
        daily[expense.date] = daily.get(expense.date, ZERO) + expense.value
        categories[expense.category] = categories.get(expense.category, ZERO) + expense.value

    # Only days that had spending, most recent first
    recent_daily_totals = [daily[d] for d in sorted(daily, reverse=True)]
    avg_daily = money_sum(recent_daily_totals) / len(recent_daily_totals) if recent_daily_totals else ZERO

    week_total = money_sum(categories.values())
    has_concentration = week_total > 0 and max(categories.values()) / week_total > CONCENTRATION_SHARE

    counts: Dict[str, int] = {}
    for expense in recent:
        if expense.date >= short_start:
            counts[expense.category] = counts.get(expense.category, 0) + 1

    days_since = (today - stats.last_activity_date).days if stats.last_activity_date else None

    return CashSignals(
        today=today,
        activity=stats,
        activity_dates=dates,
        current_balance=current_balance(inputs.entries, inputs.schedules, inputs.expenses),
        days_since_last_activity=days_since,
        today_expense=daily.get(today, ZERO),
        avg_daily_expense=avg_daily,
        has_concentration=has_concentration,
        last_three_days=[daily.get(d, ZERO) for d in last_n_days(today, 3)],
        recent_daily_totals=recent_daily_totals,
        short_window_category_counts=counts,
    )


def _spending_spike(signals: CashSignals, factor: Decimal) -> bool:
    return signals.avg_daily_expense > 0 and signals.today_expense > signals.avg_daily_expense * factor


def _consecutive_activity(signals: CashSignals, days: int) -> bool:
    return all(d in signals.activity_dates for d in last_n_days(signals.today, days))


def _week_stable(signals: CashSignals) -> bool:
    totals = signals.recent_daily_totals
    return len(totals) >= WEEK_WINDOW_DAYS and _within_variation(totals[:WEEK_WINDOW_DAYS])


def _short_window_stable(signals: CashSignals) -> bool:
    totals = signals.recent_daily_totals
    return len(totals) >= SHORT_WINDOW_DAYS and _within_variation(totals[:SHORT_WINDOW_DAYS])


def _progressive_decline(signals: CashSignals) -> bool:
    today, yesterday, before = signals.last_three_days
    return today > 0 and yesterday > 0 and before > 0 and today <= yesterday <= before


# Health score adjustments, applied in order
SCORE_ADJUSTMENTS = (
    (lambda s: s.current_balance < 0, -20),
    (lambda s: s.days_since_last_activity is not None and s.days_since_last_activity > 2, -10),
    (lambda s: _spending_spike(s, SCORE_SPIKE_FACTOR), -10),
    (lambda s: s.has_concentration, -10),
    (lambda s: _consecutive_activity(s, 5), 10),
    (_week_stable, 10),
)


def health_score(signals: CashSignals) -> HealthScore:
    """Composite 0-100 score of short-term cash behavior"""
    score = 100
    for applies, adjustment in SCORE_ADJUSTMENTS:
        if applies(signals):
            score += adjustment

    score = max(0, min(100, score))

    if score >= 80:
        return HealthScore(score=score, status="stable", status_label="Saúde estável")
    elif score >= 50:
        return HealthScore(score=score, status="observation", status_label="Em observação")
    else:
        return HealthScore(score=score, status="attention", status_label="Exige atenção")


ALERT_RULES = [
    Rule(
        name="negative_balance",
        predicate=lambda s: s.current_balance < 0,
        build=lambda s: CashAlert(
            type="negative_balance",
            message="O saldo ficou negativo hoje. Acompanhar isso de perto pode evitar surpresas.",
            priority=1,
        ),
    ),
    Rule(
        name="progressive_decline",
        predicate=_progressive_decline,
        build=lambda s: CashAlert(
            type="progressive_decline",
            message="O saldo vem caindo nos últimos dias. Vale acompanhar com mais atenção.",
            priority=2,
        ),
    ),
    Rule(
        name="spending_concentration",
        predicate=lambda s: s.has_concentration,
        build=lambda s: CashAlert(
            type="spending_concentration",
            message="Uma única categoria concentra boa parte dos seus gastos recentes.",
            priority=3,
        ),
    ),
]

INSIGHT_RULES = [
    Rule(
        name="excessive_spending",
        predicate=lambda s: _spending_spike(s, INSIGHT_SPIKE_FACTOR),
        build=lambda s: CashInsight(
            type="excessive_spending",
            message=PHASE_SPENDING_MESSAGES[s.activity.learning_phase],
            priority=1,
        ),
    ),
    Rule(
        name="inactivity",
        predicate=lambda s: s.days_since_last_activity is not None and 1 <= s.days_since_last_activity <= 2,
        build=lambda s: CashInsight(
            type="inactivity",
            message="Hoje não houve movimentações registradas. Se isso for intencional, está tudo certo.",
            priority=2,
        ),
    ),
    Rule(
        name="category_repetition",
        predicate=lambda s: any(count >= 3 for count in s.short_window_category_counts.values()),
        build=lambda s: CashInsight(
            type="category_repetition",
            message="Esse tipo de despesa tem aparecido com frequência no seu histórico.",
            priority=3,
        ),
    ),
    Rule(
        name="stability",
        predicate=_short_window_stable,
        build=lambda s: CashInsight(
            type="stability",
            message="Seu caixa está mais estável nos últimos dias.",
            priority=4,
        ),
    ),
]


def select_message(signals: CashSignals):
    """
    Pick at most one alert, or failing that one insight.

    Returns: (alert, insight, active_message)
    """
    alert = first_match(ALERT_RULES, signals)
    insight = None if alert else first_match(INSIGHT_RULES, signals)

    if alert:
        active = ActiveMessage(type="alert", message=alert.message)
    elif insight:
        active = ActiveMessage(type="insight", message=insight.message)
    elif signals.activity.total_days_active < EDUCATIONAL_DAYS:
        active = ActiveMessage(type="educational", message=EDUCATIONAL_MESSAGE, title=EDUCATIONAL_TITLE)
    else:
        # Silence
        active = None

    return alert, insight, active


def evaluate(inputs: IntelligenceInputs) -> CashIntelligence:
    """Main entry point: evaluate the day's cash intelligence from a read snapshot"""
    signals = collect_signals(inputs)
    score = health_score(signals)
    alert, insight, active = select_message(signals)

    logger.debug(
        "Cash intelligence evaluated",
        extra={
            "score": score.score,
            "alert": alert.type if alert else None,
            "insight": insight.type if insight else None,
            "learning_phase": signals.activity.learning_phase,
        },
    )

    return CashIntelligence(
        activity=signals.activity,
        health_score=score,
        alert=alert,
        insight=insight,
        active_message=active,
    )
