from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence

from backend.app import config

from .errors import StorageUnavailable
from .ports import FinanceDataSource
from .records import (
    Budget,
    CandidateNotification,
    Goal,
    Transaction,
    period_bounds,
    period_of,
    previous_period,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationContext:
    user_id: str
    account_id: Optional[str] = None


@dataclass(frozen=True)
class AlertPreferences:
    budget_alerts: bool = True
    goal_alerts: bool = True
    variance_alerts: bool = True

    def enabled(self, flag: str) -> bool:
        return bool(getattr(self, flag, True))


@dataclass(frozen=True)
class RuleRunResult:
    rule_id: str
    ran: bool
    skipped_reason: Optional[str]
    fired: bool
    candidate_count: int
    error: Optional[str] = None


@dataclass(frozen=True)
class EvaluationSummary:
    candidates: List[CandidateNotification]
    rules: List[RuleRunResult]

    @property
    def failed_rules(self) -> List[str]:
        return [r.rule_id for r in self.rules if r.skipped_reason == "storage_unavailable"]


@dataclass(frozen=True)
class RuleSettings:
    now: datetime
    variance_threshold: float
    currency_symbol: str


@dataclass(frozen=True)
class AlertRuleDefinition:
    rule_id: str
    preference: str
    runner: Callable[[FinanceDataSource, EvaluationContext, RuleSettings], List[CandidateNotification]]
    needs_account: bool = False


def format_currency(value: float, symbol: str = "R$") -> str:
    formatted = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol} {formatted}"


def _expense_total(txns: Sequence[Transaction]) -> float:
    return sum(abs(t.amount) for t in txns if t.is_expense)


# -------------------------
# Checks over fetched data
# -------------------------

def check_budget_overrun(
    user_id: str,
    budget: Budget,
    transactions: Sequence[Transaction],
    *,
    currency_symbol: str = "R$",
) -> Optional[CandidateNotification]:
    matching = [
        t
        for t in transactions
        if t.account_id == budget.account_id
        and t.category_id == budget.category_id
        and period_of(t.date) == budget.period
    ]
    spent = _expense_total(matching)
    planned = budget.amount_planned
    if spent <= planned:
        return None
    excess = spent - planned
    name = budget.category_name or "Uncategorized"
    return CandidateNotification(
        user_id=user_id,
        type="budget_alert",
        rule_id="budget_overrun",
        message=f"Budget for {name} exceeded by {format_currency(excess, currency_symbol)}",
        metadata={
            "category_id": budget.category_id,
            "planned": round(planned, 2),
            "spent": round(spent, 2),
            "excess": round(excess, 2),
        },
    )


def check_overdue_goals(
    user_id: str,
    goals: Sequence[Goal],
    today: date,
    *,
    currency_symbol: str = "R$",
) -> List[CandidateNotification]:
    out: List[CandidateNotification] = []
    for goal in goals:
        if goal.deadline is None or goal.deadline >= today:
            continue
        if goal.target_amount <= 0:
            continue
        percentage = (goal.current_amount / goal.target_amount) * 100
        if percentage >= 100:
            continue
        missing = goal.target_amount - goal.current_amount
        out.append(
            CandidateNotification(
                user_id=user_id,
                type="goal",
                rule_id="goal_overdue",
                message=f'Goal "{goal.name}" is overdue. {format_currency(missing, currency_symbol)} still to go',
                metadata={
                    "goal_id": goal.id,
                    "goal_name": goal.name,
                    "percentage": round(percentage, 2),
                },
            )
        )
    return out


def check_expense_variance(
    user_id: str,
    current_txns: Sequence[Transaction],
    previous_txns: Sequence[Transaction],
    *,
    threshold: float = config.DEFAULT_VARIANCE_THRESHOLD_PCT,
) -> Optional[CandidateNotification]:
    current = _expense_total(current_txns)
    previous = _expense_total(previous_txns)
    if previous == 0:
        return None
    variance = ((current - previous) / previous) * 100
    if abs(variance) <= threshold:
        return None
    direction = "increased" if variance > 0 else "decreased"
    return CandidateNotification(
        user_id=user_id,
        type="budget_alert",
        rule_id="expense_variance",
        message=f"Your expenses {direction} {abs(variance):.1f}% compared to last month",
        metadata={
            "current": round(current, 2),
            "previous": round(previous, 2),
            "variance": round(variance, 2),
        },
    )


# -------------------------
# Rule runners (fetch + check)
# -------------------------

def _run_budget_overrun(
    source: FinanceDataSource,
    ctx: EvaluationContext,
    settings: RuleSettings,
) -> List[CandidateNotification]:
    period = period_of(settings.now.date())
    start, end = period_bounds(period)
    out: List[CandidateNotification] = []
    for budget in source.list_budgets(ctx.user_id, period, account_id=ctx.account_id):
        txns = source.list_transactions(budget.account_id, start, end, category_id=budget.category_id)
        candidate = check_budget_overrun(
            ctx.user_id,
            budget,
            txns,
            currency_symbol=settings.currency_symbol,
        )
        if candidate:
            out.append(candidate)
    return out


def _run_goal_overdue(
    source: FinanceDataSource,
    ctx: EvaluationContext,
    settings: RuleSettings,
) -> List[CandidateNotification]:
    goals = source.list_goals(ctx.user_id)
    return check_overdue_goals(
        ctx.user_id,
        goals,
        settings.now.date(),
        currency_symbol=settings.currency_symbol,
    )


def _run_expense_variance(
    source: FinanceDataSource,
    ctx: EvaluationContext,
    settings: RuleSettings,
) -> List[CandidateNotification]:
    if not ctx.account_id:
        return []
    current_period = period_of(settings.now.date())
    current_start, current_end = period_bounds(current_period)
    previous_start, previous_end = period_bounds(previous_period(current_period))
    current_txns = source.list_transactions(ctx.account_id, current_start, current_end)
    previous_txns = source.list_transactions(ctx.account_id, previous_start, previous_end)
    candidate = check_expense_variance(
        ctx.user_id,
        current_txns,
        previous_txns,
        threshold=settings.variance_threshold,
    )
    return [candidate] if candidate else []


RULE_DEFINITIONS: List[AlertRuleDefinition] = [
    AlertRuleDefinition("budget_overrun", "budget_alerts", _run_budget_overrun),
    AlertRuleDefinition("goal_overdue", "goal_alerts", _run_goal_overdue),
    AlertRuleDefinition("expense_variance", "variance_alerts", _run_expense_variance, needs_account=True),
]


def evaluate_alerts(
    source: FinanceDataSource,
    ctx: EvaluationContext,
    now: datetime,
    *,
    preferences: Optional[AlertPreferences] = None,
    variance_threshold: Optional[float] = None,
    currency_symbol: Optional[str] = None,
) -> EvaluationSummary:
    """
    Run every alert rule once for the context and collect candidate notifications.

    Nothing is persisted here. A rule whose reads fail contributes no
    candidates and is reported with skipped_reason="storage_unavailable";
    the remaining rules still run.
    """
    preferences = preferences or AlertPreferences()
    settings = RuleSettings(
        now=now,
        variance_threshold=config.variance_threshold_pct() if variance_threshold is None else variance_threshold,
        currency_symbol=currency_symbol or config.currency_symbol(),
    )

    candidates: List[CandidateNotification] = []
    results: List[RuleRunResult] = []
    for rule in RULE_DEFINITIONS:
        if not preferences.enabled(rule.preference):
            results.append(RuleRunResult(rule.rule_id, False, "disabled_by_preference", False, 0))
            continue
        if rule.needs_account and not ctx.account_id:
            results.append(RuleRunResult(rule.rule_id, False, "missing_account_scope", False, 0))
            continue
        try:
            fired = rule.runner(source, ctx, settings)
        except StorageUnavailable as exc:
            logger.warning("alert rule %s aborted for user %s: %s", rule.rule_id, ctx.user_id, exc)
            results.append(RuleRunResult(rule.rule_id, False, "storage_unavailable", False, 0, error=str(exc)))
            continue
        results.append(RuleRunResult(rule.rule_id, True, None, bool(fired), len(fired)))
        candidates.extend(fired)

    return EvaluationSummary(candidates=candidates, rules=results)
