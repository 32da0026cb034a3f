from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

from .records import Budget, Transaction, parse_period, period_of

# Suggestion divisor: all expense history of the category over three periods,
# whatever span the input actually covers.
MOVING_AVERAGE_PERIODS = 3


@dataclass(frozen=True)
class CategoryVariance:
    category_id: str
    planned: float
    actual: float
    percentage: float
    remaining: float
    moving_average_suggestion: float
    category_name: str | None = None


@dataclass(frozen=True)
class BudgetVarianceReport:
    period: str
    categories: List[CategoryVariance]
    total_planned: float
    total_actual: float
    total_percentage: float


def _percentage(actual: float, planned: float) -> float:
    return (actual / planned) * 100 if planned > 0 else 0.0


def analyze(
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget],
    period: str,
) -> BudgetVarianceReport:
    parse_period(period)

    actual_by_category: Dict[str, float] = {}
    history_by_category: Dict[str, float] = {}
    for txn in transactions:
        if not txn.is_expense or txn.category_id is None:
            continue
        spend = abs(txn.amount)
        history_by_category[txn.category_id] = history_by_category.get(txn.category_id, 0.0) + spend
        if period_of(txn.date) == period:
            actual_by_category[txn.category_id] = actual_by_category.get(txn.category_id, 0.0) + spend

    rows: List[CategoryVariance] = []
    seen: set[str] = set()
    for budget in budgets:
        if budget.period != period or budget.category_id in seen:
            continue
        seen.add(budget.category_id)
        planned = budget.amount_planned
        actual = actual_by_category.get(budget.category_id, 0.0)
        rows.append(
            CategoryVariance(
                category_id=budget.category_id,
                category_name=budget.category_name,
                planned=planned,
                actual=actual,
                percentage=_percentage(actual, planned),
                remaining=planned - actual,
                moving_average_suggestion=history_by_category.get(budget.category_id, 0.0) / MOVING_AVERAGE_PERIODS,
            )
        )

    for category_id in sorted(set(actual_by_category) - seen):
        actual = actual_by_category[category_id]
        rows.append(
            CategoryVariance(
                category_id=category_id,
                planned=0.0,
                actual=actual,
                percentage=0.0,
                remaining=-actual,
                moving_average_suggestion=history_by_category.get(category_id, 0.0) / MOVING_AVERAGE_PERIODS,
            )
        )

    total_planned = sum(r.planned for r in rows)
    total_actual = sum(r.actual for r in rows)
    return BudgetVarianceReport(
        period=period,
        categories=rows,
        total_planned=total_planned,
        total_actual=total_actual,
        total_percentage=_percentage(total_actual, total_planned),
    )
