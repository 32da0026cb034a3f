from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .records import Investment, MonthlyReturn
from .valuation import sort_ascending

STANDARD_HORIZONS = (3, 6, 12)


@dataclass(frozen=True)
class ProjectionPoint:
    month_index: int
    value: float
    is_projection: bool


def average_monthly_rate(returns: Iterable[MonthlyReturn]) -> float:
    """Mean of actual_return / balance_after; zero balances are left out of the mean."""
    rates = [r.actual_return / r.balance_after for r in returns if r.balance_after != 0]
    if not rates:
        return 0.0
    return sum(rates) / len(rates)


def project(
    investment: Investment,
    return_series: Sequence[MonthlyReturn],
    horizon_months: int,
) -> List[ProjectionPoint]:
    """
    Values for month indices 0..horizon_months.

    Indices covered by history carry the recorded balance (the window is the
    most recent horizon_months + 1 entries, oldest first). Later indices
    compound the last known balance at the average historical rate.
    """
    if horizon_months < 0:
        raise ValueError("horizon_months must be >= 0")

    ascending = sort_ascending(return_series)
    if not ascending:
        return [
            ProjectionPoint(month_index=i, value=investment.balance, is_projection=True)
            for i in range(horizon_months + 1)
        ]

    window = ascending[-(horizon_months + 1):]
    historical_count = len(window)
    last_known = ascending[-1].balance_after
    avg_rate = average_monthly_rate(ascending)

    points: List[ProjectionPoint] = []
    for i in range(horizon_months + 1):
        if i < historical_count:
            points.append(ProjectionPoint(month_index=i, value=window[i].balance_after, is_projection=False))
            continue
        months_beyond = i - historical_count + 1
        value = last_known * (1 + avg_rate) ** months_beyond
        points.append(ProjectionPoint(month_index=i, value=value, is_projection=True))
    return points


def project_portfolio(
    investments: Sequence[Investment],
    returns_by_investment: Mapping[str, Sequence[MonthlyReturn]],
    horizons: Iterable[int] = STANDARD_HORIZONS,
) -> Dict[int, List[Dict[str, float]]]:
    """
    One table per horizon: a row per month index with a column per investment id.
    """
    tables: Dict[int, List[Dict[str, float]]] = {}
    for horizon in horizons:
        rows: List[Dict[str, float]] = [{"month": i} for i in range(horizon + 1)]
        for inv in investments:
            series = returns_by_investment.get(inv.id, [])
            for point in project(inv, series, horizon):
                rows[point.month_index][inv.id] = point.value
        tables[horizon] = rows
    return tables


def comparison_rows(
    investments: Sequence[Investment],
    returns_by_investment: Mapping[str, Sequence[MonthlyReturn]],
    current_values: Mapping[str, float],
) -> List[Dict[str, Any]]:
    """Current value next to the final point of each standard horizon's projection."""
    rows: List[Dict[str, Any]] = []
    for inv in investments:
        series = returns_by_investment.get(inv.id, [])
        row: Dict[str, Any] = {
            "investment_id": inv.id,
            "name": inv.name,
            "current": current_values.get(inv.id, inv.balance),
        }
        for horizon in STANDARD_HORIZONS:
            row[f"projected_{horizon}m"] = project(inv, series, horizon)[horizon].value
        rows.append(row)
    return rows


# -------------------------
# Contribution / inflation simulator
# -------------------------

@dataclass(frozen=True)
class SimulationConfig:
    months: int = 12
    monthly_rate: float = 1.0  # percent
    inflation_rate: float = 0.5  # percent
    monthly_contribution: float = 0.0
    rate_std_dev: float = 0.0
    inflation_std_dev: float = 0.0


@dataclass(frozen=True)
class SimulationRow:
    month_index: int
    month: date
    contribution: float
    returns: float
    balance: float
    present_value: float
    cumulative_contribution: float
    cumulative_contribution_pv: float


@dataclass(frozen=True)
class HistoricalPoint:
    month: date
    balance: float
    present_value: float
    cumulative_inflation: float
    cumulative_contribution: float
    cumulative_contribution_pv: float


def historical_real_values(returns: Iterable[MonthlyReturn]) -> List[HistoricalPoint]:
    """
    Recorded balances deflated by the inflation accumulated since the first
    recorded month. Past contributions count at face value in both the nominal
    and the present-value totals.
    """
    inflation_factor = 1.0
    cumulative_contribution = 0.0
    points: List[HistoricalPoint] = []
    for r in sort_ascending(returns):
        inflation_factor *= 1 + r.inflation_rate / 100
        cumulative_contribution += r.contribution
        points.append(
            HistoricalPoint(
                month=r.month,
                balance=r.balance_after,
                present_value=r.balance_after / inflation_factor if inflation_factor != 0 else 0.0,
                cumulative_inflation=inflation_factor - 1,
                cumulative_contribution=cumulative_contribution,
                cumulative_contribution_pv=cumulative_contribution,
            )
        )
    return points


def add_months(start: date, months: int) -> date:
    total = start.month - 1 + months
    return date(start.year + total // 12, total % 12 + 1, 1)


def _draw(rng: random.Random, mean: float, std_dev: float) -> float:
    if std_dev == 0:
        return mean
    return rng.gauss(mean, std_dev)


def simulate(
    current_balance: float,
    initial_month: date,
    config: SimulationConfig,
    rng: Optional[random.Random] = None,
    *,
    cumulative_inflation: float = 0.0,
    cumulative_contribution: float = 0.0,
    cumulative_contribution_pv: float = 0.0,
) -> List[SimulationRow]:
    """
    Month-by-month forward simulation from current_balance.

    The cumulative_* arguments carry the totals reached by the recorded
    history so projected present values keep deflating from there.
    """
    rng = rng or random.Random()
    balance = current_balance
    rows: List[SimulationRow] = []

    for i in range(config.months):
        contribution = config.monthly_contribution
        rate = _draw(rng, config.monthly_rate, config.rate_std_dev)
        inflation = _draw(rng, config.inflation_rate, config.inflation_std_dev)

        returns = (balance + contribution) * (rate / 100)
        balance = balance + contribution + returns

        cumulative_inflation = (1 + cumulative_inflation) * (1 + inflation / 100) - 1
        present_value = balance / (1 + cumulative_inflation) if cumulative_inflation != -1 else 0.0

        cumulative_contribution += contribution
        cumulative_contribution_pv += contribution * (1 + inflation / 100) ** -(i + 1)

        rows.append(
            SimulationRow(
                month_index=i,
                month=add_months(initial_month, i),
                contribution=contribution,
                returns=returns,
                balance=balance,
                present_value=present_value,
                cumulative_contribution=cumulative_contribution,
                cumulative_contribution_pv=cumulative_contribution_pv,
            )
        )
    return rows
