from __future__ import annotations

import logging
import random
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.finance.errors import StorageUnavailable
from backend.app.finance.ports import FinanceDataSource
from backend.app.finance.projection import (
    STANDARD_HORIZONS,
    SimulationConfig,
    add_months,
    comparison_rows,
    historical_real_values,
    project,
    project_portfolio,
    simulate,
)
from backend.app.finance.records import Investment, MonthlyReturn
from backend.app.finance.valuation import current_value, latest_return
from backend.app.services.finance_data_service import SqlFinanceDataSource

logger = logging.getLogger(__name__)


def require_investment(source: FinanceDataSource, investment_id: str, owner_id: Optional[str] = None) -> Investment:
    investment = source.get_investment(investment_id)
    if investment is None or (owner_id is not None and investment.owner_id != owner_id):
        raise HTTPException(status_code=404, detail="investment not found")
    return investment


def _load_series(source: FinanceDataSource, investment: Investment) -> Tuple[List[MonthlyReturn], bool]:
    """Return series plus a degraded flag; a failed read falls back to no history."""
    try:
        return source.list_monthly_returns(investment.id), False
    except StorageUnavailable as exc:
        logger.warning("return series unavailable for investment %s, using principal: %s", investment.id, exc)
        return [], True


def resolve_current_value(source: FinanceDataSource, investment_id: str) -> float:
    investment = require_investment(source, investment_id)
    series, _ = _load_series(source, investment)
    return current_value(investment, series)


def get_current_value(db: Session, investment_id: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
    source = SqlFinanceDataSource(db)
    investment = require_investment(source, investment_id, owner_id)
    series, degraded = _load_series(source, investment)
    latest = latest_return(series)
    return {
        "investment_id": investment.id,
        "name": investment.name,
        "principal": investment.balance,
        "current_value": current_value(investment, series),
        "valued_from": "monthly_return" if latest else "principal",
        "as_of_month": latest.month.isoformat() if latest else None,
        "degraded": degraded,
    }


def get_projection(
    db: Session,
    investment_id: str,
    months: int,
    owner_id: Optional[str] = None,
) -> Dict[str, Any]:
    source = SqlFinanceDataSource(db)
    investment = require_investment(source, investment_id, owner_id)
    series, degraded = _load_series(source, investment)
    points = project(investment, series, months)
    return {
        "investment_id": investment.id,
        "horizon_months": months,
        "historical_count": sum(1 for p in points if not p.is_projection),
        "points": [asdict(p) for p in points],
        "degraded": degraded,
    }


def get_portfolio_projections(
    db: Session,
    owner_id: str,
    horizons: Sequence[int] = STANDARD_HORIZONS,
) -> Dict[str, Any]:
    source = SqlFinanceDataSource(db)
    investments = source.list_investments(owner_id)

    returns_by_investment: Dict[str, List[MonthlyReturn]] = {}
    degraded: List[str] = []
    for inv in investments:
        series, failed = _load_series(source, inv)
        returns_by_investment[inv.id] = series
        if failed:
            degraded.append(inv.id)

    current_values = {inv.id: current_value(inv, returns_by_investment[inv.id]) for inv in investments}
    tables = project_portfolio(investments, returns_by_investment, horizons)
    return {
        "investments": [{"id": inv.id, "name": inv.name, "type": inv.type} for inv in investments],
        "horizons": {str(h): rows for h, rows in tables.items()},
        "comparison": comparison_rows(investments, returns_by_investment, current_values),
        "degraded": degraded,
    }


def simulate_investment(
    db: Session,
    investment_id: str,
    sim_config: SimulationConfig,
    *,
    owner_id: Optional[str] = None,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    source = SqlFinanceDataSource(db)
    investment = require_investment(source, investment_id, owner_id)
    series, degraded = _load_series(source, investment)
    latest = latest_return(series)
    # simulation starts the month after the last recorded return
    if latest is not None:
        start = add_months(latest.month, 1)
    else:
        today = date.today()
        start = date(today.year, today.month, 1)

    history = historical_real_values(series)
    reached = history[-1] if history else None
    rows = simulate(
        current_value(investment, series),
        start,
        sim_config,
        rng=random.Random(seed),
        cumulative_inflation=reached.cumulative_inflation if reached else 0.0,
        cumulative_contribution=reached.cumulative_contribution if reached else 0.0,
        cumulative_contribution_pv=reached.cumulative_contribution_pv if reached else 0.0,
    )
    final = rows[-1] if rows else None
    return {
        "investment_id": investment.id,
        "initial_balance": current_value(investment, series),
        "initial_month": start.isoformat(),
        "history": [{**asdict(p), "month": p.month.isoformat()} for p in history],
        "rows": [{**asdict(r), "month": r.month.isoformat()} for r in rows],
        "final_balance": final.balance if final else None,
        "final_present_value": final.present_value if final else None,
        "degraded": degraded,
    }
