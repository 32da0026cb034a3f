from __future__ import annotations

from typing import Iterable, List, Optional

from .records import Investment, MonthlyReturn


def sort_ascending(returns: Iterable[MonthlyReturn]) -> List[MonthlyReturn]:
    return sorted(returns, key=lambda r: r.month)


def latest_return(returns: Iterable[MonthlyReturn]) -> Optional[MonthlyReturn]:
    latest: Optional[MonthlyReturn] = None
    for row in returns:
        if latest is None or row.month > latest.month:
            latest = row
    return latest


def current_value(investment: Investment, returns: Iterable[MonthlyReturn]) -> float:
    """
    Value of the investment today.

    The most recent monthly return's balance wins; with no returns yet the
    principal is the value (that is the normal initial state).
    """
    latest = latest_return(r for r in returns if r.investment_id == investment.id)
    if latest is not None:
        return latest.balance_after
    return investment.balance
