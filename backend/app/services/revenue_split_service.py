from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.finance.errors import InputDataError
from backend.app.finance.ports import FinanceDataSource
from backend.app.finance.records import parse_period
from backend.app.finance.revenue_split import calculate_split
from backend.app.services.finance_data_service import SqlFinanceDataSource

SHARED_ACCOUNT_TYPE = "casa"


def forecast_expense_total(source: FinanceDataSource, account_id: str, period: str) -> float:
    return sum(
        abs(f.forecasted_amount)
        for f in source.list_forecasts(account_id, period)
        if f.category_type == "expense"
    )


def split_for_account(
    source: FinanceDataSource,
    account_id: str,
    period: str,
    total_expense_target: Optional[float] = None,
) -> Dict[str, Any]:
    account_type = source.get_account_type(account_id)
    if account_type is None:
        raise HTTPException(status_code=404, detail="account not found")

    is_shared = account_type == SHARED_ACCOUNT_TYPE
    if total_expense_target is None:
        total_expense_target = forecast_expense_total(source, account_id, period) if is_shared else 0.0

    shares = calculate_split(source.list_split_members(account_id), total_expense_target) if is_shared else []
    return {
        "account_id": account_id,
        "period": period,
        "is_shared_account": is_shared,
        "total_expense_target": total_expense_target,
        "shares": [asdict(s) for s in shares],
    }


def get_revenue_split(
    db: Session,
    account_id: str,
    period: str,
    total_expense_target: Optional[float] = None,
) -> Dict[str, Any]:
    try:
        parse_period(period)
    except InputDataError as exc:
        raise HTTPException(status_code=422, detail="period must be YYYY-MM") from exc
    return split_for_account(SqlFinanceDataSource(db), account_id, period, total_expense_target)
