from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.finance.budget_variance import analyze
from backend.app.finance.errors import InputDataError
from backend.app.finance.records import period_bounds
from backend.app.services.finance_data_service import SqlFinanceDataSource


def get_budget_variance(db: Session, account_id: str, period: str) -> Dict[str, Any]:
    try:
        start, end = period_bounds(period)
    except InputDataError as exc:
        raise HTTPException(status_code=422, detail="period must be YYYY-MM") from exc

    source = SqlFinanceDataSource(db)
    budgets = source.list_account_budgets(account_id, period)
    transactions = source.list_transactions(account_id, start, end)

    report = analyze(transactions, budgets, period)
    names = source.list_category_names(
        [c.category_id for c in report.categories if c.category_name is None]
    )
    categories = []
    for row in report.categories:
        payload = asdict(row)
        payload["category_name"] = row.category_name or names.get(row.category_id)
        categories.append(payload)

    return {
        "account_id": account_id,
        "period": report.period,
        "categories": categories,
        "total_planned": report.total_planned,
        "total_actual": report.total_actual,
        "total_percentage": report.total_percentage,
    }
