from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.app.api.deps import require_account_access_dep
from backend.app.db import get_db
from backend.app.services import budget_service, revenue_split_service

router = APIRouter(prefix="/api/accounts", tags=["accounts"])

PERIOD_PATTERN = r"^\d{4}-\d{2}$"


@router.get("/{account_id}/budget-variance", dependencies=[Depends(require_account_access_dep())])
def get_budget_variance(
    account_id: str,
    period: str = Query(..., pattern=PERIOD_PATTERN),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return budget_service.get_budget_variance(db, account_id, period)


@router.get("/{account_id}/revenue-split", dependencies=[Depends(require_account_access_dep())])
def get_revenue_split(
    account_id: str,
    period: str = Query(..., pattern=PERIOD_PATTERN),
    total: Optional[float] = Query(None, ge=0),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return revenue_split_service.get_revenue_split(db, account_id, period, total)
