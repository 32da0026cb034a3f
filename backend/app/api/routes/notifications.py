from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user, require_account_access
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class PreferencesIn(BaseModel):
    budget_alerts: Optional[bool] = None
    goal_alerts: Optional[bool] = None
    variance_alerts: Optional[bool] = None


class PreferencesOut(BaseModel):
    budget_alerts: bool
    goal_alerts: bool
    variance_alerts: bool


@router.get("")
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    return notification_service.list_notifications(db, user.id, limit=limit, unread_only=unread_only)


@router.post("/evaluate")
def evaluate(
    account_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    if account_id:
        require_account_access(db, account_id, user)
    return notification_service.run_evaluation_pass(db, user.id, account_id)


@router.get("/preferences", response_model=PreferencesOut)
def get_preferences(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return asdict(notification_service.load_preferences(db, user.id))


@router.put("/preferences", response_model=PreferencesOut)
def put_preferences(
    req: PreferencesIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    prefs = notification_service.save_preferences(
        db,
        user.id,
        budget_alerts=req.budget_alerts,
        goal_alerts=req.goal_alerts,
        variance_alerts=req.variance_alerts,
    )
    return asdict(prefs)
