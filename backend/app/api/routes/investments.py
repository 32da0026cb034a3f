from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.finance.projection import SimulationConfig
from backend.app.models import User
from backend.app.services import investment_service

router = APIRouter(prefix="/api/investments", tags=["investments"])


class SimulationIn(BaseModel):
    months: int = Field(12, ge=1, le=360)
    monthly_rate: float = Field(1.0, ge=-2, le=2)
    inflation_rate: float = Field(0.5, ge=-2, le=2)
    monthly_contribution: float = Field(0.0, ge=0, le=20000)
    rate_std_dev: float = Field(0.0, ge=0, le=1)
    inflation_std_dev: float = Field(0.0, ge=0, le=1)
    seed: Optional[int] = None


@router.get("/projections")
def get_portfolio_projections(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return investment_service.get_portfolio_projections(db, user.id)


@router.get("/{investment_id}/current-value")
def get_current_value(
    investment_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return investment_service.get_current_value(db, investment_id, owner_id=user.id)


@router.get("/{investment_id}/projection")
def get_projection(
    investment_id: str,
    months: int = Query(12, ge=0, le=360),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return investment_service.get_projection(db, investment_id, months, owner_id=user.id)


@router.post("/{investment_id}/simulate")
def simulate(
    investment_id: str,
    req: SimulationIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    sim_config = SimulationConfig(
        months=req.months,
        monthly_rate=req.monthly_rate,
        inflation_rate=req.inflation_rate,
        monthly_contribution=req.monthly_contribution,
        rate_std_dev=req.rate_std_dev,
        inflation_std_dev=req.inflation_std_dev,
    )
    return investment_service.simulate_investment(
        db,
        investment_id,
        sim_config,
        owner_id=user.id,
        seed=req.seed,
    )
