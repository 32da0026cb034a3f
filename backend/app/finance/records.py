from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Tuple, TypeVar

from .errors import InputDataError

logger = logging.getLogger(__name__)

NotificationType = Literal["budget_alert", "goal", "invite", "system", "transaction"]
NOTIFICATION_TYPES = ("budget_alert", "goal", "invite", "system", "transaction")

T = TypeVar("T")


@dataclass(frozen=True)
class MonthlyReturn:
    investment_id: str
    month: date
    balance_after: float
    actual_return: float
    contribution: float = 0.0
    inflation_rate: float = 0.0  # percent


@dataclass(frozen=True)
class Investment:
    id: str
    name: str
    type: str
    balance: float
    owner_id: Optional[str] = None


@dataclass(frozen=True)
class Budget:
    account_id: str
    category_id: str
    period: str
    amount_planned: float
    category_name: Optional[str] = None


@dataclass(frozen=True)
class Transaction:
    account_id: str
    category_id: Optional[str]
    amount: float
    date: date
    category_type: Optional[str] = None

    @property
    def is_expense(self) -> bool:
        if self.category_type:
            return self.category_type == "expense"
        return self.amount < 0


@dataclass(frozen=True)
class Goal:
    id: str
    name: str
    target_amount: float
    current_amount: float
    deadline: Optional[date] = None
    owner_id: Optional[str] = None


@dataclass(frozen=True)
class RevenueSplitMember:
    account_id: str
    user_id: str
    weight: float
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class ForecastLine:
    account_id: str
    category_id: Optional[str]
    period: str
    forecasted_amount: float
    category_type: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    user_id: str
    type: str
    message: str
    metadata: Dict[str, Any]
    created_at: datetime
    read: bool = False
    id: Optional[str] = None


@dataclass(frozen=True)
class CandidateNotification:
    user_id: str
    type: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    rule_id: Optional[str] = None


# -------------------------
# Coercion
# -------------------------

def _field(row: Any, name: str) -> Any:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def _require(row: Any, kind: str, name: str) -> Any:
    value = _field(row, name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InputDataError(kind, name, value)
    return value


def to_money(value: Any, kind: str, name: str) -> float:
    if isinstance(value, bool) or value is None:
        raise InputDataError(kind, name, value)
    try:
        number = float(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        raise InputDataError(kind, name, value) from None
    if not math.isfinite(number):
        raise InputDataError(kind, name, value)
    return number


def to_date(value: Any, kind: str, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            raise InputDataError(kind, name, value) from None
    raise InputDataError(kind, name, value)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def monthly_return_from_row(row: Any) -> MonthlyReturn:
    kind = "monthly_return"
    return MonthlyReturn(
        investment_id=str(_require(row, kind, "investment_id")),
        month=to_date(_require(row, kind, "month"), kind, "month").replace(day=1),
        balance_after=to_money(_field(row, "balance_after"), kind, "balance_after"),
        actual_return=to_money(_field(row, "actual_return"), kind, "actual_return"),
        contribution=to_money(_field(row, "contribution") or 0, kind, "contribution"),
        inflation_rate=to_money(_field(row, "inflation_rate") or 0, kind, "inflation_rate"),
    )


def investment_from_row(row: Any) -> Investment:
    kind = "investment"
    return Investment(
        id=str(_require(row, kind, "id")),
        name=str(_field(row, "name") or ""),
        type=str(_field(row, "type") or ""),
        balance=to_money(_field(row, "balance"), kind, "balance"),
        owner_id=_field(row, "owner_id"),
    )


def budget_from_row(row: Any) -> Budget:
    kind = "budget"
    period = str(_require(row, kind, "period"))
    parse_period(period, kind=kind)
    category_name = _field(row, "category_name")
    if category_name is None:
        category = _field(row, "category")
        category_name = _field(category, "name") if category is not None else None
    return Budget(
        account_id=str(_require(row, kind, "account_id")),
        category_id=str(_require(row, kind, "category_id")),
        period=period,
        amount_planned=to_money(_field(row, "amount_planned"), kind, "amount_planned"),
        category_name=category_name,
    )


def transaction_from_row(row: Any) -> Transaction:
    kind = "transaction"
    category_type = _field(row, "category_type")
    if category_type is None:
        category = _field(row, "category")
        category_type = _field(category, "type") if category is not None else None
    category_id = _field(row, "category_id")
    return Transaction(
        account_id=str(_require(row, kind, "account_id")),
        category_id=str(category_id) if category_id is not None else None,
        amount=to_money(_field(row, "amount"), kind, "amount"),
        date=to_date(_require(row, kind, "date"), kind, "date"),
        category_type=category_type,
    )


def goal_from_row(row: Any) -> Goal:
    kind = "goal"
    deadline = _field(row, "deadline")
    return Goal(
        id=str(_require(row, kind, "id")),
        name=str(_field(row, "name") or ""),
        target_amount=to_money(_field(row, "target_amount"), kind, "target_amount"),
        current_amount=to_money(_field(row, "current_amount") or 0, kind, "current_amount"),
        deadline=to_date(deadline, kind, "deadline") if deadline is not None else None,
        owner_id=_field(row, "owner_id"),
    )


def forecast_from_row(row: Any) -> ForecastLine:
    kind = "forecast"
    category_type = _field(row, "category_type")
    if category_type is None:
        category = _field(row, "category")
        category_type = _field(category, "type") if category is not None else None
    category_id = _field(row, "category_id")
    return ForecastLine(
        account_id=str(_require(row, kind, "account_id")),
        category_id=str(category_id) if category_id is not None else None,
        period=str(_require(row, kind, "period")),
        forecasted_amount=to_money(_field(row, "forecasted_amount"), kind, "forecasted_amount"),
        category_type=category_type,
    )


def split_member_from_row(row: Any) -> RevenueSplitMember:
    kind = "revenue_split_member"
    weight = to_money(_field(row, "weight"), kind, "weight")
    if weight < 0:
        raise InputDataError(kind, "weight", weight)
    return RevenueSplitMember(
        account_id=str(_require(row, kind, "account_id")),
        user_id=str(_require(row, kind, "user_id")),
        weight=weight,
        name=str(_field(row, "name") or ""),
        email=str(_field(row, "email") or ""),
    )


def notification_from_row(row: Any) -> Notification:
    kind = "notification"
    metadata = _field(row, "metadata")
    if metadata is None or not isinstance(metadata, dict):
        metadata = _field(row, "metadata_json")
    created_at = _require(row, kind, "created_at")
    if not isinstance(created_at, datetime):
        raise InputDataError(kind, "created_at", created_at)
    return Notification(
        id=_field(row, "id"),
        user_id=str(_require(row, kind, "user_id")),
        type=str(_require(row, kind, "type")),
        message=str(_field(row, "message") or ""),
        metadata=dict(metadata or {}),
        created_at=to_utc(created_at),
        read=bool(_field(row, "read")),
    )


def coerce_records(rows: Iterable[Any], builder: Callable[[Any], T]) -> List[T]:
    """Build records from raw rows, skipping any row that fails validation."""
    records: List[T] = []
    for row in rows:
        try:
            records.append(builder(row))
        except InputDataError as exc:
            logger.warning("skipping malformed record: %s", exc)
    return records


# -------------------------
# Periods
# -------------------------

def parse_period(period: str, *, kind: str = "period") -> Tuple[int, int]:
    try:
        year_raw, month_raw = period.split("-")
        year, month = int(year_raw), int(month_raw)
    except (AttributeError, ValueError):
        raise InputDataError(kind, "period", period) from None
    if not 1 <= month <= 12 or len(year_raw) != 4:
        raise InputDataError(kind, "period", period)
    return year, month


def period_of(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def previous_period(period: str) -> str:
    year, month = parse_period(period)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def period_bounds(period: str) -> Tuple[date, date]:
    year, month = parse_period(period)
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)
    return start, end
