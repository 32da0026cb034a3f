from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Dict, Iterator, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.finance.errors import StorageUnavailable
from backend.app.finance.records import (
    Budget,
    ForecastLine,
    Goal,
    Investment,
    MonthlyReturn,
    Notification,
    RevenueSplitMember,
    Transaction,
    budget_from_row,
    coerce_records,
    forecast_from_row,
    goal_from_row,
    investment_from_row,
    monthly_return_from_row,
    notification_from_row,
    split_member_from_row,
    transaction_from_row,
)
from backend.app.models import (
    Account,
    AccountMember,
    Budget as BudgetRow,
    Category,
    Forecast,
    Goal as GoalRow,
    InvestmentAsset,
    InvestmentMonthlyReturn,
    Notification as NotificationRow,
    Transaction as TransactionRow,
    User,
)

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def accessible_account_ids(db: Session, user_id: str) -> List[str]:
    owned = select(Account.id).where(Account.owner_id == user_id)
    shared = select(AccountMember.account_id).where(
        AccountMember.user_id == user_id,
        AccountMember.status == "accepted",
    )
    ids = set(db.execute(owned).scalars().all()) | set(db.execute(shared).scalars().all())
    return sorted(ids)


class SqlFinanceDataSource:
    """FinanceDataSource over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _reading(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning("store read failed: %s (%s)", operation, exc.__class__.__name__)
            raise StorageUnavailable(operation, exc) from exc

    def get_investment(self, investment_id: str) -> Optional[Investment]:
        with self._reading("get_investment"):
            row = self.db.get(InvestmentAsset, investment_id)
        if row is None:
            return None
        records = coerce_records([row], investment_from_row)
        return records[0] if records else None

    def list_investments(self, owner_id: str) -> List[Investment]:
        with self._reading("list_investments"):
            rows = (
                self.db.execute(
                    select(InvestmentAsset)
                    .where(InvestmentAsset.owner_id == owner_id)
                    .order_by(InvestmentAsset.created_at.asc(), InvestmentAsset.id.asc())
                )
                .scalars()
                .all()
            )
        return coerce_records(rows, investment_from_row)

    def list_monthly_returns(self, investment_id: str) -> List[MonthlyReturn]:
        with self._reading("list_monthly_returns"):
            rows = (
                self.db.execute(
                    select(InvestmentMonthlyReturn)
                    .where(InvestmentMonthlyReturn.investment_id == investment_id)
                    .order_by(InvestmentMonthlyReturn.month.asc())
                )
                .scalars()
                .all()
            )
        return coerce_records(rows, monthly_return_from_row)

    def list_budgets(self, user_id: str, period: str, *, account_id: Optional[str] = None) -> List[Budget]:
        with self._reading("list_budgets"):
            account_ids = accessible_account_ids(self.db, user_id)
            if account_id is not None:
                account_ids = [a for a in account_ids if a == account_id]
            if not account_ids:
                return []
            rows = (
                self.db.execute(
                    select(BudgetRow)
                    .where(BudgetRow.account_id.in_(account_ids), BudgetRow.period == period)
                    .order_by(BudgetRow.account_id.asc(), BudgetRow.created_at.asc(), BudgetRow.id.asc())
                )
                .scalars()
                .all()
            )
            return coerce_records(rows, budget_from_row)

    def list_account_budgets(self, account_id: str, period: str) -> List[Budget]:
        with self._reading("list_account_budgets"):
            rows = (
                self.db.execute(
                    select(BudgetRow)
                    .where(BudgetRow.account_id == account_id, BudgetRow.period == period)
                    .order_by(BudgetRow.created_at.asc(), BudgetRow.id.asc())
                )
                .scalars()
                .all()
            )
            return coerce_records(rows, budget_from_row)

    def list_transactions(
        self,
        account_id: str,
        start: date,
        end: date,
        *,
        category_id: Optional[str] = None,
    ) -> List[Transaction]:
        with self._reading("list_transactions"):
            stmt = select(TransactionRow).where(
                TransactionRow.account_id == account_id,
                TransactionRow.date >= start,
                TransactionRow.date < end,
            )
            if category_id is not None:
                stmt = stmt.where(TransactionRow.category_id == category_id)
            rows = (
                self.db.execute(stmt.order_by(TransactionRow.date.asc(), TransactionRow.id.asc()))
                .scalars()
                .all()
            )
            return coerce_records(rows, transaction_from_row)

    def list_goals(self, user_id: str) -> List[Goal]:
        with self._reading("list_goals"):
            rows = (
                self.db.execute(
                    select(GoalRow)
                    .where(GoalRow.owner_id == user_id)
                    .order_by(GoalRow.deadline.asc(), GoalRow.id.asc())
                )
                .scalars()
                .all()
            )
        return coerce_records(rows, goal_from_row)

    def list_recent_notifications(self, user_id: str, since: datetime) -> List[Notification]:
        with self._reading("list_recent_notifications"):
            rows = (
                self.db.execute(
                    select(NotificationRow)
                    .where(
                        NotificationRow.user_id == user_id,
                        NotificationRow.created_at >= _naive_utc(since),
                    )
                    .order_by(NotificationRow.created_at.asc(), NotificationRow.id.asc())
                )
                .scalars()
                .all()
            )
        return coerce_records(rows, notification_from_row)

    def get_account_type(self, account_id: str) -> Optional[str]:
        with self._reading("get_account_type"):
            account = self.db.get(Account, account_id)
        return account.type if account else None

    def list_split_members(self, account_id: str) -> List[RevenueSplitMember]:
        """Paying members: the owner plus accepted editors, weight 1 unless configured."""
        with self._reading("list_split_members"):
            account = self.db.get(Account, account_id)
            if account is None:
                return []
            editor_ids = (
                self.db.execute(
                    select(AccountMember.user_id).where(
                        AccountMember.account_id == account_id,
                        AccountMember.status == "accepted",
                        AccountMember.role == "editor",
                    )
                )
                .scalars()
                .all()
            )
            paying_ids = list(dict.fromkeys([account.owner_id, *editor_ids]))
            users = self.db.execute(select(User).where(User.id.in_(paying_ids))).scalars().all()
            users_by_id: Dict[str, User] = {u.id: u for u in users}
            split = account.revenue_split or {}

        rows = []
        for user_id in paying_ids:
            user = users_by_id.get(user_id)
            if user is None:
                continue
            rows.append(
                {
                    "account_id": account_id,
                    "user_id": user_id,
                    "name": user.name or user.email or "Unnamed",
                    "email": user.email or "",
                    "weight": split.get(user_id, 1),
                }
            )
        return coerce_records(rows, split_member_from_row)

    def list_forecasts(self, account_id: str, period: str) -> List[ForecastLine]:
        with self._reading("list_forecasts"):
            rows = (
                self.db.execute(
                    select(Forecast)
                    .where(Forecast.account_id == account_id, Forecast.period == period)
                    .order_by(Forecast.created_at.asc(), Forecast.id.asc())
                )
                .scalars()
                .all()
            )
            return coerce_records(rows, forecast_from_row)

    def list_category_names(self, category_ids: List[str]) -> Dict[str, str]:
        if not category_ids:
            return {}
        with self._reading("list_category_names"):
            rows = self.db.execute(select(Category.id, Category.name).where(Category.id.in_(category_ids))).all()
        return {row.id: row.name for row in rows}


def user_can_access_account(db: Session, user_id: str, account_id: str) -> bool:
    stmt = select(Account.id).where(
        Account.id == account_id,
        or_(
            Account.owner_id == user_id,
            Account.id.in_(
                select(AccountMember.account_id).where(
                    and_(AccountMember.user_id == user_id, AccountMember.status == "accepted")
                )
            ),
        ),
    )
    return db.execute(stmt).first() is not None
