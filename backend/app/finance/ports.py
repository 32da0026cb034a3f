from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol

from .records import (
    Budget,
    ForecastLine,
    Goal,
    Investment,
    MonthlyReturn,
    Notification,
    RevenueSplitMember,
    Transaction,
)


class FinanceDataSource(Protocol):
    """
    Read side of the store. Implementations raise StorageUnavailable when the
    store cannot be reached and drop malformed rows instead of failing.
    """

    def get_investment(self, investment_id: str) -> Optional[Investment]:
        ...

    def list_investments(self, owner_id: str) -> List[Investment]:
        ...

    def list_monthly_returns(self, investment_id: str) -> List[MonthlyReturn]:
        ...

    def list_budgets(self, user_id: str, period: str, *, account_id: Optional[str] = None) -> List[Budget]:
        ...

    def list_account_budgets(self, account_id: str, period: str) -> List[Budget]:
        ...

    def list_transactions(
        self,
        account_id: str,
        start: date,
        end: date,
        *,
        category_id: Optional[str] = None,
    ) -> List[Transaction]:
        """Transactions with start <= date < end."""
        ...

    def list_goals(self, user_id: str) -> List[Goal]:
        ...

    def list_recent_notifications(self, user_id: str, since: datetime) -> List[Notification]:
        ...

    def get_account_type(self, account_id: str) -> Optional[str]:
        ...

    def list_split_members(self, account_id: str) -> List[RevenueSplitMember]:
        ...

    def list_forecasts(self, account_id: str, period: str) -> List[ForecastLine]:
        ...


class NotificationSink(Protocol):
    def insert(self, user_id: str, type: str, message: str, metadata: Dict[str, Any]) -> str:
        """Persist one notification and return its id."""
        ...
