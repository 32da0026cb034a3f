import os
import pathlib
import sys
import tempfile
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Set

import pytest


REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT))


def pytest_configure():
    if os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL"):
        return
    temp_dir = tempfile.mkdtemp(prefix="finhub-tests-")
    db_path = pathlib.Path(temp_dir) / "pytest.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"


@pytest.fixture()
def db_session():
    from backend.app.db import SessionLocal, create_tables, drop_tables

    drop_tables()
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_tables()


@pytest.fixture()
def api_client(db_session):
    from backend.app.db import get_db
    from backend.app.main import app
    from fastapi.testclient import TestClient

    def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def now():
    return datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


class FakeSource:
    """In-memory FinanceDataSource; operations named in fail_on raise StorageUnavailable."""

    def __init__(self, **data):
        self.investments = data.get("investments", [])
        self.returns = data.get("returns", [])
        self.budgets = data.get("budgets", [])
        self.transactions = data.get("transactions", [])
        self.goals = data.get("goals", [])
        self.notifications = data.get("notifications", [])
        self.account_types: Dict[str, str] = data.get("account_types", {})
        self.members = data.get("members", [])
        self.forecasts = data.get("forecasts", [])
        self.fail_on: Set[str] = set(data.get("fail_on", ()))
        self.calls: List[str] = []

    def _touch(self, operation: str) -> None:
        from backend.app.finance.errors import StorageUnavailable

        self.calls.append(operation)
        if operation in self.fail_on:
            raise StorageUnavailable(operation)

    def get_investment(self, investment_id: str):
        self._touch("get_investment")
        return next((i for i in self.investments if i.id == investment_id), None)

    def list_investments(self, owner_id: str):
        self._touch("list_investments")
        return [i for i in self.investments if i.owner_id == owner_id]

    def list_monthly_returns(self, investment_id: str):
        self._touch("list_monthly_returns")
        return [r for r in self.returns if r.investment_id == investment_id]

    def list_budgets(self, user_id: str, period: str, *, account_id: Optional[str] = None):
        self._touch("list_budgets")
        return [
            b for b in self.budgets if b.period == period and (account_id is None or b.account_id == account_id)
        ]

    def list_account_budgets(self, account_id: str, period: str):
        self._touch("list_account_budgets")
        return [b for b in self.budgets if b.account_id == account_id and b.period == period]

    def list_transactions(self, account_id: str, start: date, end: date, *, category_id: Optional[str] = None):
        self._touch("list_transactions")
        return [
            t
            for t in self.transactions
            if t.account_id == account_id
            and start <= t.date < end
            and (category_id is None or t.category_id == category_id)
        ]

    def list_goals(self, user_id: str):
        self._touch("list_goals")
        return list(self.goals)

    def list_recent_notifications(self, user_id: str, since: datetime):
        self._touch("list_recent_notifications")
        return [n for n in self.notifications if n.user_id == user_id and n.created_at >= since]

    def get_account_type(self, account_id: str):
        self._touch("get_account_type")
        return self.account_types.get(account_id)

    def list_split_members(self, account_id: str):
        self._touch("list_split_members")
        return [m for m in self.members if m.account_id == account_id]

    def list_forecasts(self, account_id: str, period: str):
        self._touch("list_forecasts")
        return [f for f in self.forecasts if f.account_id == account_id and f.period == period]


class RecordingSink:
    def __init__(self, fail_types: Optional[Set[str]] = None):
        self.inserted: List[dict] = []
        self.fail_types = fail_types or set()

    def insert(self, user_id, type, message, metadata):
        from backend.app.finance.errors import NotificationSinkError

        if type in self.fail_types:
            raise NotificationSinkError("sink offline")
        self.inserted.append({"user_id": user_id, "type": type, "message": message, "metadata": metadata})
        return f"n{len(self.inserted)}"


@pytest.fixture()
def fake_source_factory():
    return FakeSource


@pytest.fixture()
def sink_factory():
    return RecordingSink
