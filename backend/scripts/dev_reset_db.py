from __future__ import annotations

import argparse
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

sys.path.append(str(Path(__file__).resolve().parents[2]))


def _reset_sqlite_db(database_url: str) -> None:
    url = make_url(database_url)
    if url.database and url.database != ":memory:":
        db_path = Path(url.database)
        if db_path.exists():
            db_path.unlink()


def seed_demo(session: Session, today: date | None = None) -> dict:
    """A household account with two payers, one investment with history, a budget and a goal."""
    from backend.app.models import (
        Account,
        AccountMember,
        Budget,
        Category,
        Forecast,
        Goal,
        InvestmentAsset,
        InvestmentMonthlyReturn,
        Transaction,
        User,
    )

    today = today or date.today()
    period = f"{today.year:04d}-{today.month:02d}"

    owner = User(email="owner@example.com", name="Owner")
    partner = User(email="partner@example.com", name="Partner")
    session.add_all([owner, partner])
    session.flush()

    casa = Account(owner_id=owner.id, name="Casa", type="casa", revenue_split={owner.id: 2, partner.id: 1})
    session.add(casa)
    session.flush()
    session.add(AccountMember(account_id=casa.id, user_id=partner.id, role="editor", status="accepted"))

    groceries = Category(owner_id=owner.id, name="Groceries", type="expense")
    salary = Category(owner_id=owner.id, name="Salary", type="income")
    session.add_all([groceries, salary])
    session.flush()

    session.add(Budget(account_id=casa.id, category_id=groceries.id, period=period, amount_planned=Decimal("500")))
    session.add(Forecast(account_id=casa.id, category_id=groceries.id, period=period, forecasted_amount=Decimal("900")))
    session.add(
        Transaction(
            account_id=casa.id,
            category_id=groceries.id,
            amount=Decimal("-650"),
            date=today.replace(day=1),
            description="Supermarket",
        )
    )

    fund = InvestmentAsset(owner_id=owner.id, name="CDB", type="renda_fixa", balance=Decimal("1000"))
    session.add(fund)
    session.flush()
    session.add(
        InvestmentMonthlyReturn(
            investment_id=fund.id,
            month=today.replace(day=1),
            balance_after=Decimal("1050"),
            actual_return=Decimal("50"),
        )
    )

    session.add(
        Goal(
            owner_id=owner.id,
            name="Emergency fund",
            target_amount=Decimal("10000"),
            current_amount=Decimal("4000"),
            deadline=date(today.year - 1, 12, 31),
        )
    )
    session.commit()
    return {"owner_id": owner.id, "partner_id": partner.id, "account_id": casa.id, "investment_id": fund.id}


def main() -> int:
    parser = argparse.ArgumentParser(description="Reset the development database.")
    parser.add_argument("--yes", action="store_true", help="Confirm destructive reset.")
    parser.add_argument("--seed", action="store_true", help="Seed demo records.")
    args = parser.parse_args()

    if not args.yes:
        print("Refusing to reset database without --yes.")
        return 1

    from backend.app.config import get_database_url

    database_url = get_database_url()
    url = make_url(database_url)
    if url.get_backend_name().startswith("sqlite"):
        _reset_sqlite_db(database_url)

    from backend.app.db import SessionLocal, create_tables, drop_tables

    drop_tables()
    create_tables()

    if args.seed:
        session = SessionLocal()
        try:
            ids = seed_demo(session)
        finally:
            session.close()
        print(f"Seeded: {ids}")

    print("DONE")
    print(f"Database URL: {url.render_as_string(hide_password=True)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
