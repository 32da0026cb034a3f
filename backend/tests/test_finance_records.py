from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from backend.app.finance.errors import InputDataError
from backend.app.finance.records import (
    budget_from_row,
    coerce_records,
    monthly_return_from_row,
    notification_from_row,
    parse_period,
    period_bounds,
    previous_period,
    split_member_from_row,
    to_money,
    transaction_from_row,
)


def test_money_accepts_decimal_and_numeric_strings():
    assert to_money(Decimal("12.34"), "budget", "amount_planned") == 12.34
    assert to_money("99.5", "budget", "amount_planned") == 99.5


@pytest.mark.parametrize("value", [None, "abc", True, float("nan"), "inf"])
def test_money_rejects_non_numeric(value):
    with pytest.raises(InputDataError):
        to_money(value, "budget", "amount_planned")


def test_monthly_return_is_pinned_to_first_of_month():
    row = {"investment_id": "i1", "month": "2024-03-17", "balance_after": "1050.00", "actual_return": 50}
    record = monthly_return_from_row(row)
    assert record.month == date(2024, 3, 1)
    assert record.balance_after == 1050.0
    assert record.contribution == 0.0
    assert record.inflation_rate == 0.0


def test_monthly_return_reads_contribution_and_inflation():
    row = {
        "investment_id": "i1",
        "month": "2024-03-01",
        "balance_after": "1150.00",
        "actual_return": "50",
        "contribution": Decimal("100.00"),
        "inflation_rate": "0.4200",
    }
    record = monthly_return_from_row(row)
    assert record.contribution == 100.0
    assert record.inflation_rate == 0.42


def test_malformed_rows_are_skipped_with_warning(caplog):
    rows = [
        {"investment_id": "i1", "month": "2024-01-01", "balance_after": 1000, "actual_return": 0},
        {"investment_id": "i1", "month": "2024-02-01", "balance_after": "n/a", "actual_return": 0},
        {"investment_id": None, "month": "2024-03-01", "balance_after": 1, "actual_return": 0},
    ]
    with caplog.at_level("WARNING"):
        records = coerce_records(rows, monthly_return_from_row)
    assert len(records) == 1
    assert "skipping malformed record" in caplog.text


def test_transaction_category_type_decides_expense():
    income = transaction_from_row(
        {"account_id": "a", "category_id": "c", "amount": -20, "date": "2024-05-01", "category_type": "income"}
    )
    untyped = transaction_from_row({"account_id": "a", "category_id": None, "amount": -20, "date": date(2024, 5, 1)})
    assert income.is_expense is False
    assert untyped.is_expense is True


def test_budget_row_requires_valid_period():
    with pytest.raises(InputDataError):
        budget_from_row({"account_id": "a", "category_id": "c", "period": "May 2024", "amount_planned": 10})


def test_negative_split_weight_is_rejected():
    with pytest.raises(InputDataError):
        split_member_from_row({"account_id": "a", "user_id": "u", "weight": -1})


def test_notification_row_reads_json_column_and_normalizes_time():
    created = datetime(2024, 5, 15, 10, 0)

    class Row:
        id = "n1"
        user_id = "u1"
        type = "goal"
        message = "hi"
        metadata_json = {"goal_id": "g1"}
        read = False
        created_at = created

    record = notification_from_row(Row())
    assert record.metadata == {"goal_id": "g1"}
    assert record.created_at == created.replace(tzinfo=timezone.utc)


def test_period_helpers():
    assert parse_period("2024-05") == (2024, 5)
    assert previous_period("2024-01") == "2023-12"
    assert period_bounds("2024-12") == (date(2024, 12, 1), date(2025, 1, 1))
    with pytest.raises(InputDataError):
        parse_period("2024-13")
