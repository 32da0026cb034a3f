from datetime import date

import pytest

from backend.app.finance.budget_variance import analyze
from backend.app.finance.errors import InputDataError
from backend.app.finance.records import Budget, Transaction


def _txn(category_id, amount, day=date(2024, 5, 10), category_type="expense"):
    return Transaction(account_id="acc-1", category_id=category_id, amount=amount, date=day, category_type=category_type)


def _budget(category_id, planned, period="2024-05"):
    return Budget(account_id="acc-1", category_id=category_id, period=period, amount_planned=planned)


def test_overspent_category_reports_percentage_and_negative_remaining():
    report = analyze([_txn("food", -400), _txn("food", -250)], [_budget("food", 500)], "2024-05")

    row = report.categories[0]
    assert row.actual == 650
    assert row.percentage == pytest.approx(130.0)
    assert row.remaining == pytest.approx(-150.0)


def test_income_is_not_counted_as_spend():
    txns = [_txn("food", -100), _txn("food", 300, category_type="income")]
    report = analyze(txns, [_budget("food", 200)], "2024-05")
    assert report.categories[0].actual == 100


def test_zero_planned_budget_has_zero_percentage():
    report = analyze([_txn("fun", -80)], [_budget("fun", 0)], "2024-05")
    assert report.categories[0].percentage == 0.0
    assert report.total_percentage == 0.0


def test_unbudgeted_spend_is_listed_after_budgets():
    report = analyze(
        [_txn("food", -100), _txn("taxi", -40), _txn("bar", -20)],
        [_budget("food", 200)],
        "2024-05",
    )
    assert [r.category_id for r in report.categories] == ["food", "bar", "taxi"]
    assert report.categories[1].planned == 0.0
    assert report.categories[2].remaining == -40


def test_other_periods_do_not_count_as_actual():
    txns = [_txn("food", -100), _txn("food", -500, day=date(2024, 4, 2))]
    report = analyze(txns, [_budget("food", 300), _budget("food", 900, period="2024-04")], "2024-05")

    assert len(report.categories) == 1
    assert report.categories[0].actual == 100
    assert report.categories[0].moving_average_suggestion == pytest.approx(200.0)


def test_totals_aggregate_rows():
    report = analyze(
        [_txn("food", -300), _txn("rent", -1000)],
        [_budget("food", 400), _budget("rent", 1000)],
        "2024-05",
    )
    assert report.total_planned == 1400
    assert report.total_actual == 1300
    assert report.total_percentage == pytest.approx(1300 / 1400 * 100)


def test_bad_period_is_rejected():
    with pytest.raises(InputDataError):
        analyze([], [], "2024-13")
