from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

pytest.importorskip("httpx")

from backend.app.finance.errors import StorageUnavailable
from backend.app.models import Account, InvestmentAsset, InvestmentMonthlyReturn, User
from backend.app.services import investment_service
from backend.scripts.dev_reset_db import seed_demo

OWNER = {"X-User-Email": "owner@example.com"}
PARTNER = {"X-User-Email": "partner@example.com"}


@pytest.fixture()
def seeded(db_session):
    return seed_demo(db_session, today=date(2024, 5, 15))


def test_missing_identity_returns_401(api_client, seeded):
    resp = api_client.get(f"/api/investments/{seeded['investment_id']}/current-value")
    assert resp.status_code == 401


def test_current_value_uses_latest_return(api_client, seeded):
    resp = api_client.get(f"/api/investments/{seeded['investment_id']}/current-value", headers=OWNER)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["principal"] == 1000.0
    assert payload["current_value"] == 1050.0
    assert payload["valued_from"] == "monthly_return"
    assert payload["as_of_month"] == "2024-05-01"


def test_other_users_investment_is_not_found(api_client, seeded):
    resp = api_client.get(f"/api/investments/{seeded['investment_id']}/current-value", headers=PARTNER)
    assert resp.status_code == 404


def test_projection_continues_from_history(api_client, seeded):
    resp = api_client.get(f"/api/investments/{seeded['investment_id']}/projection?months=3", headers=OWNER)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["historical_count"] == 1
    values = [p["value"] for p in payload["points"]]
    assert values[0] == 1050.0
    assert values[1] == pytest.approx(1100.0)


def test_projection_rejects_out_of_range_horizon(api_client, seeded):
    resp = api_client.get(f"/api/investments/{seeded['investment_id']}/projection?months=-1", headers=OWNER)
    assert resp.status_code == 422


def test_portfolio_projections_cover_standard_horizons(api_client, db_session, seeded):
    db_session.add(InvestmentAsset(owner_id=seeded["owner_id"], name="Tesouro", type="renda_fixa", balance=500))
    db_session.commit()

    resp = api_client.get("/api/investments/projections", headers=OWNER)
    assert resp.status_code == 200
    payload = resp.json()
    assert sorted(payload["horizons"]) == ["12", "3", "6"]
    assert len(payload["horizons"]["12"]) == 13
    by_name = {row["name"]: row for row in payload["comparison"]}
    assert by_name["Tesouro"]["projected_12m"] == 500.0
    assert by_name["CDB"]["current"] == 1050.0


def test_simulation_starts_after_last_return(api_client, seeded):
    body = {"months": 3, "monthly_rate": 1.0, "inflation_rate": 0.0, "monthly_contribution": 0}
    resp = api_client.post(f"/api/investments/{seeded['investment_id']}/simulate", json=body, headers=OWNER)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["initial_month"] == "2024-06-01"
    assert [r["month"] for r in payload["rows"]] == ["2024-06-01", "2024-07-01", "2024-08-01"]
    assert payload["final_balance"] == pytest.approx(1050.0 * 1.01 ** 3)


def test_simulation_bounds_are_validated(api_client, seeded):
    resp = api_client.post(
        f"/api/investments/{seeded['investment_id']}/simulate",
        json={"months": 0},
        headers=OWNER,
    )
    assert resp.status_code == 422


def test_storage_outage_maps_to_503(api_client, seeded, monkeypatch):
    def _down(*args, **kwargs):
        raise StorageUnavailable("list_investments")

    monkeypatch.setattr(investment_service, "get_portfolio_projections", _down)
    resp = api_client.get("/api/investments/projections", headers=OWNER)
    assert resp.status_code == 503
    assert resp.json()["operation"] == "list_investments"


def test_budget_variance_for_member(api_client, seeded):
    resp = api_client.get(
        f"/api/accounts/{seeded['account_id']}/budget-variance?period=2024-05",
        headers=PARTNER,
    )
    assert resp.status_code == 200
    payload = resp.json()
    row = payload["categories"][0]
    assert row["category_name"] == "Groceries"
    assert row["percentage"] == pytest.approx(130.0)
    assert row["remaining"] == pytest.approx(-150.0)
    assert payload["total_percentage"] == pytest.approx(130.0)


def test_budget_variance_requires_membership(api_client, seeded):
    resp = api_client.get(
        f"/api/accounts/{seeded['account_id']}/budget-variance?period=2024-05",
        headers={"X-User-Email": "stranger@example.com"},
    )
    assert resp.status_code == 403


def test_budget_variance_period_format(api_client, seeded):
    resp = api_client.get(f"/api/accounts/{seeded['account_id']}/budget-variance?period=05-2024", headers=OWNER)
    assert resp.status_code == 422
    resp = api_client.get(f"/api/accounts/{seeded['account_id']}/budget-variance?period=2024-13", headers=OWNER)
    assert resp.status_code == 422


def test_unknown_account_is_404(api_client, seeded):
    resp = api_client.get("/api/accounts/nope/budget-variance?period=2024-05", headers=OWNER)
    assert resp.status_code == 404


def test_revenue_split_for_household(api_client, seeded):
    resp = api_client.get(f"/api/accounts/{seeded['account_id']}/revenue-split?period=2024-05", headers=OWNER)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["is_shared_account"] is True
    assert payload["total_expense_target"] == pytest.approx(900.0)
    amounts = {s["email"]: s["amount"] for s in payload["shares"]}
    assert amounts == pytest.approx({"owner@example.com": 600.0, "partner@example.com": 300.0})


def test_revenue_split_total_override(api_client, seeded):
    resp = api_client.get(
        f"/api/accounts/{seeded['account_id']}/revenue-split?period=2024-05&total=300",
        headers=OWNER,
    )
    amounts = [s["amount"] for s in resp.json()["shares"]]
    assert amounts == pytest.approx([200.0, 100.0])


def test_personal_account_has_no_split(api_client, db_session, seeded):
    account = Account(owner_id=seeded["owner_id"], name="Conta", type="corrente")
    db_session.add(account)
    db_session.commit()

    resp = api_client.get(f"/api/accounts/{account.id}/revenue-split?period=2024-05", headers=OWNER)
    assert resp.status_code == 200
    assert resp.json()["shares"] == []


def test_evaluate_then_list_notifications(api_client, seeded):
    resp = api_client.post(f"/api/notifications/evaluate?account_id={seeded['account_id']}", headers=OWNER)
    assert resp.status_code == 200
    assert resp.json()["failed_rules"] == []

    listed = api_client.get("/api/notifications", headers=OWNER)
    assert listed.status_code == 200
    assert {n["type"] for n in listed.json()} <= {"budget_alert", "goal"}


def test_evaluate_checks_account_access(api_client, seeded):
    resp = api_client.post(
        f"/api/notifications/evaluate?account_id={seeded['account_id']}",
        headers={"X-User-Email": "stranger@example.com"},
    )
    assert resp.status_code == 403


def test_preferences_default_and_update(api_client, seeded):
    resp = api_client.get("/api/notifications/preferences", headers=OWNER)
    assert resp.json() == {"budget_alerts": True, "goal_alerts": True, "variance_alerts": True}

    resp = api_client.put("/api/notifications/preferences", json={"variance_alerts": False}, headers=OWNER)
    assert resp.status_code == 200
    assert resp.json() == {"budget_alerts": True, "goal_alerts": True, "variance_alerts": False}


def test_user_id_header_must_exist(api_client, db_session, seeded):
    owner = db_session.get(User, seeded["owner_id"])
    resp = api_client.get("/api/notifications", headers={"X-User-Id": owner.id})
    assert resp.status_code == 200
    resp = api_client.get("/api/notifications", headers={"X-User-Id": "missing"})
    assert resp.status_code == 401


def test_degraded_return_read_falls_back_to_principal(api_client, seeded, monkeypatch):
    from backend.app.services.finance_data_service import SqlFinanceDataSource

    def _down(self, investment_id):
        raise StorageUnavailable("list_monthly_returns")

    monkeypatch.setattr(SqlFinanceDataSource, "list_monthly_returns", _down)
    resp = api_client.get(f"/api/investments/{seeded['investment_id']}/current-value", headers=OWNER)
    payload = resp.json()
    assert payload["current_value"] == 1000.0
    assert payload["degraded"] is True


def test_budget_read_outage_maps_to_503(api_client, db_session, seeded, monkeypatch):
    original = db_session.execute

    def _execute(statement, *args, **kwargs):
        if "FROM budgets" in str(statement):
            raise OperationalError("SELECT budgets", {}, Exception("database is locked"))
        return original(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", _execute)
    resp = api_client.get(
        f"/api/accounts/{seeded['account_id']}/budget-variance?period=2024-05",
        headers=OWNER,
    )
    assert resp.status_code == 503
    assert resp.json()["operation"] == "list_account_budgets"


def test_simulation_reports_deflated_history(api_client, db_session, seeded):
    row = db_session.scalars(
        select(InvestmentMonthlyReturn).where(InvestmentMonthlyReturn.investment_id == seeded["investment_id"])
    ).one()
    row.inflation_rate = 1
    row.contribution = 100
    db_session.commit()

    body = {"months": 1, "monthly_rate": 0.0, "inflation_rate": 1.0, "monthly_contribution": 0}
    resp = api_client.post(f"/api/investments/{seeded['investment_id']}/simulate", json=body, headers=OWNER)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["history"][0]["month"] == "2024-05-01"
    assert payload["history"][0]["present_value"] == pytest.approx(1050.0 / 1.01)
    assert payload["rows"][0]["present_value"] == pytest.approx(1050.0 / 1.01 ** 2)
    assert payload["rows"][0]["cumulative_contribution"] == pytest.approx(100.0)
