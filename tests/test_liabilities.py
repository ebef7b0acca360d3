"""Liability CRUD over the JSON API."""

from __future__ import annotations

from tests.conftest import assert_float_equal


def _create(client, **overrides):
    payload = {"name": "Home loan", "principal": 500000, "interest_rate": 8.5, "emi_amount": 6000}
    payload.update(overrides)
    response = client.post("/liabilities/", json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["liability"]


def test_create_defaults_outstanding_to_principal(client):
    liability = _create(client)

    assert liability["kind"] == "loan"
    assert liability["outstanding"] == 500000
    assert liability["interest_rate"] == 8.5


def test_list_reports_totals_and_weighted_rate(client):
    _create(client, outstanding=300000, interest_rate=9)
    _create(client, name="Card", kind="credit_line", principal=100000, outstanding=100000, interest_rate=36)

    body = client.get("/liabilities/").get_json()

    assert [item["name"] for item in body["liabilities"]] == ["Card", "Home loan"]
    assert body["total_outstanding"] == 400000
    assert_float_equal(body["weighted_rate"], (300000 * 9 + 100000 * 36) / 400000)


def test_create_validation_errors(client):
    response = client.post(
        "/liabilities/",
        json={
            "name": "",
            "kind": "mortgage",
            "principal": 0,
            "interest_rate": 120,
            "start_date": "2025-01-01",
            "end_date": "2024-01-01",
        },
    )

    assert response.status_code == 400
    errors = response.get_json()["errors"]
    assert {"name", "kind", "principal", "interest_rate", "end_date"} <= set(errors)


def test_update_checks_dates_against_stored_values(client):
    liability = _create(client, start_date="2024-01-01")

    bad = client.put(f"/liabilities/{liability['id']}", json={"end_date": "2023-06-01"})
    assert bad.status_code == 400
    assert "end_date" in bad.get_json()["errors"]

    good = client.patch(f"/liabilities/{liability['id']}", json={"outstanding": 450000})
    assert good.status_code == 200
    assert good.get_json()["liability"]["outstanding"] == 450000
    assert good.get_json()["liability"]["name"] == "Home loan"


def test_update_rejects_cleared_outstanding(client):
    liability = _create(client)

    response = client.patch(f"/liabilities/{liability['id']}", json={"outstanding": None})

    assert response.status_code == 400
    assert "outstanding" in response.get_json()["errors"]


def test_delete_and_missing(client):
    liability = _create(client)

    assert client.delete(f"/liabilities/{liability['id']}").get_json() == {
        "deleted": True,
        "id": liability["id"],
    }
    assert client.get(f"/liabilities/{liability['id']}").status_code == 404
    assert client.delete(f"/liabilities/{liability['id']}").status_code == 404


def test_liabilities_are_scoped_per_user(app, client, app_context):
    from wealthbook.models import User

    _create(client)
    other = app_context.user_repo.create(User(username="someone-else"))
    other_client = app.test_client()
    other_client.environ_base["HTTP_X_USER_ID"] = str(other.id)

    assert other_client.get("/liabilities/").get_json()["liabilities"] == []
