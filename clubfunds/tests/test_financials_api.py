"""
Integration tests for the ledger and financials HTTP API.
"""

from redis.exceptions import ConnectionError as RedisConnectionError

from clubfunds.app.core.config import settings
from clubfunds.app.core.jwt import create_access_token


def donation(**overrides):
    payload = {"source": "Donation", "description": "Anonymous donor", "amount": 1000, "date": "2024-03-01"}
    payload.update(overrides)
    return payload


def venue(**overrides):
    payload = {"category": "Venue", "description": "Hall hire", "amount": 500, "date": "2024-03-01"}
    payload.update(overrides)
    return payload


async def test_event_expense_updates_every_level(client, hierarchy, auth_headers):
    response = await client.post(
        f"/v1/events/{hierarchy['event_id']}/expenses", json=venue(), headers=auth_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["expense"]["level"] == "event"
    assert data["expense"]["status"] == "pending"
    assert data["expense"]["amount"] == "500.00"
    assert data["recompute"] == {"stale": False, "stale_nodes": []}

    response = await client.get(f"/v1/events/{hierarchy['event_id']}/financials", headers=auth_headers)
    assert response.json()["summary"]["total_expenses"] == "500.00"

    response = await client.get(f"/v1/campaigns/{hierarchy['campaign_id']}/financials", headers=auth_headers)
    campaign = response.json()
    assert campaign["summary"]["total_expenses"] == "500.00"
    assert [e["event_id"] for e in campaign["events"]] == [hierarchy["event_id"]]

    response = await client.get(f"/v1/clubs/{hierarchy['club_id']}/financials", headers=auth_headers)
    club = response.json()
    assert club["summary"]["total_expenses"] == "500.00"
    assert club["summary"]["pending_expenses"] == "500.00"
    assert club["display"]["total_expenses"] == "€500.00"
    assert club["summary_stale"] is False


async def test_moving_income_to_an_event_is_rejected(client, hierarchy, auth_headers):
    response = await client.post(f"/v1/clubs/{hierarchy['club_id']}/income", json=donation(), headers=auth_headers)
    assert response.status_code == 201
    income_id = response.json()["income"]["id"]
    assert response.json()["income"]["level"] == "club"

    response = await client.put(
        f"/v1/income/{income_id}", json={"event_id": hierarchy["event_id"]}, headers=auth_headers
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION_002"


async def test_all_validation_errors_returned_together(client, hierarchy, auth_headers):
    response = await client.post(f"/v1/clubs/{hierarchy['club_id']}/income", json={}, headers=auth_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_001"
    assert body["details"]["errors"] == [
        "Source is required",
        "Description is required",
        "Amount must be greater than 0",
        "Date is required",
    ]


async def test_both_campaign_and_event_rejected_on_create(client, hierarchy, auth_headers):
    response = await client.post(
        f"/v1/campaigns/{hierarchy['campaign_id']}/expenses",
        json=venue(event_id=hierarchy["event_id"]),
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION_002"
    assert "Expense cannot be assigned to both event and campaign" in response.json()["details"]["errors"]


async def test_other_clubs_are_off_limits(client, hierarchy, auth_headers):
    response = await client.post(
        f"/v1/clubs/{hierarchy['other_club_id']}/income", json=donation(), headers=auth_headers
    )
    assert response.status_code == 403

    response = await client.post(
        f"/v1/campaigns/{hierarchy['other_campaign_id']}/income", json=donation(), headers=auth_headers
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


async def test_missing_or_clubless_token_rejected(client, hierarchy):
    response = await client.get(f"/v1/clubs/{hierarchy['club_id']}/financials")
    assert response.status_code in (401, 403)

    token = create_access_token(data={"sub": "someone", "user_id": 9})
    response = await client.get(
        f"/v1/clubs/{hierarchy['club_id']}/financials", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401


async def test_club_wide_listing_and_filters(client, hierarchy, auth_headers):
    club_id = hierarchy["club_id"]
    await client.post(f"/v1/clubs/{club_id}/expenses", json=venue(date="2024-01-15"), headers=auth_headers)
    await client.post(f"/v1/campaigns/{hierarchy['campaign_id']}/expenses",
                      json=venue(category="Printing", amount=40, date="2024-02-15", status="approved"),
                      headers=auth_headers)
    await client.post(f"/v1/events/{hierarchy['standalone_event_id']}/expenses",
                      json=venue(category="Prizes", amount=60, date="2024-04-12"), headers=auth_headers)

    response = await client.get(f"/v1/clubs/{club_id}/expenses/all", headers=auth_headers)
    data = response.json()
    assert data["total"] == 3
    assert data["partial"] is False
    assert [e["category"] for e in data["expenses"]] == ["Prizes", "Printing", "Venue"]
    assert data["total_amount"] == "600.00"

    response = await client.get(f"/v1/clubs/{club_id}/expenses", headers=auth_headers)
    assert response.json()["total"] == 1

    response = await client.get(
        f"/v1/clubs/{club_id}/expenses/all",
        params={"date_from": "2024-02-01", "date_to": "2024-04-12", "status": "pending"},
        headers=auth_headers,
    )
    assert [e["category"] for e in response.json()["expenses"]] == ["Prizes"]

    response = await client.get(
        f"/v1/clubs/{club_id}/expenses/all", params={"status": "refunded"}, headers=auth_headers
    )
    assert response.status_code == 422


async def test_expense_update_and_delete(client, hierarchy, auth_headers):
    response = await client.post(f"/v1/clubs/{hierarchy['club_id']}/expenses", json=venue(), headers=auth_headers)
    expense_id = response.json()["expense"]["id"]

    response = await client.put(f"/v1/expenses/{expense_id}", json={"status": "paid"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["expense"]["status"] == "paid"

    response = await client.get(f"/v1/clubs/{hierarchy['club_id']}/financials", headers=auth_headers)
    assert response.json()["summary"]["approved_expenses"] == "500.00"

    response = await client.delete(f"/v1/expenses/{expense_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Expense deleted successfully"

    response = await client.delete(f"/v1/expenses/{expense_id}", headers=auth_headers)
    assert response.status_code == 404


async def test_allocation_check_and_allocate(client, hierarchy, auth_headers):
    club_id = hierarchy["club_id"]
    await client.post(f"/v1/clubs/{club_id}/income", json=donation(amount=2000), headers=auth_headers)

    response = await client.post(
        f"/v1/clubs/{club_id}/financials/allocate",
        json={"level": "campaign", "target_id": hierarchy["campaign_id"], "amount": 1500, "date": "2024-03-05"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    allocation = response.json()
    assert allocation["allocation_check"]["can_allocate"] is True
    assert allocation["income"]["source"] == "Allocated Funds"
    assert allocation["income"]["payment_method"] == "allocated_funds"

    response = await client.get(
        f"/v1/clubs/{club_id}/financials/check-allocation", params={"amount": "600"}, headers=auth_headers
    )
    check = response.json()
    assert response.status_code == 200
    assert check["can_allocate"] is False
    assert check["available"] == "500.00"
    assert check["requested"] == "600.00"
    assert check["warning"]

    response = await client.get(f"/v1/clubs/{club_id}/financials/allocated-funds", headers=auth_headers)
    summary = response.json()["summary"]
    assert summary["total_allocated"] == "1500.00"
    assert summary["campaign_allocations"][0]["target_id"] == hierarchy["campaign_id"]


async def test_allocation_hard_block(client, hierarchy, auth_headers, mocker):
    mocker.patch.object(settings, "allocation_hard_block", True)

    response = await client.post(
        f"/v1/clubs/{hierarchy['club_id']}/financials/allocate",
        json={"level": "event", "target_id": hierarchy["event_id"], "amount": 10},
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_ALLOC_001"


async def test_reports(client, hierarchy, auth_headers):
    club_id = hierarchy["club_id"]
    await client.post(f"/v1/clubs/{club_id}/expenses", json=venue(), headers=auth_headers)
    await client.post(f"/v1/clubs/{club_id}/expenses", json=venue(amount=100, status="approved"), headers=auth_headers)
    await client.post(f"/v1/clubs/{club_id}/income", json=donation(payment_method="card"), headers=auth_headers)

    response = await client.get(f"/v1/clubs/{club_id}/financials/expenses-by-category", headers=auth_headers)
    venue_row = response.json()["categories"][0]
    assert venue_row["category"] == "Venue"
    assert venue_row["transaction_count"] == 2
    assert venue_row["average_amount"] == "300.00"

    response = await client.get(f"/v1/clubs/{club_id}/financials/income-by-source", headers=auth_headers)
    assert response.json()["sources"][0]["payment_method"] == "card"

    response = await client.get(
        f"/v1/clubs/{club_id}/financials/monthly-trends", params={"year": 2024}, headers=auth_headers
    )
    months = response.json()["months"]
    assert len(months) == 12
    assert months[2]["net_profit"] == "400.00"

    response = await client.get(f"/v1/clubs/{club_id}/financials/pending-expenses", headers=auth_headers)
    assert response.json()["total"] == 1
    assert response.json()["total_amount"] == "500.00"


async def test_csv_export_escapes_quotes(client, hierarchy, auth_headers):
    club_id = hierarchy["club_id"]
    await client.post(
        f"/v1/clubs/{club_id}/income",
        json=donation(description='Said "thanks", twice', reference="R-1"),
        headers=auth_headers,
    )

    response = await client.get(f"/v1/clubs/{club_id}/income/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.splitlines()
    assert lines[0] == '"Date","Source","Description","Amount","Payment Method","Reference"'
    assert lines[1] == '"2024-03-01","Donation","Said ""thanks"", twice","1000.00","cash","R-1"'


async def test_recalculate_endpoints_are_idempotent(client, hierarchy, auth_headers):
    await client.post(f"/v1/events/{hierarchy['event_id']}/income", json=donation(amount=250), headers=auth_headers)

    first = await client.post(f"/v1/events/{hierarchy['event_id']}/financials/recalculate", headers=auth_headers)
    second = await client.post(f"/v1/events/{hierarchy['event_id']}/financials/recalculate", headers=auth_headers)

    assert first.status_code == 200
    assert first.json() == second.json()
    assert first.json()["event"]["actual_amount"] == "250.00"
    assert first.json()["campaign"]["total_raised"] == "250.00"

    response = await client.post(f"/v1/clubs/{hierarchy['club_id']}/financials/recalculate", headers=auth_headers)
    assert response.json()["club"]["total_income"] == "250.00"


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["redis"] == "up"
    assert "X-Correlation-ID" in response.headers


async def test_campaign_and_event_listings_accept_filters(client, hierarchy, auth_headers):
    campaign_id = hierarchy["campaign_id"]
    await client.post(f"/v1/campaigns/{campaign_id}/income", json=donation(date="2024-02-10"), headers=auth_headers)
    await client.post(f"/v1/campaigns/{campaign_id}/income",
                      json=donation(source="Raffle", amount=40, date="2024-03-10"), headers=auth_headers)
    await client.post(f"/v1/events/{hierarchy['event_id']}/expenses", json=venue(), headers=auth_headers)

    response = await client.get(
        f"/v1/campaigns/{campaign_id}/income",
        params={"source": "Raffle", "date_from": "2024-03-01"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["income"][0]["source"] == "Raffle"
    assert data["income"][0]["campaign_id"] == campaign_id

    response = await client.get(
        f"/v1/events/{hierarchy['event_id']}/expenses", params={"status": "pending"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["total"] == 1


async def test_check_allocation_rejects_negative_amount(client, hierarchy, auth_headers):
    response = await client.get(
        f"/v1/clubs/{hierarchy['club_id']}/financials/check-allocation", params={"amount": "-50"},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert response.json()["details"]["errors"] == ["Amount must be greater than 0"]


async def test_health_reports_unreachable_redis(client, mock_redis, mocker):
    mocker.patch.object(mock_redis, "ping", side_effect=RedisConnectionError("connection refused"))

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["redis"] == "down"
