import json

import pytest

from conftest import auth_headers
from splitledger.core.security import create_access_token


@pytest.mark.asyncio
async def test_requests_need_a_token(client, users):
    res = await client.get("/api/v1/users/me")
    assert res.status_code == 401

    res = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_expired_token(client, users):
    token = create_access_token({"sub": str(users[0].id)}, expires_minutes=-1)
    res = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 401
    assert res.json()["detail"] == "Token expired"


@pytest.mark.asyncio
async def test_me(client, users):
    res = await client.get("/api/v1/users/me", headers=auth_headers(users[0]))

    assert res.status_code == 200
    assert res.json()["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_expense_flow_over_http(client, users):
    alice, bob, charlie = users

    res = await client.post(
        "/api/v1/expenses/",
        headers=auth_headers(alice),
        json={
            "name": "Groceries",
            "amount": "10.00",
            "currency": "usd",
            "paid_by": alice.id,
            "splits": [{"user_id": alice.id}, {"user_id": bob.id}],
        },
    )
    assert res.status_code == 200, res.text
    expense_id = res.json()["id"]

    res = await client.get(f"/api/v1/users/friends/{bob.id}/balances", headers=auth_headers(alice))
    body = res.json()
    assert [(b["currency"], float(b["amount"])) for b in body["you_lent"]] == [("USD", 5.0)]
    assert body["you_owe"] == []

    res = await client.delete(f"/api/v1/expenses/{expense_id}", headers=auth_headers(charlie))
    assert res.status_code == 403

    res = await client.delete(f"/api/v1/expenses/{expense_id}", headers=auth_headers(bob))
    assert res.status_code == 200

    res = await client.get(f"/api/v1/users/friends/{bob.id}/balances", headers=auth_headers(alice))
    assert res.json() == {"you_lent": [], "you_owe": []}

    res = await client.delete("/api/v1/expenses/4040", headers=auth_headers(bob))
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_delete_friend_over_http(client, users):
    alice, bob, _ = users

    await client.post(
        "/api/v1/settlements/",
        headers=auth_headers(alice),
        json={"friend_id": bob.id, "amount": "8", "currency": "EUR"},
    )

    res = await client.delete(f"/api/v1/users/friends/{bob.id}", headers=auth_headers(alice))
    assert res.status_code == 400
    assert res.json()["detail"] == "You have outstanding balances with this friend"

    await client.post(
        "/api/v1/settlements/",
        headers=auth_headers(bob),
        json={"friend_id": alice.id, "amount": "8", "currency": "EUR"},
    )

    res = await client.delete(f"/api/v1/users/friends/{bob.id}", headers=auth_headers(alice))
    assert res.status_code == 200

    res = await client.get("/api/v1/users/friends", headers=auth_headers(alice))
    assert res.json() == []


@pytest.mark.asyncio
async def test_import_export_file_over_http(client, users):
    alice = users[0]
    doc = {
        "friends": [
            {
                "id": 21,
                "first_name": "Gus",
                "email": "gus@example.com",
                "registration_status": "confirmed",
                "balance": [{"currency_code": "USD", "amount": "12.00"}],
            }
        ],
        "groups": [],
    }

    res = await client.post(
        "/api/v1/imports/splitwise/export", headers=auth_headers(alice), content=json.dumps(doc)
    )
    assert res.status_code == 200, res.text
    assert res.json()["users_created"] == 1

    res = await client.post(
        "/api/v1/imports/splitwise/export", headers=auth_headers(alice), content=json.dumps(doc)
    )
    assert res.json()["users_created"] == 0

    res = await client.get("/api/v1/users/balances", headers=auth_headers(alice))
    assert [float(x["amount"]) for x in res.json()["owed_to_you"]] == [12.0]

    res = await client.post(
        "/api/v1/imports/splitwise/export", headers=auth_headers(alice), content="{oops"
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Error importing file"


@pytest.mark.asyncio
async def test_group_endpoints(client, users):
    alice, bob, _ = users

    res = await client.post("/api/v1/groups/", headers=auth_headers(alice), json={"name": "Band"})
    group_id = res.json()["id"]

    res = await client.post(f"/api/v1/groups/{group_id}/add/{bob.id}", headers=auth_headers(alice))
    assert res.json() == {"user_id": bob.id, "group_id": group_id}

    await client.post(
        "/api/v1/expenses/",
        headers=auth_headers(bob),
        json={
            "name": "Van",
            "amount": "60",
            "currency": "USD",
            "paid_by": bob.id,
            "group_id": group_id,
            "splits": [{"user_id": alice.id}, {"user_id": bob.id}],
        },
    )

    res = await client.get(f"/api/v1/groups/{group_id}/settlements", headers=auth_headers(alice))
    assert [(s["from_id"], s["to_id"], float(s["amount"])) for s in res.json()] == [(alice.id, bob.id, 30.0)]

    res = await client.delete(f"/api/v1/groups/{group_id}/leave", headers=auth_headers(alice))
    assert res.status_code == 400

    res = await client.post("/api/v1/users/me/download", headers=auth_headers(alice))
    assert res.status_code == 200
    assert res.json()["groups"][0]["name"] == "Band"


@pytest.mark.asyncio
async def test_health(client):
    res = await client.get("/api/v1/system/health")
    assert res.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ledger_health_and_metrics(client, users):
    alice, bob, _ = users
    await client.post(
        "/api/v1/settlements/",
        headers=auth_headers(alice),
        json={"friend_id": bob.id, "amount": "3", "currency": "USD"},
    )

    res = await client.get("/api/v1/system/health/ledger")
    assert res.json()["consistent"] is True

    res = await client.get("/api/v1/system/metrics")
    assert res.json() == {"users": 3, "groups": 0, "expenses": 1, "open_balances": 1}
