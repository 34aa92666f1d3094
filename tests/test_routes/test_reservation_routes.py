# tests/test_routes/test_reservation_routes.py
from datetime import timedelta

import pytest

from dropstock.core.exceptions import TransientDbError
from dropstock.services.reservation_service import ReservationService

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


async def test_reserve_returns_hold(client, make_drop, clock):
    drop_id = await make_drop(stock=2)

    response = await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["new_stock"] == 1
    assert data["reservation"]["status"] == "active"
    assert data["reservation"]["remaining_seconds"] == 60
    assert data["reservation"]["is_active"] is True
    assert data["hold_id"] == data["reservation"]["id"]


async def test_reserve_requires_holder_header(client, make_drop):
    drop_id = await make_drop(stock=2)

    response = await client.post("/api/reservations", json={"drop_id": drop_id})

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.json()["error"] == "unauthorized"


@pytest.mark.parametrize("payload", [{}, {"drop_id": "abc"}, {"drop_id": 0}])
async def test_reserve_rejects_malformed_body(client, payload):
    response = await client.post("/api/reservations", json=payload, headers=ALICE)

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


async def test_reserve_unknown_drop(client):
    response = await client.post("/api/reservations", json={"drop_id": 999}, headers=ALICE)

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


async def test_duplicate_and_out_of_stock_conflicts(client, make_drop):
    drop_id = await make_drop(stock=1)
    await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)

    duplicate = await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)
    sold_out = await client.post("/api/reservations", json={"drop_id": drop_id}, headers=BOB)

    assert duplicate.status_code == 409
    assert duplicate.json()["reason"] == "duplicate_active"
    assert sold_out.status_code == 409
    assert sold_out.json()["reason"] == "out_of_stock"


async def test_not_started_conflict(client, make_drop, clock):
    drop_id = await make_drop(stock=1, starts_at=clock() + timedelta(hours=1))

    response = await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)

    assert response.status_code == 409
    assert response.json()["reason"] == "not_started"


async def test_list_and_get_own_reservations(client, make_drop, clock):
    drop_id = await make_drop(stock=3)
    created = (await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)).json()
    await client.post("/api/reservations", json={"drop_id": drop_id}, headers=BOB)
    hold_id = created["data"]["hold_id"]

    clock.advance(seconds=20)
    mine = await client.get("/api/reservations/user", headers=ALICE)
    single = await client.get(f"/api/reservations/{hold_id}", headers=ALICE)
    theirs = await client.get(f"/api/reservations/{hold_id}", headers=BOB)

    assert [r["id"] for r in mine.json()["data"]] == [hold_id]
    assert single.json()["data"]["remaining_seconds"] == 40
    assert theirs.status_code == 404


async def test_list_filters_by_status(client, make_drop):
    drop_id = await make_drop(stock=3)
    created = (await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)).json()
    await client.delete(f"/api/reservations/{created['data']['hold_id']}", headers=ALICE)

    active = await client.get("/api/reservations/user", params={"status": "active"}, headers=ALICE)
    expired = await client.get("/api/reservations/user", params={"status": "expired"}, headers=ALICE)

    assert active.json()["data"] == []
    assert len(expired.json()["data"]) == 1


async def test_cancel_then_cancel_again(client, make_drop, read_drop, emitter):
    drop_id = await make_drop(stock=1)
    created = (await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)).json()
    hold_id = created["data"]["hold_id"]

    first = await client.delete(f"/api/reservations/{hold_id}", headers=ALICE)
    second = await client.delete(f"/api/reservations/{hold_id}", headers=ALICE)

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert second.status_code == 409
    assert second.json()["error"] == "state_conflict"
    assert (await read_drop(drop_id)).stock == 1
    assert "reservationCancelled" in emitter.names()


async def test_admin_listing_requires_basic_auth(client, make_drop):
    drop_id = await make_drop(stock=2)
    await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)

    anonymous = await client.get("/api/reservations")
    admin = await client.get("/api/reservations", auth=("admin", "secret"))

    assert anonymous.status_code == 401
    assert admin.status_code == 200
    assert [r["holder_id"] for r in admin.json()["data"]] == ["alice"]


async def test_transient_errors_ask_for_retry(client, make_drop, mocker):
    drop_id = await make_drop(stock=1)
    mocker.patch.object(ReservationService, "reserve", side_effect=TransientDbError("reserve timed out"))

    response = await client.post("/api/reservations", json={"drop_id": drop_id}, headers=ALICE)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["error"] == "transient_db_error"
