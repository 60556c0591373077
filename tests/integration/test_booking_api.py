from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import OperationalError

from seatledger.db.session import get_session


def _hold(client, headers, seats, trip_id="T1", passengers=None):
    return client.post(
        "/bookings",
        json={"trip_id": trip_id, "seat_ids": seats, "passengers": passengers or []},
        headers=headers,
    )


def _seat_statuses(client, trip_id="T1"):
    resp = client.get(f"/trips/{trip_id}/seats")
    assert resp.status_code == 200
    return {s["seat_id"]: s["status"] for s in resp.json()["seats"]}


class TestSeatSnapshot:
    def test_snapshot_lists_every_seat(self, client):
        resp = client.get("/trips/T1/seats")

        assert resp.status_code == 200
        body = resp.json()
        assert body["trip_id"] == "T1"
        assert len(body["seats"]) == 56
        assert body["seats"][0] == {
            "seat_id": "1",
            "label": "1W",
            "row": 1,
            "col": 1,
            "is_window": True,
            "status": "available",
        }
        assert "X-Trace-Id" in resp.headers

    def test_reading_unknown_trip_keeps_registry_empty(self, client):
        assert client.get("/trips/nowhere/seats").status_code == 200
        assert client.app.state.ledger_registry.get_trip("nowhere") is None


class TestBookingFlow:
    def test_requires_authentication(self, client):
        resp = client.post("/bookings", json={"trip_id": "T1", "seat_ids": ["1"]})
        assert resp.status_code == 401

        resp = client.post(
            "/bookings", json={"trip_id": "T1", "seat_ids": ["1"]}, headers={"Authorization": "Bearer junk"}
        )
        assert resp.status_code == 401

    def test_end_to_end_scenario(self, client, alice, bob):
        resp = _hold(client, alice, ["1", "2"])
        assert resp.status_code == 200, resp.text
        held = resp.json()
        expires_at = datetime.fromisoformat(held["expires_at"])
        assert expires_at.tzinfo is not None
        statuses = _seat_statuses(client)
        assert statuses["1"] == statuses["2"] == "held"

        resp = _hold(client, bob, ["2", "3"])
        assert resp.status_code == 409
        assert resp.json()["seat_id"] == "2"
        assert resp.json()["status"] == "held"
        assert _seat_statuses(client)["3"] == "available"

        resp = client.post(
            f"/bookings/{held['booking_id']}/confirm",
            json={"amount": "300.00", "payment_ref": "pay-123"},
            headers=alice,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "confirmed"
        assert resp.json()["confirmed_at"] is not None
        statuses = _seat_statuses(client)
        assert statuses["1"] == statuses["2"] == "booked"

        resp = _hold(client, bob, ["3", "4"])
        assert resp.status_code == 200

    def test_confirm_twice(self, client, alice):
        booking_id = _hold(client, alice, ["5"]).json()["booking_id"]

        assert client.post(f"/bookings/{booking_id}/confirm", headers=alice).status_code == 200
        resp = client.post(f"/bookings/{booking_id}/confirm", headers=alice)

        assert resp.status_code == 409
        assert "already confirmed" in resp.json()["detail"]

    def test_revise_and_read_back(self, client, alice):
        booking_id = _hold(client, alice, ["1"], passengers=[{"name": "Ann"}]).json()["booking_id"]

        resp = client.patch(
            f"/bookings/{booking_id}",
            json={"trip_id": "T1", "seat_ids": ["7", "8"], "passengers": [{"name": "Ann"}, {"name": "Ben", "age": 9}]},
            headers=alice,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["seat_ids"] == ["7", "8"]

        resp = client.get(f"/bookings/{booking_id}", params={"trip_id": "T1"}, headers=alice)
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "draft"
        assert body["seat_ids"] == ["7", "8"]
        assert body["passengers"][1]["age"] == 9
        assert body["expires_at"] is not None
        statuses = _seat_statuses(client)
        assert statuses["1"] == "available"
        assert statuses["7"] == statuses["8"] == "held"

    def test_revise_by_other_owner_is_forbidden(self, client, alice, bob):
        booking_id = _hold(client, alice, ["1"]).json()["booking_id"]

        resp = client.patch(f"/bookings/{booking_id}", json={"trip_id": "T1", "seat_ids": ["2"]}, headers=bob)

        assert resp.status_code == 403
        statuses = _seat_statuses(client)
        assert statuses["1"] == "held"
        assert statuses["2"] == "available"

    def test_cancel_hold(self, client, alice):
        booking_id = _hold(client, alice, ["4"]).json()["booking_id"]

        resp = client.delete(f"/bookings/{booking_id}/hold", params={"trip_id": "T1"}, headers=alice)

        assert resp.status_code == 200
        assert resp.json() == {"released": True}
        assert _seat_statuses(client)["4"] == "available"
        resp = client.get(f"/bookings/{booking_id}", params={"trip_id": "T1"}, headers=alice)
        assert resp.status_code == 404

    def test_expired_hold_cannot_be_confirmed(self, client, clock, alice, bob):
        booking_id = _hold(client, alice, ["1"]).json()["booking_id"]
        clock.advance(301)

        resp = client.post(f"/bookings/{booking_id}/confirm", headers=alice)

        assert resp.status_code == 410
        assert _hold(client, bob, ["1"]).status_code == 200

    def test_invalid_selections(self, client, alice):
        assert _hold(client, alice, []).status_code == 400
        assert _hold(client, alice, ["1", "2", "3", "4", "5", "6"]).status_code == 400
        assert _hold(client, alice, ["99"]).status_code == 400
        assert _hold(client, alice, ["1"], passengers=[{"name": "A"}, {"name": "B"}]).status_code == 400

    def test_unknown_booking(self, client, alice):
        assert client.post("/bookings/missing/confirm", headers=alice).status_code == 404


class TestDurableRestore:
    def test_confirmed_seats_survive_ledger_reset(self, client, alice):
        booking_id = _hold(client, alice, ["10", "11"]).json()["booking_id"]
        assert client.post(f"/bookings/{booking_id}/confirm", headers=alice).status_code == 200

        # simulate a restart: in-memory state gone, durable records remain
        registry = client.app.state.ledger_registry
        registry._trips.clear()

        statuses = _seat_statuses(client)
        assert statuses["10"] == statuses["11"] == "booked"

    def test_booked_seat_cannot_be_held_after_reset(self, client, alice, bob):
        booking_id = _hold(client, alice, ["10"]).json()["booking_id"]
        assert client.post(f"/bookings/{booking_id}/confirm", headers=alice).status_code == 200

        client.app.state.ledger_registry._trips.clear()

        resp = _hold(client, bob, ["9", "10"])
        assert resp.status_code == 409
        assert resp.json()["seat_id"] == "10"
        assert resp.json()["status"] == "booked"

    def test_revise_onto_booked_seat_after_reset(self, client, alice, bob):
        booking_id = _hold(client, alice, ["10"]).json()["booking_id"]
        assert client.post(f"/bookings/{booking_id}/confirm", headers=alice).status_code == 200
        bob_booking = _hold(client, bob, ["12"]).json()["booking_id"]

        # drop only the confirmed seat from memory
        trip = client.app.state.ledger_registry.get_trip("T1")
        trip.seat_status.pop("10")

        resp = client.patch(f"/bookings/{bob_booking}", json={"trip_id": "T1", "seat_ids": ["10"]}, headers=bob)
        assert resp.status_code == 409
        assert resp.json()["status"] == "booked"
        assert _seat_statuses(client)["12"] == "held"


class TestDurableWriteFailure:
    def test_confirm_returns_503_and_keeps_seats_booked(self, client, alice):
        booking_id = _hold(client, alice, ["20", "21"]).json()["booking_id"]

        db = MagicMock()
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        db.execute = AsyncMock(return_value=result)
        db.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("db down")))
        db.rollback = AsyncMock()
        db.refresh = AsyncMock()

        async def _failing_session():
            yield db

        client.app.dependency_overrides[get_session] = _failing_session
        resp = client.post(f"/bookings/{booking_id}/confirm", headers=alice)

        assert resp.status_code == 503
        assert booking_id in resp.json()["detail"]
        assert db.commit.await_count >= 1
        statuses = _seat_statuses(client)
        assert statuses["20"] == statuses["21"] == "booked"
        resp = client.post(f"/bookings/{booking_id}/confirm", headers=alice)
        assert resp.status_code == 409


class TestMyBookings:
    def test_lists_own_bookings_across_trips(self, client, alice, bob):
        first = _hold(client, alice, ["1"], trip_id="T1").json()["booking_id"]
        second = _hold(client, alice, ["2"], trip_id="T2").json()["booking_id"]
        _hold(client, bob, ["3"], trip_id="T1")
        assert client.post(f"/bookings/{first}/confirm", headers=alice).status_code == 200

        resp = client.get("/bookings", headers=alice)

        assert resp.status_code == 200
        by_id = {b["booking_id"]: b for b in resp.json()}
        assert set(by_id) == {first, second}
        assert by_id[first]["status"] == "confirmed"
        assert by_id[second]["status"] == "draft"
        assert by_id[second]["trip_id"] == "T2"
        assert by_id[second]["expires_at"] is not None

    def test_requires_authentication(self, client):
        assert client.get("/bookings").status_code == 401


class TestServiceEndpoints:
    def test_health_and_ready(self, client):
        assert client.get("/health").json() == {"status": "ok"}
        assert client.get("/ready").json() == {"status": "ready"}

    def test_metrics(self, client, alice):
        _hold(client, alice, ["1"])

        resp = client.get("/metrics")

        assert resp.status_code == 200
        assert "seatledger_active_holds 1.0" in resp.text
        assert "seatledger_seat_hold_attempts_total" in resp.text
