import itertools
from decimal import Decimal

from fastapi.testclient import TestClient

from gocomet_rides.geo import Geopoint
from gocomet_rides.server.fares import quote_fare
from gocomet_rides.server.main import app


client = TestClient(app)
_ids = itertools.count(1)

BANGALORE = {"latitude": 12.9716, "longitude": 77.5946}
CHENNAI = {"latitude": 13.0827, "longitude": 80.2707}


def driver() -> str:
    return f"api-driver-{next(_ids)}"


def book(user="1234", source=BANGALORE, destination=CHENNAI) -> str:
    r = client.post("/api/v1/rides", json={"userId": user, "source": source, "destination": destination})
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Your ride has been confirmed!"
    return body["rideId"]


def ride(ride_id: str) -> dict:
    r = client.get(f"/api/v1/rides/{ride_id}")
    assert r.status_code == 200
    return r.json()["data"]


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"


def test_request_id_is_echoed():
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert client.get("/health").headers.get("X-Request-ID")


def test_create_ride_persists_exact_coordinates():
    ride_id = book(source={"latitude": 12.971598, "longitude": 77.594566})
    data = ride(ride_id)
    assert data["status"] == "WAITING"
    assert data["userId"] == "1234"
    assert data["pickup"] == {"latitude": 12.971598, "longitude": 77.594566}
    assert data["dropoff"] == CHENNAI
    assert "driverId" not in data or data["driverId"] is None


def test_create_ride_validation():
    r = client.post("/api/v1/rides", json={"userId": "1234", "source": {"latitude": 91, "longitude": 0}, "destination": CHENNAI})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["code"] == "validation_error"
    r = client.post("/api/v1/rides", json={"userId": "", "source": BANGALORE, "destination": CHENNAI})
    assert r.status_code == 400


def test_view_all_rides_lists_waiting_and_own_newest_first():
    me, other = driver(), driver()
    older = book()
    mine = book()
    taken = book()
    client.post("/api/v1/acceptRide", json={"driverId": me, "rideId": mine})
    client.post("/api/v1/acceptRide", json={"driverId": other, "rideId": taken})

    r = client.get(f"/api/v1/viewAllRides/{me}")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    ids = [x["id"] for x in body["data"]]
    assert mine in ids and older in ids
    assert taken not in ids
    assert ids.index(mine) < ids.index(older)
    for item in body["data"]:
        assert item["status"] == "WAITING" or item["driverId"] == me


def test_accept_race_second_driver_gets_conflict():
    a, b = driver(), driver()
    ride_id = book()
    r = client.post("/api/v1/acceptRide", json={"driverId": a, "rideId": ride_id})
    assert r.status_code == 200
    assert r.json()["success"] is True

    r = client.post("/api/v1/acceptRide", json={"driverId": b, "rideId": ride_id})
    assert r.status_code == 409
    assert r.json() == {
        "success": False,
        "message": r.json()["message"],
        "code": "invalid_transition",
    }
    data = ride(ride_id)
    assert data["status"] == "IN_PROGRESS"
    assert data["driverId"] == a


def test_finish_flow_and_fare():
    d = driver()
    ride_id = book()
    client.post("/api/v1/acceptRide", json={"driverId": d, "rideId": ride_id})
    r = client.post("/api/v1/trips/end", json={"driverId": d, "rideId": ride_id})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    expected = quote_fare(Geopoint(**BANGALORE), Geopoint(**CHENNAI))
    assert Decimal(str(body["fare"])) == expected
    data = ride(ride_id)
    assert data["status"] == "COMPLETED"
    assert Decimal(str(data["fare"])) == expected


def test_finish_by_wrong_driver_is_forbidden():
    a, b = driver(), driver()
    ride_id = book()
    client.post("/api/v1/acceptRide", json={"driverId": a, "rideId": ride_id})
    r = client.post("/api/v1/trips/end", json={"driverId": b, "rideId": ride_id})
    assert r.status_code == 403
    assert r.json()["code"] == "not_assigned_driver"
    assert ride(ride_id)["status"] == "IN_PROGRESS"


def test_finish_waiting_ride_is_conflict():
    ride_id = book()
    r = client.post("/api/v1/trips/end", json={"driverId": driver(), "rideId": ride_id})
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_transition"


def test_unknown_ride():
    assert client.get("/api/v1/rides/999999").status_code == 404
    r = client.post("/api/v1/acceptRide", json={"driverId": driver(), "rideId": "not-a-ride"})
    assert r.status_code == 404
    assert r.json()["code"] == "ride_not_found"


def test_cancel_waiting_and_terminal():
    ride_id = book()
    r = client.post("/api/v1/cancelRide", json={"rideId": ride_id, "reason": "changed plans"})
    assert r.status_code == 200
    assert ride(ride_id)["status"] == "CANCELLED"
    r = client.post("/api/v1/cancelRide", json={"rideId": ride_id})
    assert r.status_code == 409
    r = client.post("/api/v1/acceptRide", json={"driverId": driver(), "rideId": ride_id})
    assert r.status_code == 409


def test_driver_location_overwrites():
    d = driver()
    assert client.get(f"/api/v1/driverLocation/{d}").json()["data"] is None
    r = client.post("/api/v1/updateDriverLocation", json={"driverId": d, "latitude": 12.9716, "longitude": 77.5946})
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Location updated."}
    client.post("/api/v1/updateDriverLocation", json={"driverId": d, "latitude": 13.0827, "longitude": 80.2707})
    data = client.get(f"/api/v1/driverLocation/{d}").json()["data"]
    assert data["driverId"] == d
    assert data["location"] == CHENNAI


def test_driver_location_validation():
    r = client.post("/api/v1/updateDriverLocation", json={"driverId": driver(), "latitude": 95, "longitude": 0})
    assert r.status_code == 400


def test_fare_floor():
    p = Geopoint(**BANGALORE)
    assert quote_fare(p, p) == Decimal("50.00")


def test_metrics_exposed():
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "http_requests_total" in r.text
    assert "gocomet_ride_status_transitions_total" in r.text
