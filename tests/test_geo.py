import math

import pytest

from gocomet_rides.errors import ValidationError
from gocomet_rides.geo import Geopoint, LocationSlot, distance_km


BANGALORE = Geopoint.of(12.9716, 77.5946)
CHENNAI = Geopoint.of(13.0827, 80.2707)


def test_geopoint_accepts_boundaries():
    assert Geopoint.of(90, 180).latitude == 90
    assert Geopoint.of(-90, -180).longitude == -180


@pytest.mark.parametrize("lat,lng", [(90.0001, 0), (-91, 0), (0, 180.5), (0, -181), (math.nan, 0), (0, math.inf)])
def test_geopoint_rejects_out_of_range(lat, lng):
    with pytest.raises(ValidationError):
        Geopoint.of(lat, lng)


def test_geopoint_accepts_short_aliases():
    p = Geopoint.model_validate({"lat": 1.5, "lng": 2.5})
    assert (p.latitude, p.longitude) == (1.5, 2.5)
    assert Geopoint.model_validate({"lat": 1.5, "lon": 2.5}) == p


def test_geopoint_is_immutable():
    with pytest.raises(Exception):
        BANGALORE.latitude = 0  # type: ignore[misc]


def test_display_rounds_to_six_decimals_but_keeps_precision():
    p = Geopoint.of(12.97160049, 77.59460012)
    assert p.display() == "12.971600, 77.594600"
    assert str(p) == p.display()
    assert p.latitude == 12.97160049


def test_parse():
    assert Geopoint.parse(" 12.9716 , 77.5946 ") == BANGALORE
    for bad in ("", "12.9", "a,b", "1,2,3", "100,0"):
        with pytest.raises(ValidationError):
            Geopoint.parse(bad)


def test_distance():
    assert distance_km(BANGALORE, BANGALORE) == 0
    d = distance_km(BANGALORE, CHENNAI)
    assert 285 < d < 295
    assert d == pytest.approx(distance_km(CHENNAI, BANGALORE))


def test_slot_labels():
    assert LocationSlot.SOURCE.label == "pickup"
    assert LocationSlot.DESTINATION.label == "drop-off"
    assert LocationSlot("source") is LocationSlot.SOURCE
