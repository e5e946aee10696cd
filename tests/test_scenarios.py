"""End-to-end flows: client components against the reference service."""
import asyncio
from decimal import Decimal

import pytest

from gocomet_rides.board import DriverRideBoard
from gocomet_rides.coordinator import RideRequestCoordinator
from gocomet_rides.errors import InvalidTransition, NoPosition, PermissionDenied
from gocomet_rides.geo import Geopoint, LocationSlot
from gocomet_rides.lifecycle import RideStatus
from gocomet_rides.position import DriverPositionReporter, StaticLocationSource
from gocomet_rides.selection import LocationSelection
from gocomet_rides.server.fares import quote_fare

pytestmark = pytest.mark.anyio

BANGALORE = Geopoint.of(12.9716, 77.5946)
CHENNAI = Geopoint.of(13.0827, 80.2707)


def _picked(source, destination):
    sel = LocationSelection()
    sel.begin_selection(LocationSlot.SOURCE)
    sel.confirm(source)
    sel.begin_selection(LocationSlot.DESTINATION)
    sel.confirm(destination)
    return sel


async def test_book_accept_finish(ride_client):
    sel = _picked(BANGALORE, CHENNAI)
    booked = await RideRequestCoordinator(ride_client, sel).submit("1234")
    assert booked.success
    ride_id = booked.value
    assert sel.source is None

    board = DriverRideBoard(ride_client, "scenario-D1")
    assert (await board.list_rides()).success
    row = board.row(ride_id)
    assert row.status is RideStatus.WAITING
    assert row.can_confirm
    assert row.ride.user_id == "1234"

    accepted = await board.accept_and_refresh(ride_id)
    assert accepted.success
    assert board.row(ride_id).can_finish

    finished = await board.finish_and_refresh(ride_id)
    assert finished.success
    assert finished.value.status is RideStatus.COMPLETED
    assert finished.value.fare == quote_fare(BANGALORE, CHENNAI)
    assert finished.value.fare > Decimal("50.00")

    stored = await ride_client.get_ride(ride_id)
    assert stored.status is RideStatus.COMPLETED
    assert stored.driver_id == "scenario-D1"


async def test_six_decimal_coordinates_survive_round_trip(ride_client):
    src = Geopoint.of(12.971598, 77.594566)
    dst = Geopoint.of(13.082680, 80.270718)
    booked = await RideRequestCoordinator(ride_client).submit("1234", src, dst)
    stored = await ride_client.get_ride(booked.value)
    assert stored.pickup == src
    assert stored.dropoff == dst
    assert stored.pickup.display() == "12.971598, 77.594566"


async def test_two_drivers_race_for_one_ride(ride_client):
    booked = await RideRequestCoordinator(ride_client).submit("1234", BANGALORE, CHENNAI)
    ride_id = booked.value
    a = DriverRideBoard(ride_client, "scenario-A")
    b = DriverRideBoard(ride_client, "scenario-B")
    await a.list_rides()
    await b.list_rides()

    first = await a.accept_and_refresh(ride_id)
    second = await b.accept_and_refresh(ride_id)
    assert first.success
    assert second.is_error(InvalidTransition)

    # The losing board re-fetched the ride and now shows it held by A
    row = b.row(ride_id)
    assert row.status is RideStatus.IN_PROGRESS
    assert row.ride.driver_id == "scenario-A"
    assert not row.can_confirm and not row.can_finish


async def test_concurrent_double_submit_creates_one_ride(ride_client):
    coord = RideRequestCoordinator(ride_client, _picked(BANGALORE, CHENNAI))
    first, second = await asyncio.gather(coord.submit("double-tap"), coord.submit("double-tap"))
    assert first.success
    assert not second.success
    assert second.error.code == "already_in_flight"


async def test_driver_position_reported(ride_client):
    reporter = DriverPositionReporter(ride_client, StaticLocationSource(BANGALORE))
    assert (await reporter.capture()).success
    assert (await reporter.report("scenario-loc")).success


async def test_denied_location_reports_nothing(ride_client):
    class Denied:
        async def current_position(self, *, high_accuracy, maximum_age):
            raise PermissionDenied()

    reporter = DriverPositionReporter(ride_client, Denied())
    assert (await reporter.capture()).is_error(PermissionDenied)
    assert (await reporter.report("scenario-loc")).is_error(NoPosition)
