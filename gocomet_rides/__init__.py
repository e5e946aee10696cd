"""Ride lifecycle and location coordination core for the GoComet rides app."""

from .board import BoardState, DriverBoardRow, DriverRideBoard, RowAction
from .client import RideServiceClient
from .coordinator import RideRequestCoordinator
from .errors import Outcome, RideCoreError
from .geo import Geopoint, LocationSlot, distance_km
from .lifecycle import Ride, RideStatus
from .position import DriverPositionReporter, LocationSource, PositionFix, StaticLocationSource
from .schemas import DriverPosition, RideRequest
from .selection import LocationSelection

__version__ = "0.1.0"

__all__ = [
    "BoardState",
    "DriverBoardRow",
    "DriverPosition",
    "DriverPositionReporter",
    "DriverRideBoard",
    "Geopoint",
    "LocationSelection",
    "LocationSlot",
    "LocationSource",
    "Outcome",
    "PositionFix",
    "Ride",
    "RideCoreError",
    "RideRequest",
    "RideRequestCoordinator",
    "RideServiceClient",
    "RideStatus",
    "RowAction",
    "StaticLocationSource",
    "distance_km",
]
