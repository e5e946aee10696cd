"""Ride lifecycle state machine.

    WAITING -> IN_PROGRESS -> COMPLETED
    WAITING -> CANCELLED
    IN_PROGRESS -> CANCELLED

COMPLETED and CANCELLED are terminal. Transition functions never mutate the
ride they are given; they return the next snapshot or raise.
"""
from __future__ import annotations

import enum
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidTransition, NotAssignedDriver, ValidationError
from .geo import Geopoint
from .schemas import Fare, Identifier

CENTS = Decimal("0.01")


class RideStatus(str, enum.Enum):
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TRANSITIONS: dict[RideStatus, frozenset[RideStatus]] = {
    RideStatus.WAITING: frozenset({RideStatus.IN_PROGRESS, RideStatus.CANCELLED}),
    RideStatus.IN_PROGRESS: frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED}),
    RideStatus.COMPLETED: frozenset(),
    RideStatus.CANCELLED: frozenset(),
}

# Spellings seen from older backends
_STATUS_ALIASES = {
    "PENDING": RideStatus.WAITING,
    "REQUESTED": RideStatus.WAITING,
    "ACCEPTED": RideStatus.IN_PROGRESS,
    "ONGOING": RideStatus.IN_PROGRESS,
    "FINISHED": RideStatus.COMPLETED,
    "CANCELED": RideStatus.CANCELLED,
}


def parse_status(value) -> RideStatus:
    if isinstance(value, RideStatus):
        return value
    key = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if key in _STATUS_ALIASES:
        return _STATUS_ALIASES[key]
    return RideStatus(key)


def is_terminal(status: RideStatus) -> bool:
    return not TRANSITIONS[parse_status(status)]


def can_transition(src: RideStatus, dst: RideStatus) -> bool:
    return parse_status(dst) in TRANSITIONS[parse_status(src)]


class Ride(BaseModel):
    """Snapshot of the server-of-record ride entity."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Identifier = Field(validation_alias=AliasChoices("id", "rideId", "_id"))
    user_id: Identifier = Field(validation_alias=AliasChoices("userId", "user_id"), serialization_alias="userId")
    driver_id: Optional[Identifier] = Field(
        default=None,
        validation_alias=AliasChoices("driverId", "driver_id"),
        serialization_alias="driverId",
    )
    pickup: Geopoint = Field(validation_alias=AliasChoices("pickup", "source"))
    dropoff: Geopoint = Field(validation_alias=AliasChoices("dropoff", "destination"))
    status: RideStatus
    fare: Optional[Fare] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, value):
        return parse_status(value)

    @field_validator("driver_id", mode="before")
    @classmethod
    def _blank_driver(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def is_assigned_to(self, driver_id: Optional[str]) -> bool:
        return bool(driver_id) and self.driver_id == str(driver_id)


def _require(ride: Ride, dst: RideStatus) -> None:
    if not can_transition(ride.status, dst):
        raise InvalidTransition(
            f"Ride {ride.id} is {ride.status.value}; it cannot move to {dst.value}."
        )


def normalise_fare(fare) -> Decimal:
    try:
        amount = Decimal(str(fare))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid fare {fare!r}") from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"Invalid fare {fare!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def accept(ride: Ride, driver_id: str) -> Ride:
    """WAITING -> IN_PROGRESS, assigning ``driver_id``."""
    _require(ride, RideStatus.IN_PROGRESS)
    if not (driver_id or "").strip():
        raise ValidationError("A driver id is required to accept a ride.")
    return ride.model_copy(update={"driver_id": str(driver_id), "status": RideStatus.IN_PROGRESS})


def finish(ride: Ride, driver_id: str, fare) -> Ride:
    """IN_PROGRESS -> COMPLETED, by the assigned driver only, recording ``fare``."""
    _require(ride, RideStatus.COMPLETED)
    if not ride.is_assigned_to(driver_id):
        raise NotAssignedDriver(f"Ride {ride.id} is not assigned to driver {driver_id}.")
    return ride.model_copy(update={"status": RideStatus.COMPLETED, "fare": normalise_fare(fare)})


def cancel(ride: Ride) -> Ride:
    _require(ride, RideStatus.CANCELLED)
    return ride.model_copy(update={"status": RideStatus.CANCELLED, "fare": None})
