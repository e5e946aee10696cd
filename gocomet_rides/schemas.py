from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

import pydantic
from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

from .errors import ValidationError
from .geo import Geopoint


def _coerce_identifier(value):
    # Older backends send numeric ids
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


Identifier = Annotated[str, BeforeValidator(_coerce_identifier), Field(min_length=1)]

# Fares travel as JSON numbers and are held as Decimal in memory
Fare = Annotated[Decimal, Field(ge=0), PlainSerializer(float, return_type=float, when_used="json")]


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RideRequest(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: Identifier = Field(validation_alias=AliasChoices("userId", "user_id"), serialization_alias="userId")
    source: Geopoint
    destination: Geopoint

    @classmethod
    def build(cls, user_id: str, source: Optional[Geopoint], destination: Optional[Geopoint]) -> "RideRequest":
        if not (user_id or "").strip():
            raise ValidationError("Log in before booking a ride.")
        if source is None:
            raise ValidationError("Set the pickup location first.")
        if destination is None:
            raise ValidationError("Set the drop-off location first.")
        try:
            return cls(user_id=user_id, source=source, destination=destination)
        except pydantic.ValidationError as exc:
            raise ValidationError("Invalid ride request.") from exc


class RideActionIn(WireModel):
    driver_id: Identifier = Field(validation_alias=AliasChoices("driverId", "driver_id"), serialization_alias="driverId")
    ride_id: Identifier = Field(validation_alias=AliasChoices("rideId", "ride_id"), serialization_alias="rideId")


class CancelRideIn(WireModel):
    ride_id: Identifier = Field(validation_alias=AliasChoices("rideId", "ride_id"), serialization_alias="rideId")
    reason: Optional[str] = Field(default=None, max_length=512)


class DriverLocationIn(WireModel):
    driver_id: Identifier = Field(validation_alias=AliasChoices("driverId", "driver_id"), serialization_alias="driverId")
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)
    captured_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("capturedAt", "captured_at"),
        serialization_alias="capturedAt",
    )


class DriverPosition(WireModel):
    driver_id: Identifier = Field(validation_alias=AliasChoices("driverId", "driver_id"), serialization_alias="driverId")
    location: Geopoint
    captured_at: datetime = Field(validation_alias=AliasChoices("capturedAt", "captured_at"), serialization_alias="capturedAt")


class ActionResult(WireModel):
    """``{success, message}`` envelope used by the mutating endpoints."""

    success: bool
    message: str = ""
    code: Optional[str] = None
    fare: Optional[Fare] = None


class CreateRideOut(ActionResult):
    ride_id: Optional[Identifier] = Field(
        default=None,
        validation_alias=AliasChoices("rideId", "ride_id", "id"),
        serialization_alias="rideId",
    )
