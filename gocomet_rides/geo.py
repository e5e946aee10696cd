from __future__ import annotations

import enum
from math import asin, cos, radians, sin, sqrt

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .errors import ValidationError

EARTH_RADIUS_KM = 6371.0


class LocationSlot(str, enum.Enum):
    SOURCE = "source"
    DESTINATION = "destination"

    @property
    def label(self) -> str:
        return "pickup" if self is LocationSlot.SOURCE else "drop-off"


class Geopoint(BaseModel):
    """An immutable latitude/longitude pair.

    Full precision is kept for storage and transmission; ``display()`` rounds
    to six decimals for people.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False, validation_alias=AliasChoices("longitude", "lng", "lon"))

    @classmethod
    def of(cls, latitude: float, longitude: float) -> "Geopoint":
        """Build a point, raising our ``ValidationError`` for out-of-range input."""
        try:
            return cls(latitude=latitude, longitude=longitude)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid coordinates ({latitude}, {longitude})") from exc

    @classmethod
    def parse(cls, text: str) -> "Geopoint":
        """Parse ``"lat,lng"`` as typed on a command line."""
        parts = [p.strip() for p in (text or "").split(",")]
        if len(parts) != 2:
            raise ValidationError(f"Expected 'latitude,longitude', got {text!r}")
        try:
            lat, lng = float(parts[0]), float(parts[1])
        except ValueError:
            raise ValidationError(f"Expected 'latitude,longitude', got {text!r}") from None
        return cls.of(lat, lng)

    def display(self) -> str:
        return f"{self.latitude:.6f}, {self.longitude:.6f}"

    def __str__(self) -> str:
        return self.display()


def distance_km(a: Geopoint, b: Geopoint) -> float:
    """Great-circle distance between two points (haversine)."""
    lat1, lon1, lat2, lon2 = map(radians, [a.latitude, a.longitude, b.latitude, b.longitude])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * asin(sqrt(h)) * EARTH_RADIUS_KM
