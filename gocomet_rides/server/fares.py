from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ..config import settings
from ..geo import Geopoint, distance_km

CENTS = Decimal("0.01")


def quote_fare(pickup: Geopoint, dropoff: Geopoint) -> Decimal:
    """Base fare plus a per-km rate on the straight-line distance, floored at MIN_FARE."""
    dist = Decimal(str(round(distance_km(pickup, dropoff), 3)))
    fare = settings.BASE_FARE + settings.PER_KM_FARE * dist
    fare = max(fare, settings.MIN_FARE)
    return fare.quantize(CENTS, rounding=ROUND_HALF_UP)
