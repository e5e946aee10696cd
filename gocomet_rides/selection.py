"""Two-slot pickup/drop-off selection state for a single booking attempt.

Only one picking session can be open at a time. Opening another slot drops the
current session without committing it. Nothing here talks to the network.
"""
from __future__ import annotations

import logging
from typing import Optional

from .errors import ValidationError
from .geo import Geopoint, LocationSlot
from .schemas import RideRequest

logger = logging.getLogger("gocomet.selection")


class LocationSelection:
    def __init__(self) -> None:
        self._slots: dict[LocationSlot, Optional[Geopoint]] = {
            LocationSlot.SOURCE: None,
            LocationSlot.DESTINATION: None,
        }
        self._active: Optional[LocationSlot] = None

    @property
    def active_slot(self) -> Optional[LocationSlot]:
        return self._active

    @property
    def source(self) -> Optional[Geopoint]:
        return self._slots[LocationSlot.SOURCE]

    @property
    def destination(self) -> Optional[Geopoint]:
        return self._slots[LocationSlot.DESTINATION]

    def get(self, slot: LocationSlot) -> Optional[Geopoint]:
        return self._slots[LocationSlot(slot)]

    def is_selected(self, slot: LocationSlot) -> bool:
        return self.get(slot) is not None

    def begin_selection(self, slot: LocationSlot) -> None:
        slot = LocationSlot(slot)
        if self._active is not None and self._active is not slot:
            logger.debug("dropping open %s session in favour of %s", self._active.value, slot.value)
        self._active = slot

    def confirm(self, point: Geopoint) -> LocationSlot:
        if self._active is None:
            raise ValidationError("No location is being picked right now.")
        if not isinstance(point, Geopoint):
            raise ValidationError("Pick a point on the map first.")
        slot = self._active
        self._slots[slot] = point
        self._active = None
        return slot

    def cancel(self) -> None:
        self._active = None

    def is_ready(self) -> bool:
        return all(p is not None for p in self._slots.values())

    def reset(self) -> None:
        for slot in self._slots:
            self._slots[slot] = None
        self._active = None

    def to_request(self, user_id: str) -> RideRequest:
        if not self.is_ready():
            missing = [s.label for s, p in self._slots.items() if p is None]
            raise ValidationError(f"Set the {' and '.join(missing)} location first.")
        return RideRequest.build(user_id, self.source, self.destination)

    def __repr__(self) -> str:
        return f"<LocationSelection source={self.source} destination={self.destination} active={self._active}>"
