"""Driver ride board: the rides a driver can see, and the accept/finish actions.

The board holds a cached snapshot of server state. It changes in two ways
only: a fresh ``list_rides`` (full replace), or an optimistic update tied to
one outstanding accept/finish/cancel call. The optimistic row is kept when the
server confirms and is reverted to the last known server state when it does
not. A rejected transition (``StateConflict``) also forces a re-fetch of that
ride. A transition the cached row refuses is re-checked against a fresh copy
of the ride before it is given up. While a call on a row is outstanding,
further actions on that row are ignored.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from . import lifecycle
from .client import RideServiceClient
from .errors import (
    ActionPending,
    InvalidTransition,
    NotAssignedDriver,
    Outcome,
    RideCoreError,
    RideNotFound,
    StateConflict,
    ValidationError,
)
from .lifecycle import Ride, RideStatus

logger = logging.getLogger("gocomet.board")


class RowAction(str, enum.Enum):
    CONFIRM = "confirm"
    FINISH = "finish"


class BoardState(str, enum.Enum):
    IDLE = "idle"
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


def row_actions(ride: Ride, driver_id: Optional[str]) -> frozenset[RowAction]:
    if ride.status is RideStatus.WAITING:
        return frozenset({RowAction.CONFIRM})
    if ride.status is RideStatus.IN_PROGRESS and ride.is_assigned_to(driver_id):
        return frozenset({RowAction.FINISH})
    return frozenset()


@dataclass(frozen=True)
class DriverBoardRow:
    ride: Ride
    actions: frozenset[RowAction]
    pending: bool = False

    @property
    def ride_id(self) -> str:
        return self.ride.id

    @property
    def status(self) -> RideStatus:
        return self.ride.status

    @property
    def can_confirm(self) -> bool:
        return RowAction.CONFIRM in self.actions

    @property
    def can_finish(self) -> bool:
        return RowAction.FINISH in self.actions


class DriverRideBoard:
    def __init__(self, client: RideServiceClient, driver_id: str) -> None:
        if not (driver_id or "").strip():
            raise ValidationError("A driver id is required.")
        self.client = client
        self.driver_id = str(driver_id)
        self.state = BoardState.IDLE
        self.last_error: Optional[RideCoreError] = None
        self._order: list[str] = []
        self._server: dict[str, Ride] = {}
        self._local: dict[str, Ride] = {}
        self._pending: set[str] = set()

    # ------------------------------------------------------------------ read model

    def rows(self) -> list[DriverBoardRow]:
        return [self._row(ride_id) for ride_id in self._order]

    def row(self, ride_id: str) -> Optional[DriverBoardRow]:
        if ride_id not in self._local:
            return None
        return self._row(ride_id)

    def is_pending(self, ride_id: str) -> bool:
        return ride_id in self._pending

    @property
    def is_empty(self) -> bool:
        return self.state is BoardState.EMPTY

    def _row(self, ride_id: str) -> DriverBoardRow:
        ride = self._local[ride_id]
        pending = ride_id in self._pending
        actions = frozenset() if pending else row_actions(ride, self.driver_id)
        return DriverBoardRow(ride=ride, actions=actions, pending=pending)

    # ------------------------------------------------------------------ queries

    async def list_rides(self) -> Outcome[list[Ride]]:
        """Fetch the rides visible to this driver. Re-issue it to see updates."""
        try:
            rides = await self.client.list_rides(self.driver_id)
        except RideCoreError as exc:
            self.state = BoardState.ERROR
            self.last_error = exc
            return Outcome.fail(exc)
        self._replace(rides)
        self.last_error = None
        self.state = BoardState.READY if rides else BoardState.EMPTY
        return Outcome.ok(rides)

    async def refresh_ride(self, ride_id: str) -> Outcome[Ride]:
        try:
            ride = await self.client.get_ride(ride_id)
        except RideNotFound as exc:
            self._drop(ride_id)
            return Outcome.fail(exc)
        except RideCoreError as exc:
            logger.warning("could not re-fetch ride %s: %s", ride_id, exc.message)
            return Outcome.fail(exc)
        self._server[ride_id] = ride
        self._local[ride_id] = ride
        if ride_id not in self._order:
            self._order.append(ride_id)
        self.state = BoardState.READY
        return Outcome.ok(ride)

    def _replace(self, rides: list[Ride]) -> None:
        order: list[str] = []
        server: dict[str, Ride] = {}
        local: dict[str, Ride] = {}
        for ride in rides:
            if ride.id in server:
                continue
            order.append(ride.id)
            server[ride.id] = ride
            # A row awaiting a response keeps its optimistic state until the call resolves
            if ride.id in self._pending and ride.id in self._local:
                local[ride.id] = self._local[ride.id]
            else:
                local[ride.id] = ride
        for ride_id in self._pending:
            if ride_id not in server and ride_id in self._local:
                order.append(ride_id)
                server[ride_id] = self._server.get(ride_id, self._local[ride_id])
                local[ride_id] = self._local[ride_id]
        self._order, self._server, self._local = order, server, local

    def _drop(self, ride_id: str) -> None:
        self._server.pop(ride_id, None)
        self._local.pop(ride_id, None)
        if ride_id in self._order:
            self._order.remove(ride_id)
        if not self._order and self.state is BoardState.READY:
            self.state = BoardState.EMPTY

    # ------------------------------------------------------------------ commands

    async def accept_and_refresh(self, ride_id: str) -> Outcome[Ride]:
        return await self._act(
            ride_id,
            "accept",
            lambda ride: lifecycle.accept(ride, self.driver_id),
            lambda: self.client.accept_ride(ride_id, self.driver_id),
            lambda optimistic, _result: optimistic,
        )

    async def finish_and_refresh(self, ride_id: str) -> Outcome[Ride]:
        return await self._act(
            ride_id,
            "finish",
            self._optimistic_finish,
            lambda: self.client.finish_ride(ride_id, self.driver_id),
            lambda optimistic, fare: optimistic.model_copy(update={"fare": lifecycle.normalise_fare(fare)}),
        )

    async def cancel_and_refresh(self, ride_id: str, reason: str | None = None) -> Outcome[Ride]:
        return await self._act(
            ride_id,
            "cancel",
            lifecycle.cancel,
            lambda: self.client.cancel_ride(ride_id, reason),
            lambda optimistic, _result: optimistic,
        )

    def _optimistic_finish(self, ride: Ride) -> Ride:
        if ride.status is not RideStatus.IN_PROGRESS:
            raise InvalidTransition(f"Ride {ride.id} is {ride.status.value}; it cannot be finished.")
        if not ride.is_assigned_to(self.driver_id):
            raise NotAssignedDriver(f"Ride {ride.id} is not assigned to driver {self.driver_id}.")
        return ride.model_copy(update={"status": RideStatus.COMPLETED})

    async def _act(
        self,
        ride_id: str,
        op: str,
        optimistic: Callable[[Ride], Ride],
        call: Callable[[], Awaitable[object]],
        confirm: Callable[[Ride, object], Ride],
    ) -> Outcome[Ride]:
        if ride_id in self._pending:
            return Outcome.fail(ActionPending())
        if ride_id not in self._local:
            return Outcome.fail(RideNotFound(f"Ride {ride_id} is not on the board. Refresh the list."))
        self._pending.add(ride_id)
        try:
            return await self._run(ride_id, op, optimistic, call, confirm)
        finally:
            self._pending.discard(ride_id)

    async def _run(
        self,
        ride_id: str,
        op: str,
        optimistic: Callable[[Ride], Ride],
        call: Callable[[], Awaitable[object]],
        confirm: Callable[[Ride, object], Ride],
    ) -> Outcome[Ride]:
        try:
            guess = optimistic(self._local[ride_id])
        except StateConflict as exc:
            # The cached row may be stale; re-check against the server's current state
            logger.info("%s on ride %s refused locally (%s), re-fetching", op, ride_id, exc.code)
            refreshed = await self.refresh_ride(ride_id)
            if not refreshed.success:
                return Outcome.fail(refreshed.error)
            try:
                guess = optimistic(refreshed.value)
            except RideCoreError as again:
                return Outcome.fail(again)
        except RideCoreError as exc:
            return Outcome.fail(exc)

        self._local[ride_id] = guess
        try:
            result = await call()
            confirmed = confirm(guess, result)
        except StateConflict as exc:
            logger.info("%s on ride %s rejected by server: %s", op, ride_id, exc.message)
            self._revert(ride_id)
            await self.refresh_ride(ride_id)
            return Outcome.fail(exc)
        except RideNotFound as exc:
            self._drop(ride_id)
            return Outcome.fail(exc)
        except RideCoreError as exc:
            logger.warning("%s on ride %s failed: %s", op, ride_id, exc.message)
            self._revert(ride_id)
            return Outcome.fail(exc)

        self._server[ride_id] = confirmed
        self._local[ride_id] = confirmed
        logger.info("ride %s %s by driver %s -> %s", ride_id, op, self.driver_id, confirmed.status.value)
        return Outcome.ok(confirmed)

    def _revert(self, ride_id: str) -> None:
        known = self._server.get(ride_id)
        if known is not None:
            self._local[ride_id] = known
