from __future__ import annotations

import logging
from typing import Optional

from .client import RideServiceClient
from .errors import AlreadyInFlight, Outcome, RideCoreError, SubmissionFailed, ValidationError
from .geo import Geopoint
from .schemas import RideRequest
from .selection import LocationSelection

logger = logging.getLogger("gocomet.coordinator")


class RideRequestCoordinator:
    """Turns two confirmed points into exactly one ride-creation call.

    At most one submission is outstanding per coordinator. A second ``submit``
    while the first is awaiting the server is rejected with ``AlreadyInFlight``
    before any network I/O.
    """

    def __init__(self, client: RideServiceClient, selection: Optional[LocationSelection] = None) -> None:
        self.client = client
        self.selection = selection if selection is not None else LocationSelection()
        self._in_flight = False
        self.last_ride_id: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def submit(
        self,
        user_id: str,
        source: Optional[Geopoint] = None,
        destination: Optional[Geopoint] = None,
    ) -> Outcome[str]:
        """Create a ride. Missing points are taken from the selection.

        On failure the selection is left as it was so the rider can retry
        without picking again. If the caller stops waiting, the ride may still
        be created on the server.
        """
        # The guard is taken before the first await
        if self._in_flight:
            logger.info("rejecting duplicate submit for user %s", user_id)
            return Outcome.fail(AlreadyInFlight())
        try:
            request = RideRequest.build(
                user_id,
                source if source is not None else self.selection.source,
                destination if destination is not None else self.selection.destination,
            )
        except ValidationError as exc:
            return Outcome.fail(exc)

        self._in_flight = True
        try:
            ride_id = await self.client.create_ride(request)
        except RideCoreError as exc:
            logger.warning("ride submission failed for user %s: %s", request.user_id, exc.message)
            return Outcome.fail(SubmissionFailed(cause=exc))
        finally:
            self._in_flight = False

        self.last_ride_id = ride_id
        self.selection.reset()
        logger.info("ride %s created for user %s", ride_id, request.user_id)
        return Outcome.ok(ride_id)

    async def submit_selection(self, user_id: str) -> Outcome[str]:
        return await self.submit(user_id)
