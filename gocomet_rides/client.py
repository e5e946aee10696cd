"""Async client for the ride service HTTP surface.

Every response is checked for an explicit success indicator. A 2xx reply with
a body we cannot interpret raises ``ProtocolError`` instead of passing as a
success. Calls cannot be cancelled mid-flight in a way that undoes their
effect: abandoning ``create_ride`` after it was sent may still create a ride.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, Optional
from urllib.parse import quote

import httpx
import pydantic

from .config import settings
from .errors import (
    ERRORS_BY_CODE,
    ProtocolError,
    RideCoreError,
    StateConflict,
    TransportError,
    ValidationError,
)
from .geo import Geopoint
from .lifecycle import Ride
from .metrics import record_call
from .schemas import ActionResult, CancelRideIn, DriverLocationIn, RideActionIn, RideRequest

logger = logging.getLogger("gocomet.client")

_NO_BODY = object()


def _require_id(value: Optional[str], what: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"A {what} is required.")
    return text


def _error_from_body(body: Any, default: type[RideCoreError] | None = None) -> RideCoreError | None:
    if not isinstance(body, dict):
        return None
    code = body.get("code")
    message = body.get("message") or body.get("detail")
    if not isinstance(message, str):
        message = None
    cls = ERRORS_BY_CODE.get(code) if isinstance(code, str) else None
    if cls is None:
        cls = default
    if cls is None:
        return None
    return cls(message)


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class RideServiceClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = (base_url or settings.RIDES_BASE_URL).rstrip("/")
        self.timeout = float(timeout if timeout is not None else settings.HTTP_TIMEOUT_SECS)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json", **(headers or {})},
        )

    async def __aenter__(self) -> "RideServiceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------ plumbing

    @contextmanager
    def _tracked(self, op: str) -> Iterator[None]:
        try:
            yield
        except RideCoreError as exc:
            record_call(op, exc.code)
            logger.warning("%s failed: %s (%s)", op, exc.message, exc.code)
            raise
        record_call(op, "ok")

    async def _request(self, op: str, method: str, path: str, *, json: Any = None) -> Any:
        request_id = uuid.uuid4().hex
        try:
            resp = await self._client.request(method, path, json=json, headers={"X-Request-ID": request_id})
        except httpx.TimeoutException as exc:
            raise TransportError(f"The ride service did not answer within {self.timeout:g}s.") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Could not reach the ride service ({exc.__class__.__name__}).") from exc

        try:
            body = resp.json() if resp.content else _NO_BODY
        except ValueError:
            body = _NO_BODY

        if not resp.is_success:
            err = _error_from_body(body)
            if err is not None:
                raise err
            raise TransportError(
                f"The ride service answered HTTP {resp.status_code}.",
                status_code=resp.status_code,
            )
        if body is _NO_BODY:
            raise ProtocolError(f"{op}: response body is not JSON.")
        logger.debug("%s %s -> %s [%s]", method, path, resp.status_code, request_id)
        return body

    @staticmethod
    def _action_result(op: str, body: Any) -> ActionResult:
        if not isinstance(body, dict) or not isinstance(body.get("success"), bool):
            raise ProtocolError(f"{op}: response has no success indicator.")
        try:
            result = ActionResult.model_validate(body)
        except pydantic.ValidationError as exc:
            raise ProtocolError(f"{op}: malformed response.") from exc
        if not result.success:
            raise _error_from_body(body, default=StateConflict)
        return result

    # ------------------------------------------------------------------ operations

    async def create_ride(self, request: RideRequest) -> str:
        """POST /api/v1/rides. Returns the new ride id."""
        with self._tracked("create_ride"):
            body = await self._request("create_ride", "POST", "/api/v1/rides", json=request.to_wire())
            if isinstance(body, dict) and body.get("success") is False:
                raise _error_from_body(body, default=StateConflict)
            payload = _unwrap(body)
            ride_id: Any = None
            if isinstance(payload, (str, int)) and not isinstance(payload, bool):
                ride_id = payload
            elif isinstance(payload, dict):
                ride_id = payload.get("rideId", payload.get("ride_id", payload.get("id")))
                if ride_id is None and isinstance(body, dict):
                    ride_id = body.get("rideId")
            if isinstance(ride_id, bool) or not isinstance(ride_id, (str, int)):
                ride_id = ""
            ride_id = str(ride_id).strip()
            if not ride_id:
                raise ProtocolError("create_ride: response carries no ride id.")
            return ride_id

    async def list_rides(self, driver_id: str) -> list[Ride]:
        """GET /api/v1/viewAllRides/{driverId}; accepts a bare list or ``{"data": [...]}``."""
        driver_id = _require_id(driver_id, "driver id")
        with self._tracked("list_rides"):
            body = await self._request("list_rides", "GET", f"/api/v1/viewAllRides/{quote(driver_id, safe='')}")
            if isinstance(body, dict) and body.get("success") is False:
                raise _error_from_body(body, default=StateConflict)
            items = _unwrap(body)
            if isinstance(items, dict) and isinstance(items.get("rides"), list):
                items = items["rides"]
            if not isinstance(items, list):
                raise ProtocolError("list_rides: expected a list of rides.")
            try:
                return [Ride.model_validate(item) for item in items]
            except pydantic.ValidationError as exc:
                raise ProtocolError("list_rides: a ride in the response is malformed.") from exc

    async def get_ride(self, ride_id: str) -> Ride:
        ride_id = _require_id(ride_id, "ride id")
        with self._tracked("get_ride"):
            body = await self._request("get_ride", "GET", f"/api/v1/rides/{quote(ride_id, safe='')}")
            if isinstance(body, dict) and body.get("success") is False:
                raise _error_from_body(body, default=StateConflict)
            try:
                return Ride.model_validate(_unwrap(body))
            except pydantic.ValidationError as exc:
                raise ProtocolError("get_ride: malformed ride.") from exc

    async def accept_ride(self, ride_id: str, driver_id: str) -> ActionResult:
        payload = RideActionIn(ride_id=_require_id(ride_id, "ride id"), driver_id=_require_id(driver_id, "driver id"))
        with self._tracked("accept_ride"):
            body = await self._request("accept_ride", "POST", "/api/v1/acceptRide", json=payload.to_wire())
            return self._action_result("accept_ride", body)

    async def finish_ride(self, ride_id: str, driver_id: str) -> Decimal:
        """POST /api/v1/trips/end. Returns the server-computed fare."""
        payload = RideActionIn(ride_id=_require_id(ride_id, "ride id"), driver_id=_require_id(driver_id, "driver id"))
        with self._tracked("finish_ride"):
            body = await self._request("finish_ride", "POST", "/api/v1/trips/end", json=payload.to_wire())
            result = self._action_result("finish_ride", body)
            if result.fare is None:
                raise ProtocolError("finish_ride: the trip ended but no fare was returned.")
            return result.fare

    async def cancel_ride(self, ride_id: str, reason: str | None = None) -> ActionResult:
        payload = CancelRideIn(ride_id=_require_id(ride_id, "ride id"), reason=reason)
        with self._tracked("cancel_ride"):
            body = await self._request("cancel_ride", "POST", "/api/v1/cancelRide", json=payload.to_wire())
            return self._action_result("cancel_ride", body)

    async def update_driver_location(
        self,
        driver_id: str,
        point: Geopoint,
        captured_at: datetime | None = None,
    ) -> ActionResult:
        payload = DriverLocationIn(
            driver_id=_require_id(driver_id, "driver id"),
            latitude=point.latitude,
            longitude=point.longitude,
            captured_at=captured_at,
        )
        with self._tracked("update_driver_location"):
            body = await self._request("update_driver_location", "POST", "/api/v1/updateDriverLocation", json=payload.to_wire())
            return self._action_result("update_driver_location", body)
