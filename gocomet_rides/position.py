from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from .client import RideServiceClient
from .config import settings
from .errors import (
    CapabilityError,
    LocationTimeout,
    LocationUnavailable,
    NoPosition,
    Outcome,
    ReportFailed,
    RideCoreError,
    ValidationError,
)
from .geo import Geopoint
from .metrics import count_report
from .schemas import DriverPosition

logger = logging.getLogger("gocomet.position")


@dataclass(frozen=True)
class PositionFix:
    point: Geopoint
    captured_at: datetime


class LocationSource(Protocol):
    """Platform geolocation capability.

    Implementations raise ``PermissionDenied`` or ``LocationUnavailable``
    when they cannot produce a fix.
    """

    async def current_position(self, *, high_accuracy: bool, maximum_age: float) -> PositionFix:
        ...


class StaticLocationSource:
    """Always reports the same point, freshly stamped. Useful for depots and the CLI."""

    def __init__(self, point: Geopoint) -> None:
        self.point = point

    async def current_position(self, *, high_accuracy: bool = True, maximum_age: float = 0.0) -> PositionFix:
        return PositionFix(self.point, datetime.now(timezone.utc))


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class DriverPositionReporter:
    """Captures the driver's position on demand and uploads it.

    Independent of ride state. Nothing is retried automatically.
    """

    def __init__(
        self,
        client: RideServiceClient,
        source: Optional[LocationSource] = None,
        *,
        timeout: float | None = None,
        max_fix_age: float | None = None,
        high_accuracy: bool | None = None,
    ) -> None:
        self.client = client
        self.source = source
        self.timeout = float(timeout if timeout is not None else settings.GEO_TIMEOUT_SECS)
        self.max_fix_age = float(max_fix_age if max_fix_age is not None else settings.GEO_MAX_FIX_AGE_SECS)
        self.high_accuracy = settings.GEO_HIGH_ACCURACY if high_accuracy is None else bool(high_accuracy)
        self._last: Optional[PositionFix] = None

    @property
    def last_fix(self) -> Optional[PositionFix]:
        return self._last

    def last_position(self, driver_id: str) -> Optional[DriverPosition]:
        if self._last is None:
            return None
        return DriverPosition(driver_id=driver_id, location=self._last.point, captured_at=self._last.captured_at)

    def clear(self) -> None:
        self._last = None

    async def capture(self) -> Outcome[Geopoint]:
        if self.source is None:
            return Outcome.fail(LocationUnavailable())
        started = datetime.now(timezone.utc)
        try:
            fix = await asyncio.wait_for(
                self.source.current_position(high_accuracy=self.high_accuracy, maximum_age=self.max_fix_age),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("location capture timed out after %.1fs", self.timeout)
            return Outcome.fail(LocationTimeout())
        except CapabilityError as exc:
            logger.warning("location capture failed: %s", exc.code)
            return Outcome.fail(exc)
        except Exception:
            logger.exception("location source raised unexpectedly")
            return Outcome.fail(CapabilityError())

        # A fix older than the allowed age is stale; it is never reused
        if _aware(fix.captured_at) < started - timedelta(seconds=self.max_fix_age):
            logger.warning("discarding stale location fix from %s", fix.captured_at.isoformat())
            return Outcome.fail(CapabilityError("Your device returned an outdated location. Please try again."))

        self._last = PositionFix(fix.point, _aware(fix.captured_at))
        return Outcome.ok(fix.point)

    async def report(self, driver_id: str, point: Optional[Geopoint] = None) -> Outcome[None]:
        """Upload ``point``, or the last captured fix when no point is given."""
        if not (driver_id or "").strip():
            return Outcome.fail(ValidationError("A driver id is required."))
        captured_at = datetime.now(timezone.utc)
        if point is None:
            if self._last is None:
                return Outcome.fail(NoPosition())
            point, captured_at = self._last.point, self._last.captured_at
        try:
            await self.client.update_driver_location(driver_id, point, captured_at)
        except RideCoreError as exc:
            count_report("err")
            return Outcome.fail(ReportFailed(cause=exc))
        count_report("ok")
        logger.info("reported position %s for driver %s", point.display(), driver_id)
        return Outcome.ok()
