"""Error taxonomy for the ride core.

The HTTP client raises these; the coordinator, board and position reporter
catch them at their boundary and hand them back inside an :class:`Outcome`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class RideCoreError(Exception):
    """Base class. ``message`` is always safe to show to a user."""

    code = "error"
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationError(RideCoreError):
    """Missing or invalid input, caught before any network call."""

    code = "validation_error"
    default_message = "Some of the details are missing or invalid."


class TransportError(RideCoreError):
    """Network unreachable, timed out, or a non-2xx status."""

    code = "transport_error"
    default_message = "Could not reach the ride service."

    def __init__(self, message: str | None = None, *, status_code: int | None = None, code: str | None = None):
        self.status_code = status_code
        super().__init__(message, code=code)


class ProtocolError(RideCoreError):
    """2xx status whose body is unparseable or lacks a success indicator."""

    code = "unexpected_response_format"
    default_message = "The ride service sent an unexpected response."


class StateConflict(RideCoreError):
    """The server rejected a transition; its current state differs from ours."""

    code = "state_conflict"
    default_message = "This ride has changed. Refresh to see its current state."


class InvalidTransition(StateConflict):
    code = "invalid_transition"
    default_message = "This ride can no longer be updated that way."


class NotAssignedDriver(StateConflict):
    code = "not_assigned_driver"
    default_message = "This ride is assigned to another driver."


class RideNotFound(RideCoreError):
    code = "ride_not_found"
    default_message = "Ride not found."


class CapabilityError(RideCoreError):
    code = "capability_error"
    default_message = "Unable to retrieve your location. Please try again."


class LocationUnavailable(CapabilityError):
    code = "location_unavailable"
    default_message = "Geolocation is not supported on this device."


class PermissionDenied(CapabilityError):
    code = "permission_denied"
    default_message = "Location permission was denied."


class LocationTimeout(CapabilityError):
    code = "location_timeout"
    default_message = "Timed out while getting your location."


class AlreadyInFlight(RideCoreError):
    code = "already_in_flight"
    default_message = "Your ride request is already being submitted."


class ActionPending(RideCoreError):
    code = "action_pending"
    default_message = "Still waiting for the previous action on this ride."


class SubmissionFailed(RideCoreError):
    code = "submission_failed"
    default_message = "Failed to confirm ride. Please try again."

    def __init__(self, reason: str | None = None, *, cause: RideCoreError | None = None):
        self.reason = reason or (cause.message if cause else None)
        self.cause = cause
        message = self.default_message
        if self.reason:
            message = f"{message} ({self.reason})"
        super().__init__(message)


class NoPosition(RideCoreError):
    code = "no_position"
    default_message = "No position captured yet. Get your location first."


class ReportFailed(RideCoreError):
    code = "report_failed"
    default_message = "Failed to update your location."

    def __init__(self, reason: str | None = None, *, cause: RideCoreError | None = None):
        self.reason = reason or (cause.message if cause else None)
        self.cause = cause
        message = self.default_message
        if self.reason:
            message = f"{message} ({self.reason})"
        super().__init__(message)


# Wire codes the reference service sends back in ``{"success": false, "code": ...}``
ERRORS_BY_CODE: dict[str, type[RideCoreError]] = {
    cls.code: cls
    for cls in (ValidationError, InvalidTransition, NotAssignedDriver, RideNotFound, StateConflict)
}


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a component operation: either a value or an error, never both."""

    success: bool
    value: Optional[T] = None
    error: Optional[RideCoreError] = None

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(True, value=value)

    @classmethod
    def fail(cls, error: RideCoreError) -> "Outcome[T]":
        return cls(False, error=error)

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        return "ok"

    def is_error(self, kind: type[RideCoreError]) -> bool:
        return self.error is not None and isinstance(self.error, kind)
