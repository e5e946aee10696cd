from __future__ import annotations

from prometheus_client import Counter

CLIENT_CALLS = Counter(
    "gocomet_client_calls_total",
    "Ride service calls made by the client",
    ["op", "result"],  # result: "ok" or the error code
)
STATUS_TRANSITIONS = Counter(
    "gocomet_ride_status_transitions_total",
    "Ride status transitions",
    ["from", "to"],
)
LOCATION_REPORTS = Counter(
    "gocomet_driver_location_reports_total",
    "Driver location reports",
    ["result"],
)


def record_call(op: str, result: str) -> None:
    try:
        CLIENT_CALLS.labels(op, result).inc()
    except Exception:
        pass


def count_transition(frm: str | None, to: str | None) -> None:
    try:
        STATUS_TRANSITIONS.labels(str(frm or ""), str(to or "")).inc()
    except Exception:
        pass


def count_report(result: str) -> None:
    try:
        LOCATION_REPORTS.labels(result).inc()
    except Exception:
        pass
