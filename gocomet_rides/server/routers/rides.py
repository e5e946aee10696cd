import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ... import lifecycle
from ...errors import InvalidTransition, RideNotFound
from ...lifecycle import RideStatus
from ...metrics import count_transition
from ...schemas import CancelRideIn, CreateRideOut, RideActionIn, RideRequest
from ..database import get_db
from ..fares import quote_fare
from ..models import RideRow

logger = logging.getLogger("gocomet.server.rides")

router = APIRouter(prefix="/api/v1", tags=["rides"])


def _get_row(db: Session, ride_id: str, *, lock: bool = False) -> RideRow:
    try:
        pk = int(str(ride_id).strip())
    except ValueError:
        raise RideNotFound(f"Ride {ride_id} not found") from None
    q = db.query(RideRow).filter(RideRow.id == pk)
    if lock:
        q = q.with_for_update()
    row = q.one_or_none()
    if row is None:
        raise RideNotFound(f"Ride {ride_id} not found")
    return row


def _compare_and_set(db: Session, row: RideRow, expected: RideStatus, values: dict) -> None:
    # The stored status is the arbiter: a concurrent writer makes this match nothing
    res = db.execute(
        update(RideRow)
        .where(RideRow.id == row.id, RideRow.status == expected.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise InvalidTransition(f"Ride {row.id} changed while it was being updated. Refresh and try again.")
    db.flush()
    db.refresh(row)
    count_transition(expected.value, values.get("status"))


@router.post("/rides", status_code=status.HTTP_201_CREATED)
def create_ride(payload: RideRequest, db: Session = Depends(get_db)):
    row = RideRow(
        user_id=payload.user_id,
        status=RideStatus.WAITING.value,
        pickup_lat=payload.source.latitude,
        pickup_lng=payload.source.longitude,
        dropoff_lat=payload.destination.latitude,
        dropoff_lng=payload.destination.longitude,
    )
    db.add(row)
    db.flush()
    count_transition(None, RideStatus.WAITING.value)
    logger.info("ride %s requested by user %s", row.id, row.user_id)
    return CreateRideOut(success=True, message="Your ride has been confirmed!", ride_id=str(row.id)).to_wire()


@router.get("/rides/{ride_id}")
def get_ride(ride_id: str, db: Session = Depends(get_db)):
    ride = _get_row(db, ride_id).to_ride()
    return {"success": True, "data": ride.model_dump(mode="json", by_alias=True)}


@router.get("/viewAllRides/{driver_id}")
def view_all_rides(driver_id: str, db: Session = Depends(get_db)):
    """Every waiting ride plus the rides this driver holds, newest first."""
    rows = (
        db.query(RideRow)
        .filter(or_(RideRow.status == RideStatus.WAITING.value, RideRow.driver_id == driver_id))
        .order_by(RideRow.id.desc())
        .all()
    )
    return {"success": True, "data": [r.to_ride().model_dump(mode="json", by_alias=True) for r in rows]}


@router.post("/acceptRide")
def accept_ride(payload: RideActionIn, db: Session = Depends(get_db)):
    row = _get_row(db, payload.ride_id, lock=True)
    current = row.to_ride()
    nxt = lifecycle.accept(current, payload.driver_id)
    _compare_and_set(
        db,
        row,
        current.status,
        {"status": nxt.status.value, "driver_id": nxt.driver_id, "accepted_at": datetime.now(timezone.utc)},
    )
    logger.info("ride %s accepted by driver %s", row.id, payload.driver_id)
    return {"success": True, "message": "Ride accepted. Navigate to the pickup location."}


@router.post("/trips/end")
def end_trip(payload: RideActionIn, db: Session = Depends(get_db)):
    row = _get_row(db, payload.ride_id, lock=True)
    current = row.to_ride()
    nxt = lifecycle.finish(current, payload.driver_id, quote_fare(current.pickup, current.dropoff))
    _compare_and_set(
        db,
        row,
        current.status,
        {"status": nxt.status.value, "fare": nxt.fare, "completed_at": datetime.now(timezone.utc)},
    )
    logger.info("ride %s completed by driver %s, fare %s", row.id, payload.driver_id, nxt.fare)
    return {"success": True, "message": "Trip completed.", "fare": float(nxt.fare)}


@router.post("/cancelRide")
def cancel_ride(payload: CancelRideIn, db: Session = Depends(get_db)):
    row = _get_row(db, payload.ride_id, lock=True)
    current = row.to_ride()
    nxt = lifecycle.cancel(current)
    _compare_and_set(
        db,
        row,
        current.status,
        {
            "status": nxt.status.value,
            "cancelled_at": datetime.now(timezone.utc),
            "cancellation_reason": payload.reason or "No reason provided",
        },
    )
    logger.info("ride %s cancelled (%s)", row.id, payload.reason or "no reason")
    return {"success": True, "message": "Ride cancelled."}
