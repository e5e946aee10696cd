import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...metrics import count_report
from ...schemas import DriverLocationIn
from ..database import get_db
from ..models import DriverLocationRow

logger = logging.getLogger("gocomet.server.driver")

router = APIRouter(prefix="/api/v1", tags=["driver"])


@router.post("/updateDriverLocation")
def update_driver_location(payload: DriverLocationIn, db: Session = Depends(get_db)):
    now = datetime.now(timezone.utc)
    captured_at = payload.captured_at or now
    loc = db.query(DriverLocationRow).filter(DriverLocationRow.driver_id == payload.driver_id).one_or_none()
    if loc is None:
        loc = DriverLocationRow(
            driver_id=payload.driver_id,
            lat=payload.latitude,
            lng=payload.longitude,
            captured_at=captured_at,
            updated_at=now,
        )
        db.add(loc)
    else:
        # Latest report wins; no history is kept
        loc.lat = payload.latitude
        loc.lng = payload.longitude
        loc.captured_at = captured_at
        loc.updated_at = now
    db.flush()
    count_report("stored")
    logger.debug("driver %s at %.6f,%.6f", payload.driver_id, payload.latitude, payload.longitude)
    return {"success": True, "message": "Location updated."}


@router.get("/driverLocation/{driver_id}")
def get_driver_location(driver_id: str, db: Session = Depends(get_db)):
    loc = db.query(DriverLocationRow).filter(DriverLocationRow.driver_id == driver_id).one_or_none()
    if loc is None:
        return {"success": True, "data": None}
    return {
        "success": True,
        "data": {
            "driverId": loc.driver_id,
            "location": {"latitude": loc.lat, "longitude": loc.lng},
            "capturedAt": loc.captured_at.isoformat(),
        },
    }
