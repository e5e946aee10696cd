from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, Integer, Numeric, String
from sqlalchemy.orm import declarative_base

from ..geo import Geopoint
from ..lifecycle import Ride, RideStatus

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


class RideRow(Base):
    __tablename__ = "rides"
    __table_args__ = (
        Index("ix_rides_status", "status"),
        Index("ix_rides_driver", "driver_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    driver_id = Column(String(64), nullable=True)
    status = Column(String(16), nullable=False, default=RideStatus.WAITING.value)  # WAITING|IN_PROGRESS|COMPLETED|CANCELLED
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    fare = Column(Numeric(10, 2), nullable=True)
    cancellation_reason = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    def to_ride(self) -> Ride:
        return Ride(
            id=str(self.id),
            user_id=self.user_id,
            driver_id=self.driver_id,
            pickup=Geopoint(latitude=self.pickup_lat, longitude=self.pickup_lng),
            dropoff=Geopoint(latitude=self.dropoff_lat, longitude=self.dropoff_lng),
            status=self.status,
            fare=self.fare,
        )


class DriverLocationRow(Base):
    __tablename__ = "driver_locations"
    __table_args__ = (Index("ix_driver_loc_updated", "updated_at"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(String(64), nullable=False, unique=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    captured_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
