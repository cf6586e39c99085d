"""Trip model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking


class Trip(Base):
    """A scheduled bus trip with a fixed seat space and per-seat fare."""

    __tablename__ = "trips"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Route information
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    origin: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    destination: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    departure_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    # Seat space; seat ids are opaque labels unique within the trip
    seat_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    seat_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # Fare per seat, whole currency units
    fare_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("seat_count > 0", name="ck_trip_seat_count_positive"),
        CheckConstraint("fare_amount > 0", name="ck_trip_fare_amount_positive"),
        CheckConstraint("length(currency) = 3", name="ck_trip_currency_length"),
    )

    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="trip",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<Trip(id={self.id}, {self.origin}->{self.destination}, "
            f"departs={self.departure_time}, seats={self.seat_count}, fare={self.fare_amount})>"
        )
