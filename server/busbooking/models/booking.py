"""Booking and booking transition model definitions."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base

if TYPE_CHECKING:
    from .trip import Trip


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Booking(Base):
    """A customer's reservation of one or more seats on a trip."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # External identifier
    token: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    trip_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Customer contact
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)

    # Fixed at creation, never partially modified
    seat_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Internal: the seat hold guarding this booking and when it lapses
    hold_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    # Payment reference
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True, index=True)
    payment_session_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    gateway_txn_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    cancel_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="ck_booking_total_amount_positive"),
        CheckConstraint("length(customer_name) > 0", name="ck_booking_customer_name_not_empty"),
        CheckConstraint("length(token) > 0", name="ck_booking_token_not_empty"),
        CheckConstraint("status != 'CONFIRMED' OR paid_at IS NOT NULL", name="ck_booking_confirmed_is_paid"),
    )

    trip: Mapped["Trip"] = relationship("Trip", back_populates="bookings")
    transitions: Mapped[list["BookingTransition"]] = relationship(
        "BookingTransition",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingTransition.created_at"
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(token='{self.token}', trip_id={self.trip_id}, "
            f"seats={self.seat_ids}, status={self.status}, version={self.version})>"
        )


class BookingTransition(Base):
    """Append-only audit record of a booking status change."""

    __tablename__ = "booking_transitions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        CheckConstraint("from_status IS NULL OR from_status != to_status", name="ck_transition_changes_status"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="transitions")

    def __repr__(self) -> str:
        return (
            f"<BookingTransition(booking_id={self.booking_id}, "
            f"{self.from_status}->{self.to_status}, reason={self.reason})>"
        )
