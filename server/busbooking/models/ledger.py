"""Seat ledger model definitions: holds and per-seat claims."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base


class HoldStatus(str, Enum):
    """Hold status enumeration."""
    ACTIVE = "ACTIVE"
    COMMITTED = "COMMITTED"
    RELEASED = "RELEASED"
    EXPIRED = "EXPIRED"


class ClaimState(str, Enum):
    """State of a single seat claim."""
    HELD = "HELD"
    COMMITTED = "COMMITTED"


class SeatHold(Base):
    """A temporary exclusive claim on a set of seats of one trip."""

    __tablename__ = "seat_holds"

    # The hold token
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    trip_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=HoldStatus.ACTIVE.value, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    claims: Mapped[list["SeatClaim"]] = relationship(
        "SeatClaim",
        back_populates="hold",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<SeatHold(id={self.id}, trip_id={self.trip_id}, status={self.status}, expires_at={self.expires_at})>"


class SeatClaim(Base):
    """One seat of one trip, held or committed. At most one row per seat."""

    __tablename__ = "seat_claims"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    trip_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    seat_id: Mapped[str] = mapped_column(String(32), nullable=False)

    hold_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("seat_holds.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    state: Mapped[str] = mapped_column(String(20), nullable=False, default=ClaimState.HELD.value)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("trip_id", "seat_id", name="uq_seat_claim_trip_seat"),
    )

    hold: Mapped["SeatHold"] = relationship("SeatHold", back_populates="claims")

    def __repr__(self) -> str:
        return f"<SeatClaim(trip_id={self.trip_id}, seat_id='{self.seat_id}', state={self.state})>"
