"""Models module exporting all database models."""

from .booking import Booking, BookingStatus, BookingTransition
from .ledger import ClaimState, HoldStatus, SeatClaim, SeatHold
from .trip import Trip

__all__ = [
    # Catalog entity
    "Trip",

    # Seat ledger entities
    "SeatHold",
    "SeatClaim",
    "HoldStatus",
    "ClaimState",

    # Booking entities
    "Booking",
    "BookingStatus",
    "BookingTransition",
]
