"""Domain models."""

from .catalog import BookingSource, ComplementaryItem, Room, RoomClass, RoomStatus
from .customer import CustomerSummary, IdentityValidationResult, SuggestedGuestData
from .reservation import (
    BillingType,
    ChargeBreakdown,
    DiscountType,
    DraftState,
    PaymentMethod,
    PaymentStatus,
    RateQuote,
    ReservationDraft,
)

__all__ = [
    "BookingSource",
    "ComplementaryItem",
    "Room",
    "RoomClass",
    "RoomStatus",
    "CustomerSummary",
    "IdentityValidationResult",
    "SuggestedGuestData",
    "BillingType",
    "ChargeBreakdown",
    "DiscountType",
    "DraftState",
    "PaymentMethod",
    "PaymentStatus",
    "RateQuote",
    "ReservationDraft",
]
