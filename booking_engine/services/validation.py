"""Submission-time validation of reservation drafts.

Validation never blocks editing; it only decides whether a draft may be
handed to the commit endpoint.
"""

from decimal import Decimal

from pydantic import BaseModel

from booking_engine.models.catalog import RoomClass
from booking_engine.models.reservation import (
    ChargeBreakdown,
    DiscountType,
    ReservationDraft,
)
from booking_engine.services.availability import AvailabilitySnapshot


HUNDRED = Decimal("100")


class ValidationIssue(BaseModel):
    """A single field-level problem."""

    field: str
    code: str
    message: str


def validate_draft(
    draft: ReservationDraft,
    breakdown: ChargeBreakdown,
    room_class: RoomClass | None,
    availability: AvailabilitySnapshot,
) -> list[ValidationIssue]:
    """
    Check a draft for submission.

    Args:
        draft: Draft to check
        breakdown: Charges derived from ``draft``
        room_class: Draft's room class, if known
        availability: Current candidate room list

    Returns:
        Issues found; empty when the draft can be submitted
    """
    issues: list[ValidationIssue] = []

    def add(field: str, code: str, message: str) -> None:
        issues.append(ValidationIssue(field=field, code=code, message=message))

    # Required fields
    if draft.customer_id is None:
        add("customer_id", "required", "Please select a customer")
    if draft.room_class_id is None:
        add("room_class_id", "required", "Please select a room class")
    if draft.room_id is None:
        add("room_id", "required", "Please select a room")
    elif not availability.contains(draft.room_id):
        add("room_id", "room_not_available", "Selected room is not available for these dates")
    if draft.check_in_date is None:
        add("check_in_date", "required", "Please select check-in date")
    if draft.check_out_date is None:
        add("check_out_date", "required", "Please select check-out date")
    if draft.payment_method is None:
        add("payment_method", "required", "Please select payment method")

    # Dates
    check_in, check_out = draft.check_in_at, draft.check_out_at
    if check_in is not None and check_out is not None and check_out <= check_in:
        add("check_out_date", "invalid_date_range", "Check-out must be after check-in")

    # Occupancy
    if draft.adults < 1:
        add("adults", "min_adults", "At least one adult is required")
    if room_class is not None and draft.total_guests > room_class.max_occupancy:
        add(
            "adults",
            "occupancy_exceeded",
            f"{draft.total_guests} guests exceed the maximum occupancy of "
            f"{room_class.max_occupancy} for {room_class.name}",
        )

    # Adjustments
    if draft.discount_type is not None:
        if draft.discount_value < 0:
            add("discount_value", "discount_out_of_range", "Discount cannot be negative")
        elif draft.discount_type == DiscountType.PERCENTAGE and draft.discount_value > HUNDRED:
            add("discount_value", "discount_out_of_range", "Percentage discount cannot exceed 100")
        elif (
            draft.discount_type == DiscountType.FIXED_AMOUNT
            and draft.discount_value > breakdown.discount_base
        ):
            add("discount_value", "discount_out_of_range", "Discount exceeds the discountable amount")

    if not Decimal("0") <= draft.commission_percent <= HUNDRED:
        add("commission_percent", "commission_out_of_range", "Commission must be between 0 and 100 percent")

    # Totals
    if breakdown.total_amount <= 0:
        add("total_amount", "non_positive_total", "Total amount must be greater than zero")
    if draft.advance_amount < 0:
        add("advance_amount", "advance_out_of_range", "Advance cannot be negative")
    elif draft.advance_amount > breakdown.total_amount:
        add("advance_amount", "advance_exceeds_total", "Advance exceeds the total amount")

    return issues
