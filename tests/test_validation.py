"""Tests for submission-time draft validation."""

from datetime import date
from decimal import Decimal

import pytest

from booking_engine.models.catalog import Room
from booking_engine.models.reservation import BillingType, DiscountType, ReservationDraft
from booking_engine.services.availability import AvailabilitySnapshot, AvailabilityStatus
from booking_engine.services.scheduler import PricingContext, RecalculationScheduler
from booking_engine.services.validation import validate_draft


@pytest.fixture
def availability():
    return AvailabilitySnapshot(
        status=AvailabilityStatus.READY,
        rooms=[Room(id=201, room_number="201", room_class_id=2)],
    )


@pytest.fixture
def draft():
    return ReservationDraft(
        customer_id=7,
        room_class_id=2,
        room_id=201,
        check_in_date=date(2024, 1, 1),
        check_out_date=date(2024, 1, 4),
        adults=2,
    )


def check(draft, room_class, availability):
    breakdown = RecalculationScheduler().recompute(draft, PricingContext(room_class=room_class))
    return {issue.code: issue.field for issue in validate_draft(draft, breakdown, room_class, availability)}


def test_complete_draft_is_valid(draft, deluxe, availability):
    assert check(draft, deluxe, availability) == {}


def test_missing_fields_reported(availability):
    issues = validate_draft(
        ReservationDraft(payment_method=None),
        RecalculationScheduler().recompute(ReservationDraft(), PricingContext()),
        None,
        availability,
    )

    required = {issue.field for issue in issues if issue.code == "required"}
    assert required == {
        "customer_id", "room_class_id", "room_id",
        "check_in_date", "check_out_date", "payment_method",
    }


def test_room_outside_availability(draft, deluxe):
    assert check(draft, deluxe, AvailabilitySnapshot()) == {"room_not_available": "room_id"}


def test_check_out_not_after_check_in(draft, deluxe, availability):
    draft = draft.model_copy(update={"check_out_date": date(2024, 1, 1)})

    assert check(draft, deluxe, availability)["invalid_date_range"] == "check_out_date"


def test_same_day_hourly_stay_is_valid(draft, deluxe, availability):
    draft = draft.model_copy(update={
        "billing_type": BillingType.HOURLY,
        "check_out_date": date(2024, 1, 1),
        "check_in_time": "10:00",
        "check_out_time": "13:00",
    })

    assert "invalid_date_range" not in check(draft, deluxe, availability)


def test_occupancy_counts_children_not_infants(draft, deluxe, availability):
    assert "occupancy_exceeded" not in check(
        draft.model_copy(update={"adults": 2, "children": 2, "infants": 2}), deluxe, availability
    )
    assert "occupancy_exceeded" in check(
        draft.model_copy(update={"adults": 3, "children": 2}), deluxe, availability
    )


def test_no_adults(draft, deluxe, availability):
    assert "min_adults" in check(draft.model_copy(update={"adults": 0}), deluxe, availability)


def test_discount_out_of_range(draft, deluxe, availability):
    over_percent = draft.model_copy(update={
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("120"),
    })
    over_fixed = draft.model_copy(update={
        "discount_type": DiscountType.FIXED_AMOUNT,
        "discount_value": Decimal("50000"),
    })

    assert "discount_out_of_range" in check(over_percent, deluxe, availability)
    assert "discount_out_of_range" in check(over_fixed, deluxe, availability)


def test_commission_and_advance_ranges(draft, deluxe, availability):
    assert "commission_out_of_range" in check(
        draft.model_copy(update={"commission_percent": Decimal("101")}), deluxe, availability
    )
    assert "advance_out_of_range" in check(
        draft.model_copy(update={"advance_amount": Decimal("-1")}), deluxe, availability
    )
    assert "advance_exceeds_total" in check(
        draft.model_copy(update={"advance_amount": Decimal("15001")}), deluxe, availability
    )
