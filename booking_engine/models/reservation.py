"""Pydantic models for reservation drafts and their derived charges."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


ZERO = Decimal("0")


class BillingType(str, Enum):
    """Pricing strategy for a stay."""

    NIGHT_STAY = "NIGHT_STAY"
    DAY_USE = "DAY_USE"
    HOURLY = "HOURLY"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    ONLINE = "ONLINE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class DraftState(str, Enum):
    """Lifecycle stage of a reservation draft."""

    EMPTY = "EMPTY"
    CLASS_SELECTED = "CLASS_SELECTED"
    DATES_SELECTED = "DATES_SELECTED"
    ROOM_SELECTED = "ROOM_SELECTED"
    PRICED = "PRICED"
    GUEST_ATTACHED = "GUEST_ATTACHED"
    SUBMITTABLE = "SUBMITTABLE"
    SUBMITTED = "SUBMITTED"
    FAILED = "FAILED"


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` clock string."""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


class ReservationDraft(BaseModel):
    """Mutable working state of a booking owned by one staff session."""

    # Guest
    customer_id: int | None = None

    # Room selection
    room_class_id: int | None = None
    room_id: int | None = None

    # Dates & times
    check_in_date: date | None = None
    check_out_date: date | None = None
    check_in_time: str = "14:00"
    check_out_time: str = "12:00"

    # Occupancy
    adults: int = Field(default=1, ge=0)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)  # Not charged, not counted toward capacity

    # Booking details
    booking_type: str = "Walk-in"
    booking_source_id: int | None = None
    purpose_of_visit: str = "Leisure"
    arrival_from: str = ""
    special_requests: str = ""
    remarks: str = ""

    # Billing
    billing_type: BillingType = BillingType.NIGHT_STAY

    # Discount
    discount_type: DiscountType | None = None
    discount_value: Decimal = ZERO
    discount_reason: str = ""

    # Manual charges
    service_charge: Decimal = ZERO
    tax: Decimal = ZERO
    commission_percent: Decimal = ZERO
    commission_amount_override: Decimal | None = None

    # Payment
    payment_method: PaymentMethod | None = PaymentMethod.CASH
    advance_amount: Decimal = ZERO
    advance_remarks: str = ""
    booked_by: int | None = None

    # Add-ons
    complementary_item_ids: list[int] = Field(default_factory=list)

    @field_validator("check_in_time", "check_out_time")
    @classmethod
    def validate_clock(cls, v: str) -> str:
        try:
            parse_clock(v)
        except ValueError as e:
            raise ValueError(f"Time must be in HH:MM format, got {v!r}") from e
        return v

    @property
    def check_in_at(self) -> datetime | None:
        """Check-in date combined with the check-in time."""
        if self.check_in_date is None:
            return None
        return datetime.combine(self.check_in_date, parse_clock(self.check_in_time))

    @property
    def check_out_at(self) -> datetime | None:
        """Check-out date combined with the check-out time."""
        if self.check_out_date is None:
            return None
        return datetime.combine(self.check_out_date, parse_clock(self.check_out_time))

    @property
    def total_guests(self) -> int:
        """Guests counted toward room capacity."""
        return self.adults + self.children


class RateQuote(BaseModel):
    """Base rate and raw room charge for a billing type and stay duration."""

    model_config = ConfigDict(frozen=True)

    base_room_rate: Decimal = ZERO
    total_room_charge: Decimal = ZERO
    nights: int = Field(default=1, ge=1)
    hours: int = Field(default=1, ge=1)


class ChargeBreakdown(BaseModel):
    """Charges derived from a draft. Never mutated independently of the draft."""

    model_config = ConfigDict(frozen=True)

    # Room charge
    base_room_rate: Decimal = ZERO
    total_room_charge: Decimal = ZERO
    nights: int = 1
    hours: int = 1

    # Surcharges & add-ons
    extra_charges: Decimal = ZERO
    complementary_total: Decimal = ZERO

    # Adjustments
    discount_base: Decimal = ZERO
    discount_amount: Decimal = ZERO
    commission_amount: Decimal = ZERO

    # Totals
    total_amount: Decimal = ZERO
    balance_amount: Decimal = ZERO
    payment_status: PaymentStatus = PaymentStatus.PENDING
