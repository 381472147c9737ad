"""
Charge computation for reservation drafts.

Every calculator here is a pure function of its inputs and never raises on
odd input: durations clamp to one unit, discounts clamp to their base and the
payable total floors at zero. Submission-time checks live in
``booking_engine.services.validation``.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

from booking_engine.config import PricingSettings
from booking_engine.models.catalog import ComplementaryItem, RoomClass
from booking_engine.models.reservation import (
    BillingType,
    DiscountType,
    PaymentStatus,
    RateQuote,
    ReservationDraft,
)
from booking_engine.utils.logger import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
ONE_DAY = timedelta(days=1)
ONE_HOUR = timedelta(hours=1)


# =============================================================================
# Policy
# =============================================================================


@dataclass(frozen=True)
class PricingPolicy:
    """
    Named choices for how the discount base is composed.

    The booking surfaces this engine replaces disagreed on both points, so
    they are configuration rather than hard-coded behaviour.

    Attributes:
        discount_includes_extras: Occupancy surcharges are discountable
        discount_includes_complementary: Add-ons are discountable (applied
            before the discount) rather than added on top of it
    """

    discount_includes_extras: bool = True
    discount_includes_complementary: bool = False

    @classmethod
    def from_settings(cls, settings: PricingSettings) -> "PricingPolicy":
        return cls(
            discount_includes_extras=settings.discount_includes_extras,
            discount_includes_complementary=settings.discount_includes_complementary,
        )


# =============================================================================
# Rate Resolver
# =============================================================================


def _ceil_units(delta: timedelta, unit: timedelta) -> int:
    """Whole units covering ``delta``, never fewer than one."""
    whole, remainder = divmod(delta, unit)
    if remainder:
        whole += 1
    return max(1, whole)


class RateResolver:
    """Picks the base rate and raw room charge for a billing type."""

    @staticmethod
    def count_nights(check_in: date | None, check_out: date | None) -> int:
        """Nights between two calendar dates, at least one."""
        if check_in is None or check_out is None:
            return 1
        return _ceil_units(check_out - check_in, ONE_DAY)

    @staticmethod
    def count_hours(check_in: datetime | None, check_out: datetime | None) -> int:
        """Started hours between two instants, at least one."""
        if check_in is None or check_out is None:
            return 1
        return _ceil_units(check_out - check_in, ONE_HOUR)

    def resolve(self, draft: ReservationDraft, room_class: RoomClass | None) -> RateQuote:
        """
        Resolve the room charge before extras.

        Args:
            draft: Draft supplying billing type, dates and times
            room_class: Tariff source; an unknown class prices at zero

        Returns:
            RateQuote with both duration counters clamped to at least one
        """
        nights = self.count_nights(draft.check_in_date, draft.check_out_date)
        hours = self.count_hours(draft.check_in_at, draft.check_out_at)

        if room_class is None:
            return RateQuote(nights=nights, hours=hours)

        if draft.billing_type == BillingType.DAY_USE:
            base_rate = room_class.rate_day_use
            total = base_rate
        elif draft.billing_type == BillingType.HOURLY:
            # A zero hourly rate means the class has none configured
            base_rate = room_class.hourly_rate or room_class.rate_per_night
            total = base_rate * hours
        else:
            base_rate = room_class.rate_per_night
            total = base_rate * nights

        return RateQuote(
            base_room_rate=base_rate,
            total_room_charge=total,
            nights=nights,
            hours=hours,
        )


# =============================================================================
# Occupancy Surcharges
# =============================================================================


class OccupancySurchargeCalculator:
    """Extra-adult and child surcharges beyond standard occupancy."""

    def calculate(
        self,
        room_class: RoomClass | None,
        adults: int,
        children: int,
    ) -> Decimal:
        # Capacity is checked at submission, not clamped here
        if room_class is None:
            return ZERO

        extra_adults = max(0, adults - room_class.standard_occupancy)
        children = max(0, children)
        return (
            extra_adults * room_class.extra_person_charge
            + children * room_class.child_charge
        )


# =============================================================================
# Complementary Items
# =============================================================================


class ComplementaryItemsAggregator:
    """Sums the rates of selected add-ons that belong to the room class."""

    def total(
        self,
        selected_ids: Iterable[int],
        items: Mapping[int, ComplementaryItem],
        room_class_id: int | None,
    ) -> Decimal:
        total = ZERO
        for item_id in dict.fromkeys(selected_ids):
            item = items.get(item_id)
            if item is None or item.room_class_id != room_class_id:
                logger.debug(
                    "complementary_item_ignored",
                    item_id=item_id,
                    room_class_id=room_class_id,
                )
                continue
            total += item.rate
        return total


# =============================================================================
# Discount Engine
# =============================================================================


class DiscountEngine:
    """Converts a discount type and value into a clamped monetary amount."""

    def __init__(self, policy: PricingPolicy | None = None):
        self.policy = policy or PricingPolicy()

    def discount_base(
        self,
        total_room_charge: Decimal,
        extra_charges: Decimal,
        complementary_total: Decimal,
    ) -> Decimal:
        """Pre-discount amount the discount is applied against."""
        base = total_room_charge
        if self.policy.discount_includes_extras:
            base += extra_charges
        if self.policy.discount_includes_complementary:
            base += complementary_total
        return base

    def calculate(
        self,
        discount_type: DiscountType | None,
        value: Decimal,
        base_amount: Decimal,
    ) -> Decimal:
        """
        Calculate the discount amount.

        Args:
            discount_type: PERCENTAGE, FIXED_AMOUNT or None
            value: Percentage points or a fixed amount
            base_amount: Pre-discount amount

        Returns:
            Discount, never negative and never above ``base_amount``
        """
        if discount_type is None or value <= 0 or base_amount <= 0:
            return ZERO

        if discount_type == DiscountType.PERCENTAGE:
            amount = base_amount * value / HUNDRED
        else:
            amount = value

        return min(amount, base_amount)


# =============================================================================
# Charge Aggregator & Balance
# =============================================================================


class ChargeAggregator:
    """Combines room charge, extras, adjustments and manual charges."""

    def commission(
        self,
        total_room_charge: Decimal,
        commission_percent: Decimal,
        override: Decimal | None = None,
    ) -> Decimal:
        """
        Channel commission against the pre-discount room charge.

        A manually entered amount replaces the formula.
        """
        if override is not None:
            return override
        return total_room_charge * commission_percent / HUNDRED

    def total(
        self,
        total_room_charge: Decimal,
        extra_charges: Decimal,
        complementary_total: Decimal,
        discount_amount: Decimal,
        service_charge: Decimal,
        tax: Decimal,
        commission_amount: Decimal,
    ) -> Decimal:
        """Payable total, floored at zero."""
        subtotal = total_room_charge + extra_charges + complementary_total - discount_amount
        total = subtotal + service_charge + tax + commission_amount

        if total < 0:
            logger.warning(
                "charge_total_clamped",
                computed_total=str(total),
                service_charge=str(service_charge),
                tax=str(tax),
                commission_amount=str(commission_amount),
            )
            return ZERO
        return total


class BalanceTracker:
    """Balance due after the advance payment."""

    def balance(self, total_amount: Decimal, advance_amount: Decimal) -> Decimal:
        return max(ZERO, total_amount - advance_amount)

    def payment_status(self, total_amount: Decimal, advance_amount: Decimal) -> PaymentStatus:
        if advance_amount <= 0:
            return PaymentStatus.PENDING
        if advance_amount >= total_amount:
            return PaymentStatus.PAID
        return PaymentStatus.PARTIAL
