"""Booking session - one staff member's reservation draft from first click to commit."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from booking_engine.config import PricingSettings
from booking_engine.models.catalog import ComplementaryItem, RoomClass
from booking_engine.models.customer import CustomerSummary, SuggestedGuestData
from booking_engine.models.reservation import (
    ChargeBreakdown,
    DraftState,
    ReservationDraft,
)
from booking_engine.services.availability import (
    AvailabilityKey,
    AvailabilityResolver,
    AvailabilitySnapshot,
)
from booking_engine.services.catalog import CatalogService
from booking_engine.services.frontdesk_client import (
    FrontDeskApiError,
    FrontDeskClient,
    FrontDeskNetworkError,
    FrontDeskValidationError,
    ReservationCommitRequest,
)
from booking_engine.services.generation import GenerationGuard
from booking_engine.services.pricing import PricingPolicy
from booking_engine.services.scheduler import (
    COMPLEMENTARY_CATALOG,
    ROOM_CLASS,
    PricingContext,
    RecalculationScheduler,
)
from booking_engine.services.validation import ValidationIssue, validate_draft
from booking_engine.utils.logger import get_logger, mask_sensitive

logger = get_logger(__name__)


# Fields changed through dedicated operations rather than update()
MANAGED_FIELDS = frozenset({"room_id"})
MUTABLE_FIELDS = frozenset(ReservationDraft.model_fields) - MANAGED_FIELDS


# =============================================================================
# Exceptions
# =============================================================================


class BookingEngineError(Exception):
    """Base exception for rejected draft mutations."""

    pass


class UnknownRoomClassError(BookingEngineError):
    pass


class RoomNotAvailableError(BookingEngineError):
    """Room is not in the current availability list."""

    pass


class SessionClosedError(BookingEngineError):
    """Draft was already submitted."""

    pass


# =============================================================================
# Result Models
# =============================================================================


@dataclass
class SubmissionResult:
    """Result of submitting a draft."""

    success: bool
    booking_number: str | None = None
    reservation: dict | None = None
    issues: list[ValidationIssue] = field(default_factory=list)
    error_message: str | None = None
    processing_time_ms: int = 0


class IdentityLookupStatus(str, Enum):
    FOUND = "FOUND"  # Existing customer attached to the draft
    NEW_VALID = "NEW_VALID"  # Unknown customer, suggested data available
    NEW_INVALID = "NEW_INVALID"  # Unknown customer, malformed number
    UNAVAILABLE = "UNAVAILABLE"
    DISCARDED = "DISCARDED"  # Superseded by a newer lookup


class ComplementaryStatus(str, Enum):
    IDLE = "IDLE"  # No room class selected, or not loaded yet
    READY = "READY"
    UNAVAILABLE = "UNAVAILABLE"  # Lookup failed; retried on the next load


@dataclass
class IdentityLookupResult:
    status: IdentityLookupStatus
    customer: CustomerSummary | None = None
    suggested_data: SuggestedGuestData | None = None
    error_message: str | None = None


# =============================================================================
# Booking Session
# =============================================================================


class BookingSession:
    """
    Owns one reservation draft and keeps everything derived from it consistent.

    Mutations run synchronously to completion: the draft, the availability
    key and the charge breakdown are swapped in together before control
    returns. Lookups (availability, complementary items, identity) are the
    only suspension points and follow "latest request wins".

    Usage:
        session = BookingSession(client, catalog)
        session.select_room_class(2)
        session.set_dates(date(2024, 1, 1), date(2024, 1, 4))
        await session.refresh_availability()
        session.select_room(201)
        result = await session.submit()
    """

    def __init__(
        self,
        client: FrontDeskClient | None,
        catalog: CatalogService,
        policy: PricingPolicy | None = None,
        session_id: str | None = None,
        default_check_in_time: str = "14:00",
        default_check_out_time: str = "12:00",
    ):
        """
        Initialize session with an empty draft.

        Args:
            client: Backend client for lookups and commit
            catalog: Room class catalog (must already hold the room classes)
            policy: Discount base composition
            session_id: Identifier; generated when omitted
            default_check_in_time: Initial check-in time (HH:MM)
            default_check_out_time: Initial check-out time (HH:MM)
        """
        self.id = session_id or uuid4().hex
        self.client = client
        self.catalog = catalog
        self.scheduler = RecalculationScheduler(policy)
        self.availability = AvailabilityResolver(self._lookup_rooms)

        self._complementary_guard = GenerationGuard()
        self._identity_guard = GenerationGuard()
        self._complementary_items: dict[int, ComplementaryItem] = {}
        self.complementary_status = ComplementaryStatus.IDLE
        self.complementary_error: str | None = None

        self._draft = ReservationDraft(
            check_in_time=default_check_in_time,
            check_out_time=default_check_out_time,
        )
        self._breakdown = self.scheduler.recompute(self._draft, self._context(self._draft))
        self._preferred_room_id: int | None = None
        self._last_submission: SubmissionResult | None = None
        self._closed = False

        self.guest: CustomerSummary | None = None
        self.suggested_guest_data: SuggestedGuestData | None = None

    # =========================================================================
    # Observed state
    # =========================================================================

    @property
    def draft(self) -> ReservationDraft:
        return self._draft

    @property
    def breakdown(self) -> ChargeBreakdown:
        return self._breakdown

    @property
    def room_class(self) -> RoomClass | None:
        return self.catalog.get_room_class(self._draft.room_class_id)

    @property
    def complementary_items(self) -> list[ComplementaryItem]:
        return list(self._complementary_items.values())

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def last_submission(self) -> SubmissionResult | None:
        return self._last_submission

    @property
    def state(self) -> DraftState:
        """Lifecycle stage derived from the current draft."""
        if self._closed:
            return DraftState.SUBMITTED
        if self._last_submission is not None and self._last_submission.error_message:
            return DraftState.FAILED

        draft = self._draft
        if draft.room_class_id is None:
            return DraftState.EMPTY
        if not self.availability.snapshot.is_resolved:
            return DraftState.CLASS_SELECTED
        if draft.room_id is None:
            return DraftState.DATES_SELECTED
        if self._breakdown.total_amount <= 0:
            return DraftState.ROOM_SELECTED
        if draft.customer_id is None:
            return DraftState.PRICED
        if self.validate():
            return DraftState.GUEST_ATTACHED
        return DraftState.SUBMITTABLE

    def validate(self) -> list[ValidationIssue]:
        """Submission-time issues for the current draft."""
        return validate_draft(
            self._draft,
            self._breakdown,
            self.room_class,
            self.availability.snapshot,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    def update(self, **changes: Any) -> ChargeBreakdown:
        """
        Apply primitive field changes and recompute what depends on them.

        Args:
            **changes: ReservationDraft fields other than ``room_id``

        Returns:
            The new charge breakdown

        Raises:
            SessionClosedError: If the draft was already submitted
            UnknownRoomClassError: If ``room_class_id`` is not in the catalog
            pydantic.ValidationError: If a value has the wrong type or range
        """
        self._ensure_open()

        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        candidate = ReservationDraft.model_validate({**self._draft.model_dump(), **changes})
        changed = {
            name for name in changes
            if getattr(candidate, name) != getattr(self._draft, name)
        }
        if not changed:
            return self._breakdown

        reset: dict[str, Any] = {}

        if "room_class_id" in changed:
            if candidate.room_class_id is not None and self.catalog.get_room_class(candidate.room_class_id) is None:
                raise UnknownRoomClassError(f"Unknown room class: {candidate.room_class_id}")

            # Everything tied to the old class goes, even a room with the same number
            reset = {"room_id": None, "complementary_item_ids": []}
            changed |= {"room_id", "complementary_item_ids", ROOM_CLASS, COMPLEMENTARY_CATALOG}
            self._preferred_room_id = None
            self._complementary_items = {}
            self.complementary_status = ComplementaryStatus.IDLE
            self.complementary_error = None
            self._complementary_guard.invalidate(candidate.room_class_id)
            logger.info(
                "draft_reset",
                session_id=self.id,
                previous_room_class_id=self._draft.room_class_id,
                room_class_id=candidate.room_class_id,
            )

        key = AvailabilityKey(
            candidate.room_class_id,
            candidate.check_in_date,
            candidate.check_out_date,
        )
        if key != self.availability.key:
            if candidate.room_id is not None and "room_class_id" not in changed:
                self._preferred_room_id = candidate.room_id
            reset["room_id"] = None
            changed.add("room_id")

        if reset:
            candidate = candidate.model_copy(update=reset)

        breakdown = self.scheduler.recompute(
            candidate,
            self._context(candidate),
            self._breakdown,
            changed,
        )

        # Swap everything in together; nothing above has yielded
        self.availability.set_key(key)
        self._draft = candidate
        self._breakdown = breakdown
        self._last_submission = None

        logger.debug("draft_updated", session_id=self.id, changed=sorted(changed))
        return breakdown

    def select_room_class(self, room_class_id: int | None) -> ChargeBreakdown:
        return self.update(room_class_id=room_class_id)

    def set_dates(
        self,
        check_in: date | None,
        check_out: date | None,
        check_in_time: str | None = None,
        check_out_time: str | None = None,
    ) -> ChargeBreakdown:
        changes: dict[str, Any] = {"check_in_date": check_in, "check_out_date": check_out}
        if check_in_time is not None:
            changes["check_in_time"] = check_in_time
        if check_out_time is not None:
            changes["check_out_time"] = check_out_time
        return self.update(**changes)

    def toggle_complementary_item(self, item_id: int, selected: bool) -> ChargeBreakdown:
        ids = [i for i in self._draft.complementary_item_ids if i != item_id]
        if selected:
            ids.append(item_id)
        return self.update(complementary_item_ids=ids)

    def select_booking_source(self, source_id: int | None) -> ChargeBreakdown:
        """Select a booking channel and prefill its commission rate."""
        if source_id is None:
            return self.update(booking_source_id=None)

        source = self.catalog.get_booking_source(source_id)
        if source is None:
            raise BookingEngineError(f"Unknown booking source: {source_id}")
        return self.update(
            booking_source_id=source.id,
            commission_percent=source.commission_rate,
        )

    def attach_customer(self, customer_id: int | None) -> ChargeBreakdown:
        if customer_id is None:
            self.guest = None
        return self.update(customer_id=customer_id)

    def select_room(self, room_id: int | None) -> None:
        """
        Select a room from the current availability list.

        Raises:
            RoomNotAvailableError: If the room is not in the current list
        """
        self._ensure_open()

        if room_id is not None and not self.availability.snapshot.contains(room_id):
            raise RoomNotAvailableError(
                f"Room {room_id} is not available for the selected class and dates"
            )

        self._draft = self._draft.model_copy(update={"room_id": room_id})
        self._preferred_room_id = room_id
        self._last_submission = None

    # =========================================================================
    # Lookups
    # =========================================================================

    async def refresh_availability(self) -> AvailabilitySnapshot:
        """
        Look up candidate rooms for the current class and dates.

        Never raises on lookup failure; the snapshot reports UNAVAILABLE and
        another refresh or mutation retries.
        """
        _, applied = await self.availability.resolve()
        if applied:
            self._reconcile_room()
        return self.availability.snapshot

    async def load_complementary_items(self) -> list[ComplementaryItem]:
        """
        Load complementary items for the current class and reprice.

        Never raises on lookup failure; ``complementary_status`` reports
        UNAVAILABLE and the previously loaded items stay in place.
        """
        room_class_id = self._draft.room_class_id
        if room_class_id is None:
            return []

        ticket = self._complementary_guard.issue(room_class_id)
        try:
            items = await self.catalog.get_complementary_items(room_class_id)
        except FrontDeskApiError as e:
            if self._complementary_guard.is_current(ticket):
                logger.warning(
                    "complementary_items_unavailable",
                    session_id=self.id,
                    room_class_id=room_class_id,
                    error=str(e),
                )
                self.complementary_status = ComplementaryStatus.UNAVAILABLE
                self.complementary_error = str(e)
            return self.complementary_items

        if not self._complementary_guard.is_current(ticket):
            logger.debug("complementary_response_discarded", session_id=self.id)
            return self.complementary_items

        self.complementary_status = ComplementaryStatus.READY
        self.complementary_error = None
        self._complementary_items = {item.id: item for item in items}
        self._breakdown = self.scheduler.recompute(
            self._draft,
            self._context(self._draft),
            self._breakdown,
            {COMPLEMENTARY_CATALOG},
        )
        return self.complementary_items

    async def lookup_identity(self, identity_number: str) -> IdentityLookupResult:
        """
        Look up a guest by identity number.

        An existing customer is attached to the draft; otherwise the
        suggested data is kept for prefilling a new customer.

        Raises:
            SessionClosedError: If the draft was already submitted
        """
        self._ensure_open()
        ticket = self._identity_guard.issue(identity_number)

        if self.client is None:
            return IdentityLookupResult(
                status=IdentityLookupStatus.UNAVAILABLE,
                error_message="No customer backend configured",
            )

        try:
            result = await self.client.validate_identity(identity_number)
        except FrontDeskApiError as e:
            if not self._identity_guard.is_current(ticket):
                return IdentityLookupResult(status=IdentityLookupStatus.DISCARDED)
            logger.warning(
                "identity_lookup_unavailable",
                session_id=self.id,
                identity_number=mask_sensitive(identity_number),
                error=str(e),
            )
            return IdentityLookupResult(
                status=IdentityLookupStatus.UNAVAILABLE,
                error_message=str(e),
            )

        # A commit may have closed the draft while the lookup was in flight
        if self._closed or not self._identity_guard.is_current(ticket):
            return IdentityLookupResult(status=IdentityLookupStatus.DISCARDED)

        if result.exists and result.customer is not None:
            self.attach_customer(result.customer.id)
            self.guest = result.customer
            self.suggested_guest_data = None
            return IdentityLookupResult(
                status=IdentityLookupStatus.FOUND,
                customer=result.customer,
            )

        if result.is_valid_format:
            self.suggested_guest_data = result.suggested_data
            return IdentityLookupResult(
                status=IdentityLookupStatus.NEW_VALID,
                suggested_data=result.suggested_data,
            )

        return IdentityLookupResult(status=IdentityLookupStatus.NEW_INVALID)

    # =========================================================================
    # Submission
    # =========================================================================

    def to_commit_request(self) -> ReservationCommitRequest:
        """Serialize the draft and its charge snapshot for the commit endpoint."""
        draft, charges = self._draft, self._breakdown
        return ReservationCommitRequest(
            customerId=draft.customer_id,
            roomId=draft.room_id,
            roomClassId=draft.room_class_id,
            checkInDate=draft.check_in_at.isoformat(),
            checkOutDate=draft.check_out_at.isoformat(),
            checkInTime=draft.check_in_time,
            checkOutTime=draft.check_out_time,
            adults=draft.adults,
            children=draft.children,
            infants=draft.infants,
            bookingType=draft.booking_type,
            bookingSourceId=draft.booking_source_id,
            purposeOfVisit=draft.purpose_of_visit,
            arrivalFrom=draft.arrival_from,
            specialRequests=draft.special_requests,
            remarks=draft.remarks,
            billingType=draft.billing_type.value,
            numberOfNights=charges.nights,
            baseRoomRate=charges.base_room_rate,
            totalRoomCharge=charges.total_room_charge,
            extraCharges=charges.extra_charges,
            complementaryTotal=charges.complementary_total,
            discountType=draft.discount_type.value if draft.discount_type else None,
            discountValue=draft.discount_value,
            discountReason=draft.discount_reason,
            discountAmount=charges.discount_amount,
            serviceCharge=draft.service_charge,
            tax=draft.tax,
            commissionPercent=draft.commission_percent,
            commissionAmount=charges.commission_amount,
            paymentMethod=draft.payment_method.value,
            totalAmount=charges.total_amount,
            advanceAmount=draft.advance_amount,
            balanceAmount=charges.balance_amount,
            paymentStatus=charges.payment_status.value,
            advanceRemarks=draft.advance_remarks,
            bookedBy=draft.booked_by,
            complementaryItemIds=list(draft.complementary_item_ids),
        )

    async def submit(self) -> SubmissionResult:
        """
        Validate and commit the draft.

        The commit endpoint is authoritative. On success the session closes;
        on failure the draft is kept together with the error. Never retries.
        """
        self._ensure_open()
        start_time = datetime.now()

        issues = self.validate()
        if issues:
            logger.info(
                "draft_submission_blocked",
                session_id=self.id,
                issues=[issue.code for issue in issues],
            )
            return SubmissionResult(success=False, issues=issues)

        try:
            if self.client is None:
                raise FrontDeskNetworkError("No commit backend configured")
            response = await self.client.create_reservation(self.to_commit_request())
            result = SubmissionResult(
                success=True,
                booking_number=response.booking_number,
                reservation=response.reservation,
            )
            self._closed = True
            logger.info(
                "draft_submitted",
                session_id=self.id,
                booking_number=response.booking_number,
            )

        except FrontDeskValidationError as e:
            logger.warning("draft_rejected", session_id=self.id, error=str(e), details=e.details)
            result = SubmissionResult(
                success=False,
                error_message=f"{e}: {e.details}" if e.details else str(e),
            )

        except FrontDeskNetworkError as e:
            logger.error("draft_submission_failed", session_id=self.id, error=str(e))
            result = SubmissionResult(success=False, error_message=str(e))

        except FrontDeskApiError as e:
            logger.error("draft_submission_error", session_id=self.id, error=str(e))
            result = SubmissionResult(success=False, error_message=str(e))

        result.processing_time_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        self._last_submission = result
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _context(self, draft: ReservationDraft) -> PricingContext:
        return PricingContext(
            room_class=self.catalog.get_room_class(draft.room_class_id),
            complementary_items=dict(self._complementary_items),
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Session {self.id} was already submitted")

    async def _lookup_rooms(self, room_class_id: int, check_in: date, check_out: date):
        if self.client is None:
            raise FrontDeskNetworkError("No availability backend configured")
        return await self.client.get_available_rooms(room_class_id, check_in, check_out)

    def _reconcile_room(self) -> None:
        """Keep the selected room inside the freshly applied availability list."""
        snapshot = self.availability.snapshot
        room_id = self._draft.room_id

        if room_id is not None and not snapshot.contains(room_id):
            self._draft = self._draft.model_copy(update={"room_id": None})
            logger.info("room_selection_cleared", session_id=self.id, room_id=room_id)
        elif room_id is None and snapshot.contains(self._preferred_room_id):
            self._draft = self._draft.model_copy(update={"room_id": self._preferred_room_id})
            logger.info("room_reselected", session_id=self.id, room_id=self._preferred_room_id)


def build_session(
    client: FrontDeskClient | None,
    catalog: CatalogService,
    pricing: PricingSettings,
) -> BookingSession:
    """Create a session configured from pricing settings."""
    return BookingSession(
        client=client,
        catalog=catalog,
        policy=PricingPolicy.from_settings(pricing),
        default_check_in_time=pricing.default_check_in_time,
        default_check_out_time=pricing.default_check_out_time,
    )
