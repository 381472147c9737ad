"""Reservation draft API routes."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, ValidationError

from booking_engine.config import PricingSettings
from booking_engine.models.catalog import ComplementaryItem, RoomClass
from booking_engine.models.customer import CustomerSummary, SuggestedGuestData
from booking_engine.models.reservation import (
    BillingType,
    ChargeBreakdown,
    DiscountType,
    DraftState,
    PaymentMethod,
    ReservationDraft,
)
from booking_engine.services.availability import AvailabilitySnapshot
from booking_engine.services.booking_session import (
    BookingEngineError,
    BookingSession,
    ComplementaryStatus,
    IdentityLookupStatus,
    RoomNotAvailableError,
    SessionClosedError,
    UnknownRoomClassError,
    build_session,
)
from booking_engine.services.catalog import CatalogService
from booking_engine.services.frontdesk_client import FrontDeskClient
from booking_engine.services.validation import ValidationIssue
from booking_engine.utils.logger import bind_draft_context, get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Reservation Drafts"])


# =============================================================================
# Session store
# =============================================================================


class DraftSessionStore:
    """
    In-memory registry of open booking sessions.

    Sessions leave the store when discarded, when their reservation is
    committed, or after ``idle_timeout`` without a request.
    """

    def __init__(
        self,
        client: FrontDeskClient | None,
        catalog: CatalogService,
        pricing: PricingSettings,
        idle_timeout: timedelta = timedelta(hours=4),
    ):
        self.client = client
        self.catalog = catalog
        self.pricing = pricing
        self.idle_timeout = idle_timeout
        self._sessions: dict[str, BookingSession] = {}
        self._last_seen: dict[str, datetime] = {}

    def create(self) -> BookingSession:
        self.evict_idle()
        session = build_session(self.client, self.catalog, self.pricing)
        self._sessions[session.id] = session
        self._last_seen[session.id] = datetime.now()
        logger.info("draft_session_created", session_id=session.id)
        return session

    def get(self, session_id: str) -> BookingSession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = datetime.now()
        return session

    def discard(self, session_id: str) -> bool:
        self._last_seen.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    def evict_idle(self, now: datetime | None = None) -> int:
        """Drop sessions not touched within the idle timeout."""
        now = now or datetime.now()
        expired = [
            session_id for session_id, seen in self._last_seen.items()
            if now - seen > self.idle_timeout
        ]
        for session_id in expired:
            self.discard(session_id)
        if expired:
            logger.info("draft_sessions_evicted", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


# Store will be injected from app.py
_store: Optional[DraftSessionStore] = None


def set_session_store(store: DraftSessionStore | None):
    """Set session store instance."""
    global _store
    _store = store


def get_session_store() -> DraftSessionStore:
    """Get session store."""
    if _store is None:
        raise HTTPException(500, "Session store not initialized")
    return _store


def get_session(session_id: str) -> BookingSession:
    session = get_session_store().get(session_id)
    if session is None:
        raise HTTPException(404, f"Draft {session_id} not found")
    bind_draft_context(session_id)
    return session


# =============================================================================
# Request / Response Models
# =============================================================================


class DraftUpdateRequest(BaseModel):
    """Primitive field changes. Only fields present in the body are applied."""

    room_class_id: Optional[int] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    billing_type: Optional[BillingType] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    infants: Optional[int] = None
    booking_type: Optional[str] = None
    booking_source_id: Optional[int] = None
    purpose_of_visit: Optional[str] = None
    arrival_from: Optional[str] = None
    special_requests: Optional[str] = None
    remarks: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    discount_reason: Optional[str] = None
    service_charge: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    commission_percent: Optional[Decimal] = None
    commission_amount_override: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    advance_amount: Optional[Decimal] = None
    advance_remarks: Optional[str] = None
    booked_by: Optional[int] = None
    complementary_item_ids: Optional[list[int]] = None


class RoomSelectionRequest(BaseModel):
    room_id: Optional[int] = None


class GuestRequest(BaseModel):
    """Attach a guest by customer id or look one up by identity number."""

    customer_id: Optional[int] = None
    identity_number: Optional[str] = None


class DraftResponse(BaseModel):
    """Fully consistent view of a draft."""

    session_id: str
    state: DraftState
    draft: ReservationDraft
    breakdown: ChargeBreakdown
    availability: AvailabilitySnapshot
    complementary_items: list[ComplementaryItem] = []
    complementary_status: ComplementaryStatus = ComplementaryStatus.IDLE
    complementary_error: Optional[str] = None
    issues: list[ValidationIssue] = []
    guest: Optional[CustomerSummary] = None
    suggested_guest_data: Optional[SuggestedGuestData] = None


class GuestResponse(BaseModel):
    status: IdentityLookupStatus
    error_message: Optional[str] = None
    draft: DraftResponse


class SubmitResponse(BaseModel):
    success: bool
    state: DraftState
    booking_number: Optional[str] = None
    issues: list[ValidationIssue] = []
    error_message: Optional[str] = None


def build_draft_response(session: BookingSession) -> DraftResponse:
    return DraftResponse(
        session_id=session.id,
        state=session.state,
        draft=session.draft,
        breakdown=session.breakdown,
        availability=session.availability.snapshot,
        complementary_items=session.complementary_items,
        complementary_status=session.complementary_status,
        complementary_error=session.complementary_error,
        issues=[] if session.is_closed else session.validate(),
        guest=session.guest,
        suggested_guest_data=session.suggested_guest_data,
    )


# =============================================================================
# Routes
# =============================================================================


@router.get("/room-classes", response_model=list[RoomClass])
async def list_room_classes():
    """Room classes available for booking."""
    store = get_session_store()
    return await store.catalog.load_room_classes()


@router.post("/drafts", response_model=DraftResponse, status_code=201)
async def create_draft():
    """Start a new booking session with an empty draft."""
    session = get_session_store().create()
    return build_draft_response(session)


@router.get("/drafts/{session_id}", response_model=DraftResponse)
async def get_draft(session_id: str):
    return build_draft_response(get_session(session_id))


@router.patch("/drafts/{session_id}", response_model=DraftResponse)
async def update_draft(session_id: str, request: DraftUpdateRequest):
    """Apply primitive changes, then refresh lookups the changes invalidated."""
    session = get_session(session_id)
    changes = request.model_dump(exclude_unset=True)

    previous_class = session.draft.room_class_id
    previous_key = session.availability.key

    try:
        session.update(**changes)
    except SessionClosedError as e:
        raise HTTPException(409, str(e))
    except UnknownRoomClassError as e:
        raise HTTPException(400, str(e))
    except ValidationError as e:
        raise HTTPException(422, e.errors(include_url=False, include_context=False))

    if (
        session.draft.room_class_id != previous_class
        or session.complementary_status == ComplementaryStatus.UNAVAILABLE
    ):
        await session.load_complementary_items()
    if session.availability.key != previous_key:
        await session.refresh_availability()

    return build_draft_response(session)


@router.put("/drafts/{session_id}/room", response_model=DraftResponse)
async def select_room(session_id: str, request: RoomSelectionRequest):
    session = get_session(session_id)
    try:
        session.select_room(request.room_id)
    except SessionClosedError as e:
        raise HTTPException(409, str(e))
    except RoomNotAvailableError as e:
        raise HTTPException(400, str(e))
    return build_draft_response(session)


@router.put("/drafts/{session_id}/booking-source/{source_id}", response_model=DraftResponse)
async def select_booking_source(session_id: str, source_id: int):
    """Select a booking channel; prefills the commission percentage."""
    session = get_session(session_id)
    try:
        session.select_booking_source(source_id)
    except SessionClosedError as e:
        raise HTTPException(409, str(e))
    except BookingEngineError as e:
        raise HTTPException(400, str(e))
    return build_draft_response(session)


@router.post("/drafts/{session_id}/availability/refresh", response_model=DraftResponse)
async def refresh_availability(session_id: str):
    """Retry the availability lookup, and a failed complementary lookup, for the current draft."""
    session = get_session(session_id)
    await session.refresh_availability()
    if session.complementary_status == ComplementaryStatus.UNAVAILABLE:
        await session.load_complementary_items()
    return build_draft_response(session)


@router.post("/drafts/{session_id}/guest", response_model=GuestResponse)
async def attach_guest(session_id: str, request: GuestRequest):
    session = get_session(session_id)

    if request.identity_number:
        try:
            result = await session.lookup_identity(request.identity_number)
        except SessionClosedError as e:
            raise HTTPException(409, str(e))
        return GuestResponse(
            status=result.status,
            error_message=result.error_message,
            draft=build_draft_response(session),
        )

    if request.customer_id is None:
        raise HTTPException(400, "customer_id or identity_number is required")

    try:
        session.attach_customer(request.customer_id)
    except SessionClosedError as e:
        raise HTTPException(409, str(e))

    return GuestResponse(
        status=IdentityLookupStatus.FOUND,
        draft=build_draft_response(session),
    )


@router.post("/drafts/{session_id}/submit", response_model=SubmitResponse)
async def submit_draft(session_id: str):
    """Commit the draft. The backend re-validates and prices authoritatively."""
    session = get_session(session_id)
    try:
        result = await session.submit()
    except SessionClosedError as e:
        raise HTTPException(409, str(e))

    if result.success:
        # The store only holds open drafts
        get_session_store().discard(session_id)
        logger.info("draft_session_closed", booking_number=result.booking_number)

    return SubmitResponse(
        success=result.success,
        state=session.state,
        booking_number=result.booking_number,
        issues=result.issues,
        error_message=result.error_message,
    )


@router.delete("/drafts/{session_id}", status_code=204)
async def discard_draft(session_id: str):
    if not get_session_store().discard(session_id):
        raise HTTPException(404, f"Draft {session_id} not found")
    return Response(status_code=204)
