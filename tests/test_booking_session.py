"""Tests for booking sessions."""

import asyncio
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from booking_engine.models.catalog import ComplementaryItem, Room
from booking_engine.models.customer import (
    CustomerSummary,
    IdentityValidationResult,
    SuggestedGuestData,
)
from booking_engine.models.reservation import DraftState, PaymentStatus
from booking_engine.services.availability import AvailabilityStatus
from booking_engine.services.booking_session import (
    BookingEngineError,
    BookingSession,
    ComplementaryStatus,
    IdentityLookupStatus,
    RoomNotAvailableError,
    SessionClosedError,
    UnknownRoomClassError,
)
from booking_engine.services.catalog import CatalogService
from booking_engine.services.frontdesk_client import (
    CommitResponse,
    FrontDeskClient,
    FrontDeskNetworkError,
    FrontDeskValidationError,
)


JAN_1 = date(2024, 1, 1)
JAN_4 = date(2024, 1, 4)
JAN_5 = date(2024, 1, 5)


async def prepare(session, room_class_id=2):
    """Select a class and three nights and resolve availability."""
    session.select_room_class(room_class_id)
    await session.load_complementary_items()
    session.set_dates(JAN_1, JAN_4)
    await session.refresh_availability()


@pytest.fixture
def committed():
    return CommitResponse(
        booking_number="BK-2024-0001",
        reservation={"id": 41, "bookingNumber": "BK-2024-0001"},
    )


# =============================================================================
# State Machine Tests
# =============================================================================


@pytest.mark.asyncio
async def test_state_progression(session, frontdesk, committed):
    assert session.state == DraftState.EMPTY

    session.select_room_class(2)
    assert session.state == DraftState.CLASS_SELECTED

    session.set_dates(JAN_1, JAN_4)
    assert session.state == DraftState.CLASS_SELECTED

    await session.refresh_availability()
    assert session.state == DraftState.DATES_SELECTED

    session.select_room(201)
    assert session.state == DraftState.PRICED

    session.attach_customer(7)
    assert session.state == DraftState.SUBMITTABLE

    session.update(adults=5)
    assert session.state == DraftState.GUEST_ATTACHED

    session.update(adults=2)
    frontdesk.create_reservation.return_value = committed
    await session.submit()
    assert session.state == DraftState.SUBMITTED


@pytest.mark.asyncio
async def test_zero_total_stays_room_selected(session):
    await prepare(session)
    session.select_room(201)

    session.update(service_charge=Decimal("-20000"))

    assert session.breakdown.total_amount == Decimal("0")
    assert session.state == DraftState.ROOM_SELECTED


# =============================================================================
# Pricing Through Mutations
# =============================================================================


@pytest.mark.asyncio
async def test_night_stay_pricing(session):
    await prepare(session)

    breakdown = session.update(adults=4, discount_type="PERCENTAGE", discount_value=Decimal("10"))

    assert breakdown.nights == 3
    assert breakdown.total_room_charge == Decimal("15000")
    assert breakdown.extra_charges == Decimal("2000")
    assert breakdown.discount_amount == Decimal("1700")
    assert breakdown.total_amount == Decimal("15300")


@pytest.mark.asyncio
async def test_advance_above_total_floors_balance(session):
    await prepare(session)
    session.select_room(201)
    session.attach_customer(7)

    breakdown = session.update(
        service_charge=Decimal("3000"),
        advance_amount=Decimal("20000"),
    )

    assert breakdown.total_amount == Decimal("18000")
    assert breakdown.balance_amount == Decimal("0")
    assert breakdown.payment_status == PaymentStatus.PAID
    assert [issue.code for issue in session.validate()] == ["advance_exceeds_total"]


@pytest.mark.asyncio
async def test_complementary_items_loaded_and_selected(session):
    await prepare(session)

    assert session.complementary_status == ComplementaryStatus.READY
    assert {item.id for item in session.complementary_items} == {11, 12}

    breakdown = session.toggle_complementary_item(11, True)
    assert breakdown.complementary_total == Decimal("1200")
    assert breakdown.total_amount == Decimal("16200")

    breakdown = session.toggle_complementary_item(11, False)
    assert breakdown.complementary_total == Decimal("0")


@pytest.mark.asyncio
async def test_booking_source_prefills_commission(session):
    await prepare(session)

    breakdown = session.select_booking_source(2)

    assert session.draft.booking_source_id == 2
    assert session.draft.commission_percent == Decimal("15")
    assert breakdown.commission_amount == Decimal("2250")

    with pytest.raises(BookingEngineError):
        session.select_booking_source(99)


# =============================================================================
# Room Consistency Tests
# =============================================================================


@pytest.mark.asyncio
async def test_class_change_clears_room_with_same_number(session):
    """Suite room 301 shares number 201 with the Deluxe room but is not kept."""
    await prepare(session)
    session.select_room(201)
    session.toggle_complementary_item(11, True)

    session.select_room_class(3)

    assert session.draft.room_id is None
    assert session.draft.complementary_item_ids == []
    assert session.complementary_items == []
    assert session.complementary_status == ComplementaryStatus.IDLE
    assert session.breakdown.complementary_total == Decimal("0")
    assert session.breakdown.total_room_charge == Decimal("36000")

    await session.load_complementary_items()
    await session.refresh_availability()

    assert [room.id for room in session.availability.snapshot.rooms] == [301, 302]
    assert session.draft.room_id is None


@pytest.mark.asyncio
async def test_date_change_reselects_room_still_available(session):
    await prepare(session)
    session.select_room(201)

    session.set_dates(JAN_1, JAN_5)

    assert session.draft.room_id is None
    assert session.availability.snapshot.status == AvailabilityStatus.IDLE
    assert session.breakdown.total_room_charge == Decimal("20000")

    await session.refresh_availability()

    assert session.draft.room_id == 201


@pytest.mark.asyncio
async def test_date_change_drops_room_no_longer_available(session, frontdesk):
    await prepare(session)
    session.select_room(201)

    frontdesk.get_available_rooms.side_effect = None
    frontdesk.get_available_rooms.return_value = [
        Room(id=210, room_number="210", room_class_id=2),
    ]
    session.set_dates(JAN_1, JAN_5)
    await session.refresh_availability()

    assert session.draft.room_id is None
    assert session.state == DraftState.DATES_SELECTED


@pytest.mark.asyncio
async def test_select_room_outside_list_rejected(session):
    await prepare(session)

    with pytest.raises(RoomNotAvailableError):
        session.select_room(205)
    with pytest.raises(RoomNotAvailableError):
        session.select_room(301)

    assert session.draft.room_id is None


@pytest.mark.asyncio
async def test_stale_availability_does_not_overwrite_newer(session, frontdesk):
    pending = {}

    async def slow_lookup(room_class_id, check_in, check_out):
        future = asyncio.get_running_loop().create_future()
        pending[check_out] = future
        return await future

    frontdesk.get_available_rooms.side_effect = slow_lookup
    session.select_room_class(2)

    session.set_dates(JAN_1, JAN_4)
    first = asyncio.create_task(session.refresh_availability())
    await asyncio.sleep(0)

    session.set_dates(JAN_1, JAN_5)
    second = asyncio.create_task(session.refresh_availability())
    await asyncio.sleep(0)

    pending[JAN_5].set_result([Room(id=210, room_number="210", room_class_id=2)])
    await second
    pending[JAN_4].set_result([Room(id=201, room_number="201", room_class_id=2)])
    await first

    assert [room.id for room in session.availability.snapshot.rooms] == [210]
    with pytest.raises(RoomNotAvailableError):
        session.select_room(201)


@pytest.mark.asyncio
async def test_availability_failure_is_not_raised(session, frontdesk):
    frontdesk.get_available_rooms.side_effect = FrontDeskNetworkError("connection refused")

    await prepare(session)

    assert session.availability.snapshot.status == AvailabilityStatus.UNAVAILABLE
    assert session.state == DraftState.CLASS_SELECTED

    frontdesk.get_available_rooms.side_effect = None
    frontdesk.get_available_rooms.return_value = [
        Room(id=201, room_number="201", room_class_id=2),
    ]
    snapshot = await session.refresh_availability()

    assert snapshot.status == AvailabilityStatus.READY


@pytest.mark.asyncio
async def test_stale_complementary_items_discarded(session, catalog):
    release = asyncio.Event()

    async def slow_items(room_class_id):
        await release.wait()
        return [ComplementaryItem(id=11, room_class_id=2, name="Breakfast", rate=Decimal("1200"))]

    session.select_room_class(2)
    with patch.object(catalog, "get_complementary_items", side_effect=slow_items):
        task = asyncio.create_task(session.load_complementary_items())
        await asyncio.sleep(0)

        session.select_room_class(3)
        release.set()
        await task

    assert session.complementary_items == []


@pytest.mark.asyncio
async def test_complementary_failure_reported_as_unavailable(frontdesk, deluxe):
    catalog_client = AsyncMock(spec=FrontDeskClient)
    catalog_client.get_complementary_items.side_effect = FrontDeskNetworkError("connection refused")
    catalog = CatalogService(catalog_client)
    catalog.add_room_classes([deluxe])
    session = BookingSession(frontdesk, catalog)

    await prepare(session)

    assert session.complementary_status == ComplementaryStatus.UNAVAILABLE
    assert session.complementary_error == "connection refused"
    assert session.complementary_items == []
    assert session.availability.snapshot.status == AvailabilityStatus.READY

    catalog_client.get_complementary_items.side_effect = None
    catalog_client.get_complementary_items.return_value = [
        ComplementaryItem(id=11, room_class_id=2, name="Breakfast", rate=Decimal("1200")),
    ]
    items = await session.load_complementary_items()

    assert [item.id for item in items] == [11]
    assert session.complementary_status == ComplementaryStatus.READY
    assert session.complementary_error is None


# =============================================================================
# Mutation Validation Tests
# =============================================================================


def test_unknown_room_class_leaves_draft_unchanged(session):
    session.select_room_class(2)
    before = session.draft

    with pytest.raises(UnknownRoomClassError):
        session.update(room_class_id=99, adults=3)

    assert session.draft is before


def test_invalid_value_leaves_draft_unchanged(session):
    before = session.draft

    with pytest.raises(ValidationError):
        session.update(adults=-1)
    with pytest.raises(ValidationError):
        session.update(check_in_time="25:99")

    assert session.draft is before


def test_room_id_not_updatable_directly(session):
    with pytest.raises(ValueError):
        session.update(room_id=201)


def test_default_times_applied(session):
    assert session.draft.check_in_time == "14:00"
    assert session.draft.check_out_time == "12:00"


# =============================================================================
# Identity Lookup Tests
# =============================================================================


@pytest.mark.asyncio
async def test_existing_customer_attached(session, frontdesk):
    frontdesk.validate_identity.return_value = IdentityValidationResult(
        exists=True,
        is_valid_format=True,
        customer=CustomerSummary(id=7, customer_code="CUS0007", first_name="Nimal", last_name="Perera"),
    )

    result = await session.lookup_identity("199512345678")

    assert result.status == IdentityLookupStatus.FOUND
    assert session.draft.customer_id == 7
    assert session.guest.full_name == "Nimal Perera"


@pytest.mark.asyncio
async def test_new_customer_keeps_suggested_data(session, frontdesk):
    frontdesk.validate_identity.return_value = IdentityValidationResult(
        exists=False,
        is_valid_format=True,
        suggested_data=SuggestedGuestData(gender="Female", date_of_birth=date(1998, 2, 5)),
    )

    result = await session.lookup_identity("199853612345")

    assert result.status == IdentityLookupStatus.NEW_VALID
    assert session.draft.customer_id is None
    assert session.suggested_guest_data.gender == "Female"


@pytest.mark.asyncio
async def test_malformed_identity_number(session, frontdesk):
    frontdesk.validate_identity.return_value = IdentityValidationResult(exists=False)

    result = await session.lookup_identity("12AB")

    assert result.status == IdentityLookupStatus.NEW_INVALID


@pytest.mark.asyncio
async def test_identity_backend_down(session, frontdesk):
    frontdesk.validate_identity.side_effect = FrontDeskNetworkError("timeout")

    result = await session.lookup_identity("199512345678")

    assert result.status == IdentityLookupStatus.UNAVAILABLE
    assert session.draft.customer_id is None


# =============================================================================
# Submission Tests
# =============================================================================


@pytest.mark.asyncio
async def test_submit_success_closes_session(session, frontdesk, committed):
    await prepare(session)
    session.select_room(201)
    session.attach_customer(7)
    session.update(advance_amount=Decimal("5000"))
    frontdesk.create_reservation.return_value = committed

    result = await session.submit()

    assert result.success is True
    assert result.booking_number == "BK-2024-0001"
    assert session.is_closed

    request = frontdesk.create_reservation.call_args.args[0]
    assert request.roomId == 201
    assert request.totalAmount == Decimal("15000")
    assert request.balanceAmount == Decimal("10000")
    assert request.paymentStatus == "PARTIAL"
    assert request.checkInDate == "2024-01-01T14:00:00"

    with pytest.raises(SessionClosedError):
        session.update(adults=2)
    with pytest.raises(SessionClosedError):
        await session.submit()


@pytest.mark.asyncio
async def test_submit_blocked_by_validation(session, frontdesk):
    await prepare(session)
    session.select_room(201)

    result = await session.submit()

    assert result.success is False
    assert [issue.field for issue in result.issues] == ["customer_id"]
    frontdesk.create_reservation.assert_not_awaited()
    assert session.state == DraftState.PRICED


@pytest.mark.asyncio
async def test_submit_rejected_keeps_draft(session, frontdesk):
    await prepare(session)
    session.select_room(201)
    session.attach_customer(7)
    frontdesk.create_reservation.side_effect = FrontDeskValidationError(
        "Room is not available for the selected dates",
        details="Room 201 is already booked",
        status_code=400,
    )

    result = await session.submit()

    assert result.success is False
    assert "already booked" in result.error_message
    assert session.state == DraftState.FAILED
    assert session.draft.room_id == 201
    assert not session.is_closed

    session.update(remarks="Guest called back")
    assert session.state == DraftState.SUBMITTABLE
    frontdesk.create_reservation.assert_awaited_once()


@pytest.mark.asyncio
async def test_submit_without_backend(catalog):
    session = BookingSession(None, catalog)
    session.select_room_class(2)

    result = await session.submit()

    assert result.success is False
    assert result.issues


@pytest.mark.asyncio
async def test_submit_without_backend_marks_failed(session):
    await prepare(session)
    session.select_room(201)
    session.attach_customer(7)
    session.client = None

    result = await session.submit()

    assert result.success is False
    assert result.error_message == "No commit backend configured"
    assert session.last_submission is result
    assert session.state == DraftState.FAILED


@pytest.mark.asyncio
async def test_identity_lookup_after_submit_rejected(session, frontdesk, committed):
    await prepare(session)
    session.select_room(201)
    session.attach_customer(7)
    frontdesk.create_reservation.return_value = committed
    await session.submit()

    with pytest.raises(SessionClosedError):
        await session.lookup_identity("199512345678")

    frontdesk.validate_identity.assert_not_awaited()
