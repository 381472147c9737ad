"""Shared fixtures for booking engine tests."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from booking_engine.models.catalog import (
    BookingSource,
    ComplementaryItem,
    Room,
    RoomClass,
    RoomStatus,
)
from booking_engine.services.booking_session import BookingSession
from booking_engine.services.catalog import CatalogData, CatalogService, DefaultDataProvider
from booking_engine.services.frontdesk_client import FrontDeskClient


DELUXE = RoomClass(
    id=2,
    name="Deluxe",
    rate_per_night=Decimal("5000"),
    rate_day_use=Decimal("3000"),
    hourly_rate=Decimal("800"),
    max_occupancy=4,
    standard_occupancy=2,
    extra_person_charge=Decimal("1000"),
    child_charge=Decimal("500"),
)

SUITE = RoomClass(
    id=3,
    name="Suite",
    rate_per_night=Decimal("12000"),
    rate_day_use=Decimal("7000"),
    hourly_rate=None,
    max_occupancy=5,
    standard_occupancy=2,
    extra_person_charge=Decimal("2500"),
    child_charge=Decimal("1200"),
)

# Suite room 301 deliberately shares its number with Deluxe room 201
ROOMS = [
    Room(id=210, room_number="210", room_class_id=2),
    Room(id=201, room_number="201", room_class_id=2),
    Room(id=209, room_number="9", room_class_id=2),
    Room(id=205, room_number="205", room_class_id=2, status=RoomStatus.MAINTENANCE),
    Room(id=301, room_number="201", room_class_id=3),
    Room(id=302, room_number="302", room_class_id=3),
]

COMPLEMENTARY_ITEMS = [
    ComplementaryItem(id=11, room_class_id=2, name="Breakfast", rate=Decimal("1200")),
    ComplementaryItem(id=12, room_class_id=2, name="Airport Transfer", rate=Decimal("3000")),
    ComplementaryItem(id=21, room_class_id=3, name="Spa Voucher", rate=Decimal("4500")),
]

BOOKING_SOURCES = [
    BookingSource(id=1, name="Walk-in", booking_type="Direct"),
    BookingSource(id=2, name="Booking.com", booking_type="OTA", commission_rate=Decimal("15")),
]


def rooms_for_class(room_class_id, check_in, check_out):
    """Stand-in for the backend's available-rooms lookup."""
    return [room for room in ROOMS if room.room_class_id == room_class_id]


@pytest.fixture
def deluxe():
    return DELUXE


@pytest.fixture
def suite():
    return SUITE


@pytest.fixture
def catalog_data():
    return CatalogData(
        room_classes=[DELUXE, SUITE],
        complementary_items=COMPLEMENTARY_ITEMS,
        booking_sources=BOOKING_SOURCES,
    )


@pytest.fixture
def catalog(catalog_data):
    """Catalog served from fallback tables with classes and sources preloaded."""
    service = CatalogService(client=None, defaults=DefaultDataProvider(catalog_data))
    service.add_room_classes(catalog_data.room_classes)
    service.add_booking_sources(catalog_data.booking_sources)
    return service


@pytest.fixture
def frontdesk():
    """Mocked front-desk backend."""
    client = AsyncMock(spec=FrontDeskClient)
    client.get_available_rooms.side_effect = rooms_for_class
    return client


@pytest.fixture
def session(frontdesk, catalog):
    return BookingSession(frontdesk, catalog, session_id="test-session")
