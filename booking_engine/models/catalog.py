"""Pydantic models for room catalog reference data."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RoomStatus(str, Enum):
    """Housekeeping status of a physical room."""

    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    RESERVED = "RESERVED"


class RoomClass(BaseModel):
    """Room class tariff and occupancy limits."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str | None = None

    # Tariffs
    rate_per_night: Decimal = Field(ge=0)
    rate_day_use: Decimal = Field(ge=0)
    hourly_rate: Decimal | None = Field(default=None, ge=0)

    # Occupancy
    max_occupancy: int = Field(ge=1)
    standard_occupancy: int = Field(ge=1)
    extra_person_charge: Decimal = Field(default=Decimal("0"), ge=0)
    child_charge: Decimal = Field(default=Decimal("0"), ge=0)


class Room(BaseModel):
    """A physical room."""

    model_config = ConfigDict(frozen=True)

    id: int
    room_number: str
    room_class_id: int
    status: RoomStatus = RoomStatus.AVAILABLE
    floor: str | None = None  # Floor name, e.g. "First Floor"
    floor_number: int | None = None


class ComplementaryItem(BaseModel):
    """Optional add-on service priced per room class."""

    model_config = ConfigDict(frozen=True)

    id: int
    room_class_id: int
    name: str
    description: str | None = None
    rate: Decimal = Field(ge=0)
    is_optional: bool = True


class BookingSource(BaseModel):
    """Channel or agent a booking comes through."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    booking_type: str | None = None
    commission_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
