"""Room availability resolution for a room class and date range."""

import re
from collections.abc import Awaitable, Callable
from datetime import date
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel

from booking_engine.models.catalog import Room, RoomStatus
from booking_engine.services.frontdesk_client import FrontDeskApiError
from booking_engine.services.generation import GenerationGuard, RequestTicket
from booking_engine.utils.logger import get_logger

logger = get_logger(__name__)


RoomLookup = Callable[[int, date, date], Awaitable[list[Room]]]


class AvailabilityStatus(str, Enum):
    IDLE = "IDLE"  # Class or dates missing, or the range is not a valid stay
    LOADING = "LOADING"
    READY = "READY"
    EMPTY = "EMPTY"  # Lookup succeeded, no room matches
    UNAVAILABLE = "UNAVAILABLE"  # Lookup failed; re-mutate or refresh to retry


class AvailabilityKey(NamedTuple):
    room_class_id: int | None
    check_in_date: date | None
    check_out_date: date | None

    @property
    def is_complete(self) -> bool:
        return (
            self.room_class_id is not None
            and self.check_in_date is not None
            and self.check_out_date is not None
            and self.check_in_date < self.check_out_date
        )


class AvailabilitySnapshot(BaseModel):
    """Candidate rooms for the current class and date range."""

    status: AvailabilityStatus = AvailabilityStatus.IDLE
    rooms: list[Room] = []
    generation: int = 0
    error_message: str | None = None

    def contains(self, room_id: int | None) -> bool:
        return room_id is not None and any(room.id == room_id for room in self.rooms)

    @property
    def is_resolved(self) -> bool:
        return self.status in (AvailabilityStatus.READY, AvailabilityStatus.EMPTY)


def room_number_sort_key(room: Room) -> tuple[int, str]:
    """Order "9" before "101" and "202" before "202A"."""
    match = re.match(r"\d+", room.room_number)
    number = int(match.group()) if match else -1
    return number, room.room_number


class AvailabilityResolver:
    """
    Resolves candidate rooms keyed by room class and date range.

    Each change of key invalidates the current list immediately. Lookups are
    tagged with a generation; a response whose generation is no longer
    current is discarded, so a slow response for an earlier key can never
    overwrite the result of a newer request.
    """

    def __init__(self, lookup: RoomLookup):
        """
        Initialize resolver.

        Args:
            lookup: Async callable ``(room_class_id, check_in, check_out) -> rooms``
        """
        self.lookup = lookup
        self.key = AvailabilityKey(None, None, None)
        self._guard = GenerationGuard()
        self._snapshot = AvailabilitySnapshot()

    @property
    def snapshot(self) -> AvailabilitySnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._guard.generation

    def set_key(self, key: AvailabilityKey) -> bool:
        """
        Update the class/date key.

        Returns:
            True if the key changed and the list was invalidated
        """
        if key == self.key:
            return False

        self.key = key
        self._guard.invalidate(key)
        self._snapshot = AvailabilitySnapshot(generation=self._guard.generation)
        logger.debug(
            "availability_invalidated",
            room_class_id=key.room_class_id,
            generation=self._guard.generation,
        )
        return True

    def begin(self) -> RequestTicket | None:
        """Issue a lookup ticket for the current key, or None if the key is incomplete."""
        if not self.key.is_complete:
            return None

        ticket = self._guard.issue(self.key)
        self._snapshot = AvailabilitySnapshot(
            status=AvailabilityStatus.LOADING,
            generation=ticket.generation,
        )
        return ticket

    def complete(self, ticket: RequestTicket, rooms: list[Room]) -> bool:
        """
        Apply a lookup response.

        Returns:
            False if the response was stale and discarded
        """
        if not self._guard.is_current(ticket):
            logger.debug(
                "availability_response_discarded",
                ticket_generation=ticket.generation,
                current_generation=self._guard.generation,
            )
            return False

        room_class_id = ticket.key.room_class_id
        candidates = sorted(
            (
                room for room in rooms
                if room.room_class_id == room_class_id and room.status == RoomStatus.AVAILABLE
            ),
            key=room_number_sort_key,
        )

        self._snapshot = AvailabilitySnapshot(
            status=AvailabilityStatus.READY if candidates else AvailabilityStatus.EMPTY,
            rooms=candidates,
            generation=ticket.generation,
        )
        logger.info(
            "availability_resolved",
            room_class_id=room_class_id,
            count=len(candidates),
            generation=ticket.generation,
        )
        return True

    def fail(self, ticket: RequestTicket, error: Exception) -> bool:
        """
        Record a failed lookup.

        Returns:
            False if the failure belonged to a superseded request
        """
        if not self._guard.is_current(ticket):
            logger.debug(
                "availability_failure_discarded",
                ticket_generation=ticket.generation,
                current_generation=self._guard.generation,
            )
            return False

        self._snapshot = AvailabilitySnapshot(
            status=AvailabilityStatus.UNAVAILABLE,
            generation=ticket.generation,
            error_message=str(error),
        )
        logger.warning(
            "availability_unavailable",
            room_class_id=ticket.key.room_class_id,
            error=str(error),
        )
        return True

    async def resolve(self) -> tuple[AvailabilitySnapshot, bool]:
        """
        Look up rooms for the current key.

        Returns:
            Tuple of (current snapshot, whether this call's response was applied)
        """
        ticket = self.begin()
        if ticket is None:
            return self._snapshot, False

        key = ticket.key
        try:
            rooms = await self.lookup(key.room_class_id, key.check_in_date, key.check_out_date)
        except FrontDeskApiError as e:
            return self._snapshot, self.fail(ticket, e)

        return self._snapshot, self.complete(ticket, rooms)
