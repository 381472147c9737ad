"""Front-desk REST backend client: catalog, availability, identity and commit."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any

import httpx
from pydantic import BaseModel

from booking_engine.models.catalog import (
    BookingSource,
    ComplementaryItem,
    Room,
    RoomClass,
    RoomStatus,
)
from booking_engine.models.customer import (
    CustomerSummary,
    IdentityValidationResult,
    SuggestedGuestData,
)
from booking_engine.utils.logger import get_logger, mask_sensitive

logger = get_logger(__name__)

# Raised while reading a payload whose shape does not match what the backend documents
MALFORMED_PAYLOAD_ERRORS = (KeyError, TypeError, AttributeError, ValueError, ArithmeticError)


# =============================================================================
# Request / Response Models
# =============================================================================


class ReservationCommitRequest(BaseModel):
    """Payload for POST /api/reservations.

    Charge fields are an advisory snapshot; the backend re-validates and is
    authoritative over the final charged amount.
    """

    # Required fields
    customerId: int
    roomId: int
    roomClassId: int
    checkInDate: str  # ISO datetime
    checkOutDate: str  # ISO datetime
    checkInTime: str = "14:00"
    checkOutTime: str = "12:00"

    # Occupancy
    adults: int = 1
    children: int = 0
    infants: int = 0

    # Booking details
    bookingType: str | None = None
    bookingSourceId: int | None = None
    purposeOfVisit: str | None = None
    arrivalFrom: str | None = None
    specialRequests: str | None = None
    remarks: str | None = None

    # Billing snapshot
    billingType: str
    numberOfNights: int = 1
    baseRoomRate: Decimal
    totalRoomCharge: Decimal
    extraCharges: Decimal = Decimal("0")
    complementaryTotal: Decimal = Decimal("0")
    discountType: str | None = None
    discountValue: Decimal = Decimal("0")
    discountReason: str | None = None
    discountAmount: Decimal = Decimal("0")
    serviceCharge: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    commissionPercent: Decimal = Decimal("0")
    commissionAmount: Decimal = Decimal("0")

    # Payment
    paymentMethod: str
    totalAmount: Decimal
    advanceAmount: Decimal = Decimal("0")
    balanceAmount: Decimal = Decimal("0")
    paymentStatus: str | None = None
    advanceRemarks: str | None = None
    bookedBy: int | None = None

    complementaryItemIds: list[int] = []


class CommitResponse(BaseModel):
    """Successful reservation commit."""

    booking_number: str
    reservation: dict[str, Any]


# =============================================================================
# Exceptions
# =============================================================================


class FrontDeskApiError(Exception):
    """Base exception for front-desk backend errors."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class FrontDeskNetworkError(FrontDeskApiError):
    """Transport failure, timeout or server-side error."""

    pass


class FrontDeskValidationError(FrontDeskApiError):
    """Request rejected by the backend's validation."""

    def __init__(
        self,
        message: str,
        details: str | None = None,
        status_code: int | None = None,
        response: Any = None,
    ):
        super().__init__(message, status_code=status_code, response=response)
        self.details = details


# =============================================================================
# Front-desk Client
# =============================================================================


class FrontDeskClient:
    """
    Async client for the front-desk REST backend.

    Usage:
        async with FrontDeskClient(base_url) as client:
            classes = await client.get_room_classes()
            rooms = await client.get_available_rooms(1, date(2024, 1, 1), date(2024, 1, 4))
    """

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: int = 30,
    ):
        """
        Initialize front-desk client.

        Args:
            base_url: Backend base URL (e.g., http://localhost:3000)
            api_token: Optional bearer token
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "FrontDeskClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is not None:
            return
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, raise if not initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with FrontDeskClient(...)' context.")
        return self._client

    # =========================================================================
    # Transport
    # =========================================================================

    async def _get(self, path: str, params: dict | None = None) -> Any:
        return await self._send("GET", path, params=params)

    async def _post(self, path: str, payload: Any) -> Any:
        return await self._send("POST", path, payload=payload)

    async def _send(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        payload: Any = None,
    ) -> Any:
        url = f"{self.base_url}{path}"

        try:
            if method == "GET":
                response = await self.client.get(url, params=params)
            else:
                response = await self.client.post(url, json=payload)
            response.raise_for_status()
            return response.json()

        except ValueError as e:
            # Proxies and error pages answer 200 with HTML
            logger.error("frontdesk_invalid_json", path=path, error=str(e))
            raise FrontDeskNetworkError(f"Invalid JSON response from {path}: {e}") from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            data = _safe_json(e.response)
            logger.error("frontdesk_http_error", path=path, status=status)

            if status >= 500:
                raise FrontDeskNetworkError(
                    f"Server error {status} on {path}",
                    status_code=status,
                    response=data,
                ) from e

            raise FrontDeskValidationError(
                data.get("error") or data.get("message") or f"HTTP {status}",
                details=data.get("details"),
                status_code=status,
                response=data,
            ) from e

        except httpx.HTTPError as e:
            logger.error("frontdesk_request_failed", path=path, error=str(e))
            raise FrontDeskNetworkError(f"Request to {path} failed: {e}") from e

    # =========================================================================
    # Catalog
    # =========================================================================

    async def get_room_classes(self) -> list[RoomClass]:
        """Get all room classes with tariffs."""
        path = "/api/rooms/settings/classes"
        data = await self._get(path)

        with _payload(path):
            room_classes = [
                parse_room_class(item)
                for item in _items(data, "roomClasses")
            ]
        logger.info("room_classes_loaded", count=len(room_classes))
        return room_classes

    async def get_complementary_items(self, room_class_id: int) -> list[ComplementaryItem]:
        """Get complementary items offered with a room class."""
        path = f"/api/rooms/settings/classes/{room_class_id}/complementary"
        data = await self._get(path)

        with _payload(path):
            items = [
                ComplementaryItem(
                    id=item["id"],
                    room_class_id=item.get("roomClassId", room_class_id),
                    name=item.get("name", ""),
                    description=item.get("description"),
                    rate=_decimal(item.get("rate")),
                    is_optional=item.get("isOptional", True),
                )
                for item in _items(data, "items")
            ]
        logger.debug("complementary_items_loaded", room_class_id=room_class_id, count=len(items))
        return items

    async def get_booking_sources(self) -> list[BookingSource]:
        """Get booking channels with their commission rates."""
        path = "/api/room-setting/booking-source"
        data = await self._get(path)

        sources = []
        with _payload(path):
            for item in _items(data, "bookingSources"):
                booking_type = item.get("bookingType")
                sources.append(
                    BookingSource(
                        id=item["id"],
                        name=item.get("bookingSource", item.get("name", "")),
                        booking_type=booking_type.get("name") if isinstance(booking_type, dict) else booking_type,
                        commission_rate=_decimal(item.get("commissionRate")),
                    )
                )
        return sources

    # =========================================================================
    # Availability
    # =========================================================================

    async def get_available_rooms(
        self,
        room_class_id: int,
        check_in: date,
        check_out: date,
    ) -> list[Room]:
        """
        Get rooms of a class with no overlapping reservation.

        Args:
            room_class_id: Room class to search
            check_in: First night
            check_out: Departure date (exclusive)

        Returns:
            List of rooms as returned by the backend
        """
        params = {
            "roomClassId": str(room_class_id),
            "checkInDate": check_in.isoformat(),
            "checkOutDate": check_out.isoformat(),
        }
        logger.debug("frontdesk_get_available_rooms", **params)

        path = "/api/rooms/available"
        data = await self._get(path, params=params)

        rooms = []
        with _payload(path):
            for item in _items(data, "rooms"):
                floor = item.get("floor") or {}
                rooms.append(
                    Room(
                        id=item["id"],
                        room_number=str(item.get("roomNumber", "")),
                        room_class_id=item.get("roomClassId", room_class_id),
                        status=_room_status(item.get("status")),
                        floor=floor.get("name"),
                        floor_number=floor.get("floorNumber"),
                    )
                )
        return rooms

    # =========================================================================
    # Customers
    # =========================================================================

    async def validate_identity(self, identity_number: str) -> IdentityValidationResult:
        """
        Look up a customer by identity number.

        The backend reports whether the customer exists and, if not, whether
        the number is well formed together with data derived from it.
        """
        logger.info("frontdesk_validate_identity", identity_number=mask_sensitive(identity_number))

        path = "/api/customers/validate-nic"
        data = await self._post(path, {"identityNumber": identity_number})

        with _payload(path):
            return _identity_result(data)

    # =========================================================================
    # Reservations
    # =========================================================================

    async def create_reservation(self, request: ReservationCommitRequest) -> CommitResponse:
        """
        Commit a reservation.

        Args:
            request: Serialized draft with its charge snapshot

        Returns:
            CommitResponse with the booking number

        Raises:
            FrontDeskValidationError: If the backend rejects the reservation
            FrontDeskNetworkError: If the backend is unreachable
        """
        logger.info(
            "frontdesk_create_reservation",
            room_id=request.roomId,
            room_class_id=request.roomClassId,
            check_in=request.checkInDate,
            check_out=request.checkOutDate,
            total_amount=str(request.totalAmount),
        )

        path = "/api/reservations"
        data = await self._post(path, request.model_dump(mode="json", exclude_none=True))

        with _payload(path):
            reservation = data.get("reservation") or {}
            booking_number = reservation.get("bookingNumber") or data.get("bookingNumber")
        if not booking_number:
            raise FrontDeskApiError(
                "Reservation response did not include a booking number",
                response=data,
            )

        logger.info("frontdesk_reservation_created", booking_number=booking_number)
        return CommitResponse(booking_number=booking_number, reservation=reservation)


# =============================================================================
# Parsing helpers
# =============================================================================


@contextmanager
def _payload(path: str) -> Iterator[None]:
    """Report a payload that cannot be read as a backend failure."""
    try:
        yield
    except MALFORMED_PAYLOAD_ERRORS as e:
        logger.error("frontdesk_malformed_payload", path=path, error=str(e))
        raise FrontDeskNetworkError(f"Malformed response from {path}: {e}") from e


def _identity_result(data: dict) -> IdentityValidationResult:
    customer = data.get("customer")
    suggested = data.get("suggestedData")

    return IdentityValidationResult(
        exists=bool(data.get("exists")),
        is_valid_format=bool(data.get("isValidFormat", data.get("exists", False))),
        customer=CustomerSummary(
            id=customer["id"],
            customer_code=customer.get("customerID"),
            first_name=customer.get("firstName", ""),
            last_name=customer.get("lastName"),
            phone=customer.get("phone"),
            email=customer.get("email"),
            is_vip=customer.get("isVip", False),
        ) if customer else None,
        suggested_data=SuggestedGuestData(
            gender=suggested.get("gender"),
            date_of_birth=_iso_date(suggested.get("dateOfBirth")),
            nationality=suggested.get("nationality"),
        ) if suggested else None,
    )


def parse_room_class(item: dict) -> RoomClass:
    """Build a RoomClass from the backend's camelCase payload."""
    hourly = item.get("hourlyRate")
    return RoomClass(
        id=item["id"],
        name=item.get("name", ""),
        description=item.get("description"),
        rate_per_night=_decimal(item.get("ratePerNight")),
        rate_day_use=_decimal(item.get("rateDayUse")),
        hourly_rate=_decimal(hourly) if hourly is not None else None,
        max_occupancy=item.get("maxOccupancy", 1),
        standard_occupancy=item.get("standardOccupancy", 1),
        extra_person_charge=_decimal(item.get("extraPersonCharge")),
        child_charge=_decimal(item.get("childCharge")),
    )


def _items(data: Any, key: str) -> list[dict]:
    if isinstance(data, list):
        return data
    return data.get(key) or data.get("data") or []


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def _room_status(value: str | None) -> RoomStatus:
    try:
        return RoomStatus(value or RoomStatus.AVAILABLE.value)
    except ValueError:
        # Statuses this engine does not know (e.g. OUT_OF_ORDER) are not bookable
        return RoomStatus.MAINTENANCE


def _iso_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value[:10])


def _safe_json(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
