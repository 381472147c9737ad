"""Room catalog with an injectable fallback data provider."""

import json
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel

from booking_engine.models.catalog import (
    BookingSource,
    ComplementaryItem,
    RoomClass,
)
from booking_engine.services.frontdesk_client import FrontDeskApiError, FrontDeskClient
from booking_engine.utils.logger import get_logger

logger = get_logger(__name__)


class CatalogData(BaseModel):
    """Complete set of reference tables."""

    room_classes: list[RoomClass] = []
    complementary_items: list[ComplementaryItem] = []
    booking_sources: list[BookingSource] = []


def _default_catalog() -> CatalogData:
    """Built-in tables used while the catalog backend is unreachable."""
    room_classes = [
        RoomClass(
            id=1, name="Single Room",
            rate_per_night=Decimal("25000"), rate_day_use=Decimal("15000"),
            hourly_rate=Decimal("1500"),
            max_occupancy=2, standard_occupancy=1,
            extra_person_charge=Decimal("5000"), child_charge=Decimal("2500"),
        ),
        RoomClass(
            id=2, name="Double Room",
            rate_per_night=Decimal("35000"), rate_day_use=Decimal("20000"),
            hourly_rate=Decimal("2000"),
            max_occupancy=4, standard_occupancy=2,
            extra_person_charge=Decimal("6000"), child_charge=Decimal("3000"),
        ),
        RoomClass(
            id=3, name="Suite",
            rate_per_night=Decimal("75000"), rate_day_use=Decimal("45000"),
            hourly_rate=Decimal("4500"),
            max_occupancy=5, standard_occupancy=2,
            extra_person_charge=Decimal("10000"), child_charge=Decimal("5000"),
        ),
    ]
    complementary_items = [
        ComplementaryItem(id=1, room_class_id=1, name="Welcome Drink", rate=Decimal("500")),
        ComplementaryItem(id=2, room_class_id=2, name="Breakfast", rate=Decimal("1200")),
        ComplementaryItem(id=3, room_class_id=3, name="Airport Transfer", rate=Decimal("3000")),
        ComplementaryItem(id=4, room_class_id=1, name="Late Checkout", rate=Decimal("1500")),
        ComplementaryItem(id=5, room_class_id=2, name="Early Check-in", rate=Decimal("2000")),
    ]
    return CatalogData(
        room_classes=room_classes,
        complementary_items=complementary_items,
    )


class DefaultDataProvider:
    """
    Fallback reference tables.

    Passed into the catalog rather than read from module state, so tests and
    deployments can supply their own tables or a JSON file.
    """

    def __init__(self, data: CatalogData | None = None, cache_file: str | Path | None = None):
        """
        Initialize provider.

        Args:
            data: Tables to serve; the built-in defaults when omitted
            cache_file: Optional JSON file overriding ``data`` when it exists
        """
        self.data = data or _default_catalog()
        self.cache_file = Path(cache_file) if cache_file else None

        if self.cache_file and self.cache_file.exists():
            self.load_from_file()

    def load_from_file(self) -> None:
        """Load tables from the JSON file."""
        if not self.cache_file or not self.cache_file.exists():
            logger.warning("fallback_catalog_file_not_found", path=str(self.cache_file))
            return

        with open(self.cache_file, "r", encoding="utf-8") as f:
            self.data = CatalogData.model_validate(json.load(f))

        logger.info(
            "fallback_catalog_loaded",
            path=str(self.cache_file),
            room_classes=len(self.data.room_classes),
            complementary_items=len(self.data.complementary_items),
        )

    def save_to_file(self) -> None:
        """Save tables to the JSON file."""
        if not self.cache_file:
            logger.warning("no_fallback_catalog_file_configured")
            return

        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.cache_file, "w", encoding="utf-8") as f:
            json.dump(self.data.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

        logger.info("fallback_catalog_saved", path=str(self.cache_file))

    def room_classes(self) -> list[RoomClass]:
        return list(self.data.room_classes)

    def complementary_items(self, room_class_id: int) -> list[ComplementaryItem]:
        return [
            item for item in self.data.complementary_items
            if item.room_class_id == room_class_id
        ]

    def booking_sources(self) -> list[BookingSource]:
        return list(self.data.booking_sources)


class CatalogService:
    """
    Room classes, complementary items and booking sources.

    Reads the backend first and serves the fallback provider's tables when the
    backend is unreachable. Only backend results are cached; a table served
    from the fallback is fetched from the backend again on its next load.
    """

    def __init__(
        self,
        client: FrontDeskClient | None = None,
        defaults: DefaultDataProvider | None = None,
    ):
        self.client = client
        self.defaults = defaults
        self._room_classes: dict[int, RoomClass] = {}
        self._complementary: dict[int, list[ComplementaryItem]] = {}
        self._booking_sources: dict[int, BookingSource] = {}
        # Tables last served from the fallback provider
        self._stale: set[str] = set()

    @property
    def using_fallback(self) -> bool:
        return bool(self._stale)

    async def load_room_classes(self, use_cache: bool = True) -> list[RoomClass]:
        """
        Load room classes.

        Raises:
            FrontDeskApiError: If the backend fails and no fallback is configured
        """
        if use_cache and self._room_classes and "room_classes" not in self._stale:
            return list(self._room_classes.values())

        room_classes = await self._fetch(
            "room_classes",
            self.client.get_room_classes if self.client else None,
            self.defaults.room_classes if self.defaults else None,
        )
        # Fallback classes stay addressable by id until the backend answers
        self._room_classes = {room_class.id: room_class for room_class in room_classes}
        return room_classes

    def get_room_class(self, room_class_id: int | None) -> RoomClass | None:
        if room_class_id is None:
            return None
        return self._room_classes.get(room_class_id)

    def add_room_classes(self, room_classes: list[RoomClass]) -> None:
        for room_class in room_classes:
            self._room_classes[room_class.id] = room_class

    async def get_complementary_items(self, room_class_id: int) -> list[ComplementaryItem]:
        """Complementary items for a class, cached per class once the backend has served them."""
        if room_class_id in self._complementary:
            return self._complementary[room_class_id]

        table = f"complementary_items:{room_class_id}"
        items = await self._fetch(
            table,
            (lambda: self.client.get_complementary_items(room_class_id)) if self.client else None,
            (lambda: self.defaults.complementary_items(room_class_id)) if self.defaults else None,
        )
        if table not in self._stale:
            self._complementary[room_class_id] = items
        return items

    async def load_booking_sources(self) -> list[BookingSource]:
        sources = await self._fetch(
            "booking_sources",
            self.client.get_booking_sources if self.client else None,
            self.defaults.booking_sources if self.defaults else None,
        )
        self._booking_sources = {source.id: source for source in sources}
        return sources

    def add_booking_sources(self, sources: list[BookingSource]) -> None:
        for source in sources:
            self._booking_sources[source.id] = source

    def get_booking_source(self, source_id: int) -> BookingSource | None:
        return self._booking_sources.get(source_id)

    async def _fetch(self, table, remote, fallback):
        if remote is not None:
            try:
                result = await remote()
            except FrontDeskApiError as e:
                if fallback is None:
                    raise
                logger.warning("catalog_fallback_used", table=table, error=str(e))
            else:
                if table in self._stale:
                    logger.info("catalog_backend_restored", table=table)
                    self._stale.discard(table)
                return result
        elif fallback is None:
            raise FrontDeskApiError(f"No source configured for {table}")

        self._stale.add(table)
        return fallback()
