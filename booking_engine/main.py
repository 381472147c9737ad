"""Main entry point for the booking engine."""

import asyncio
import json
import sys
from pathlib import Path

from booking_engine.config import get_settings
from booking_engine.models.reservation import ChargeBreakdown, ReservationDraft
from booking_engine.services.catalog import CatalogService, DefaultDataProvider
from booking_engine.services.frontdesk_client import FrontDeskApiError, FrontDeskClient
from booking_engine.services.pricing import PricingPolicy
from booking_engine.services.scheduler import PricingContext, RecalculationScheduler
from booking_engine.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_serve() -> None:
    """Run the HTTP API."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "booking_engine.api.app:app",
        host=settings.app.api_host,
        port=settings.app.api_port,
    )


async def quote_draft(draft: ReservationDraft, catalog: CatalogService) -> ChargeBreakdown:
    """Price a draft against the catalog without touching availability."""
    settings = get_settings()
    await catalog.load_room_classes()

    complementary = {}
    if draft.room_class_id is not None:
        items = await catalog.get_complementary_items(draft.room_class_id)
        complementary = {item.id: item for item in items}

    scheduler = RecalculationScheduler(PricingPolicy.from_settings(settings.pricing))
    context = PricingContext(
        room_class=catalog.get_room_class(draft.room_class_id),
        complementary_items=complementary,
    )
    return scheduler.recompute(draft, context)


async def cmd_quote(path: str) -> None:
    """Price a draft stored as JSON using the offline fallback catalog."""
    settings = get_settings()
    with open(Path(path), "r", encoding="utf-8") as f:
        draft = ReservationDraft.model_validate(json.load(f))

    defaults = DefaultDataProvider(cache_file=settings.app.fallback_catalog_file)
    breakdown = await quote_draft(draft, CatalogService(client=None, defaults=defaults))

    currency = settings.pricing.currency
    rows = [
        ("Base rate", breakdown.base_room_rate),
        ("Room charge", breakdown.total_room_charge),
        ("Extra guests", breakdown.extra_charges),
        ("Complementary", breakdown.complementary_total),
        ("Discount", -breakdown.discount_amount),
        ("Service charge", draft.service_charge),
        ("Tax", draft.tax),
        ("Commission", breakdown.commission_amount),
        ("Total", breakdown.total_amount),
        ("Advance", draft.advance_amount),
        ("Balance", breakdown.balance_amount),
    ]

    print("\n" + "=" * 40)
    print(f"Quote - {draft.billing_type.value}, {breakdown.nights} night(s), {breakdown.hours} hour(s)")
    print("=" * 40)
    for label, amount in rows:
        print(f"{label:<16}{currency:>6} {amount:>14,.2f}")
    print(f"{'Payment status':<16}{breakdown.payment_status.value:>21}")
    print("=" * 40 + "\n")


async def cmd_test_connection() -> None:
    """Test the connection to the front-desk backend."""
    settings = get_settings()
    print("\nTesting front-desk backend...\n")

    try:
        async with FrontDeskClient(
            base_url=settings.frontdesk_base_url,
            api_token=settings.frontdesk_api_token,
            timeout=settings.frontdesk.timeout_seconds,
        ) as client:
            room_classes = await client.get_room_classes()
            print(f"   Connected to {settings.frontdesk_base_url}")
            print(f"   Found {len(room_classes)} room classes")
    except FrontDeskApiError as e:
        print(f"   Backend failed: {e}")
        sys.exit(1)

    print("\nConnection test complete!\n")


# =============================================================================
# Main
# =============================================================================


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    command = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if command == "serve":
        cmd_serve()
    elif command == "quote" and len(sys.argv) > 2:
        asyncio.run(cmd_quote(sys.argv[2]))
    elif command == "test":
        asyncio.run(cmd_test_connection())
    else:
        print(f"Unknown command: {command}")
        print("Usage: python -m booking_engine.main [serve|quote <draft.json>|test]")
        sys.exit(1)


if __name__ == "__main__":
    main()
