"""FastAPI application for the reservation draft engine."""

from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException

from booking_engine import __version__
from booking_engine.config import get_settings
from booking_engine.services.catalog import CatalogService, DefaultDataProvider
from booking_engine.services.frontdesk_client import FrontDeskApiError, FrontDeskClient
from booking_engine.utils.logger import get_logger, setup_logging

from .routes import DraftSessionStore, get_session_store, router, set_session_store

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    client = FrontDeskClient(
        base_url=settings.frontdesk_base_url,
        api_token=settings.frontdesk_api_token,
        timeout=settings.frontdesk.timeout_seconds,
    )
    await client.open()

    defaults = None
    if settings.app.use_fallback_catalog:
        defaults = DefaultDataProvider(cache_file=settings.app.fallback_catalog_file)

    catalog = CatalogService(client, defaults)
    try:
        room_classes = await catalog.load_room_classes()
    except FrontDeskApiError as e:
        logger.error("engine_start_failed", error=str(e))
        await client.close()
        raise

    try:
        await catalog.load_booking_sources()
    except FrontDeskApiError as e:
        logger.warning("booking_sources_unavailable", error=str(e))

    logger.info(
        "engine_started",
        room_classes=len(room_classes),
        using_fallback=catalog.using_fallback,
    )

    set_session_store(
        DraftSessionStore(
            client,
            catalog,
            settings.pricing,
            idle_timeout=timedelta(minutes=settings.app.draft_idle_minutes),
        )
    )
    yield

    set_session_store(None)
    await client.close()
    logger.info("engine_stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Front Desk Booking Engine",
        description="Reservation charge computation and room availability resolution.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.include_router(router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check for monitoring and load balancers."""
        try:
            store = get_session_store()
        except HTTPException:
            return {"status": "starting", "version": __version__}
        return {
            "status": "healthy",
            "version": __version__,
            "open_drafts": len(store),
            "using_fallback_catalog": store.catalog.using_fallback,
        }

    return app


app = create_app()
