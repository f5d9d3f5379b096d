from functools import lru_cache
import logging
from zoneinfo import ZoneInfo

from booking_engine.core.config import settings
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.application.ports.service_catalog import ServiceCatalogPort
from booking_engine.application.use_cases.booking_session import BookingSession
from booking_engine.infrastructure.backend.http_backend import HttpBookingBackend
from booking_engine.infrastructure.backend.mock_backend import MockBookingBackend
from booking_engine.infrastructure.catalog.catalog_store import ServiceCatalogStore


@lru_cache
def get_backend() -> BookingBackendPort:
    logger = logging.getLogger(__name__)
    logger.info("ENV=%s", settings.ENV)

    if not settings.API_BASE_URL or settings.ENV.lower() in {"dev", "local"}:
        logger.info("Using MockBookingBackend (API_BASE_URL missing or ENV=dev/local)")
        return MockBookingBackend()

    logger.info("Using HttpBookingBackend base_url=%s", settings.API_BASE_URL)
    return HttpBookingBackend(
        base_url=settings.API_BASE_URL,
        token=settings.API_TOKEN,
        tenant_id=settings.TENANT_ID,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


@lru_cache
def get_service_catalog() -> ServiceCatalogPort:
    return ServiceCatalogStore()


def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


@lru_cache
def get_booking_session() -> BookingSession:
    tz = get_timezone()
    return BookingSession(
        backend=get_backend(),
        catalog=get_service_catalog(),
        timezone=tz,
        step_minutes=settings.AVAILABILITY_STEP_MINUTES,
        poll_interval=settings.CALENDAR_POLL_SECONDS,
        range_debounce=settings.CALENDAR_RANGE_DEBOUNCE_SECONDS,
        search_debounce=settings.CUSTOMER_SEARCH_DEBOUNCE_SECONDS,
        reset_delay=settings.SAVE_STATE_RESET_SECONDS,
        classes_enabled=settings.CLASSES_ENABLED,
        range_days=settings.CALENDAR_RANGE_DAYS,
    )
