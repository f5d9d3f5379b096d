import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI

from booking_engine.api.v1.booking import router as booking_router
from booking_engine.application.use_cases.booking_session import BookingSession
from booking_engine.core.config import settings
from booking_engine.wiring.dependencies import get_booking_session

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("appointment_id", "service_id", "instructor_id", "date", "channel", "sequence", "error"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


def create_app(session_factory: Callable[[], BookingSession] = get_booking_session) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session = session_factory()
        app.state.booking_session = session
        await session.load_catalog()
        async with session:
            yield
        await session.backend.aclose()

    app = FastAPI(title="Booking Engine", version="1.0.0", lifespan=lifespan)
    app.include_router(booking_router, prefix="/api/v1", tags=["booking"])

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
