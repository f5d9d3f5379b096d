#!/usr/bin/env python3
"""
Interactive local booking harness (no HTTP, in-memory backend).

Usage:
  python3 scripts/book_local.py

What it does:
- Builds a BookingSession over MockBookingBackend
- Walks service -> instructor -> date -> slot -> customer -> channel
- Prints the created appointment ids and the calendar afterwards
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from booking_engine.application.use_cases.booking_session import BookingSession  # noqa: E402
from booking_engine.core.config import settings  # noqa: E402
from booking_engine.infrastructure.backend.mock_backend import MockBookingBackend  # noqa: E402
from booking_engine.infrastructure.catalog.catalog_store import ServiceCatalogStore  # noqa: E402


def _pick(label: str, options: list[tuple[str, str]]) -> str:
    print(f"\n{label}")
    for idx, (_, name) in enumerate(options, start=1):
        print(f"  {idx}. {name}")
    while True:
        raw = input("> ").strip()
        if raw.isdigit() and 1 <= int(raw) <= len(options):
            return options[int(raw) - 1][0]
        print("Invalid choice, try again.")


async def main() -> None:
    tz = ZoneInfo(settings.BUSINESS_TIMEZONE)
    session = BookingSession(MockBookingBackend(), ServiceCatalogStore(), tz, poll_interval=60.0)
    await session.load_catalog()

    async with session:
        service_id = _pick("Service:", [(s.id, f"{s.name} ({s.duration_min} min)") for s in session.catalog.services()])
        instructor_id = _pick("Instructor:", [(i.id, i.name) for i in session.catalog.instructors()])
        day = date.today() + timedelta(days=1)
        session.update_draft(service_id=service_id, instructor_id=instructor_id, date=day)

        result = await session.load_availability()
        if result.error:
            print(f"\n{result.error}")
            return
        slot = _pick(f"Slot on {day.isoformat()}:", [(s, s[11:16]) for s in result.slots])
        session.update_draft(selected_slot=slot)

        name = input("\nCustomer name: ").strip()
        phone = input("Customer phone (+54911...): ").strip()
        session.update_draft(customer_name=name, customer_phone=phone)

        if session.dispatch.request_confirmation() is None:
            print(f"\n{session.appointments.save_state.error}")
            return
        channel = _pick("Notification channel:", [("with_payment", "With payment"), ("reminder_only", "Reminder only"), ("none", "None")])
        outcome = await session.dispatch.choose_channel(channel)
        if outcome is None:
            print(f"\n{session.appointments.save_state.error}")
            return

        print(f"\nCreated appointment(s): {', '.join(outcome.appointment_ids)}")
        for event in session.calendar.events:
            print(f"  {event.start} -> {event.end}  {event.title}")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, EOFError):
        print("\nBye.")
