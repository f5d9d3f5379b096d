from __future__ import annotations

import asyncio
import logging

from booking_engine.application.exceptions import BackendError
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.domain.entities.catalog import Customer


class CustomerSearch:
    """Debounced name-to-customer lookup. A newer keystroke cancels the pending search."""

    def __init__(self, backend: BookingBackendPort, debounce_seconds: float = 0.2, min_length: int = 2) -> None:
        self._backend = backend
        self._debounce_seconds = debounce_seconds
        self._min_length = min_length
        self._suggestions: tuple[Customer, ...] = ()
        self._task: asyncio.Task[list[Customer]] | None = None
        self._error = ""
        self._logger = logging.getLogger(__name__)

    @property
    def suggestions(self) -> tuple[Customer, ...]:
        return self._suggestions

    @property
    def error(self) -> str:
        return self._error

    async def search(self, query: str) -> tuple[Customer, ...]:
        self.cancel()
        term = query.strip()
        if len(term) < self._min_length:
            self._suggestions = ()
            return self._suggestions

        task = asyncio.ensure_future(self._debounced(term))
        self._task = task
        try:
            found = await task
        except asyncio.CancelledError:
            if self._task is not task:
                # superseded by a newer query
                return self._suggestions
            self._task = None
            raise
        except BackendError as e:
            self._logger.warning("Customer search failed", extra={"error": str(e)})
            self._task = None
            self._error = str(e)
            self._suggestions = ()
            return self._suggestions

        self._task = None
        self._error = ""
        self._suggestions = tuple(found)
        return self._suggestions

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _debounced(self, term: str) -> list[Customer]:
        await asyncio.sleep(self._debounce_seconds)
        return await self._backend.search_customers(term)
