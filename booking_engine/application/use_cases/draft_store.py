from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Any, Callable, Mapping

from booking_engine.domain.entities.booking_draft import (
    REPEAT_DEFAULT_COUNT,
    BookingDraft,
    clamp_repeat_count,
)
from booking_engine.domain.entities.catalog import Customer

DraftListener = Callable[[BookingDraft], None]

_DRAFT_FIELDS = frozenset(f.name for f in fields(BookingDraft))


class BookingDraftStore:
    """Single writer of the in-progress booking. Readers get immutable snapshots."""

    def __init__(self, draft: BookingDraft | None = None) -> None:
        self._draft = draft or BookingDraft()
        self._listeners: list[DraftListener] = []
        self._logger = logging.getLogger(__name__)

    @property
    def draft(self) -> BookingDraft:
        return self._draft

    def subscribe(self, listener: DraftListener) -> Callable[[], None]:
        """Register a change listener. Returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, patch: Mapping[str, Any] | None = None, **changes: Any) -> BookingDraft:
        """
        Shallow-merge a partial draft. Changing service, instructor or date does not
        clear the selected slot; callers clear it when their flow requires it.
        """
        merged = {**(patch or {}), **changes}
        unknown = set(merged) - _DRAFT_FIELDS
        if unknown:
            raise ValueError(f"Unknown booking draft fields: {', '.join(sorted(unknown))}")
        if merged.get("repeat_count") is not None:
            merged["repeat_count"] = clamp_repeat_count(merged["repeat_count"])
        if (
            "customer_name" in merged
            and "customer_id" not in merged
            and merged["customer_name"] != self._draft.customer_name
        ):
            # a hand-typed name unlinks the selected customer record
            merged["customer_id"] = None
        return self._set(replace(self._draft, **merged))

    def select_customer(self, customer: Customer) -> BookingDraft:
        return self._set(
            replace(
                self._draft,
                customer_id=customer.id,
                customer_name=customer.name,
                customer_phone=customer.phone,
            )
        )

    def set_customer_name(self, name: str) -> BookingDraft:
        return self._set(replace(self._draft, customer_name=name, customer_id=None))

    def set_repeat_enabled(self, enabled: bool) -> BookingDraft:
        if enabled and self._draft.repeat_count is None:
            return self._set(replace(self._draft, repeat_enabled=True, repeat_count=REPEAT_DEFAULT_COUNT))
        return self._set(replace(self._draft, repeat_enabled=enabled))

    def reset(self) -> BookingDraft:
        self._logger.debug("Booking draft reset")
        return self._set(BookingDraft())

    def _set(self, draft: BookingDraft) -> BookingDraft:
        self._draft = draft
        for listener in list(self._listeners):
            listener(draft)
        return draft
