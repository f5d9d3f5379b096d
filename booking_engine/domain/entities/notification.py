from __future__ import annotations

from enum import Enum


class NotificationChannel(str, Enum):
    with_payment = "with_payment"
    reminder_only = "reminder_only"
    none = "none"
