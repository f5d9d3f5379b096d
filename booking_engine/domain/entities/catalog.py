from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    duration_min: int | None = None
    price: float | None = None
    color_hex: str | None = None


@dataclass(frozen=True)
class Instructor:
    id: str
    name: str
    color_hex: str | None = None


@dataclass(frozen=True)
class Branch:
    id: str
    name: str


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    phone: str = ""
