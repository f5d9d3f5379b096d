from __future__ import annotations

from abc import ABC, abstractmethod

from booking_engine.domain.entities.catalog import Branch, Instructor, Service


class ServiceCatalogPort(ABC):
    @abstractmethod
    def get_service(self, service_id: str) -> Service | None:
        """Get service catalog entry by id."""
        raise NotImplementedError

    @abstractmethod
    def get_duration_minutes(self, service_id: str) -> int | None:
        """Get service duration in minutes. None if the service or its duration is unknown."""
        raise NotImplementedError

    @abstractmethod
    def get_price(self, service_id: str) -> float | None:
        raise NotImplementedError

    @abstractmethod
    def services(self) -> list[Service]:
        raise NotImplementedError

    @abstractmethod
    def instructors(self) -> list[Instructor]:
        raise NotImplementedError

    @abstractmethod
    def branches(self) -> list[Branch]:
        raise NotImplementedError

    @abstractmethod
    def replace(self, services: list[Service], instructors: list[Instructor], branches: list[Branch]) -> None:
        """Swap the whole catalog after a metadata load."""
        raise NotImplementedError
