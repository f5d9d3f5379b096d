from __future__ import annotations

from booking_engine.application.ports.service_catalog import ServiceCatalogPort
from booking_engine.domain.entities.catalog import Branch, Instructor, Service


class ServiceCatalogStore(ServiceCatalogPort):
    def __init__(
        self,
        services: list[Service] | None = None,
        instructors: list[Instructor] | None = None,
        branches: list[Branch] | None = None,
    ) -> None:
        self._services: dict[str, Service] = {}
        self._instructors: list[Instructor] = []
        self._branches: list[Branch] = []
        self.replace(services or [], instructors or [], branches or [])

    def get_service(self, service_id: str) -> Service | None:
        return self._services.get(str(service_id).strip())

    def get_duration_minutes(self, service_id: str) -> int | None:
        entry = self.get_service(service_id)
        if not entry or not entry.duration_min:
            return None
        return int(entry.duration_min)

    def get_price(self, service_id: str) -> float | None:
        entry = self.get_service(service_id)
        if not entry:
            return None
        return entry.price

    def services(self) -> list[Service]:
        return list(self._services.values())

    def instructors(self) -> list[Instructor]:
        return list(self._instructors)

    def branches(self) -> list[Branch]:
        return list(self._branches)

    def replace(self, services: list[Service], instructors: list[Instructor], branches: list[Branch]) -> None:
        self._services = {str(s.id): s for s in services}
        self._instructors = list(instructors)
        self._branches = list(branches)
