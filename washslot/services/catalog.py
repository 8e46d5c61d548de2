"""
Service catalog management.

Deleting a service only deactivates it, so existing appointments keep a
valid reference.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import List, Optional

from ..domain.exceptions import InvalidInputError, NotFoundError
from ..domain.models import ServiceDefinition
from .protocols import ServiceCatalog

logger = logging.getLogger(__name__)

EDITABLE_SERVICE_FIELDS = ("name", "description", "price", "duration_minutes", "active")


class CatalogService:
    """Create, edit and (soft) delete bookable services."""

    def __init__(self, catalog: ServiceCatalog) -> None:
        self._catalog = catalog

    def list_services(self, only_active: bool = False) -> List[ServiceDefinition]:
        return self._catalog.list_services(only_active=only_active)

    def get_service(self, service_id: str) -> ServiceDefinition:
        service = self._catalog.get_service(service_id)
        if service is None:
            raise NotFoundError(f"Service not found: {service_id}")
        return service

    def create_service(
        self,
        name: str,
        price: float,
        duration_minutes: int = 90,
        description: Optional[str] = None,
        active: bool = True,
    ) -> ServiceDefinition:
        """
        Add a service to the catalog.

        Raises:
            InvalidInputError: Blank name, negative price or non-positive duration
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("Service name is required")

        service = ServiceDefinition(
            id=str(uuid.uuid4()),
            name=name.strip(),
            duration_minutes=duration_minutes,
            active=active,
            price=_parse_price(price),
            description=(description or "").strip() or None,
        )
        stored = self._catalog.insert_service(service)
        logger.info("Created service %s (%s, %d min)", stored.id, stored.name, stored.duration_minutes)
        return stored

    def update_service(self, service_id: str, **changes: object) -> ServiceDefinition:
        """Apply partial changes; unknown fields are rejected."""
        unknown = sorted(set(changes) - set(EDITABLE_SERVICE_FIELDS))
        if unknown:
            raise InvalidInputError(f"Fields cannot be edited: {', '.join(unknown)}")

        service = self.get_service(service_id)
        cleaned = dict(changes)

        if "name" in cleaned:
            name = cleaned["name"]
            if not isinstance(name, str) or not name.strip():
                raise InvalidInputError("Service name is required")
            cleaned["name"] = name.strip()
        if "description" in cleaned:
            cleaned["description"] = (cleaned["description"] or "").strip() or None
        if "price" in cleaned:
            cleaned["price"] = _parse_price(cleaned["price"])

        updated = self._catalog.save_service(replace(service, **cleaned))
        logger.info("Updated service %s: %s", service_id, ", ".join(sorted(cleaned)))
        return updated

    def set_active(self, service_id: str, active: bool) -> ServiceDefinition:
        return self.update_service(service_id, active=active)

    def delete_service(self, service_id: str) -> ServiceDefinition:
        """Soft delete: the service is deactivated, never removed."""
        return self.set_active(service_id, False)


def _parse_price(value: object) -> float:
    try:
        price = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid price: {value!r}") from None
    if price < 0:
        raise InvalidInputError(f"Invalid price: {value!r}")
    return price
