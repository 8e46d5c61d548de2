"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .booking import BookingRequest, BookingService, DashboardSummary
from .catalog import CatalogService
from .protocols import AppointmentStore, ScheduleConfigStore, ServiceCatalog
from .schedule import ScheduleService

__all__ = [
    "AppointmentStore",
    "BookingRequest",
    "BookingService",
    "CatalogService",
    "DashboardSummary",
    "ScheduleConfigStore",
    "ScheduleService",
    "ServiceCatalog",
]
