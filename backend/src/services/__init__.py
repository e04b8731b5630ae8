"""
Services package for shared business logic.

This package contains service classes that encapsulate the availability
pipeline (rules, exceptions, slot generation) and the booking-side slot
transitions shared by the API, the schedulers and the operator scripts.
"""

from .availability_rule_service import AvailabilityRuleService
from .availability_exception_service import AvailabilityExceptionService
from .slot_generation_service import SlotGenerationService
from .slot_booking_service import SlotBookingService
from .slot_calendar_service import SlotCalendarService
from .reservation_release_service import ReservationReleaseService

__all__ = [
    "AvailabilityRuleService",
    "AvailabilityExceptionService",
    "SlotGenerationService",
    "SlotBookingService",
    "SlotCalendarService",
    "ReservationReleaseService",
]
