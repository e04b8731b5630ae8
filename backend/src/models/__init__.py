# Package initialization
# Import all models to ensure relationships are properly established
from .facility import Facility
from .doctor import Doctor
from .service_offering import ServiceOffering
from .availability_rule import AvailabilityRule
from .availability_exception import AvailabilityException
from .availability_slot import AvailabilitySlot
from .appointment import Appointment

__all__ = [
    "Facility",
    "Doctor",
    "ServiceOffering",
    "AvailabilityRule",
    "AvailabilityException",
    "AvailabilitySlot",
    "Appointment",
]
