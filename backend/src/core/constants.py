"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_EXCEPTION_REASON_LENGTH = 500  # Free-text reason shown on blocked days

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
# Note: production URLs should be added via FRONTEND_URL environment variable
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Slot lifecycle
SLOT_STATUS_OPEN = "open"
SLOT_STATUS_RESERVED = "reserved"
SLOT_STATUS_BOOKED = "booked"
SLOT_STATUS_CANCELLED = "cancelled"
SLOT_STATUSES = (SLOT_STATUS_OPEN, SLOT_STATUS_RESERVED, SLOT_STATUS_BOOKED, SLOT_STATUS_CANCELLED)

# Capacity is stored for every slot but multi-booking is not supported
DEFAULT_SLOT_CAPACITY = 1

# Availability exception types (all of them block slot generation)
EXCEPTION_TYPE_BLOCKED = "blocked"
EXCEPTION_TYPE_OVERRIDE = "override"
EXCEPTION_TYPE_EMERGENCY = "emergency"
EXCEPTION_TYPES = (EXCEPTION_TYPE_BLOCKED, EXCEPTION_TYPE_OVERRIDE, EXCEPTION_TYPE_EMERGENCY)

# Appointment statuses (owned by the booking flow)
APPOINTMENT_STATUS_SCHEDULED = "scheduled"
APPOINTMENT_STATUS_CANCELLED = "cancelled"

# Slot generation
SLOT_INSERT_BATCH_SIZE = 500  # Rows per INSERT statement

# Booking
DEFAULT_APPOINTMENT_DURATION_MINUTES = 30  # Used when the service offering has no default duration

# Scheduler settings
SCHEDULER_MAX_INSTANCES = 1  # Prevent overlapping scheduler runs
SCHEDULER_MISFIRE_GRACE_SECONDS = 3600  # Allow 1 hour grace time if server was down
