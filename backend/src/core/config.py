"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env at the repository root
        pathlib.Path.cwd() / ".env",  # .env in current directory
        pathlib.Path.cwd().parent / ".env",  # .env in parent directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def _get_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment ("1", "true", "yes" are truthy)."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Configuration constants with defaults
# These match the environment variables defined in .env.example
def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/slot_engine_dev"
    )

DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Facility clock: slot start/end times are wall-clock times in this zone
FACILITY_TIMEZONE = os.getenv("FACILITY_TIMEZONE", "America/Chicago")

# Slot generation
SLOT_GENERATION_DAYS_AHEAD = int(os.getenv("SLOT_GENERATION_DAYS_AHEAD", "30"))
SLOT_GENERATION_HOUR = int(os.getenv("SLOT_GENERATION_HOUR", "1"))

# Reservations
RESERVATION_RELEASE_INTERVAL_MINUTES = int(os.getenv("RESERVATION_RELEASE_INTERVAL_MINUTES", "5"))
RESERVATION_HOLD_MINUTES = int(os.getenv("RESERVATION_HOLD_MINUTES", "10"))

# Background schedulers (disable for one-off processes such as migrations)
ENABLE_SCHEDULERS = _get_bool("ENABLE_SCHEDULERS", True)
