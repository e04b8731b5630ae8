"""
Manual reservation release script.

NOTE: Expired reservations are released automatically by the reservation
release scheduler (every RESERVATION_RELEASE_INTERVAL_MINUTES minutes). This
script runs one sweep immediately, e.g. while the API is down.
"""
import logging
import os
import sys

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.database import SessionLocal
from services.reservation_release_service import ReservationReleaseService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def main() -> int:
    print("Releasing expired reservations...")
    db = SessionLocal()
    try:
        released = ReservationReleaseService.release_expired_reservations(db)
        print(f"Released {released} expired reservations.")
    except Exception as e:
        db.rollback()
        print(f"Error releasing reservations: {e}")
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
