"""
Manual slot generation script.

NOTE: Daily generation is handled by SlotGenerationScheduler (runs at
SLOT_GENERATION_HOUR facility time). This script is provided for:
- Backfilling a facility or doctor after rules change
- Generating further ahead than the scheduler does
- Testing generation logic in development

Usage:
    python backend/scripts/generate_slots.py --facility 3 --doctor 12 \
        --start-date 2025-01-01 --end-date 2025-01-31
"""
import argparse
import logging
import os
import sys
from datetime import timedelta

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.database import get_db_context
from services.slot_generation_service import SlotGenerationService
from utils.datetime_utils import facility_today, parse_date_string

DEFAULT_RANGE_DAYS = 30

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate availability slots from active rules.")
    parser.add_argument("--facility", type=int, default=None, help="Only rules at this facility ID")
    parser.add_argument("--doctor", type=int, default=None, help="Only rules for this doctor ID")
    parser.add_argument("--start-date", default=None, help="First date, YYYY-MM-DD (default: today)")
    parser.add_argument(
        "--end-date", default=None,
        help=f"Last date, YYYY-MM-DD (default: start date + {DEFAULT_RANGE_DAYS} days)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        start_date = parse_date_string(args.start_date) if args.start_date else facility_today()
        end_date = (
            parse_date_string(args.end_date) if args.end_date
            else start_date + timedelta(days=DEFAULT_RANGE_DAYS)
        )
    except ValueError as e:
        print(f"Invalid date: {e}")
        return 1

    print("Starting availability slot generation...")
    if args.facility:
        print(f"Facility ID: {args.facility}")
    if args.doctor:
        print(f"Doctor ID: {args.doctor}")
    print(f"Date range: {start_date.isoformat()} to {end_date.isoformat()}")

    try:
        with get_db_context() as db:
            summary = SlotGenerationService(db).run(
                start_date=start_date,
                end_date=end_date,
                facility_id=args.facility,
                doctor_id=args.doctor,
            )
    except Exception as e:
        print(f"Error generating availability slots: {e}")
        return 1

    print(f"Rules processed: {summary.rules_processed}")
    print(f"Slots created: {summary.total_slots_created}")
    if summary.failed_rule_ids:
        print(f"Rules failed: {', '.join(str(rule_id) for rule_id in summary.failed_rule_ids)}")
    print("Slot generation completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
