"""
Utility modules for the slot engine.

This package contains shared helpers used across the application: facility
clock handling and the database queries behind slot generation.
"""

from utils.availability_queries import get_active_rules, get_existing_slot_windows

__all__ = ['get_active_rules', 'get_existing_slot_windows']
