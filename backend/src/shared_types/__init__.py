"""
Shared type definitions for the slot engine backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import GenerationSummary, SlotDraft

__all__ = ["GenerationSummary", "SlotDraft"]
