"""
Storage module for the intake pipeline.

Provides SQLite-based storage for:
- Homeowners (matching targets)
- Warranty claims (auto-created from calls)
- Call records (one per Vapi call)
"""

from .intake_store import (
    IntakeStore,
    get_intake_store,
)

__all__ = [
    "IntakeStore",
    "get_intake_store",
]
