#!/usr/bin/env python3
"""
Insert demo homeowners into the intake database.

Usage:
    python scripts/seed_homeowners.py
    python scripts/seed_homeowners.py --db /tmp/intake.db
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.intake.schema import Homeowner
from src.storage import IntakeStore

DEMO_HOMEOWNERS = [
    Homeowner(
        id="ho-test-user",
        name="Test User",
        email="test.user@example.com",
        phone="+15550009999",
        address="123 Test Lane, Builder City, WA 98101",
        builder="Cascade Homes",
        job_name="Test Lane Lot 1",
    ),
    Homeowner(
        id="ho-jane-smith",
        name="Jane Smith",
        email="jane.smith@example.com",
        phone="503-555-0100",
        address="456 Oak Ave, Test City, OR 97001",
        builder="Cascade Homes",
        job_name="Oak Avenue Phase 2",
    ),
    Homeowner(
        id="ho-legacy-user",
        name="Legacy User",
        email="legacy.user@example.com",
        phone="555-0123",
        address="789 Pine St, Legacy Town, CA 90001",
        builder="Pinecrest Builders",
        job_name="Pine Street Townhomes",
    ),
]


def main():
    parser = argparse.ArgumentParser(description="Seed demo homeowners")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    args = parser.parse_args()

    store = IntakeStore(args.db)
    for homeowner in DEMO_HOMEOWNERS:
        store.add_homeowner(homeowner)
        print(f"✓ {homeowner.name:<15} {homeowner.address}")

    print(f"\nSeeded {len(DEMO_HOMEOWNERS)} homeowners into {store.db_path}")


if __name__ == "__main__":
    main()
