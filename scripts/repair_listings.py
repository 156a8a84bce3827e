#!/usr/bin/env python3
"""
Listing repair script
Regenerates missing display prices and rebuilds media ids from image URLs

Usage:
    python scripts/repair_listings.py [--dry-run] [--limit N]
"""
import argparse
import sys
import os

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.abspath(
    os.path.join(os.path.dirname(__file__), '..')))

from app.core.database import SessionLocal  # noqa: E402
from app.services.maintenance_service import MaintenanceService  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Repair stored land listings")
    parser.add_argument("--dry-run", action="store_true",
                        help="Report changes without saving them")
    parser.add_argument("--limit", type=int, default=None,
                        help="Only inspect the first N listings")
    args = parser.parse_args()

    print("="*70)
    print("Land Listing Repair" + (" (dry run)" if args.dry_run else ""))
    print("="*70)

    db = SessionLocal()
    try:
        reports = MaintenanceService(db).repair_all(dry_run=args.dry_run, limit=args.limit)
    finally:
        db.close()

    for report in reports:
        print(f"\n🔧 {report.listing_id}")
        for change in report.changes:
            print(f"   - {change}")

    verb = "would change" if args.dry_run else "repaired"
    print("\n" + "="*70)
    print(f"✅ {len(reports)} listings {verb}")
    print("="*70)


if __name__ == "__main__":
    main()
