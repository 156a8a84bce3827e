#!/usr/bin/env python3
"""
Create the land listings tables

Usage:
    python scripts/init_db.py [--drop] [--yes]
"""
import argparse
import sys
import os

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.abspath(
    os.path.join(os.path.dirname(__file__), '..')))

from sqlalchemy import inspect  # noqa: E402
from sqlalchemy.engine import make_url  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.database import check_connection, drop_db, engine, init_db  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Create the land listings tables")
    parser.add_argument("--drop", action="store_true",
                        help="Drop existing tables first (destroys data)")
    parser.add_argument("--yes", action="store_true",
                        help="Skip the confirmation prompt for --drop")
    args = parser.parse_args()

    # Never echo the password
    safe_url = make_url(settings.DATABASE_URL).render_as_string(hide_password=True)
    print("="*70)
    print("Land Listings Database Setup")
    print("="*70)
    print(f"\nDatabase: {safe_url}\n")

    if not check_connection():
        print("❌ Cannot reach the database. Check DATABASE_URL and that the server is running.")
        sys.exit(1)

    if args.drop:
        if not args.yes:
            answer = input("⚠️  This drops every listings table. Type 'yes' to continue: ")
            if answer.strip().lower() != 'yes':
                print("Aborted.")
                return
        drop_db()
        print("🗑️  Existing tables dropped")

    try:
        init_db()
    except Exception as e:
        print(f"❌ Table creation failed: {e}")
        sys.exit(1)

    tables = sorted(inspect(engine).get_table_names())
    print(f"✅ Tables ready: {', '.join(tables)}")
    print("\nStart the API with: python main.py")


if __name__ == "__main__":
    main()
