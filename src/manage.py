"""Ordering database management CLI.

Creates and drops the database schema of the ordering domain. Only SQL
providers (configured through ``PROTEAN_ENV`` and ``domain.toml``) need a
schema; with the default memory provider both commands are no-ops.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_databases():
    """Create the ordering schema."""
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Creating ordering database schema...")
    providers = setup_db(ordering)
    print(f"  schema ready ({', '.join(providers) or 'no SQL providers configured'}).")
    print("Done.")


def drop_databases():
    """Drop the ordering schema."""
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Dropping ordering database schema...")
    providers = drop_db(ordering)
    print(f"  schema dropped ({', '.join(providers) or 'no SQL providers configured'}).")
    print("Done.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
