#!/usr/bin/env python3
"""
Remove repeated project titles from every week and keep only the newest
projects per language.

Usage (run from the repo root):
    python scripts/cleanup_duplicate_projects.py --keep 6 --dry-run
"""
import argparse
import logging
import sys
from pathlib import Path

# Ensure repo root is on path when run as script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from config import Config
from errors import PortalError
from models import Database
from utils.migrations import DEFAULT_KEEP_PER_LANGUAGE, dedupe_record

logger = logging.getLogger(__name__)


def cleanup_all(database: Database, keep: int = DEFAULT_KEEP_PER_LANGUAGE, dry_run: bool = False) -> int:
    """Returns the number of projects removed (or that would be removed)."""
    total_removed = 0
    for user_id in database.mini_projects.all_user_ids():
        record = database.mini_projects.get(user_id)
        _, removed = dedupe_record(record, keep)
        if not removed:
            continue
        print(f"  {user_id}: removing {removed} project(s)")
        total_removed += removed
        if dry_run:
            continue
        try:
            database.mini_projects.mutate(user_id, lambda r: dedupe_record(r, keep)[0])
        except PortalError as e:
            logger.error(f"Cleanup failed for {user_id}: {e.message}")
    return total_removed


def main():
    parser = argparse.ArgumentParser(description="Remove duplicate mini projects")
    parser.add_argument('--keep', type=int, default=DEFAULT_KEEP_PER_LANGUAGE,
                        help=f'Projects to keep per language per week (default: {DEFAULT_KEEP_PER_LANGUAGE})')
    parser.add_argument('--dry-run', action='store_true', help='Show what would change without writing')
    args = parser.parse_args()

    logging.basicConfig(level=Config.LOG_LEVEL)
    database = Database().connect(Config.MONGODB_URI, Config.MONGODB_DB)
    try:
        removed = cleanup_all(database, keep=args.keep, dry_run=args.dry_run)
    finally:
        database.close()

    action = 'Would remove' if args.dry_run else 'Removed'
    print(f"\n{action} {removed} duplicate project(s)")


if __name__ == "__main__":
    main()
