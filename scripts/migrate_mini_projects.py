#!/usr/bin/env python3
"""
Move old mini-project records to the weekly history layout.

Usage (run from the repo root):
    python scripts/migrate_mini_projects.py --dry-run
    python scripts/migrate_mini_projects.py
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
from models import Database
from utils.migrations import migrate_record, needs_migration

logger = logging.getLogger(__name__)


def migrate_all(database: Database, dry_run: bool = False) -> dict:
    """Rewrite every record that still uses a legacy layout; returns counts."""
    collection = database.db.mini_projects
    stats = {'checked': 0, 'migrated': 0}
    for document in collection.find({}):
        stats['checked'] += 1
        if not needs_migration(document):
            continue
        migrated = migrate_record(document)
        migrated.pop('_id', None)
        weeks = len(migrated.get('weekly_project_history', []))
        print(f"  {migrated.get('user_id')}: {weeks} week(s), current week {migrated.get('current_week_number')}")
        if not dry_run:
            collection.replace_one({'_id': document['_id']}, migrated)
        stats['migrated'] += 1
    return stats


def main():
    parser = argparse.ArgumentParser(description="Migrate mini-project records to weekly history")
    parser.add_argument('--dry-run', action='store_true', help='Show what would change without writing')
    args = parser.parse_args()

    logging.basicConfig(level=Config.LOG_LEVEL)
    database = Database().connect(Config.MONGODB_URI, Config.MONGODB_DB)
    try:
        stats = migrate_all(database, dry_run=args.dry_run)
    finally:
        database.close()

    action = 'Would migrate' if args.dry_run else 'Migrated'
    print(f"\n{action} {stats['migrated']} of {stats['checked']} records")


if __name__ == "__main__":
    main()
