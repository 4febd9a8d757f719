#!/usr/bin/env python3
"""
Create (or reset) a student account for local testing.

Usage (run from the repo root):
    python scripts/create_test_student.py
    python scripts/create_test_student.py --email demo@student.com --password 'Demo@1234'
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
from utils.auth import generate_user_id, hash_password, to_title_case, validate_password


def create_test_student(database: Database, email: str, password: str, name: str) -> dict:
    """Returns the user; an existing account with this email gets the new password."""
    existing = database.users.find_by_email(email)
    if existing:
        user = database.users.update_fields(existing['user_id'], {'password_hash': hash_password(password)})
        print(f"Updated password for existing user {user['email']} ({user['role']})")
    else:
        user = database.users.create({
            'user_id': generate_user_id(),
            'email': email,
            'password_hash': hash_password(password),
            'role': 'student',
            'name': to_title_case(name),
            'onboarding_survey': {'survey_completed': False},
            'survey_completed_languages': [],
        })
        print(f"Created student {user['email']} ({user['user_id']})")
    if user['role'] == 'student':
        database.mini_projects.get_or_create(user['user_id'])
    return user


def main():
    parser = argparse.ArgumentParser(description="Create a test student account")
    parser.add_argument('--email', default='student@test.com')
    parser.add_argument('--password', default='Student@123')
    parser.add_argument('--name', default='test student')
    args = parser.parse_args()

    ok, message = validate_password(args.password)
    if not ok:
        print(f"Error: {message}")
        sys.exit(1)

    logging.basicConfig(level=Config.LOG_LEVEL)
    database = Database().connect(Config.MONGODB_URI, Config.MONGODB_DB)
    try:
        create_test_student(database, args.email, args.password, args.name)
    finally:
        database.close()


if __name__ == "__main__":
    main()
