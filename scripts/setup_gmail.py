#!/usr/bin/env python3
"""
One-time Gmail authorization for notification emails.

Opens nothing by itself: prints the consent URL, then asks for the code
Google shows after approval and stores the encrypted token in GMAIL_TOKEN_FILE.

Usage (run from the repo root):
    python scripts/setup_gmail.py
    python scripts/setup_gmail.py --code 4/0Ab...
    python scripts/setup_gmail.py --test-to teacher@example.com
"""
import argparse
import logging
import sys
from pathlib import Path

# Ensure repo root is on path when run as script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from config import as_dict
from errors import PortalError
from utils.gmail import GmailSender


def main():
    parser = argparse.ArgumentParser(description="Authorize the Gmail account used for notifications")
    parser.add_argument('--code', help='Authorization code (skips the prompt)')
    parser.add_argument('--test-to', help='Send a test email to this address afterwards')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    mailer = GmailSender.from_config(as_dict())
    if not (mailer.client_id and mailer.client_secret):
        print("Set GMAIL_CLIENT_ID and GMAIL_CLIENT_SECRET in .env first.")
        sys.exit(1)

    code = args.code
    if not code:
        print("Open this URL, approve access, then paste the code below:\n")
        print(mailer.get_auth_url())
        code = input("\nAuthorization code: ").strip()

    try:
        mailer.save_token_from_code(code)
        print(f"Token saved to {mailer.token_file}")
        if args.test_to:
            result = mailer.send_email(args.test_to, 'SkillVerse Gmail test',
                                       '<p>Gmail notifications are working.</p>')
            print(f"Test email sent: {result['message_id']}")
    except PortalError as e:
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
