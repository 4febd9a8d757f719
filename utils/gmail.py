"""
Gmail API sender.

One-time setup (``scripts/setup_gmail.py`` or the ``/api/auth/gmail`` routes)
stores a refresh token, encrypted with Fernet, in ``GMAIL_TOKEN_FILE``.
Sending rebuilds the credentials from that file.
"""
import base64
import json
import logging
import os
from email.mime.text import MIMEText

from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from errors import ExternalServiceError
from utils.auth import decrypt_secret, encrypt_secret
from utils.google_oauth import TOKEN_URI, build_auth_url, exchange_code

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/gmail.send']


def create_message(to: str, subject: str, html_body: str) -> dict:
    """Gmail API message body: base64url-encoded RFC 2822 HTML message."""
    message = MIMEText(html_body, 'html', 'utf-8')
    message['To'] = to
    message['Subject'] = subject
    raw = base64.urlsafe_b64encode(message.as_bytes()).decode().rstrip('=')
    return {'raw': raw}


class GmailSender:
    def __init__(self, client_id: str, client_secret: str, redirect_uri: str,
                 token_file: str = 'gmail-token.json', service=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_file = token_file
        self._service = service

    @classmethod
    def from_config(cls, config) -> 'GmailSender':
        return cls(
            client_id=config.get('GMAIL_CLIENT_ID') or config.get('GOOGLE_CLIENT_ID'),
            client_secret=config.get('GMAIL_CLIENT_SECRET') or config.get('GOOGLE_CLIENT_SECRET'),
            redirect_uri=config.get('GMAIL_REDIRECT_URI'),
            token_file=config.get('GMAIL_TOKEN_FILE') or 'gmail-token.json',
        )

    @property
    def configured(self) -> bool:
        return self._service is not None or (
            bool(self.client_id and self.client_secret) and os.path.exists(self.token_file)
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def get_auth_url(self) -> str:
        return build_auth_url(self.client_id, self.redirect_uri, SCOPES, offline=True, prompt='consent')

    def save_token_from_code(self, code: str) -> dict:
        tokens = exchange_code(code, self.client_id, self.client_secret, self.redirect_uri)
        self.save_token(tokens)
        return tokens

    def save_token(self, tokens: dict):
        encrypted = encrypt_secret(json.dumps(tokens))
        if encrypted is None:
            raise ExternalServiceError("Could not encrypt Gmail token")
        with open(self.token_file, 'w') as f:
            f.write(encrypted)
        self._service = None
        logger.info(f"Gmail token saved to {self.token_file}")

    def load_token(self) -> dict:
        if not os.path.exists(self.token_file):
            return None
        with open(self.token_file, 'r') as f:
            decrypted = decrypt_secret(f.read().strip())
        if decrypted is None:
            logger.error("Stored Gmail token could not be decrypted (ENCRYPTION_KEY changed?)")
            return None
        return json.loads(decrypted)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def get_service(self):
        if self._service is not None:
            return self._service
        tokens = self.load_token()
        if not tokens:
            raise ExternalServiceError("Gmail is not set up. Run scripts/setup_gmail.py first.")
        credentials = Credentials(
            token=tokens.get('access_token'),
            refresh_token=tokens.get('refresh_token'),
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=SCOPES,
        )
        self._service = build('gmail', 'v1', credentials=credentials, cache_discovery=False)
        return self._service

    @retry(
        retry=retry_if_exception_type((HttpError, TransportError)),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _send(self, body: dict) -> dict:
        return self.get_service().users().messages().send(userId='me', body=body).execute()

    def send_email(self, to: str, subject: str, html_body: str) -> dict:
        """
        Send an HTML email from the authorized account.

        Raises:
            ExternalServiceError: Gmail is not set up or rejected the message
        """
        try:
            response = self._send(create_message(to, subject, html_body))
        except (HttpError, TransportError, RefreshError) as e:
            logger.error(f"Error sending email via Gmail API: {e}")
            raise ExternalServiceError("Failed to send email") from e
        logger.info(f"Email sent to {to}: {response.get('id')}")
        return {'success': True, 'message_id': response.get('id')}
