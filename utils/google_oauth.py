"""
Google sign-in (OAuth2 authorization code flow).

The first login with an unknown email provisions a student account and its
empty mini-project record.
"""
import logging
import secrets
from datetime import datetime
from urllib.parse import urlencode

import requests

from errors import ExternalServiceError, ValidationError
from utils.auth import generate_user_id, hash_password

logger = logging.getLogger(__name__)

AUTH_URI = 'https://accounts.google.com/o/oauth2/v2/auth'
TOKEN_URI = 'https://oauth2.googleapis.com/token'
USERINFO_URI = 'https://openidconnect.googleapis.com/v1/userinfo'
LOGIN_SCOPES = ['openid', 'email', 'profile']
REQUEST_TIMEOUT = 15


def build_auth_url(client_id: str, redirect_uri: str, scopes: list, state: str = None,
                   offline: bool = False, prompt: str = None) -> str:
    params = {
        'client_id': client_id,
        'redirect_uri': redirect_uri,
        'response_type': 'code',
        'scope': ' '.join(scopes),
    }
    if state:
        params['state'] = state
    if offline:
        params['access_type'] = 'offline'
    if prompt:
        params['prompt'] = prompt
    return f"{AUTH_URI}?{urlencode(params)}"


def exchange_code(code: str, client_id: str, client_secret: str, redirect_uri: str) -> dict:
    """
    Trade an authorization code for tokens.

    Returns:
        Google's token response (access_token, expires_in, refresh_token when offline, ...)
    """
    if not code:
        raise ValidationError("Authorization code is required")
    try:
        response = requests.post(TOKEN_URI, data={
            'code': code,
            'client_id': client_id,
            'client_secret': client_secret,
            'redirect_uri': redirect_uri,
            'grant_type': 'authorization_code',
        }, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"Google token exchange failed: {e}")
        raise ExternalServiceError("Could not reach Google") from e

    if response.status_code != 200:
        logger.error(f"Google token exchange rejected: {response.status_code} {response.text[:200]}")
        raise ValidationError("Invalid or expired authorization code")
    return response.json()


def fetch_profile(access_token: str) -> dict:
    """Normalized profile: email, display_name, provider_id."""
    try:
        response = requests.get(USERINFO_URI, headers={'Authorization': f'Bearer {access_token}'},
                                timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Google userinfo request failed: {e}")
        raise ExternalServiceError("Could not load Google profile") from e

    info = response.json()
    if not info.get('email'):
        raise ValidationError("Google account has no email address")
    return {
        'email': info['email'].lower(),
        'display_name': info.get('name') or info['email'].split('@')[0],
        'provider_id': info.get('sub'),
        'first_name': info.get('given_name', ''),
        'last_name': info.get('family_name', ''),
    }


def find_or_create_user(database, profile: dict) -> tuple:
    """
    Existing user for the profile's email, or a new student.

    Returns:
        (user, created)
    """
    user = database.users.find_by_email(profile['email'])
    if user is not None:
        if not user.get('google_id') and profile.get('provider_id'):
            user = database.users.update_fields(user['user_id'], {'google_id': profile['provider_id']})
        return user, False

    now = datetime.utcnow()
    user = database.users.create({
        'user_id': generate_user_id(),
        'email': profile['email'],
        'name': profile['display_name'],
        'first_name': profile.get('first_name', ''),
        'last_name': profile.get('last_name', ''),
        'role': 'student',
        'google_id': profile.get('provider_id'),
        # Unusable random password; Google accounts sign in through Google
        'password_hash': hash_password(secrets.token_urlsafe(24)),
        'onboarding_survey': {'survey_completed': False},
        'survey_completed_languages': [],
        'created_at': now,
        'updated_at': now,
    })
    database.mini_projects.create(user['user_id'])
    logger.info(f"Provisioned student {user['user_id']} from Google login")
    return user, True


class GoogleLogin:
    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    @classmethod
    def from_config(cls, config) -> 'GoogleLogin':
        api_url = (config.get('API_URL') or 'http://localhost:5000').rstrip('/')
        return cls(config.get('GOOGLE_CLIENT_ID'), config.get('GOOGLE_CLIENT_SECRET'),
                   f"{api_url}/api/auth/google/callback")

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def auth_url(self, state: str) -> str:
        return build_auth_url(self.client_id, self.redirect_uri, LOGIN_SCOPES, state=state)

    def authenticate(self, database, code: str) -> tuple:
        tokens = exchange_code(code, self.client_id, self.client_secret, self.redirect_uri)
        profile = fetch_profile(tokens['access_token'])
        return find_or_create_user(database, profile)
