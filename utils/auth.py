import hashlib
import secrets
import os
import re
from cryptography.fernet import Fernet, InvalidToken
import base64
import logging

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

_fallback_key = None


def get_encryption_key():
    """Get encryption key from environment, or a per-process key when unset"""
    global _fallback_key
    key = os.getenv('ENCRYPTION_KEY')
    if not key:
        if _fallback_key is None:
            logger.warning("ENCRYPTION_KEY not set, using generated key (not persistent)")
            _fallback_key = Fernet.generate_key().decode()
        key = _fallback_key
    return key.encode() if isinstance(key, str) else key


def hash_password(password: str) -> str:
    """Hash a password using SHA-256 with salt"""
    salt = secrets.token_hex(16)
    hashed = hashlib.sha256((password + salt).encode()).hexdigest()
    return f"{salt}:{hashed}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify a password against stored hash"""
    try:
        salt, hashed = stored_hash.split(':')
        check_hash = hashlib.sha256((password + salt).encode()).hexdigest()
        return secrets.compare_digest(check_hash, hashed)
    except (ValueError, AttributeError):
        return False


def validate_password(password: str) -> tuple[bool, str]:
    """
    Validate password: min 6 characters with an uppercase letter, a number
    and a special character.
    Returns (ok, error_message). error_message is empty when ok is True.
    """
    if len(password) < 6:
        return False, "Password must be at least 6 characters"
    if not any(c.isupper() for c in password):
        return False, "Password must contain at least one uppercase letter"
    if not any(c.isdigit() for c in password):
        return False, "Password must contain at least one number"
    if not any(c in SPECIAL_CHARACTERS for c in password):
        return False, "Password must contain at least one special character"
    return True, ""


def validate_email(email: str) -> bool:
    return bool(email and EMAIL_PATTERN.match(email))


def to_title_case(name: str) -> str:
    return ' '.join(word[:1].upper() + word[1:] for word in name.strip().lower().split())


def generate_user_id() -> str:
    """Generate a unique user ID"""
    return f"U{secrets.token_hex(6).upper()}"


def generate_classroom_id() -> str:
    return f"CLS-{secrets.token_hex(6).upper()}"


def generate_activity_id() -> str:
    return f"ACT-{secrets.token_hex(8).upper()}"


def generate_assignment_id() -> str:
    """Generate a unique assignment ID"""
    return f"ASN-{secrets.token_hex(8).upper()}"


def generate_submission_id() -> str:
    """Generate a unique submission ID"""
    return f"SUB-{secrets.token_hex(8).upper()}"


def generate_task_id() -> str:
    return f"TASK-{secrets.token_hex(6).upper()}"


def encrypt_secret(secret: str) -> str:
    """Encrypt an OAuth token or API key for storage"""
    try:
        f = Fernet(get_encryption_key())
        encrypted = f.encrypt(secret.encode())
        return base64.b64encode(encrypted).decode()
    except (ValueError, TypeError) as e:
        logger.error(f"Error encrypting secret: {e}")
        return None


def decrypt_secret(encrypted: str) -> str:
    """Decrypt a stored secret"""
    try:
        f = Fernet(get_encryption_key())
        decoded = base64.b64decode(encrypted.encode())
        return f.decrypt(decoded).decode()
    except (InvalidToken, ValueError, TypeError, AttributeError) as e:
        logger.error(f"Error decrypting secret: {e}")
        return None


def generate_token(length: int = 32) -> str:
    """Generate a secure random token"""
    return secrets.token_urlsafe(length)
