import os
from datetime import timedelta

# Load environment variables
from dotenv import load_dotenv
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Application configuration loaded from environment variables"""
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY', 'change-this-in-production-please')
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Support Railway's MONGO_URL or standard MONGODB_URI
    MONGODB_URI = os.getenv('MONGODB_URI') or os.getenv('MONGO_URL')
    MONGODB_DB = os.getenv('MONGODB_DB', 'skillverse')

    # AI provider: "ollama" (local or tunnelled) or "huggingface"
    AI_PROVIDER = os.getenv('AI_PROVIDER', 'ollama')
    OLLAMA_API_URL = os.getenv('OLLAMA_API_URL', 'http://localhost:11434')
    OLLAMA_REMOTE_URL = os.getenv('OLLAMA_REMOTE_URL') or os.getenv('KAGGLE_NGROK_URL')
    USE_OLLAMA_REMOTE = _env_bool('USE_OLLAMA_REMOTE')
    OLLAMA_TAILSCALE_IP = os.getenv('OLLAMA_TAILSCALE_IP')
    OLLAMA_MODEL_NAME = os.getenv('OLLAMA_MODEL_NAME', 'qwen2.5:7b')
    HUGGINGFACE_API_KEY = os.getenv('HUGGINGFACE_API_KEY')
    HUGGINGFACE_BASE_URL = os.getenv('HUGGINGFACE_BASE_URL', 'https://router.huggingface.co/v1')
    HUGGINGFACE_MODEL = os.getenv('HUGGINGFACE_MODEL', 'Qwen/Qwen2.5-Coder-7B-Instruct')
    AI_TIMEOUT_SECONDS = _env_int('AI_TIMEOUT_SECONDS', 180)
    AI_MAX_RETRIES = _env_int('AI_MAX_RETRIES', 3)

    CLOUDINARY_CLOUD_NAME = os.getenv('CLOUDINARY_CLOUD_NAME')
    CLOUDINARY_API_KEY = os.getenv('CLOUDINARY_API_KEY')
    CLOUDINARY_API_SECRET = os.getenv('CLOUDINARY_API_SECRET')
    CLOUDINARY_FOLDER = os.getenv('CLOUDINARY_FOLDER', 'skillverse')
    MAX_UPLOAD_BYTES = 10 * 1024 * 1024

    GMAIL_CLIENT_ID = os.getenv('GMAIL_CLIENT_ID')
    GMAIL_CLIENT_SECRET = os.getenv('GMAIL_CLIENT_SECRET')
    GMAIL_REDIRECT_URI = os.getenv('GMAIL_REDIRECT_URI', 'http://localhost:5000/api/auth/gmail/callback')
    GMAIL_TOKEN_FILE = os.getenv('GMAIL_TOKEN_FILE', 'gmail-token.json')

    GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.getenv('GOOGLE_CLIENT_SECRET')
    API_URL = os.getenv('API_URL', 'http://localhost:5000')

    # Mini projects
    WEEKLY_PROJECT_LIMIT = _env_int('WEEKLY_PROJECT_LIMIT', 6)
    HISTORY_RETENTION_WEEKS = _env_int('HISTORY_RETENTION_WEEKS', 52)
    ENABLE_SCHEDULER = _env_bool('ENABLE_SCHEDULER')

    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '200 per day;50 per hour')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', True)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    MONGODB_DB = 'skillverse_test'
    RATELIMIT_ENABLED = False
    ENABLE_SCHEDULER = False


def as_dict(config_class=Config) -> dict:
    """Upper-case settings of a config class, for code running outside a Flask app (scripts, jobs)."""
    return {key: getattr(config_class, key) for key in dir(config_class) if key.isupper()}
