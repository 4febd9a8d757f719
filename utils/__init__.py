# Utility modules for the SkillVerse portal
from utils.auth import (
    hash_password,
    verify_password,
    validate_password,
    validate_email,
    generate_user_id,
    generate_classroom_id,
    generate_activity_id,
    generate_assignment_id,
    generate_submission_id,
    generate_task_id,
    encrypt_secret,
    decrypt_secret,
    generate_token
)

from utils.languages import Language

from utils.ai_service import AIService

from utils.cloudinary_storage import CloudinaryStorage

from utils.gmail import GmailSender

from utils.google_oauth import GoogleLogin

from utils.notifications import (
    notify_submission_ready,
    notify_feedback_ready,
    notify_work_published,
    notify_weekly_projects_ready
)

__all__ = [
    # Auth
    'hash_password',
    'verify_password',
    'validate_password',
    'validate_email',
    'generate_user_id',
    'generate_classroom_id',
    'generate_activity_id',
    'generate_assignment_id',
    'generate_submission_id',
    'generate_task_id',
    'encrypt_secret',
    'decrypt_secret',
    'generate_token',
    'Language',
    # Integrations
    'AIService',
    'CloudinaryStorage',
    'GmailSender',
    'GoogleLogin',
    # Notifications
    'notify_submission_ready',
    'notify_feedback_ready',
    'notify_work_published',
    'notify_weekly_projects_ready'
]
