"""Objects shared by the app factory and the blueprints."""
from functools import wraps

from flask import current_app, jsonify, session
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize rate limiter (bound to the app in create_app)
limiter = Limiter(key_func=get_remote_address)

EXTENSION_KEY = 'skillverse'


def services() -> dict:
    return current_app.extensions[EXTENSION_KEY]


def get_db():
    return services()['database']


def get_ai():
    return services()['ai']


def get_storage():
    return services()['storage']


def get_mailer():
    return services()['mailer']


def get_google_login():
    return services()['google_login']


def current_user_id() -> str:
    return session.get('user_id')


# ============================================================================
# DECORATORS
# ============================================================================

def login_required(f):
    """Require a signed-in user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return jsonify({'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _role_required(role):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if 'user_id' not in session:
                return jsonify({'error': 'Unauthorized'}), 401
            if session.get('role') != role:
                return jsonify({'error': f'Access denied. {role.capitalize()}s only.'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


teacher_required = _role_required('teacher')
student_required = _role_required('student')
