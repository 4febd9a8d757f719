import logging

from flask import Blueprint, jsonify, redirect, request, session

from errors import PortalError
from extensions import (current_user_id, get_db, get_google_login, get_mailer, limiter, login_required,
                        teacher_required)
from routes import public, user_summary
from utils.auth import (generate_token, generate_user_id, hash_password, to_title_case, validate_email,
                        validate_password, verify_password)

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

ROLES = ('teacher', 'student')


def _start_session(user: dict):
    session.clear()
    session['user_id'] = user['user_id']
    session['role'] = user['role']
    session['name'] = user.get('name')
    session.permanent = True


# ============================================================================
# EMAIL / PASSWORD
# ============================================================================

@auth_bp.route('/register', methods=['POST'])
@limiter.limit("10 per hour")
def register():
    """Create a teacher or student account; students also get a mini-project record."""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    role = data.get('role')
    name = (data.get('name') or '').strip()

    if not email or not password or not role or not name:
        return jsonify({'error': 'All fields are required'}), 400
    if role not in ROLES:
        return jsonify({'error': 'Invalid role'}), 400
    ok, message = validate_password(password)
    if not ok:
        return jsonify({'error': message}), 400
    if not validate_email(email):
        return jsonify({'error': 'Invalid email format'}), 400

    database = get_db()
    if database.users.find_by_email(email):
        return jsonify({'error': 'Email already registered'}), 400

    try:
        user = database.users.create({
            'user_id': generate_user_id(),
            'email': email,
            'password_hash': hash_password(password),
            'role': role,
            'name': to_title_case(name),
            'onboarding_survey': {'survey_completed': False},
            'survey_completed_languages': [],
        })
        if role == 'student':
            database.mini_projects.create(user['user_id'])
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"Registration error for {email}: {e}")
        return jsonify({'error': 'Server error during registration'}), 500

    logger.info(f"New user registered: {user['email']} as {role}")
    _start_session(user)
    return jsonify({'message': 'User registered successfully', 'user': user_summary(user)}), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400

    user = get_db().users.find_by_email(email)
    if not user or not verify_password(password, user.get('password_hash', '')):
        return jsonify({'error': 'Invalid email or password'}), 401

    _start_session(user)
    logger.info(f"User logged in: {user['email']}")
    return jsonify({'message': 'Login successful', 'user': user_summary(user)})


@auth_bp.route('/me')
@login_required
def me():
    user = get_db().users.get(current_user_id())
    return jsonify({'user': user_summary(user), 'profile': public(user)})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'Logout successful'})


# ============================================================================
# GOOGLE LOGIN
# ============================================================================

@auth_bp.route('/google')
def google_login():
    google = get_google_login()
    if not google.configured:
        return jsonify({'error': 'Google login is not configured'}), 503
    state = generate_token(16)
    session['oauth_state'] = state
    return redirect(google.auth_url(state))


@auth_bp.route('/google/callback')
@limiter.limit("20 per minute")
def google_callback():
    google = get_google_login()
    if request.args.get('error'):
        return jsonify({'error': f"Google login cancelled: {request.args['error']}"}), 400
    if not request.args.get('state') or request.args.get('state') != session.pop('oauth_state', None):
        return jsonify({'error': 'Invalid OAuth state'}), 400

    user, created = google.authenticate(get_db(), request.args.get('code'))
    _start_session(user)
    logger.info(f"Google login for {user['email']} (new account: {created})")
    return jsonify({'message': 'Login successful', 'created': created, 'user': user_summary(user)})


# ============================================================================
# GMAIL SETUP (teacher-only, one-time)
# ============================================================================

@auth_bp.route('/gmail/auth-url')
@teacher_required
def gmail_auth_url():
    return jsonify({'auth_url': get_mailer().get_auth_url()})


@auth_bp.route('/gmail/callback')
@teacher_required
def gmail_callback():
    code = request.args.get('code')
    if not code:
        return jsonify({'error': 'Authorization code is required'}), 400
    get_mailer().save_token_from_code(code)
    return jsonify({'message': 'Gmail connected successfully'})
