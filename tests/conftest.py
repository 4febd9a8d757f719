"""
Shared fixtures: a mongomock-backed Database, fakes for every external
service, and a Flask test client with helpers to sign in.
"""
from datetime import datetime

import mongomock
import pytest

from app import create_app
from config import TestingConfig
from errors import ExternalServiceError
from models import Database
from utils.auth import generate_user_id, hash_password
from utils.classrooms import add_student, new_classroom
from utils.google_oauth import find_or_create_user


# =============================================================================
# Fakes
# =============================================================================

class FakeAI:
    """Replies are served in order; an exception instance in the queue is raised instead."""
    provider = 'fake'
    model = 'fake-model'
    base_url = 'http://fake-ai/v1'

    def __init__(self, replies=None, configured=True):
        self.replies = list(replies or [])
        self.prompts = []
        self.configured = configured

    @property
    def is_configured(self):
        return self.configured

    def generate(self, prompt, temperature=0.7, max_tokens=2000, system_prompt=None):
        self.prompts.append(prompt)
        if not self.configured:
            raise ExternalServiceError("AI provider 'fake' is not configured")
        if not self.replies:
            raise ExternalServiceError("AI service unavailable")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def check_connection(self):
        return {'provider': self.provider, 'model': self.model, 'url': self.base_url,
                'connected': self.configured}

    def validate_learning_inputs(self, course_interest, learning_goals):
        return {'valid': True, 'reason': 'OK'}

    def analyze_student_skills(self, survey, full_name='Student'):
        return {'success': True, 'analysis': f"Hi {full_name},\n\nWelcome to SkillVerse!"}


class FakeStorage:
    configured = True

    def __init__(self):
        self.uploads = []
        self.deleted = []

    def upload(self, file_data, file_name, mime_type, metadata=None):
        public_id = f"skillverse/{len(self.uploads) + 1}_{file_name}"
        self.uploads.append({'public_id': public_id, 'file_name': file_name, 'mime_type': mime_type,
                             'size': len(file_data), 'metadata': metadata})
        return {'public_id': public_id, 'url': f"https://res.cloudinary.test/{public_id}",
                'resource_type': 'raw'}

    def delete(self, public_id, resource_type=None):
        self.deleted.append(public_id)
        return {'success': True}


class FakeMailer:
    configured = True

    def __init__(self):
        self.sent = []
        self.codes = []

    def send_email(self, to, subject, html_body):
        self.sent.append({'to': to, 'subject': subject, 'body': html_body})
        return {'success': True, 'message_id': f"msg-{len(self.sent)}"}

    def get_auth_url(self):
        return 'https://accounts.google.com/o/oauth2/v2/auth?scope=gmail.send'

    def save_token_from_code(self, code):
        self.codes.append(code)
        return {'refresh_token': 'refresh'}


class FakeGoogleLogin:
    configured = True

    def __init__(self, profile=None):
        self.profile = profile or {'email': 'juan@gmail.com', 'display_name': 'Juan Dela Cruz',
                                   'provider_id': 'google-123'}

    def auth_url(self, state):
        return f"https://accounts.google.com/o/oauth2/v2/auth?state={state}"

    def authenticate(self, database, code):
        return find_or_create_user(database, self.profile)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def database():
    return Database(mongomock.MongoClient().db)


@pytest.fixture
def ai():
    return FakeAI()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(database, ai, storage, mailer):
    return create_app(TestingConfig, database=database, ai_service=ai, storage=storage, mailer=mailer,
                      google_login=FakeGoogleLogin())


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(database, role='student', email=None, name=None, password='Secret@123'):
    user_id = generate_user_id()
    user = database.users.create({
        'user_id': user_id,
        'email': email or f"{user_id.lower()}@example.com",
        'password_hash': hash_password(password),
        'role': role,
        'name': name or f"{role.title()} {user_id[-4:]}",
        'onboarding_survey': {'survey_completed': False},
        'survey_completed_languages': [],
    })
    if role == 'student':
        database.mini_projects.create(user_id)
    return user


def make_classroom(database, teacher, students=()):
    classroom = new_classroom(f"CLS-{generate_user_id()}", teacher['user_id'], 'Programming 1',
                              description='Intro to programming', year_level_section='BSIT 1-A')
    for student in students:
        classroom = add_student(classroom, student['user_id'])
    return database.classrooms.create(classroom)


def login(client, user):
    with client.session_transaction() as session:
        session['user_id'] = user['user_id']
        session['role'] = user['role']
        session['name'] = user.get('name')


@pytest.fixture
def teacher(database):
    return make_user(database, 'teacher', email='teacher@school.edu', name='Maria Santos')


@pytest.fixture
def student(database):
    return make_user(database, 'student', email='student@school.edu', name='Jose Rizal')


@pytest.fixture
def now():
    return datetime(2025, 3, 3, 9, 0)


def project(title, language='java', **extra):
    return {'title': title, 'description': f"Build {title}", 'language': language, **extra}
