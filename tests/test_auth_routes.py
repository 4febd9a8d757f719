"""Registration, login and Google/Gmail OAuth endpoints."""
import pytest

from conftest import login, make_user


# =============================================================================
# Registration and login
# =============================================================================

class TestRegister:

    def test_student_registration_creates_record(self, client, database):
        response = client.post('/api/auth/register', json={
            'email': 'Ana@School.edu', 'password': 'Secret@123', 'role': 'student', 'name': 'ana  cruz',
        })

        assert response.status_code == 201
        user = response.get_json()['user']
        assert user['email'] == 'ana@school.edu'
        assert user['name'] == 'Ana Cruz'
        assert user['survey_completed'] is False
        assert database.mini_projects.get(user['id'])['weekly_project_history'] == []

        assert client.get('/api/auth/me').status_code == 200

    def test_teacher_gets_no_mini_project_record(self, client, database):
        response = client.post('/api/auth/register', json={
            'email': 'prof@school.edu', 'password': 'Secret@123', 'role': 'teacher', 'name': 'Prof X',
        })
        assert response.status_code == 201
        assert database.mini_projects.count({}) == 0

    @pytest.mark.parametrize('payload, message', [
        ({'email': 'a@b.co', 'password': 'Secret@123', 'role': 'student'}, 'All fields are required'),
        ({'email': 'a@b.co', 'password': 'Secret@123', 'role': 'admin', 'name': 'A'}, 'Invalid role'),
        ({'email': 'a@b.co', 'password': 'secret', 'role': 'student', 'name': 'A'}, 'uppercase'),
        ({'email': 'not-an-email', 'password': 'Secret@123', 'role': 'student', 'name': 'A'}, 'email format'),
    ])
    def test_rejects_bad_input(self, client, payload, message):
        response = client.post('/api/auth/register', json=payload)
        assert response.status_code == 400
        assert message in response.get_json()['error']

    def test_duplicate_email(self, client, student):
        response = client.post('/api/auth/register', json={
            'email': 'STUDENT@school.edu', 'password': 'Secret@123', 'role': 'student', 'name': 'Other',
        })
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Email already registered'


class TestLogin:

    def test_login_and_logout(self, client, student):
        response = client.post('/api/auth/login', json={'email': 'student@school.edu', 'password': 'Secret@123'})
        assert response.status_code == 200
        assert response.get_json()['user']['role'] == 'student'

        me = client.get('/api/auth/me').get_json()
        assert me['user']['id'] == student['user_id']
        assert 'password_hash' not in me['profile']

        client.post('/api/auth/logout')
        assert client.get('/api/auth/me').status_code == 401

    def test_wrong_password(self, client, student):
        response = client.post('/api/auth/login', json={'email': 'student@school.edu', 'password': 'Wrong@123'})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid email or password'

    def test_missing_fields(self, client):
        assert client.post('/api/auth/login', json={'email': 'x@y.z'}).status_code == 400


# =============================================================================
# Google and Gmail
# =============================================================================

class TestGoogleLogin:

    def test_start_redirects_with_state(self, client):
        response = client.get('/api/auth/google')
        assert response.status_code == 302
        with client.session_transaction() as session:
            state = session['oauth_state']
        assert f'state={state}' in response.headers['Location']

    def test_callback_provisions_student(self, client, database):
        with client.session_transaction() as session:
            session['oauth_state'] = 'abc'

        response = client.get('/api/auth/google/callback?state=abc&code=code-1')

        body = response.get_json()
        assert response.status_code == 200
        assert body['created'] is True
        assert body['user']['email'] == 'juan@gmail.com'
        assert database.mini_projects.count({'user_id': body['user']['id']}) == 1
        assert client.get('/api/auth/me').status_code == 200

    def test_callback_state_mismatch(self, client):
        with client.session_transaction() as session:
            session['oauth_state'] = 'abc'
        response = client.get('/api/auth/google/callback?state=other&code=code-1')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid OAuth state'

    def test_callback_cancelled(self, client):
        response = client.get('/api/auth/google/callback?error=access_denied')
        assert response.status_code == 400


class TestGmailSetup:

    def test_teacher_only(self, client, student):
        login(client, student)
        response = client.get('/api/auth/gmail/auth-url')
        assert response.status_code == 403
        assert response.get_json()['error'] == 'Access denied. Teachers only.'

    def test_auth_url_and_callback(self, client, teacher, mailer):
        login(client, teacher)
        assert 'gmail.send' in client.get('/api/auth/gmail/auth-url').get_json()['auth_url']

        assert client.get('/api/auth/gmail/callback').status_code == 400
        response = client.get('/api/auth/gmail/callback?code=code-9')
        assert response.status_code == 200
        assert mailer.codes == ['code-9']


def test_unauthenticated_requests_are_rejected(client, database):
    make_user(database, 'student')
    response = client.get('/api/classrooms/student')
    assert response.status_code == 401
    assert response.get_json() == {'error': 'Unauthorized'}
