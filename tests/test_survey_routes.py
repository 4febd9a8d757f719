"""Onboarding survey submission and lookup."""
import pytest

from conftest import login, make_user

SURVEY = {
    'primary_language': 'Java',
    'course_interest': 'Games',
    'learning_goals': 'Make my own game',
    'java_expertise': 'beginner',
    'java_questions': {
        'answers': [1, 0, 2, 3, 1, 1, 0, 2, 3, 1],
        'score': {'total': 7, 'easy': 3, 'medium': 3, 'hard': 1, 'percentage': 70},
    },
}


@pytest.fixture
def signed_in(client, student):
    login(client, student)
    return client


class TestSubmitSurvey:

    def test_first_survey_starts_week_one(self, signed_in, database, student):
        response = signed_in.post('/api/survey/submit', json=SURVEY)

        body = response.get_json()
        assert response.status_code == 200
        assert body['skill_level'] == 'Advanced'
        assert body['week_number'] == 1
        assert body['survey']['ai_analysis'].startswith('Hi Jose Rizal,')

        user = database.users.get(student['user_id'])
        assert user['onboarding_survey']['survey_completed'] is True
        assert user['primary_language'] == 'java'
        assert user['survey_completed_languages'] == ['java']

        record = database.mini_projects.get(student['user_id'])
        assert record['generation_enabled'] is True
        assert len(record['weekly_project_history'][0]['java_projects']) == 6

    def test_resubmission_overwrites(self, signed_in, database, student):
        signed_in.post('/api/survey/submit', json=SURVEY)
        signed_in.post('/api/survey/submit', json=dict(SURVEY, course_interest='Web'))

        surveys = database.surveys.for_user(student['user_id'])
        assert len(surveys) == 1
        assert surveys[0]['course_interest'] == 'Web'
        assert database.mini_projects.get(student['user_id'])['current_week_number'] == 1

    def test_second_language_is_added(self, signed_in, database, student):
        signed_in.post('/api/survey/submit', json=SURVEY)
        signed_in.post('/api/survey/submit', json={'primary_language': 'python', 'python_expertise': 'advanced'})

        user = database.users.get(student['user_id'])
        assert user['survey_completed_languages'] == ['java', 'python']
        assert user['primary_language'] == 'python'

    @pytest.mark.parametrize('overrides', [
        {'primary_language': 'rust'},
        {'java_expertise': None},
        {'java_expertise': 'guru'},
        {'java_questions': {'answers': ['a'], 'score': {}}},
        {'java_questions': {'answers': [], 'score': {'percentage': 140}}},
    ])
    def test_invalid_answers(self, signed_in, overrides):
        response = signed_in.post('/api/survey/submit', json=dict(SURVEY, **overrides))
        assert response.status_code == 400

    def test_meaningless_text_is_rejected(self, signed_in, database, student, ai):
        ai.validate_learning_inputs = lambda interest, goals: {'valid': False, 'reason': 'qwerty is not a topic'}

        response = signed_in.post('/api/survey/submit', json=dict(SURVEY, learning_goals='qwerty'))

        assert response.status_code == 400
        assert response.get_json() == {'error': 'qwerty is not a topic', 'field': 'learning_goals'}
        assert database.surveys.for_user(student['user_id']) == []

    def test_teachers_cannot_submit(self, client, teacher):
        login(client, teacher)
        assert client.post('/api/survey/submit', json=SURVEY).status_code == 403


class TestGetSurvey:

    def test_own_survey(self, signed_in, student):
        signed_in.post('/api/survey/submit', json=SURVEY)
        body = signed_in.get(f"/api/survey/{student['user_id']}").get_json()
        assert body['survey_completed'] is True
        assert body['surveys'][0]['java_questions']['score']['percentage'] == 70

    def test_not_completed(self, signed_in, student):
        assert signed_in.get(f"/api/survey/{student['user_id']}").get_json() == \
            {'survey_completed': False, 'surveys': []}

    def test_other_students_are_private(self, signed_in, database):
        other = make_user(database, 'student')
        assert signed_in.get(f"/api/survey/{other['user_id']}").status_code == 403

    def test_teacher_can_read(self, client, teacher, student):
        login(client, teacher)
        assert client.get(f"/api/survey/{student['user_id']}").status_code == 200
        assert client.get('/api/survey/U-MISSING').status_code == 404
