import logging

from flask import Blueprint, current_app, jsonify, request, session

from errors import ExternalServiceError, PortalError
from extensions import current_user_id, get_ai, get_db, limiter, login_required, student_required
from routes import public
from utils.mini_projects import enable_generation, has_current_projects
from utils.project_generation import determine_skill_level, generate_week_for_user
from utils.surveys import build_survey

logger = logging.getLogger(__name__)

surveys_bp = Blueprint('surveys', __name__, url_prefix='/api/survey')


def _check_learning_inputs(course_interest: str, learning_goals: str):
    """Returns an error message, or None when the answers are acceptable or cannot be checked."""
    ai = get_ai()
    if not (course_interest or learning_goals) or not ai.is_configured:
        return None
    try:
        result = ai.validate_learning_inputs(course_interest, learning_goals)
    except ExternalServiceError as e:
        logger.warning(f"Skipping survey input validation: {e.message}")
        return None
    return None if result['valid'] else result['reason']


@surveys_bp.route('/submit', methods=['POST'])
@limiter.limit("10 per hour")
@student_required
def submit_survey():
    """
    Save the onboarding survey for one language and start the student's first
    week of mini projects.
    """
    database = get_db()
    user_id = current_user_id()
    data = request.get_json(silent=True) or {}
    language, fields = build_survey(data)

    problem = _check_learning_inputs(fields['course_interest'], fields['learning_goals'])
    if problem:
        return jsonify({'error': problem, 'field': 'learning_goals'}), 400

    survey = database.surveys.upsert(user_id, language.value, fields)
    user = database.users.get(user_id)
    completed_languages = sorted(set(user.get('survey_completed_languages') or []) | {language.value})
    database.users.update_fields(user_id, {
        'onboarding_survey': {'survey_completed': True},
        'primary_language': language.value,
        'survey_completed_languages': completed_languages,
    })
    logger.info(f"Survey submitted by {user_id} for {language.value}")

    if get_ai().is_configured:
        analysis = get_ai().analyze_student_skills(survey, user.get('name') or 'Student')
        if analysis['success']:
            database.surveys.set_analysis(user_id, language.value, analysis['analysis'])
            survey['ai_analysis'] = analysis['analysis']

    record = database.mini_projects.get_or_create(user_id)
    if not record.get('generation_enabled'):
        record = database.mini_projects.mutate(user_id, enable_generation)
    if not has_current_projects(record):
        try:
            record = generate_week_for_user(database, get_ai(), user_id,
                                            retention_weeks=current_app.config.get('HISTORY_RETENTION_WEEKS', 52))
        except PortalError as e:
            logger.error(f"First week generation failed for {user_id}: {e.message}")

    return jsonify({
        'message': 'Survey submitted successfully',
        'survey': public(survey),
        'skill_level': determine_skill_level(survey),
        'week_number': record.get('current_week_number', 0),
    })


@surveys_bp.route('/<user_id>')
@login_required
def get_survey(user_id):
    if user_id != current_user_id() and session.get('role') != 'teacher':
        return jsonify({'error': 'Access denied'}), 403

    database = get_db()
    database.users.get(user_id)
    surveys = database.surveys.for_user(user_id)
    return jsonify({
        'survey_completed': any(s.get('completed') for s in surveys),
        'surveys': [public(s) for s in surveys],
    })
