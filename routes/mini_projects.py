import logging

from flask import Blueprint, current_app, jsonify, request

from errors import ExternalServiceError, PortalError
from extensions import current_user_id, get_ai, get_db, limiter, student_required
from routes import public
from utils.classwork import parse_due_date
from utils.mini_projects import (add_weekly_generated_projects, check_can_submit, complete_task,
                                 completed_this_week, delete_completed_task, enable_generation,
                                 find_task, get_all_current_projects, get_current_week_projects,
                                 get_projects_by_week, save_progress, submit_project)
from utils.project_generation import generate_week_for_user
from utils.project_grading import grade_project

logger = logging.getLogger(__name__)

mini_projects_bp = Blueprint('mini_projects', __name__, url_prefix='/api/mini-projects')


def _weekly_limit() -> int:
    return current_app.config.get('WEEKLY_PROJECT_LIMIT', 6)


def _retention() -> int:
    return current_app.config.get('HISTORY_RETENTION_WEEKS', 52)


def _available_response(record: dict, **extra) -> dict:
    done = completed_this_week(record)
    response = {
        'available_projects': get_all_current_projects(record),
        'completed_this_week': len(done),
        'week_start_date': record.get('week_start_date'),
        'week_number': record.get('current_week_number'),
        'all_completed': len(done) >= _weekly_limit(),
    }
    response.update(extra)
    return response


# ============================================================================
# READ
# ============================================================================

@mini_projects_bp.route('/student')
@student_required
def get_record():
    record = get_db().mini_projects.get(current_user_id())
    return jsonify(public(record))


@mini_projects_bp.route('/available-projects')
@student_required
def available_projects():
    """
    Current week's projects. An empty week is filled on the spot when the
    student has completed the survey.
    """
    database = get_db()
    user_id = current_user_id()
    record = database.mini_projects.get(user_id)
    if get_all_current_projects(record):
        return jsonify(_available_response(record))

    if not database.surveys.for_user(user_id):
        return jsonify(_available_response(
            record, message='Please complete the onboarding survey to generate projects'
        ))

    logger.info(f"No projects available for {user_id}, generating a new week")
    try:
        record = generate_week_for_user(database, get_ai(), user_id, retention_weeks=_retention())
    except PortalError as e:
        logger.error(f"Error generating projects for {user_id}: {e.message}")
        record = database.mini_projects.get(user_id)
    return jsonify(_available_response(record))


@mini_projects_bp.route('/completed-tasks')
@student_required
def completed_tasks():
    record = get_db().mini_projects.get(current_user_id())
    return jsonify({
        'completed_tasks': record.get('completed_tasks', []),
        'completed_this_week': len(completed_this_week(record)),
        'last_week_completed_count': record.get('last_week_completed_count', 0),
    })


@mini_projects_bp.route('/weekly-history')
@student_required
def weekly_history():
    record = get_db().mini_projects.get(current_user_id())
    return jsonify({
        'current_week_number': record.get('current_week_number', 0),
        'weekly_history': record.get('weekly_project_history', []),
        'last_generation_date': record.get('last_generation_date'),
    })


@mini_projects_bp.route('/projects-by-week/<int:week_number>')
@student_required
def projects_by_week(week_number):
    record = get_db().mini_projects.get(current_user_id())
    language = request.args.get('language')
    return jsonify({
        'week_number': week_number,
        'language': language,
        'projects': get_projects_by_week(record, week_number, language),
    })


@mini_projects_bp.route('/current-week-projects')
@student_required
def current_week_projects():
    record = get_db().mini_projects.get(current_user_id())
    language = request.args.get('language')
    if language:
        projects = get_current_week_projects(record, language)
    else:
        projects = get_all_current_projects(record)
    return jsonify({
        'week_number': record.get('current_week_number'),
        'language': language,
        'projects': projects,
    })


@mini_projects_bp.route('/project-progress/<path:project_title>')
@student_required
def project_progress(project_title):
    record = get_db().mini_projects.get(current_user_id())
    task = find_task(record, project_title)
    if task is None:
        return jsonify({'found': False, 'message': 'No saved progress found for this project'})
    return jsonify({
        'found': True,
        'task': {
            'project_title': task['project_title'],
            'code_base': task.get('code_base', ''),
            'status': task.get('status'),
            'last_saved_at': task.get('last_saved_at'),
            'completed_at': task.get('completed_at'),
        },
    })


# ============================================================================
# TASKS
# ============================================================================

@mini_projects_bp.route('/save-progress', methods=['POST'])
@student_required
def save():
    data = request.get_json(silent=True) or {}
    title = (data.get('project_title') or '').strip()
    code_base = data.get('code_base') or ''
    if not title or not code_base:
        return jsonify({'error': 'Project title and code base are required'}), 400

    record = get_db().mini_projects.mutate(current_user_id(), lambda r: save_progress(r, title, code_base))
    task = find_task(record, title)
    return jsonify({'message': 'Progress saved successfully', 'task': task})


@mini_projects_bp.route('/submit-project', methods=['POST'])
@limiter.limit("10 per hour")
@student_required
def submit():
    """
    Grade the code with the AI and record the result.

    The weekly quota and duplicate checks run first so a rejected submission
    never costs a model call; they run again inside the save.
    """
    database = get_db()
    user_id = current_user_id()
    data = request.get_json(silent=True) or {}
    title = (data.get('project_title') or '').strip()
    code_base = data.get('code_base') or ''
    if not title or not code_base:
        return jsonify({'error': 'Project title and code base are required'}), 400

    record = database.mini_projects.get(user_id)
    project = check_can_submit(record, title, _weekly_limit())

    try:
        grading = grade_project(get_ai(), project, code_base)
    except ExternalServiceError as e:
        logger.error(f"Grading unavailable for {user_id} on '{title}': {e.message}")
        return jsonify({'error': 'AI grading is unavailable right now. Your code was not submitted.'}), 503

    record = database.mini_projects.mutate(
        user_id,
        lambda r: submit_project(r, title, code_base, grading['score'], grading['feedback'],
                                 weekly_limit=_weekly_limit()),
    )
    done = completed_this_week(record)
    logger.info(f"Project '{title}' submitted by {user_id} with score {grading['score']}")
    return jsonify({
        'message': 'Project submitted successfully',
        'grading': grading,
        'task': find_task(record, title),
        'completed_this_week': len(done),
        'all_completed': len(done) >= _weekly_limit(),
    })


@mini_projects_bp.route('/complete-task', methods=['POST'])
@student_required
def complete():
    data = request.get_json(silent=True) or {}
    task_id = data.get('task_id')
    if not task_id:
        return jsonify({'error': 'Task ID is required'}), 400
    record = get_db().mini_projects.mutate(current_user_id(), lambda r: complete_task(r, task_id))
    return jsonify({'message': 'Task marked as completed', 'completed_tasks': record['completed_tasks']})


@mini_projects_bp.route('/completed-task/<task_id>', methods=['DELETE'])
@student_required
def delete_task(task_id):
    record = get_db().mini_projects.mutate(current_user_id(), lambda r: delete_completed_task(r, task_id))
    return jsonify({'message': 'Task deleted successfully', 'completed_tasks': record['completed_tasks']})


# ============================================================================
# GENERATION
# ============================================================================

@mini_projects_bp.route('/enable-generation', methods=['POST'])
@student_required
def enable():
    record = get_db().mini_projects.mutate(current_user_id(), enable_generation)
    return jsonify({'message': 'Project generation enabled',
                    'generation_enabled': record['generation_enabled']})


@mini_projects_bp.route('/generate-weekly-projects', methods=['POST'])
@student_required
def store_weekly_projects():
    """Store a batch of projects the client already generated."""
    data = request.get_json(silent=True) or {}
    projects = data.get('projects')
    if not projects or not isinstance(projects, list):
        return jsonify({'error': 'Projects array is required'}), 400

    database = get_db()
    record = database.mini_projects.get(current_user_id())
    if not record.get('generation_enabled'):
        return jsonify({'error': 'Project generation is not enabled. Enable it first.'}), 403

    week_start = parse_due_date(data.get('week_start_date'))
    week_end = parse_due_date(data.get('week_end_date'))
    record = database.mini_projects.mutate(
        current_user_id(),
        lambda r: add_weekly_generated_projects(r, projects, week_number=data.get('week_number'),
                                                week_start=week_start, week_end=week_end),
    )
    return jsonify({
        'message': 'Weekly projects generated successfully',
        'week_number': record['current_week_number'],
        'generated_count': len(projects),
        'available_projects': get_all_current_projects(record),
        'weekly_history': record['weekly_project_history'],
    }), 201


@mini_projects_bp.route('/trigger-generation', methods=['POST'])
@limiter.limit("5 per hour")
@student_required
def trigger_generation():
    database = get_db()
    user_id = current_user_id()
    database.mini_projects.mutate(user_id, enable_generation)
    record = generate_week_for_user(database, get_ai(), user_id, retention_weeks=_retention())
    projects = get_all_current_projects(record)
    return jsonify({
        'message': 'Generation triggered successfully',
        'generation_enabled': record['generation_enabled'],
        'available_projects': projects,
        'project_count': len(projects),
        'week_number': record['current_week_number'],
    })


@mini_projects_bp.route('/clear-and-regenerate', methods=['POST'])
@limiter.limit("5 per hour")
@student_required
def clear_and_regenerate():
    """
    Replace the current projects with a fresh week. Earlier weeks stay in the
    history; the new projects go into the next week number.
    """
    database = get_db()
    user_id = current_user_id()
    if not database.surveys.for_user(user_id):
        return jsonify({'error': 'Please complete the onboarding survey first to generate projects'}), 400

    previous = database.mini_projects.get(user_id)
    old_count = len(get_all_current_projects(previous))
    database.mini_projects.mutate(user_id, enable_generation)
    record = generate_week_for_user(database, get_ai(), user_id, retention_weeks=_retention())
    projects = get_all_current_projects(record)
    logger.info(f"Regenerated projects for {user_id}: {old_count} -> {len(projects)}")
    return jsonify({
        'message': 'Projects cleared and regenerated successfully',
        'old_projects_count': old_count,
        'new_projects_count': len(projects),
        'available_projects': projects,
        'week_number': record['current_week_number'],
        'generation_enabled': record['generation_enabled'],
    })
