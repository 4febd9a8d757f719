import logging

from flask import Blueprint, jsonify, request, session

from errors import ExternalServiceError, PortalError
from extensions import current_user_id, get_ai, get_db, limiter, login_required, student_required, teacher_required
from routes.classwork import (classroom_for_viewer, load_for_submitter, load_for_viewer, notify_graded,
                              notify_published, notify_submitted, owned_classroom, require_owner, serialize)
from utils.auth import generate_activity_id
from utils.classwork import new_activity, update_classwork
from utils.project_grading import generate_activity_feedback
from utils.submissions import attach_ai_feedback, grade_submission, submit, unsubmit

logger = logging.getLogger(__name__)

activities_bp = Blueprint('activities', __name__, url_prefix='/api/activities')


@activities_bp.route('/classroom/<classroom_id>')
@login_required
def list_for_classroom(classroom_id):
    database = get_db()
    classroom_for_viewer(database, classroom_id, current_user_id())
    role = session.get('role')
    activities = database.activities.for_classroom(classroom_id, published_only=(role == 'student'))
    return jsonify({
        'count': len(activities),
        'activities': [serialize(a, current_user_id(), role) for a in activities],
    })


@activities_bp.route('/<activity_id>')
@login_required
def get_activity(activity_id):
    database = get_db()
    role = session.get('role')
    activity = load_for_viewer(database.activities, database, activity_id, current_user_id(), role, 'activity')
    return jsonify({'activity': serialize(activity, current_user_id(), role)})


@activities_bp.route('', methods=['POST'])
@teacher_required
def create_activity():
    data = request.get_json(silent=True) or {}
    if not data.get('classroom_id') or not data.get('title') or not data.get('description') \
            or not data.get('instructions'):
        return jsonify({'error': 'Classroom ID, title, description, and instructions are required'}), 400

    database = get_db()
    classroom = owned_classroom(database, data['classroom_id'], current_user_id(), 'activities')
    activity = database.activities.create(
        new_activity(generate_activity_id(), classroom, current_user_id(), data)
    )
    logger.info(f"New activity created: {activity['title']} in {classroom['name']}")
    notify_published(database, activity)
    return jsonify({'message': 'Activity created successfully',
                    'activity': serialize(activity, current_user_id(), 'teacher')}), 201


@activities_bp.route('/<activity_id>', methods=['PUT'])
@teacher_required
def update_activity(activity_id):
    database = get_db()
    activity = database.activities.get(activity_id)
    require_owner(activity, current_user_id(), 'update', 'activities')

    data = request.get_json(silent=True) or {}
    updated = database.activities.mutate(activity_id, lambda a: update_classwork(a, data))
    if updated.get('is_published') and not activity.get('is_published'):
        notify_published(database, updated)
    logger.info(f"Activity updated: {updated['title']}")
    return jsonify({'message': 'Activity updated successfully',
                    'activity': serialize(updated, current_user_id(), 'teacher')})


@activities_bp.route('/<activity_id>', methods=['DELETE'])
@teacher_required
def delete_activity(activity_id):
    database = get_db()
    activity = database.activities.get(activity_id)
    require_owner(activity, current_user_id(), 'delete', 'activities')
    database.activities.delete_one({'activity_id': activity_id})
    logger.info(f"Activity deleted: {activity['title']}")
    return jsonify({'message': 'Activity deleted successfully'})


# ============================================================================
# SUBMISSIONS
# ============================================================================

@activities_bp.route('/<activity_id>/submit', methods=['POST'])
@limiter.limit("20 per hour")
@student_required
def submit_activity(activity_id):
    """
    Hand in an activity. Compiler activities take ``code_base``; others take
    ``content`` plus uploaded ``attachments``. Code gets AI feedback when the
    model is reachable.
    """
    database = get_db()
    student_id = current_user_id()
    activity = load_for_submitter(database.activities, database, activity_id, student_id, 'activity')

    data = request.get_json(silent=True) or {}
    if activity.get('requires_compiler'):
        content, code_base, attachments = '', data.get('code_base') or '', []
    else:
        content, code_base, attachments = data.get('content') or '', None, data.get('attachments') or []

    try:
        activity = database.activities.mutate(
            activity_id,
            lambda a: submit(a, student_id, content=content, code_base=code_base, attachments=attachments),
        )
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"Error submitting activity {activity_id} for {student_id}: {e}")
        return jsonify({'error': 'Failed to submit activity'}), 500

    logger.info(f"Activity submitted: {activity['title']} by {student_id}")
    ai_feedback = None
    if code_base and get_ai().is_configured:
        try:
            ai_feedback = generate_activity_feedback(get_ai(), activity, code_base)
            database.activities.mutate(
                activity_id, lambda a: attach_ai_feedback(a, student_id, ai_feedback['feedback'])
            )
        except ExternalServiceError as e:
            logger.warning(f"AI feedback skipped for activity {activity_id}: {e.message}")

    notify_submitted(database, activity, student_id)
    return jsonify({'message': 'Activity submitted successfully', 'ai_feedback': ai_feedback})


@activities_bp.route('/<activity_id>/unsubmit', methods=['POST'])
@student_required
def unsubmit_activity(activity_id):
    database = get_db()
    student_id = current_user_id()
    load_for_submitter(database.activities, database, activity_id, student_id, 'activity')
    database.activities.mutate(activity_id, lambda a: unsubmit(a, student_id))
    logger.info(f"Activity {activity_id} unsubmitted by {student_id}")
    return jsonify({'message': 'Activity unsubmitted successfully'})


@activities_bp.route('/<activity_id>/grade/<student_id>', methods=['POST'])
@teacher_required
def grade_activity(activity_id, student_id):
    database = get_db()
    activity = database.activities.get(activity_id)
    require_owner(activity, current_user_id(), 'grade', 'activities')

    data = request.get_json(silent=True) or {}
    activity = database.activities.mutate(
        activity_id,
        lambda a: grade_submission(a, student_id, data.get('grade'), data.get('feedback') or ''),
    )
    logger.info(f"Activity graded: {activity['title']} - Student: {student_id}")
    notify_graded(database, activity, student_id)
    return jsonify({'message': 'Activity graded successfully'})
