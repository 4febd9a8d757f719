import logging

from flask import Blueprint, jsonify, request, session

from errors import PortalError
from extensions import current_user_id, get_db, limiter, login_required, student_required, teacher_required
from routes.classwork import (classroom_for_viewer, load_for_submitter, load_for_viewer, notify_graded,
                              notify_published, notify_submitted, owned_classroom, require_owner, serialize)
from utils.auth import generate_assignment_id
from utils.classwork import new_assignment, update_classwork
from utils.submissions import grade_submission, return_submission, submit

logger = logging.getLogger(__name__)

assignments_bp = Blueprint('assignments', __name__, url_prefix='/api/assignments')


@assignments_bp.route('/classroom/<classroom_id>')
@login_required
def list_for_classroom(classroom_id):
    database = get_db()
    classroom_for_viewer(database, classroom_id, current_user_id())
    role = session.get('role')
    assignments = database.assignments.for_classroom(classroom_id, published_only=(role == 'student'))
    return jsonify({
        'count': len(assignments),
        'assignments': [serialize(a, current_user_id(), role) for a in assignments],
    })


@assignments_bp.route('/<assignment_id>')
@login_required
def get_assignment(assignment_id):
    database = get_db()
    role = session.get('role')
    assignment = load_for_viewer(database.assignments, database, assignment_id, current_user_id(), role,
                                 'assignment')
    return jsonify({'assignment': serialize(assignment, current_user_id(), role)})


@assignments_bp.route('', methods=['POST'])
@teacher_required
def create_assignment():
    """Create an assignment for everyone currently enrolled in the classroom"""
    data = request.get_json(silent=True) or {}
    if not data.get('classroom_id') or not data.get('title') or not data.get('description'):
        return jsonify({'error': 'Classroom ID, title, and description are required'}), 400

    database = get_db()
    classroom = owned_classroom(database, data['classroom_id'], current_user_id(), 'assignments')
    assignment = database.assignments.create(
        new_assignment(generate_assignment_id(), classroom, current_user_id(), data)
    )
    logger.info(f"New assignment created: {assignment['title']} in {classroom['name']}")
    notify_published(database, assignment)
    return jsonify({'message': 'Assignment created successfully',
                    'assignment': serialize(assignment, current_user_id(), 'teacher')}), 201


@assignments_bp.route('/<assignment_id>', methods=['PUT'])
@teacher_required
def update_assignment(assignment_id):
    database = get_db()
    assignment = database.assignments.get(assignment_id)
    require_owner(assignment, current_user_id(), 'update', 'assignments')

    data = request.get_json(silent=True) or {}
    updated = database.assignments.mutate(assignment_id, lambda a: update_classwork(a, data))
    if updated.get('is_published') and not assignment.get('is_published'):
        notify_published(database, updated)
    return jsonify({'message': 'Assignment updated successfully',
                    'assignment': serialize(updated, current_user_id(), 'teacher')})


@assignments_bp.route('/<assignment_id>', methods=['DELETE'])
@teacher_required
def delete_assignment(assignment_id):
    database = get_db()
    assignment = database.assignments.get(assignment_id)
    require_owner(assignment, current_user_id(), 'delete', 'assignments')
    database.assignments.delete_one({'assignment_id': assignment_id})
    logger.info(f"Assignment deleted: {assignment['title']}")
    return jsonify({'message': 'Assignment deleted successfully'})


# ============================================================================
# SUBMISSIONS
# ============================================================================

@assignments_bp.route('/<assignment_id>/submit', methods=['POST'])
@limiter.limit("20 per hour")
@student_required
def submit_assignment(assignment_id):
    database = get_db()
    student_id = current_user_id()
    load_for_submitter(database.assignments, database, assignment_id, student_id, 'assignment')

    data = request.get_json(silent=True) or {}
    try:
        assignment = database.assignments.mutate(
            assignment_id,
            lambda a: submit(a, student_id, content=data.get('content') or '',
                             attachments=data.get('attachments') or []),
        )
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"Error submitting assignment {assignment_id} for {student_id}: {e}")
        return jsonify({'error': 'Failed to submit assignment'}), 500

    logger.info(f"Assignment submitted: {assignment['title']} by {student_id}")
    notify_submitted(database, assignment, student_id)
    return jsonify({'message': 'Assignment submitted successfully'})


@assignments_bp.route('/<assignment_id>/grade/<student_id>', methods=['POST'])
@teacher_required
def grade_assignment(assignment_id, student_id):
    database = get_db()
    assignment = database.assignments.get(assignment_id)
    require_owner(assignment, current_user_id(), 'grade', 'assignments')

    data = request.get_json(silent=True) or {}
    assignment = database.assignments.mutate(
        assignment_id,
        lambda a: grade_submission(a, student_id, data.get('grade'), data.get('feedback') or ''),
    )
    logger.info(f"Assignment graded: {assignment['title']} - Student: {student_id}")
    notify_graded(database, assignment, student_id)
    return jsonify({'message': 'Assignment graded successfully'})


@assignments_bp.route('/<assignment_id>/return/<student_id>', methods=['POST'])
@teacher_required
def return_assignment(assignment_id, student_id):
    database = get_db()
    assignment = database.assignments.get(assignment_id)
    require_owner(assignment, current_user_id(), 'return', 'assignments')
    database.assignments.mutate(assignment_id, lambda a: return_submission(a, student_id))
    return jsonify({'message': 'Assignment returned to student'})
