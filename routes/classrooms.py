import logging

from flask import Blueprint, jsonify, request, session

from extensions import current_user_id, get_db, login_required, student_required, teacher_required
from routes import public
from utils.auth import generate_classroom_id
from utils.classrooms import archive, is_member, new_classroom, remove_student, update_classroom

logger = logging.getLogger(__name__)

classrooms_bp = Blueprint('classrooms', __name__, url_prefix='/api/classrooms')


def _can_view(classroom: dict, user_id: str) -> bool:
    return classroom['teacher_id'] == user_id or is_member(classroom, user_id)


@classrooms_bp.route('/teacher')
@teacher_required
def teacher_classrooms():
    include_archived = request.args.get('include_archived') == 'true'
    classrooms = get_db().classrooms.for_teacher(current_user_id(), include_archived=include_archived)
    return jsonify({'count': len(classrooms), 'classrooms': [public(c) for c in classrooms]})


@classrooms_bp.route('/student')
@student_required
def student_classrooms():
    classrooms = get_db().classrooms.for_student(current_user_id())
    return jsonify({'count': len(classrooms), 'classrooms': [public(c) for c in classrooms]})


@classrooms_bp.route('/<classroom_id>')
@login_required
def get_classroom(classroom_id):
    classroom = get_db().classrooms.get(classroom_id)
    if not _can_view(classroom, current_user_id()):
        return jsonify({'error': 'Access denied to this classroom'}), 403
    return jsonify({'classroom': public(classroom)})


@classrooms_bp.route('', methods=['POST'])
@teacher_required
def create_classroom():
    data = request.get_json(silent=True) or {}
    if not (data.get('name') or '').strip():
        return jsonify({'error': 'Classroom name is required'}), 400

    classroom = new_classroom(
        generate_classroom_id(),
        current_user_id(),
        data['name'],
        description=data.get('description') or '',
        year_level_section=data.get('year_level_section') or '',
    )
    classroom = get_db().classrooms.create(classroom)
    logger.info(f"Classroom '{classroom['name']}' created by {session.get('name')}")
    return jsonify({'message': 'Classroom created successfully', 'classroom': public(classroom)}), 201


@classrooms_bp.route('/<classroom_id>', methods=['PUT'])
@teacher_required
def update(classroom_id):
    database = get_db()
    classroom = database.classrooms.get(classroom_id)
    if classroom['teacher_id'] != current_user_id():
        return jsonify({'error': 'Access denied. You can only update your own classrooms.'}), 403

    data = request.get_json(silent=True) or {}
    updated = database.classrooms.mutate(classroom_id, lambda c: update_classroom(
        c,
        name=data.get('name'),
        description=data.get('description'),
        year_level_section=data.get('year_level_section'),
        settings=data.get('settings'),
    ))
    return jsonify({'message': 'Classroom updated successfully', 'classroom': public(updated)})


@classrooms_bp.route('/<classroom_id>', methods=['DELETE'])
@teacher_required
def delete(classroom_id):
    """Archive the classroom; its code stops working but the data is kept."""
    database = get_db()
    classroom = database.classrooms.get(classroom_id)
    if classroom['teacher_id'] != current_user_id():
        return jsonify({'error': 'Access denied. You can only delete your own classrooms.'}), 403

    database.classrooms.mutate(classroom_id, archive)
    logger.info(f"Classroom {classroom_id} archived")
    return jsonify({'message': 'Classroom archived successfully'})


@classrooms_bp.route('/join', methods=['POST'])
@student_required
def join():
    data = request.get_json(silent=True) or {}
    code = (data.get('code') or '').strip()
    if not code:
        return jsonify({'error': 'Classroom code is required'}), 400

    classroom = get_db().classrooms.join_by_code(code, current_user_id())
    logger.info(f"Student {current_user_id()} joined classroom {classroom['classroom_id']}")
    return jsonify({'message': 'Successfully joined classroom', 'classroom': public(classroom)})


@classrooms_bp.route('/<classroom_id>/students/<student_id>', methods=['DELETE'])
@teacher_required
def remove(classroom_id, student_id):
    database = get_db()
    classroom = database.classrooms.get(classroom_id)
    if classroom['teacher_id'] != current_user_id():
        return jsonify({'error': 'Access denied'}), 403

    updated = database.classrooms.mutate(classroom_id, lambda c: remove_student(c, student_id))
    return jsonify({'message': 'Student removed successfully', 'classroom': public(updated)})
