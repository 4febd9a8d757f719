"""
Helpers shared by the activity and assignment blueprints: access checks,
serialization per role and the notification side effects of submit/grade.
"""
import logging

from errors import ForbiddenError, NotFoundError
from extensions import get_mailer
from routes import public
from utils.classrooms import is_member
from utils.notifications import notify_feedback_ready, notify_submission_ready, notify_work_published
from utils.submissions import find_submission, submission_summary

logger = logging.getLogger(__name__)


def owned_classroom(database, classroom_id: str, teacher_id: str, plural: str) -> dict:
    classroom = database.classrooms.get(classroom_id)
    if classroom['teacher_id'] != teacher_id:
        raise ForbiddenError(f"You can only create {plural} in your own classrooms")
    return classroom


def require_owner(entity: dict, teacher_id: str, action: str, plural: str):
    if entity['teacher_id'] != teacher_id:
        raise ForbiddenError(f"You can only {action} your own {plural}")


def classroom_for_viewer(database, classroom_id: str, user_id: str) -> dict:
    classroom = database.classrooms.get(classroom_id)
    if classroom['teacher_id'] != user_id and not is_member(classroom, user_id):
        raise ForbiddenError("Access denied to this classroom")
    return classroom


def load_for_viewer(repository, database, entity_id: str, user_id: str, role: str, noun: str) -> dict:
    """Fetch work the user may see: the owning teacher, or an enrolled student once published."""
    entity = repository.get(entity_id)
    if entity['teacher_id'] == user_id:
        return entity
    classroom = database.classrooms.find_one({'classroom_id': entity['classroom_id']})
    if classroom is None or not is_member(classroom, user_id):
        raise ForbiddenError(f"Access denied to this {noun}")
    if role == 'student' and not entity.get('is_published'):
        raise ForbiddenError(f"This {noun} is not yet published")
    return entity


def load_for_submitter(repository, database, entity_id: str, student_id: str, noun: str) -> dict:
    entity = repository.get(entity_id)
    classroom = database.classrooms.find_one({'classroom_id': entity['classroom_id']})
    if classroom is None:
        raise NotFoundError("Classroom not found")
    if not is_member(classroom, student_id):
        raise ForbiddenError("You are not enrolled in this classroom")
    if not entity.get('is_published'):
        raise ForbiddenError(f"This {noun} is not yet published")
    return entity


def serialize(entity: dict, user_id: str, role: str) -> dict:
    """Teachers see every submission plus counts; a student sees only their own."""
    data = public(entity)
    if role == 'teacher':
        data['summary'] = submission_summary(entity)
    else:
        own = find_submission(entity, user_id)
        data['submissions'] = [own] if own else []
    return data


# ============================================================================
# NOTIFICATIONS
# ============================================================================

def notify_submitted(database, entity: dict, student_id: str) -> bool:
    student = database.users.find_one({'user_id': student_id}) or {}
    teacher = database.users.find_one({'user_id': entity['teacher_id']}) or {}
    submission = find_submission(entity, student_id) or {}
    return notify_submission_ready(get_mailer(), submission, entity, student, teacher)


def notify_graded(database, entity: dict, student_id: str) -> bool:
    student = database.users.find_one({'user_id': student_id}) or {}
    submission = find_submission(entity, student_id) or {}
    return notify_feedback_ready(get_mailer(), entity, student, submission.get('grade'))


def notify_published(database, entity: dict) -> int:
    if not entity.get('is_published'):
        return 0
    student_ids = [s['student_id'] for s in entity.get('students', [])]
    if not student_ids:
        return 0
    students = database.users.find({'user_id': {'$in': student_ids}})
    teacher = database.users.find_one({'user_id': entity['teacher_id']}) or {}
    return notify_work_published(get_mailer(), entity, students, teacher)
