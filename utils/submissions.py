"""
Submission and grading lifecycle shared by activities and assignments.

Entities are plain dicts from the ``activities`` / ``assignments``
collections. Functions return an updated copy and leave the input untouched.
"""
import copy
import logging
from datetime import datetime

from errors import DuplicateSubmissionError, SubmissionNotFoundError, ValidationError
from utils.auth import generate_submission_id

logger = logging.getLogger(__name__)

STATUS_SUBMITTED = 'submitted'
STATUS_GRADED = 'graded'
STATUS_RETURNED = 'returned'


def find_submission(entity: dict, student_id: str) -> dict:
    for submission in entity.get('submissions', []):
        if submission.get('student_id') == student_id:
            return submission
    return None


def is_overdue(entity: dict, now: datetime = None) -> bool:
    due_date = entity.get('due_date')
    if not due_date:
        return False
    return (now or datetime.utcnow()) > due_date


def submit(entity: dict, student_id: str, content: str = '', code_base: str = None,
           attachments: list = None, now: datetime = None) -> dict:
    """
    Append a submission for a student.

    Raises:
        DuplicateSubmissionError: the student already has a submission.
    """
    if not student_id:
        raise ValidationError("Student is required")
    if find_submission(entity, student_id) is not None:
        raise DuplicateSubmissionError("You have already submitted this work")

    now = now or datetime.utcnow()
    if is_overdue(entity, now):
        logger.info(f"Late submission by {student_id} for {entity.get('title')}")

    updated = copy.deepcopy(entity)
    updated.setdefault('submissions', []).append({
        'submission_id': generate_submission_id(),
        'student_id': student_id,
        'submitted_at': now,
        'content': content or '',
        'code_base': code_base or '',
        'attachments': list(attachments or []),
        'grade': None,
        'feedback': '',
        'ai_feedback': None,
        'ai_score': None,
        'status': STATUS_SUBMITTED,
    })
    return updated


def unsubmit(entity: dict, student_id: str) -> dict:
    """Withdraw a student's submission."""
    if find_submission(entity, student_id) is None:
        raise SubmissionNotFoundError()
    updated = copy.deepcopy(entity)
    updated['submissions'] = [
        s for s in updated.get('submissions', []) if s.get('student_id') != student_id
    ]
    return updated


def grade_submission(entity: dict, student_id: str, grade, feedback: str = '',
                     now: datetime = None) -> dict:
    """
    Record a teacher's grade.

    Raises:
        SubmissionNotFoundError: the student has not submitted.
        ValidationError: grade is negative or above the entity's points.
    """
    if find_submission(entity, student_id) is None:
        raise SubmissionNotFoundError()
    if grade is None or isinstance(grade, bool) or not isinstance(grade, (int, float)):
        raise ValidationError("Valid grade is required")
    if grade < 0:
        raise ValidationError("Valid grade is required")
    points = entity.get('points')
    # Zero points means the work has no maximum
    if points and grade > points:
        raise ValidationError(f"Grade cannot exceed {points} points")

    updated = copy.deepcopy(entity)
    submission = find_submission(updated, student_id)
    submission['grade'] = grade
    submission['feedback'] = feedback or ''
    submission['status'] = STATUS_GRADED
    submission['graded_at'] = now or datetime.utcnow()
    return updated


def return_submission(entity: dict, student_id: str) -> dict:
    """Hand a graded submission back to the student."""
    if find_submission(entity, student_id) is None:
        raise SubmissionNotFoundError()
    updated = copy.deepcopy(entity)
    find_submission(updated, student_id)['status'] = STATUS_RETURNED
    return updated


def attach_ai_feedback(entity: dict, student_id: str, feedback: str, score=None) -> dict:
    if find_submission(entity, student_id) is None:
        raise SubmissionNotFoundError()
    updated = copy.deepcopy(entity)
    submission = find_submission(updated, student_id)
    submission['ai_feedback'] = feedback
    submission['ai_score'] = score
    return updated


def submission_summary(entity: dict) -> dict:
    """Counts for the teacher's overview."""
    submissions = entity.get('submissions', [])
    graded = [s for s in submissions if s.get('status') in (STATUS_GRADED, STATUS_RETURNED)]
    return {
        'total_students': len(entity.get('students', [])),
        'submitted': len(submissions),
        'graded': len(graded),
        'pending': len(submissions) - len(graded),
    }
