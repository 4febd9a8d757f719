"""
Activities and assignments: building, validating and editing the documents
a teacher publishes to a classroom. Submissions live in utils.submissions.
"""
import copy
from datetime import datetime, timezone

from errors import ValidationError
from utils.languages import Language

TITLE_MAX = 200
DESCRIPTION_MAX = 2000
INSTRUCTIONS_MAX = 5000

ACTIVITY_DEFAULT_POINTS = 100
ASSIGNMENT_DEFAULT_POINTS = 0


def parse_due_date(value):
    """ISO-8601 string (or datetime) to a naive UTC datetime; empty means no due date."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError("Invalid due date")
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _parse_points(value, default: int):
    if value in (None, ''):
        return default
    if isinstance(value, bool):
        raise ValidationError("Points must be a number")
    try:
        points = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Points must be a number")
    if points < 0:
        raise ValidationError("Points cannot be negative")
    return int(points) if points.is_integer() else points


def _parse_duration(value) -> dict:
    value = value or {}
    try:
        hours = int(value.get('hours') or 0)
        minutes = int(value.get('minutes') or 0)
    except (TypeError, ValueError, AttributeError):
        raise ValidationError("Duration must have numeric hours and minutes")
    if hours < 0:
        raise ValidationError("Hours cannot be negative")
    if minutes < 0 or minutes > 59:
        raise ValidationError("Minutes must be between 0 and 59")
    return {'hours': hours, 'minutes': minutes}


def _check_text(label: str, value, limit: int, required: bool = False) -> str:
    text = (value or '').strip()
    if required and not text:
        raise ValidationError(f"{label} is required")
    if len(text) > limit:
        raise ValidationError(f"{label} cannot exceed {limit} characters")
    return text


def _roster(classroom: dict, now: datetime) -> list:
    return [{'student_id': s['student_id'], 'assigned_at': now} for s in classroom.get('students', [])]


def _base_document(classroom: dict, teacher_id: str, data: dict, now: datetime,
                   default_points: int, require_instructions: bool) -> dict:
    return {
        'classroom_id': classroom['classroom_id'],
        'teacher_id': teacher_id,
        'title': _check_text('Title', data.get('title'), TITLE_MAX, required=True),
        'description': _check_text('Description', data.get('description'), DESCRIPTION_MAX, required=True),
        'instructions': _check_text('Instructions', data.get('instructions'), INSTRUCTIONS_MAX,
                                    required=require_instructions),
        'due_date': parse_due_date(data.get('due_date')),
        'points': _parse_points(data.get('points'), default_points),
        'attachments': list(data.get('attachments') or []),
        'students': _roster(classroom, now),
        'is_published': bool(data.get('is_published', True)),
        'allow_late_submission': bool(data.get('allow_late_submission', False)),
        'submissions': [],
        'revision': 0,
        'created_at': now,
        'updated_at': now,
    }


def new_activity(activity_id: str, classroom: dict, teacher_id: str, data: dict, now: datetime = None) -> dict:
    """Activity for every student currently in the classroom."""
    now = now or datetime.utcnow()
    activity = _base_document(classroom, teacher_id, data, now, ACTIVITY_DEFAULT_POINTS,
                              require_instructions=True)
    activity['activity_id'] = activity_id
    activity['duration'] = _parse_duration(data.get('duration'))
    activity['requires_compiler'] = bool(data.get('requires_compiler', False))
    activity['compiler_language'] = Language.parse(data.get('compiler_language') or 'python').value
    return activity


def new_assignment(assignment_id: str, classroom: dict, teacher_id: str, data: dict, now: datetime = None) -> dict:
    now = now or datetime.utcnow()
    assignment = _base_document(classroom, teacher_id, data, now, ASSIGNMENT_DEFAULT_POINTS,
                                require_instructions=False)
    assignment['assignment_id'] = assignment_id
    assignment['type'] = data.get('type')
    return assignment


def update_classwork(entity: dict, data: dict) -> dict:
    """Apply the fields present in ``data``; unknown keys are ignored."""
    updated = copy.deepcopy(entity)
    if data.get('title'):
        updated['title'] = _check_text('Title', data['title'], TITLE_MAX, required=True)
    if data.get('description'):
        updated['description'] = _check_text('Description', data['description'], DESCRIPTION_MAX, required=True)
    if 'instructions' in data:
        updated['instructions'] = _check_text('Instructions', data['instructions'], INSTRUCTIONS_MAX)
    if 'due_date' in data:
        updated['due_date'] = parse_due_date(data['due_date'])
    if 'points' in data:
        updated['points'] = _parse_points(data['points'], updated.get('points', 0))
    if 'is_published' in data:
        updated['is_published'] = bool(data['is_published'])
    if 'allow_late_submission' in data:
        updated['allow_late_submission'] = bool(data['allow_late_submission'])
    if 'attachments' in data:
        updated['attachments'] = list(data['attachments'] or [])

    # Activity-only fields
    if 'activity_id' in updated:
        if 'duration' in data:
            updated['duration'] = _parse_duration(data['duration'])
        if 'requires_compiler' in data:
            updated['requires_compiler'] = bool(data['requires_compiler'])
        if data.get('compiler_language'):
            updated['compiler_language'] = Language.parse(data['compiler_language']).value
    elif 'type' in data:
        updated['type'] = data['type']
    return updated
