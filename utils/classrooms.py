import copy
import secrets
import string
from datetime import datetime

from errors import ValidationError

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8

NAME_MAX = 100
DESCRIPTION_MAX = 500
SECTION_MAX = 50

DEFAULT_SETTINGS = {
    'allow_student_posts': True,
    'require_approval_to_join': False,
}


def generate_code() -> str:
    """Random 8-character join code; uniqueness is checked by the repository."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str) -> str:
    return (code or '').strip().upper()


def _check_lengths(name: str = None, description: str = None, section: str = None):
    if name is not None:
        if not name.strip():
            raise ValidationError("Classroom name is required")
        if len(name) > NAME_MAX:
            raise ValidationError(f"Classroom name cannot exceed {NAME_MAX} characters")
    if description is not None and len(description) > DESCRIPTION_MAX:
        raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX} characters")
    if section is not None and len(section) > SECTION_MAX:
        raise ValidationError(f"Year level and section cannot exceed {SECTION_MAX} characters")


def new_classroom(classroom_id: str, teacher_id: str, name: str, description: str = '',
                  year_level_section: str = '', now: datetime = None) -> dict:
    """Classroom document without a code; the repository assigns one on insert."""
    _check_lengths(name, description, year_level_section)
    now = now or datetime.utcnow()
    return {
        'classroom_id': classroom_id,
        'name': name.strip(),
        'description': (description or '').strip(),
        'year_level_section': (year_level_section or '').strip(),
        'teacher_id': teacher_id,
        'students': [],
        'is_active': True,
        'settings': dict(DEFAULT_SETTINGS),
        'revision': 0,
        'created_at': now,
        'updated_at': now,
    }


def is_member(classroom: dict, student_id: str) -> bool:
    return any(s.get('student_id') == student_id for s in classroom.get('students', []))


def add_student(classroom: dict, student_id: str, now: datetime = None) -> dict:
    """Add a student; adding an existing member is a no-op."""
    updated = copy.deepcopy(classroom)
    if not is_member(updated, student_id):
        updated.setdefault('students', []).append({
            'student_id': student_id,
            'joined_at': now or datetime.utcnow(),
        })
    return updated


def remove_student(classroom: dict, student_id: str) -> dict:
    updated = copy.deepcopy(classroom)
    updated['students'] = [s for s in updated.get('students', []) if s.get('student_id') != student_id]
    return updated


def update_classroom(classroom: dict, name: str = None, description: str = None,
                     year_level_section: str = None, settings: dict = None) -> dict:
    """Apply the given fields; settings are merged into the existing ones."""
    _check_lengths(name, description, year_level_section)
    updated = copy.deepcopy(classroom)
    if name is not None:
        updated['name'] = name.strip()
    if description is not None:
        updated['description'] = description.strip()
    if year_level_section is not None:
        updated['year_level_section'] = year_level_section.strip()
    if settings:
        merged = dict(updated.get('settings') or DEFAULT_SETTINGS)
        merged.update({k: bool(v) for k, v in settings.items() if k in DEFAULT_SETTINGS})
        updated['settings'] = merged
    return updated


def archive(classroom: dict) -> dict:
    updated = copy.deepcopy(classroom)
    updated['is_active'] = False
    return updated
