import logging

from errors import ValidationError
from utils.languages import Language

logger = logging.getLogger(__name__)

EXPERTISE_LEVELS = ('no-experience', 'beginner', 'intermediate', 'advanced', 'expert')
SCORE_FIELDS = ('total', 'easy', 'medium', 'hard', 'percentage')
TEXT_MAX = 1000


def _expertise(value, label: str):
    if value in (None, ''):
        return None
    value = str(value).strip().lower()
    if value not in EXPERTISE_LEVELS:
        raise ValidationError(f"Invalid {label} expertise level")
    return value


def _questions(value, label: str):
    """Quiz answers plus the score the client computed from its answer key."""
    if not value:
        return None
    if not isinstance(value, dict):
        raise ValidationError(f"Invalid {label} questions")

    answers = value.get('answers') or []
    if not isinstance(answers, list) or not all(isinstance(a, int) and not isinstance(a, bool) for a in answers):
        raise ValidationError(f"{label} answers must be a list of option numbers")

    score = {}
    for field in SCORE_FIELDS:
        raw = (value.get('score') or {}).get(field, 0)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw < 0:
            raise ValidationError(f"Invalid {label} score")
        score[field] = raw
    if score['percentage'] > 100:
        raise ValidationError(f"{label} score percentage cannot exceed 100")
    return {'answers': answers, 'score': score}


def build_survey(data: dict) -> tuple:
    """
    Validate a survey submission.

    Returns:
        (Language, fields) ready for ``SurveyRepository.upsert``
    """
    language = Language.parse(data.get('primary_language'))
    fields = {
        'primary_language': language.value,
        'course_interest': (data.get('course_interest') or '').strip()[:TEXT_MAX],
        'learning_goals': (data.get('learning_goals') or '').strip()[:TEXT_MAX],
        'java_expertise': _expertise(data.get('java_expertise'), 'Java'),
        'python_expertise': _expertise(data.get('python_expertise'), 'Python'),
        'java_questions': _questions(data.get('java_questions'), 'Java'),
        'python_questions': _questions(data.get('python_questions'), 'Python'),
        'completed': True,
    }
    if fields[f'{language.value}_expertise'] is None:
        raise ValidationError(f"{language.display_name} expertise is required")
    return language, fields
