"""
Forward migration of mini-project records.

Older records carried flat project lists (``available_projects`` or
top-level ``java_projects`` / ``python_projects``) and camelCase keys from the
first version of the portal. ``migrate_record`` folds them into the weekly
history layout used by ``utils.mini_projects``; ``dedupe_record`` trims each
week to the newest projects per language.
"""
import copy
import logging
import re
from datetime import datetime

from errors import ValidationError
from utils.languages import Language
from utils.mini_projects import LANGUAGE_KEYS
from utils.weeks import WEEK_LENGTH

logger = logging.getLogger(__name__)

DEFAULT_KEEP_PER_LANGUAGE = 6

LEGACY_LIST_KEYS = ('available_projects', 'generated_projects', 'java_projects', 'python_projects')

_ACRONYM_BOUNDARY = re.compile(r'([A-Z]+)([A-Z][a-z])')
_CAMEL_BOUNDARY = re.compile(r'([a-z0-9])([A-Z])')


def to_snake_case(key: str) -> str:
    """userId -> user_id, isAIGenerated -> is_ai_generated"""
    if key.startswith('_'):
        return key
    key = _ACRONYM_BOUNDARY.sub(r'\1_\2', key)
    return _CAMEL_BOUNDARY.sub(r'\1_\2', key).lower()


def snake_case_keys(value):
    """Recursively rename camelCase dict keys."""
    if isinstance(value, dict):
        return {to_snake_case(k): snake_case_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [snake_case_keys(v) for v in value]
    return value


def needs_migration(record: dict) -> bool:
    if any(key in record for key in LEGACY_LIST_KEYS):
        return True
    if any(k != to_snake_case(k) for k in record):
        return True
    return 'revision' not in record


def _normalize_project(project: dict, week_number: int, fallback_language: Language = None) -> dict:
    """Bring a legacy project into the recommendation shape; None when the language is unknown."""
    try:
        language = Language.parse(project.get('language') or fallback_language)
    except ValidationError:
        logger.warning(f"Dropping legacy project with language {project.get('language')!r}: "
                       f"{project.get('title')}")
        return None
    normalized = dict(project)
    normalized['language'] = language.value
    normalized.setdefault('week_number', week_number)
    normalized.setdefault('is_ai_generated', True)
    for field in ('requirements', 'sample_output', 'rubrics', 'description'):
        normalized.setdefault(field, '')
    return normalized


def migrate_record(record: dict, now: datetime = None) -> dict:
    """Return the record in the current layout. Already-migrated records come back unchanged."""
    now = now or datetime.utcnow()
    migrated = snake_case_keys(copy.deepcopy(record))

    legacy = {Language.JAVA: [], Language.PYTHON: []}
    for project in migrated.pop('available_projects', None) or []:
        normalized = _normalize_project(project, migrated.get('current_week_number') or 1)
        if normalized:
            legacy[Language(normalized['language'])].append(normalized)
    migrated.pop('generated_projects', None)
    for language, key in LANGUAGE_KEYS.items():
        for project in migrated.pop(key, None) or []:
            normalized = _normalize_project(project, migrated.get('current_week_number') or 1, language)
            if normalized:
                legacy[Language(normalized['language'])].append(normalized)

    history = migrated.setdefault('weekly_project_history', [])
    for week in history:
        for key in LANGUAGE_KEYS.values():
            week.setdefault(key, [])

    week_number = migrated.get('current_week_number') or 1
    if legacy[Language.JAVA] or legacy[Language.PYTHON]:
        week = next((w for w in history if w.get('week_number') == week_number), None)
        if week is None:
            start = migrated.get('week_start_date') or now
            week = {
                'week_number': week_number,
                'week_start_date': start,
                'week_end_date': start + WEEK_LENGTH,
                'java_projects': [],
                'python_projects': [],
                'generated_at': migrated.get('last_generation_date') or now,
            }
            history.append(week)
            history.sort(key=lambda w: w['week_number'])
        for language, key in LANGUAGE_KEYS.items():
            week[key].extend(legacy[language])
        logger.info(f"Moved {len(legacy[Language.JAVA])} java and {len(legacy[Language.PYTHON])} "
                    f"python legacy projects into week {week_number} for user {migrated.get('user_id')}")

    if history:
        migrated['current_week_number'] = max(migrated.get('current_week_number') or 0, week_number)
    else:
        migrated['current_week_number'] = migrated.get('current_week_number') or 0

    migrated.setdefault('completed_tasks', [])
    migrated.setdefault('week_start_date', None)
    migrated.setdefault('last_week_completed_count', 0)
    migrated.setdefault('generation_enabled', False)
    migrated.setdefault('last_generation_date', None)
    migrated.setdefault('revision', 0)
    return migrated


def _newest_unique(projects: list, keep: int) -> list:
    ordered = sorted(projects, key=lambda p: p.get('created_at') or datetime.min, reverse=True)
    seen = set()
    result = []
    for project in ordered:
        title = (project.get('title') or '').strip().lower()
        if title in seen:
            continue
        seen.add(title)
        result.append(project)
        if len(result) >= keep:
            break
    return result


def dedupe_record(record: dict, keep_per_language: int = DEFAULT_KEEP_PER_LANGUAGE) -> tuple:
    """
    Drop repeated titles and keep the newest projects per language in every week.

    Returns:
        (updated_record, removed_count)
    """
    updated = copy.deepcopy(record)
    removed = 0
    for week in updated.get('weekly_project_history', []):
        for key in LANGUAGE_KEYS.values():
            projects = week.get(key, [])
            kept = _newest_unique(projects, keep_per_language)
            removed += len(projects) - len(kept)
            week[key] = kept
    return updated, removed
