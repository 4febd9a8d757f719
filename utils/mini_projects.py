"""
Weekly mini-project history.

Every function here works on a plain mini-project record dict (as stored in
the ``mini_projects`` collection) and returns a new dict; persistence is left
to ``models.MiniProjectRepository``.

Record shape::

    {
        'user_id': 'U1A2B3C',
        'completed_tasks': [...],
        'week_start_date': datetime | None,
        'last_week_completed_count': 0,
        'generation_enabled': False,
        'last_generation_date': datetime | None,
        'current_week_number': 0,
        'weekly_project_history': [
            {'week_number': 1, 'week_start_date': ..., 'week_end_date': ...,
             'java_projects': [...], 'python_projects': [...], 'generated_at': ...}
        ],
        'revision': 0,
    }
"""
import copy
import logging
from datetime import datetime

from errors import ConflictError, NotFoundError, ValidationError
from utils.auth import generate_task_id
from utils.languages import Language
from utils.weeks import WEEK_LENGTH

logger = logging.getLogger(__name__)

TASK_PAUSED = 'paused'
TASK_SUBMITTED = 'submitted'
TASK_COMPLETED = 'completed'
TASK_STATUSES = (TASK_PAUSED, TASK_SUBMITTED, TASK_COMPLETED)

LANGUAGE_KEYS = {
    Language.JAVA: 'java_projects',
    Language.PYTHON: 'python_projects',
}


def new_record(user_id: str, now: datetime = None) -> dict:
    """Empty record created alongside a new student account."""
    now = now or datetime.utcnow()
    return {
        'user_id': user_id,
        'completed_tasks': [],
        'week_start_date': None,
        'last_week_completed_count': 0,
        'generation_enabled': False,
        'last_generation_date': None,
        'current_week_number': 0,
        'weekly_project_history': [],
        'revision': 0,
        'created_at': now,
        'updated_at': now,
    }


# ============================================================================
# WEEKLY HISTORY
# ============================================================================

def _find_week(record: dict, week_number) -> dict:
    for week in record.get('weekly_project_history', []):
        if week.get('week_number') == week_number:
            return week
    return None


def get_current_week(record: dict) -> dict:
    """WeekEntry targeted by current_week_number, or None."""
    return _find_week(record, record.get('current_week_number'))


def enable_generation(record: dict, now: datetime = None) -> dict:
    updated = copy.deepcopy(record)
    updated['generation_enabled'] = True
    updated['last_generation_date'] = now or datetime.utcnow()
    return updated


def validate_week_number(week_number) -> int:
    """Week keys are positive integers; anything else is a client error."""
    if isinstance(week_number, bool) or not isinstance(week_number, int) or week_number < 1:
        raise ValidationError("Week number must be a positive whole number")
    return week_number


def build_recommendation(project: dict, week_number: int, now: datetime = None) -> dict:
    """Normalize one generated project into a stored recommendation."""
    now = now or datetime.utcnow()
    language = Language.parse(project.get('language'))
    title = (project.get('title') or '').strip()
    if not title:
        raise ValidationError("Project title is required")
    description = (project.get('description') or '').strip()
    if not description:
        raise ValidationError(f"Project '{title}' is missing a description")

    return {
        'title': title,
        'description': description,
        'language': language.value,
        'requirements': project.get('requirements') or '',
        'sample_output': project.get('sample_output') or '',
        'rubrics': project.get('rubrics') or '',
        'is_ai_generated': bool(project.get('is_ai_generated', True)),
        'generated_at': now,
        'week_number': week_number,
        'created_at': now,
    }


def add_weekly_generated_projects(record: dict, recommendations: list, week_number: int = None,
                                  week_start: datetime = None, week_end: datetime = None,
                                  now: datetime = None) -> dict:
    """
    Add generated projects to a week of the history.

    The target week is ``week_number`` when given, else ``current_week_number``,
    else 1. An existing week has the projects appended to its language lists
    in call order; a missing week is created (ending seven days after its
    start by default) and becomes the current week.

    Raises:
        ValidationError: ``week_number`` is not a positive integer, or a
            recommendation has an unknown language or no title. Nothing is
            added in that case.
    """
    now = now or datetime.utcnow()
    if week_number is not None:
        week_number = validate_week_number(week_number)
    target = week_number or record.get('current_week_number') or 1
    prepared = [build_recommendation(project, target, now) for project in recommendations]

    updated = copy.deepcopy(record)
    history = updated.setdefault('weekly_project_history', [])
    week = _find_week(updated, target)

    if week is None:
        start = week_start or now
        week = {
            'week_number': target,
            'week_start_date': start,
            'week_end_date': week_end or start + WEEK_LENGTH,
            'java_projects': [],
            'python_projects': [],
            'generated_at': now,
        }
        history.append(week)
        history.sort(key=lambda entry: entry['week_number'])
        updated['current_week_number'] = max(updated.get('current_week_number') or 0, target)
        logger.info(f"Created week {target} for user {updated.get('user_id')}")

    for project in prepared:
        week[LANGUAGE_KEYS[Language(project['language'])]].append(project)

    updated['last_generation_date'] = now
    return updated


def get_current_week_projects(record: dict, language) -> list:
    """Projects of the current week for one language; [] when the week is missing."""
    key = LANGUAGE_KEYS[Language.parse(language)]
    week = get_current_week(record)
    if week is None:
        return []
    return copy.deepcopy(week.get(key, []))


# Same lookup under the name the routes use for language tabs
get_projects_by_language = get_current_week_projects


def clear_projects_by_language(record: dict, language) -> dict:
    key = LANGUAGE_KEYS[Language.parse(language)]
    updated = copy.deepcopy(record)
    week = get_current_week(updated)
    if week is not None:
        week[key] = []
    return updated


def get_projects_by_week(record: dict, week_number: int, language=None) -> list:
    """Projects of any historical week; both languages (java first) when language is None."""
    keys = [LANGUAGE_KEYS[Language.parse(language)]] if language else list(LANGUAGE_KEYS.values())
    week = _find_week(record, week_number)
    if week is None:
        return []
    projects = []
    for key in keys:
        projects.extend(week.get(key, []))
    return copy.deepcopy(projects)


def get_all_current_projects(record: dict) -> list:
    return get_projects_by_week(record, record.get('current_week_number'))


def prune_history(record: dict, keep: int) -> dict:
    """Keep the newest `keep` weeks; the current week always survives."""
    history = record.get('weekly_project_history', [])
    if keep is None or keep <= 0 or len(history) <= keep:
        return record

    current = record.get('current_week_number')
    ordered = sorted(history, key=lambda week: week['week_number'], reverse=True)
    kept = ordered[:keep]
    if current is not None and all(week['week_number'] != current for week in kept):
        current_week = _find_week(record, current)
        if current_week is not None:
            kept = kept[:-1] + [current_week]

    updated = copy.deepcopy(record)
    updated['weekly_project_history'] = sorted(copy.deepcopy(kept), key=lambda week: week['week_number'])
    dropped = len(history) - len(kept)
    logger.info(f"Pruned {dropped} old week(s) for user {record.get('user_id')}")
    return updated


# ============================================================================
# COMPLETED TASKS
# ============================================================================

def _same_title(a: str, b: str) -> bool:
    return (a or '').strip().lower() == (b or '').strip().lower()


def find_available_project(record: dict, project_title: str) -> dict:
    """Current-week project with this title (case-insensitive), or None."""
    for project in get_all_current_projects(record):
        if _same_title(project.get('title'), project_title):
            return project
    return None


def task_week(record: dict, task: dict):
    """
    Week number a task belongs to.

    Tasks written before tasks carried a week number count as current-week
    work when they were touched since the record's week start.
    """
    if task.get('week_number') is not None:
        return task['week_number']
    touched = task.get('completed_at') or task.get('last_saved_at')
    week_start = record.get('week_start_date')
    if touched and (week_start is None or touched >= week_start):
        return record.get('current_week_number')
    return None


def find_task(record: dict, project_title: str, week_number: int = None) -> dict:
    """Task for this title in ``week_number`` (default: the current week), or None."""
    if week_number is None:
        week_number = record.get('current_week_number')
    for task in record.get('completed_tasks', []):
        if _same_title(task.get('project_title'), project_title) and task_week(record, task) == week_number:
            return task
    return None


def completed_this_week(record: dict) -> list:
    """Tasks submitted (or completed) since the record's week start."""
    week_start = record.get('week_start_date') or datetime.min
    return [
        task for task in record.get('completed_tasks', [])
        if task.get('status') in (TASK_SUBMITTED, TASK_COMPLETED)
        and task.get('completed_at') and task['completed_at'] >= week_start
    ]


def _require_available(record: dict, project_title: str) -> dict:
    if not project_title:
        raise ValidationError("Project title is required")
    project = find_available_project(record, project_title)
    if project is None:
        raise NotFoundError("This project is not in your available projects list")
    return project


def check_can_submit(record: dict, project_title: str, weekly_limit: int = 6) -> dict:
    """
    Raise if the project cannot be submitted right now; return the project.

    Checked before grading so no AI call is spent on a rejected submission.
    """
    project = _require_available(record, project_title)
    done = completed_this_week(record)
    if weekly_limit and len(done) >= weekly_limit:
        raise ConflictError(
            f"You have already completed all {weekly_limit} projects for this week. "
            "New projects will be available next Monday."
        )
    task = find_task(record, project_title)
    if task is not None and task.get('status') in (TASK_SUBMITTED, TASK_COMPLETED):
        raise ConflictError("You have already completed this project this week")
    return project


def save_progress(record: dict, project_title: str, code_base: str, now: datetime = None) -> dict:
    """Store work-in-progress code as a paused task."""
    now = now or datetime.utcnow()
    if not code_base:
        raise ValidationError("Project title and code base are required")
    _require_available(record, project_title)

    updated = copy.deepcopy(record)
    task = find_task(updated, project_title)
    if task is None:
        updated['completed_tasks'].append({
            'task_id': generate_task_id(),
            'project_title': project_title,
            'week_number': updated.get('current_week_number'),
            'score': 0,
            'code_base': code_base,
            'ai_feedback': '',
            'status': TASK_PAUSED,
            'completed_at': None,
            'last_saved_at': now,
        })
    elif task.get('status') != TASK_PAUSED:
        raise ConflictError("This project has already been submitted")
    else:
        task['code_base'] = code_base
        task['last_saved_at'] = now
    return updated


def submit_project(record: dict, project_title: str, code_base: str, score: int, feedback: str = '',
                   weekly_limit: int = 6, now: datetime = None) -> dict:
    """Record a graded submission, promoting a paused task when there is one."""
    now = now or datetime.utcnow()
    if not code_base:
        raise ValidationError("Project title and code base are required")
    if score is None or not 0 <= score <= 100:
        raise ValidationError("Score must be between 0 and 100")
    project = check_can_submit(record, project_title, weekly_limit)

    updated = copy.deepcopy(record)
    task = find_task(updated, project_title)
    if task is None:
        task = {'task_id': generate_task_id(), 'project_title': project['title'],
                'week_number': updated.get('current_week_number')}
        updated['completed_tasks'].append(task)
    task.update({
        'score': score,
        'code_base': code_base,
        'ai_feedback': feedback or '',
        'status': TASK_SUBMITTED,
        'completed_at': now,
        'last_saved_at': now,
    })
    return updated


def complete_task(record: dict, task_id: str) -> dict:
    """Mark a submitted task as completed (reviewed)."""
    updated = copy.deepcopy(record)
    for task in updated.get('completed_tasks', []):
        if task.get('task_id') == task_id:
            if task.get('status') != TASK_SUBMITTED:
                raise ConflictError("Only submitted projects can be completed")
            task['status'] = TASK_COMPLETED
            return updated
    raise NotFoundError("Task not found")


def delete_completed_task(record: dict, task_id: str) -> dict:
    updated = copy.deepcopy(record)
    updated['completed_tasks'] = [
        task for task in updated.get('completed_tasks', []) if task.get('task_id') != task_id
    ]
    return updated


def reset_week(record: dict) -> dict:
    """End-of-week rotation: remember last week's count and empty the current week."""
    updated = copy.deepcopy(record)
    updated['last_week_completed_count'] = len(completed_this_week(record))
    week = get_current_week(updated)
    if week is not None:
        for key in LANGUAGE_KEYS.values():
            week[key] = []
    return updated


def has_current_projects(record: dict) -> bool:
    return bool(get_all_current_projects(record))
