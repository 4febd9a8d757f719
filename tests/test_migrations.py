"""Legacy mini-project records and duplicate cleanup."""
from datetime import datetime, timedelta

import mongomock

from conftest import project
from models import Database
from scripts.cleanup_duplicate_projects import cleanup_all
from scripts.migrate_mini_projects import migrate_all
from utils.migrations import dedupe_record, migrate_record, needs_migration, to_snake_case
from utils.mini_projects import add_weekly_generated_projects, get_current_week_projects


def test_to_snake_case():
    assert to_snake_case('userId') == 'user_id'
    assert to_snake_case('isAIGenerated') == 'is_ai_generated'
    assert to_snake_case('weekly_project_history') == 'weekly_project_history'
    assert to_snake_case('_id') == '_id'


class TestMigrateRecord:

    def test_flat_available_projects_move_into_current_week(self):
        legacy = {
            'userId': 'U1',
            'currentWeekNumber': 2,
            'availableProjects': [project('Bank', 'Java'), project('Quiz', 'python'),
                                  project('Page', 'javascript')],
            'completedTasks': [],
        }
        migrated = migrate_record(legacy, now=datetime(2025, 3, 3))

        assert migrated['user_id'] == 'U1'
        assert 'available_projects' not in migrated
        assert [p['title'] for p in get_current_week_projects(migrated, 'java')] == ['Bank']
        assert [p['title'] for p in get_current_week_projects(migrated, 'python')] == ['Quiz']
        assert migrated['weekly_project_history'][0]['week_number'] == 2
        assert migrated['revision'] == 0

    def test_top_level_language_lists_take_their_list_language(self):
        legacy = {'user_id': 'U1', 'java_projects': [{'title': 'Untagged', 'description': 'x'}]}
        migrated = migrate_record(legacy, now=datetime(2025, 3, 3))

        assert get_current_week_projects(migrated, 'java')[0]['language'] == 'java'
        assert migrated['current_week_number'] == 1

    def test_current_record_is_unchanged(self, database, student):
        record = database.mini_projects.get(student['user_id'])
        record.pop('_id')
        assert not needs_migration(record)
        assert migrate_record(record) == record


def test_dedupe_keeps_newest_unique_titles():
    base = datetime(2025, 3, 3)
    week = {'week_number': 1, 'java_projects': [
        dict(project('Calc'), created_at=base),
        dict(project('calc'), created_at=base + timedelta(hours=1)),
        dict(project('Bank'), created_at=base + timedelta(hours=2)),
    ], 'python_projects': []}
    updated, removed = dedupe_record({'weekly_project_history': [week]}, keep_per_language=6)

    assert removed == 1
    assert [p['title'] for p in updated['weekly_project_history'][0]['java_projects']] == ['Bank', 'calc']


def test_migrate_all_dry_run_and_apply():
    database = Database(mongomock.MongoClient().db)
    database.db.mini_projects.insert_one({'userId': 'U1', 'availableProjects': [project('Bank')]})

    assert migrate_all(database, dry_run=True) == {'checked': 1, 'migrated': 1}
    assert database.db.mini_projects.find_one({'userId': 'U1'}) is not None

    assert migrate_all(database)['migrated'] == 1
    stored = database.mini_projects.get('U1')
    assert get_current_week_projects(stored, 'java')[0]['title'] == 'Bank'
    assert migrate_all(database)['migrated'] == 0


def test_cleanup_all_trims_every_record(database, student):
    def crowd(record):
        return add_weekly_generated_projects(record, [project(f"P{i}") for i in range(8)], week_number=1)

    database.mini_projects.mutate(student['user_id'], crowd)
    assert cleanup_all(database, keep=6) == 2
    assert len(get_current_week_projects(database.mini_projects.get(student['user_id']), 'java')) == 6
