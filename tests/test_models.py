"""Repositories: unique keys, optimistic saves and the retrying mutate loop."""
import pytest

from conftest import make_classroom, make_user
from errors import ConcurrentModificationError, ConflictError, NotFoundError
from models import ClassroomRepository
from utils.classrooms import new_classroom, update_classroom


# =============================================================================
# Users and mini-project records
# =============================================================================

def test_email_is_unique_and_case_insensitive(database):
    make_user(database, 'student', email='ana@school.edu')
    with pytest.raises(ConflictError, match='already exists'):
        make_user(database, 'student', email='  ANA@school.edu ')


def test_find_by_email_normalizes(database):
    user = make_user(database, 'teacher', email='prof@school.edu')
    assert database.users.find_by_email(' Prof@School.edu')['user_id'] == user['user_id']


def test_update_fields_returns_fresh_document(database):
    user = make_user(database, 'student')
    updated = database.users.update_fields(user['user_id'], {'primary_language': 'java'})
    assert updated['primary_language'] == 'java'


def test_one_mini_project_record_per_user(database):
    user = make_user(database, 'student')
    with pytest.raises(ConflictError):
        database.mini_projects.create(user['user_id'])
    assert database.mini_projects.get_or_create(user['user_id'])['user_id'] == user['user_id']
    assert database.mini_projects.count({'user_id': user['user_id']}) == 1


def test_get_or_create_makes_missing_record(database):
    record = database.mini_projects.get_or_create('U-LEGACY')
    assert record['weekly_project_history'] == []
    assert database.mini_projects.all_user_ids() == ['U-LEGACY']


def test_missing_entity_raises_not_found(database):
    with pytest.raises(NotFoundError, match='User not found'):
        database.users.get('U-NOBODY')


# =============================================================================
# Optimistic concurrency
# =============================================================================

class TestSave:

    def test_save_bumps_revision(self, database, teacher):
        classroom = make_classroom(database, teacher)
        saved = database.classrooms.save(update_classroom(classroom, name='Programming 2'))

        assert saved['revision'] == 1
        assert database.classrooms.get(classroom['classroom_id'])['name'] == 'Programming 2'

    def test_stale_copy_is_rejected(self, database, teacher):
        classroom = make_classroom(database, teacher)
        database.classrooms.save(update_classroom(classroom, name='First writer'))

        with pytest.raises(ConcurrentModificationError):
            database.classrooms.save(update_classroom(classroom, name='Second writer'))
        assert database.classrooms.get(classroom['classroom_id'])['name'] == 'First writer'

    def test_document_without_revision_can_be_saved_once(self, database, teacher):
        classroom = make_classroom(database, teacher)
        database.db.classrooms.update_one({'classroom_id': classroom['classroom_id']},
                                          {'$unset': {'revision': ''}})
        legacy = database.classrooms.get(classroom['classroom_id'])

        assert database.classrooms.save(legacy)['revision'] == 1
        with pytest.raises(ConcurrentModificationError):
            database.classrooms.save(legacy)

    def test_saving_deleted_document(self, database, teacher):
        classroom = make_classroom(database, teacher)
        database.classrooms.delete_one({'classroom_id': classroom['classroom_id']})
        with pytest.raises(NotFoundError):
            database.classrooms.save(classroom)


class TestMutate:

    def test_retries_after_concurrent_write(self, database, teacher):
        classroom = make_classroom(database, teacher)
        calls = []

        def rename(current):
            calls.append(current['revision'])
            if len(calls) == 1:
                # Another writer gets in between our read and our save
                database.classrooms.save(update_classroom(current, description='changed elsewhere'))
            return update_classroom(current, name='Renamed')

        result = database.classrooms.mutate(classroom['classroom_id'], rename)

        assert calls == [0, 1]
        assert result['name'] == 'Renamed'
        assert result['description'] == 'changed elsewhere'
        assert result['revision'] == 2

    def test_gives_up_after_attempts(self, database, teacher):
        classroom = make_classroom(database, teacher)

        def always_raced(current):
            database.classrooms.save(update_classroom(current, description='again'))
            return update_classroom(current, name='Never saved')

        with pytest.raises(ConcurrentModificationError):
            database.classrooms.mutate(classroom['classroom_id'], always_raced, attempts=2)
        assert database.classrooms.get(classroom['classroom_id'])['name'] == 'Programming 1'


# =============================================================================
# Classrooms
# =============================================================================

class TestClassroomCodes:

    def test_code_collision_draws_a_new_code(self, database, teacher):
        codes = iter(['AAAA1111', 'AAAA1111', 'BBBB2222'])

        first = database.classrooms.create(new_classroom('CLS-1', teacher['user_id'], 'One'),
                                           code_factory=lambda: next(codes))
        second = database.classrooms.create(new_classroom('CLS-2', teacher['user_id'], 'Two'),
                                            code_factory=lambda: next(codes))

        assert first['code'] == 'AAAA1111'
        assert second['code'] == 'BBBB2222'
        assert database.classrooms.count({}) == 2

    def test_gives_up_when_every_code_collides(self, database, teacher):
        database.classrooms.create(new_classroom('CLS-1', teacher['user_id'], 'One'),
                                   code_factory=lambda: 'SAMECODE')
        with pytest.raises(ConflictError, match='unique classroom code'):
            database.classrooms.create(new_classroom('CLS-2', teacher['user_id'], 'Two'),
                                       attempts=3, code_factory=lambda: 'SAMECODE')

    def test_find_by_code_ignores_case_and_archived(self, database, teacher):
        classroom = make_classroom(database, teacher)
        assert database.classrooms.find_by_code(f" {classroom['code'].lower()} ")['classroom_id'] == \
            classroom['classroom_id']

        database.classrooms.mutate(classroom['classroom_id'], lambda c: dict(c, is_active=False))
        assert database.classrooms.find_by_code(classroom['code']) is None


class TestJoinByCode:

    def test_join_adds_student_once(self, database, teacher, student):
        classroom = make_classroom(database, teacher)
        joined = database.classrooms.join_by_code(classroom['code'], student['user_id'])

        assert [s['student_id'] for s in joined['students']] == [student['user_id']]
        with pytest.raises(ConflictError, match='already enrolled'):
            database.classrooms.join_by_code(classroom['code'], student['user_id'])

    def test_unknown_code(self, database, student):
        with pytest.raises(NotFoundError, match='Invalid classroom code'):
            database.classrooms.join_by_code('NOPE0000', student['user_id'])

    def test_listings(self, database, teacher, student):
        classroom = make_classroom(database, teacher, students=[student])
        make_classroom(database, teacher)

        assert len(database.classrooms.for_teacher(teacher['user_id'])) == 2
        assert [c['classroom_id'] for c in database.classrooms.for_student(student['user_id'])] == \
            [classroom['classroom_id']]


def test_repository_uses_collection_name(database):
    assert ClassroomRepository(database.db).collection.name == 'classrooms'


def test_surveys_are_unique_per_language(database):
    database.surveys.upsert('U1', 'java', {'completed': True, 'course_interest': 'Games'})
    database.surveys.upsert('U1', 'java', {'completed': True, 'course_interest': 'Web'})
    database.surveys.upsert('U1', 'python', {'completed': True})

    assert len(database.surveys.for_user('U1')) == 2
    assert database.surveys.get_for_language('U1', 'java')['course_interest'] == 'Web'
    with pytest.raises(NotFoundError):
        database.surveys.get_for_language('U2', 'java')
