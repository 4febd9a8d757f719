"""Classroom documents: creation, membership and edits."""
import pytest

from errors import ValidationError
from utils.classrooms import (CODE_LENGTH, add_student, archive, generate_code, is_member, new_classroom,
                              normalize_code, remove_student, update_classroom)


@pytest.fixture
def classroom():
    return new_classroom('CLS-1', 'T1', '  Programming 1 ', description='Intro', year_level_section='BSIT 1-A')


def test_new_classroom(classroom):
    assert classroom['name'] == 'Programming 1'
    assert classroom['students'] == []
    assert classroom['is_active'] is True
    assert classroom['settings'] == {'allow_student_posts': True, 'require_approval_to_join': False}
    assert 'code' not in classroom


@pytest.mark.parametrize('kwargs', [
    {'name': '   '},
    {'name': 'x' * 101},
    {'name': 'ok', 'description': 'x' * 501},
    {'name': 'ok', 'year_level_section': 'x' * 51},
])
def test_new_classroom_validation(kwargs):
    with pytest.raises(ValidationError):
        new_classroom('CLS-1', 'T1', **kwargs)


def test_generate_code_shape():
    code = generate_code()
    assert len(code) == CODE_LENGTH
    assert code == normalize_code(code)
    assert code.isalnum()


def test_add_student_twice_keeps_one_entry(classroom):
    once = add_student(classroom, 'S1')
    twice = add_student(once, 'S1')

    assert [s['student_id'] for s in twice['students']] == ['S1']
    assert is_member(twice, 'S1')
    assert classroom['students'] == []


def test_remove_student(classroom):
    updated = remove_student(add_student(add_student(classroom, 'S1'), 'S2'), 'S1')
    assert [s['student_id'] for s in updated['students']] == ['S2']


def test_update_merges_known_settings(classroom):
    updated = update_classroom(classroom, name='Programming 2',
                               settings={'allow_student_posts': 0, 'unknown': True})

    assert updated['name'] == 'Programming 2'
    assert updated['description'] == 'Intro'
    assert updated['settings'] == {'allow_student_posts': False, 'require_approval_to_join': False}


def test_archive(classroom):
    assert archive(classroom)['is_active'] is False
    assert classroom['is_active'] is True
