from datetime import datetime, timedelta, timezone

import pytest

from skillhub import errors, models
from skillhub.services import CourseService


def _course_fields(**overrides):
    fields = {
        'title': 'Intro to Python',
        'description': 'Variables, loops and functions',
        'difficulty': 'beginner',
        'duration': 12,
        'price': 0,
    }
    fields.update(overrides)
    return fields


def test_create_sets_instructor_and_summary(store, make_user):
    admin = make_user('Ada', role='admin')
    course = CourseService(store).create(_course_fields(topics=['basics']), admin['id'])
    assert course['instructor'] == {'id': admin['id'], 'name': 'Ada', 'email': admin['email']}
    assert course['enrolled_students'] == []
    assert course['is_published'] is False
    assert course['topics'] == ['basics']


@pytest.mark.parametrize('missing', ['title', 'description', 'difficulty', 'duration', 'price'])
def test_create_requires_fields(store, make_user, missing):
    admin = make_user(role='admin')
    fields = _course_fields()
    fields.pop(missing)
    with pytest.raises(errors.ValidationError):
        CourseService(store).create(fields, admin['id'])


def test_create_rejects_bad_values(store, make_user):
    admin = make_user(role='admin')
    svc = CourseService(store)
    with pytest.raises(errors.ValidationError):
        svc.create(_course_fields(difficulty='expert'), admin['id'])
    with pytest.raises(errors.ValidationError):
        svc.create(_course_fields(duration=0), admin['id'])
    with pytest.raises(errors.ValidationError):
        svc.create(_course_fields(price=-1), admin['id'])


def test_list_filters_by_difficulty_newest_first(store, make_user):
    admin = make_user(role='admin')
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i, difficulty in enumerate(['beginner', 'intermediate', 'beginner']):
        store.save(models.Course(
            title=f'Course {i}', description='d', instructor=admin['id'], difficulty=difficulty,
            duration=1, price=0, created_at=base + timedelta(days=i),
        ))
    found = CourseService(store).list(difficulty='beginner')
    assert [c['title'] for c in found] == ['Course 2', 'Course 0']
    assert all(c['difficulty'] == 'beginner' for c in found)
    assert found[0]['instructor']['id'] == admin['id']


def test_list_search_matches_title_or_description_case_insensitively(store, make_user):
    admin = make_user(role='admin')
    svc = CourseService(store)
    svc.create(_course_fields(title='Data Science 101', description='pandas'), admin['id'])
    svc.create(_course_fields(title='Web basics', description='Build with DATA binding'), admin['id'])
    svc.create(_course_fields(title='Rust', description='ownership', difficulty='advanced'), admin['id'])
    assert {c['title'] for c in svc.list(search='data')} == {'Data Science 101', 'Web basics'}
    assert [c['title'] for c in svc.list(difficulty='advanced', search='data')] == []
    assert svc.list(search='100%') == []


def test_get_missing_course_is_not_found(store):
    with pytest.raises(errors.NotFound):
        CourseService(store).get('does-not-exist')


def test_enroll_updates_course_and_user(store, make_user):
    admin = make_user(role='admin')
    student = make_user('Sam')
    svc = CourseService(store)
    course = svc.create(_course_fields(), admin['id'])
    svc.enroll(course['id'], student['id'])

    detail = svc.get(course['id'])
    assert detail['enrolled_students'] == [{'id': student['id'], 'name': 'Sam', 'email': student['email']}]
    user = store.find_by_id(models.User, student['id'])
    assert user.enrolled_courses == [course['id']]


def test_second_enroll_conflicts_and_changes_nothing(store, make_user):
    admin = make_user(role='admin')
    student = make_user()
    svc = CourseService(store)
    course = svc.create(_course_fields(), admin['id'])
    svc.enroll(course['id'], student['id'])
    with pytest.raises(errors.Conflict):
        svc.enroll(course['id'], student['id'])
    assert store.find_by_id(models.Course, course['id']).enrolled_students == [student['id']]
    assert store.find_by_id(models.User, student['id']).enrolled_courses == [course['id']]


def test_enroll_missing_course(store, make_user):
    student = make_user()
    with pytest.raises(errors.NotFound):
        CourseService(store).enroll('nope', student['id'])


def test_rate_requires_enrollment(store, make_user):
    admin = make_user(role='admin')
    student = make_user()
    svc = CourseService(store)
    course = svc.create(_course_fields(), admin['id'])
    with pytest.raises(errors.Forbidden):
        svc.rate(course['id'], student['id'], 5, 'great')


def test_rate_checks_enrollment_before_payload(store, make_user):
    admin = make_user(role='admin')
    student = make_user()
    svc = CourseService(store)
    course = svc.create(_course_fields(), admin['id'])
    with pytest.raises(errors.Forbidden):
        svc.rate(course['id'], student['id'], 9, 'too much')


def test_rate_missing_course_is_not_found(store, make_user):
    student = make_user()
    with pytest.raises(errors.NotFound):
        CourseService(store).rate('missing', student['id'], 5, 'great')
    with pytest.raises(errors.NotFound):
        CourseService(store).rate('missing', student['id'], 9, 'too much')


def test_rate_upserts_in_place(store, make_user):
    admin = make_user(role='admin')
    first, second = make_user(), make_user()
    svc = CourseService(store)
    course = svc.create(_course_fields(), admin['id'])
    svc.enroll(course['id'], first['id'])
    svc.enroll(course['id'], second['id'])

    svc.rate(course['id'], first['id'], 5, 'great')
    svc.rate(course['id'], second['id'], 4, 'good')
    ratings = svc.rate(course['id'], first['id'], 3, 'ok')

    assert [r['user'] for r in ratings] == [first['id'], second['id']]
    mine = [r for r in ratings if r['user'] == first['id']]
    assert len(mine) == 1
    assert mine[0]['rating'] == 3
    assert mine[0]['review'] == 'ok'


def test_rate_rejects_out_of_range(store, make_user):
    admin = make_user(role='admin')
    student = make_user()
    svc = CourseService(store)
    course = svc.create(_course_fields(), admin['id'])
    svc.enroll(course['id'], student['id'])
    with pytest.raises(errors.ValidationError):
        svc.rate(course['id'], student['id'], 9, 'too much')


def test_update_merges_fields(store, make_user):
    admin = make_user(role='admin')
    svc = CourseService(store)
    course = svc.create(_course_fields(), admin['id'])
    updated = svc.update(course['id'], {'price': 49.5, 'is_published': True, 'instructor': 'someone-else'})
    assert updated['price'] == 49.5
    assert updated['is_published'] is True
    assert updated['title'] == 'Intro to Python'
    assert updated['instructor']['id'] == admin['id']
    with pytest.raises(errors.NotFound):
        svc.update('missing', {'price': 1})


def test_delete_and_my_courses_skip_removed(store, make_user):
    admin = make_user(role='admin')
    student = make_user()
    svc = CourseService(store)
    kept = svc.create(_course_fields(title='Kept'), admin['id'])
    gone = svc.create(_course_fields(title='Gone'), admin['id'])
    later = svc.create(_course_fields(title='Later'), admin['id'])
    for c in (later, gone, kept):
        svc.enroll(c['id'], student['id'])

    svc.delete(gone['id'])
    with pytest.raises(errors.NotFound):
        svc.delete(gone['id'])
    assert [c['title'] for c in svc.my_courses(student['id'])] == ['Later', 'Kept']
