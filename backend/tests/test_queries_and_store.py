from skillhub import models
from skillhub.queries import build_opportunity_query, build_project_query, contains_pattern, parse_bool
from skillhub.schemas import OpportunityFilter, ProjectFilter


def test_contains_pattern_escapes_wildcards():
    assert contains_pattern('50%_off') == '%50\\%\\_off%'


def test_parse_bool():
    assert parse_bool(None) is None
    assert parse_bool('true') is True
    assert parse_bool('TRUE') is True
    assert parse_bool('1') is True
    assert parse_bool('false') is False
    assert parse_bool('nonsense') is False


def test_empty_filters_build_no_clauses_except_active():
    assert build_project_query(ProjectFilter()) == []
    # inactive opportunities are always excluded
    assert len(build_opportunity_query(OpportunityFilter())) == 1
    assert len(build_opportunity_query(OpportunityFilter(type='job', is_remote=False, search='x', location='y'))) == 5


def test_save_persists_in_place_json_edits(store, session):
    user = store.save(models.User(name='a', email='a@example.com', password_hash='x'))
    user.enrolled_courses.append('course-1')
    store.save(user)
    session.expire_all()
    assert store.find_by_id(models.User, user.id).enrolled_courses == ['course-1']


def test_save_several_documents_together(store, session):
    user = models.User(name='b', email='b@example.com', password_hash='x')
    course = models.Course(title='t', description='d', instructor='i', difficulty='beginner', duration=1, price=0)
    saved = store.save(course, user)
    assert [type(d) for d in saved] == [models.Course, models.User]
    session.expire_all()
    assert store.find_by_id(models.Course, course.id) is not None
    assert store.find_by_id(models.User, user.id) is not None


def test_delete_by_id(store):
    user = store.save(models.User(name='c', email='c@example.com', password_hash='x'))
    assert store.delete_by_id(models.User, user.id) is True
    assert store.delete_by_id(models.User, user.id) is False
    assert store.find_by_id(models.User, '') is None
