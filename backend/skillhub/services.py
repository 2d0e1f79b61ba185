"""Business logic services used by HTTP controllers.

This module holds one service class per entity family. Services are
intentionally thin: they validate input, check existence and
permissions, apply sub-document mutations and persist aggregates via
repositories. Every failure is raised as a `skillhub.errors` exception
and is terminal for the request.

Services receive the request's `DocumentStore` at construction and never
reach for a global connection.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import errors, models
from .config import settings
from .queries import build_course_query, build_opportunity_query, build_project_query
from .repositories import CourseRepository, OpportunityRepository, ProjectRepository, UserRepository
from .schemas import (
    ApplicationStatusIn,
    CommentIn,
    CourseFilter,
    CourseIn,
    CourseUpdate,
    LoginIn,
    OpportunityFilter,
    OpportunityIn,
    OpportunityUpdate,
    ProfileUpdate,
    ProjectFilter,
    ProjectIn,
    ProjectUpdate,
    RatingIn,
    RegisterIn,
    RoleIn,
)
from .store import DocumentStore, utcnow

logger = logging.getLogger(__name__)

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

S = TypeVar("S", bound=BaseModel)


def validate_payload(schema: Type[S], fields: Any) -> S:
    """Validate `fields` against `schema`, raising `errors.ValidationError`.

    Already-validated schema instances pass through untouched.
    """
    if isinstance(fields, schema):
        return fields
    try:
        return schema.model_validate(fields or {})
    except PydanticValidationError as exc:
        problems = []
        for err in exc.errors():
            where = ".".join(str(part) for part in err.get("loc", ())) or "body"
            problems.append(f"{where}: {err.get('msg')}")
        raise errors.ValidationError("; ".join(problems))


def _changes(payload: BaseModel) -> Dict[str, Any]:
    # explicit nulls are ignored; required columns cannot be cleared
    return {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}


def iso(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as ISO-8601, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def user_document(user: models.User) -> dict:
    """Public view of a user; the password hash never leaves the service."""
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'profile_photo': user.profile_photo,
        'contact_number': user.contact_number,
        'enrolled_courses': list(user.enrolled_courses),
        'completed_courses': list(user.completed_courses),
        'projects': list(user.projects),
        'created_at': iso(user.created_at),
        'updated_at': iso(user.updated_at),
    }


def _members(ids: List[str], people: Dict[str, dict]) -> List[dict]:
    # unresolvable references are dropped rather than rendered as null
    return [people[uid] for uid in ids if uid in people]


class AuthService:
    """Registration and credential checks."""
    def __init__(self, store: DocumentStore):
        self.store = store
        self.user_repo = UserRepository(store)

    def register(self, fields: Any) -> dict:
        """Create a new student account and return it with an access token.

        Fails with `Conflict` when the email is already registered.
        """
        data = validate_payload(RegisterIn, fields)
        email = data.email.lower()
        if self.user_repo.get_by_email(email):
            raise errors.Conflict('User already exists')
        user = models.User(name=data.name, email=email, password_hash=PWD_CTX.hash(data.password))
        user = self.user_repo.save(user)
        logger.info("user_registered id=%s", user.id)
        return {'user': user_document(user), 'access_token': self.issue_token(user)}

    def authenticate(self, fields: Any) -> dict:
        """Verify credentials and return the user with a signed JWT token."""
        data = validate_payload(LoginIn, fields)
        # One lookup by email then verify the supplied password hash.
        user = self.user_repo.get_by_email(data.email)
        if not user or not PWD_CTX.verify(data.password, user.password_hash):
            raise errors.Unauthenticated('Invalid email or password')
        return {'user': user_document(user), 'access_token': self.issue_token(user)}

    @staticmethod
    def issue_token(user: models.User) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "role": user.role, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class UserService:
    """Profile management and admin-only user administration."""
    def __init__(self, store: DocumentStore):
        self.store = store
        self.user_repo = UserRepository(store)

    def _require(self, user_id: str) -> models.User:
        user = self.user_repo.get(user_id)
        if not user:
            raise errors.NotFound('User not found')
        return user

    def profile(self, user_id: str) -> dict:
        return user_document(self._require(user_id))

    def update_profile(self, user_id: str, fields: Any) -> dict:
        """Merge profile changes; a new password is re-hashed before storage."""
        user = self._require(user_id)
        changes = _changes(validate_payload(ProfileUpdate, fields))
        if 'email' in changes:
            changes['email'] = changes['email'].lower()
            other = self.user_repo.get_by_email(changes['email'])
            if other and other.id != user.id:
                raise errors.Conflict('Email already in use')
        if 'password' in changes:
            user.password_hash = PWD_CTX.hash(changes.pop('password'))
        for key, value in changes.items():
            setattr(user, key, value)
        return user_document(self.user_repo.save(user))

    def list_users(self) -> List[dict]:
        return [user_document(u) for u in self.user_repo.list_all()]

    def delete_user(self, user_id: str) -> None:
        """Remove a user. References held by courses and projects are left in place."""
        user = self._require(user_id)
        self.user_repo.delete(user)
        logger.info("user_deleted id=%s", user_id)

    def set_role(self, user_id: str, role: Any) -> dict:
        data = validate_payload(RoleIn, {'role': role})
        user = self._require(user_id)
        user.role = data.role
        logger.info("user_role_changed id=%s role=%s", user_id, data.role)
        return user_document(self.user_repo.save(user))


class CourseService:
    """Course catalogue, enrollment and ratings."""
    def __init__(self, store: DocumentStore):
        self.store = store
        self.course_repo = CourseRepository(store)
        self.user_repo = UserRepository(store)

    def _require(self, course_id: str) -> models.Course:
        course = self.course_repo.get(course_id)
        if not course:
            raise errors.NotFound('Course not found')
        return course

    def _document(self, course: models.Course, people: Dict[str, dict], with_students: bool = False) -> dict:
        return {
            'id': course.id,
            'title': course.title,
            'description': course.description,
            'instructor': people.get(course.instructor),
            'thumbnail': course.thumbnail,
            'difficulty': course.difficulty,
            'duration': course.duration,
            'topics': list(course.topics),
            'content': list(course.content),
            'enrolled_students': _members(course.enrolled_students, people) if with_students else list(course.enrolled_students),
            'ratings': [dict(r) for r in course.ratings],
            'price': course.price,
            'is_published': course.is_published,
            'created_at': iso(course.created_at),
            'updated_at': iso(course.updated_at),
        }

    def _documents(self, courses: List[models.Course]) -> List[dict]:
        people = self.user_repo.summaries(c.instructor for c in courses)
        return [self._document(c, people) for c in courses]

    def list(self, difficulty: Optional[str] = None, search: Optional[str] = None) -> List[dict]:
        """Return courses matching the optional filters, newest first."""
        flt = CourseFilter(difficulty=difficulty, search=search)
        return self._documents(self.course_repo.find(build_course_query(flt)))

    def get(self, course_id: str) -> dict:
        course = self._require(course_id)
        people = self.user_repo.summaries([course.instructor, *course.enrolled_students])
        return self._document(course, people, with_students=True)

    def create(self, fields: Any, creator_id: str) -> dict:
        """Create a course with `creator_id` as its instructor."""
        data = validate_payload(CourseIn, fields)
        course = models.Course(instructor=creator_id, **data.model_dump())
        course = self.course_repo.save(course)
        logger.info("course_created id=%s instructor=%s", course.id, creator_id)
        return self._documents([course])[0]

    def update(self, course_id: str, fields: Any) -> dict:
        """Merge the provided fields into an existing course.

        Instructor, enrollment and ratings are not editable here.
        """
        course = self._require(course_id)
        for key, value in _changes(validate_payload(CourseUpdate, fields)).items():
            setattr(course, key, value)
        return self._documents([self.course_repo.save(course)])[0]

    def delete(self, course_id: str) -> None:
        course = self._require(course_id)
        self.course_repo.delete(course)
        logger.info("course_deleted id=%s", course_id)

    def enroll(self, course_id: str, user_id: str) -> None:
        """Add `user_id` to the course and the course to the user's list.

        The course and the user are written in one transaction, course
        first. A second enrollment fails with `Conflict` and changes
        nothing. The membership check and the write are not isolated from
        concurrent requests for the same course.
        """
        course = self._require(course_id)
        user = self.user_repo.get(user_id)
        if not user:
            raise errors.NotFound('User not found')
        if user_id in course.enrolled_students:
            raise errors.Conflict('Already enrolled in this course')
        course.enrolled_students = [*course.enrolled_students, user_id]
        if course.id not in user.enrolled_courses:
            user.enrolled_courses = [*user.enrolled_courses, course.id]
        self.store.save(course, user)
        logger.info("course_enrolled course=%s user=%s", course_id, user_id)

    def rate(self, course_id: str, user_id: str, rating: Any, review: Any = "") -> List[dict]:
        """Insert or overwrite the caller's rating; only enrolled users may rate.

        An existing entry keeps its position in `ratings`. Returns the
        resulting rating list.
        """
        course = self._require(course_id)
        if user_id not in course.enrolled_students:
            raise errors.Forbidden('You must be enrolled to rate this course')
        data = validate_payload(RatingIn, {'rating': rating, 'review': review if review is not None else ""})
        ratings = [dict(r) for r in course.ratings]
        for entry in ratings:
            if entry.get('user') == user_id:
                entry['rating'] = data.rating
                entry['review'] = data.review
                break
        else:
            ratings.append({'user': user_id, 'rating': data.rating, 'review': data.review})
        course.ratings = ratings
        course = self.course_repo.save(course)
        return [dict(r) for r in course.ratings]

    def my_courses(self, user_id: str) -> List[dict]:
        """Courses in the user's `enrolled_courses` order; deleted courses are skipped."""
        user = self.user_repo.get(user_id)
        if not user:
            raise errors.NotFound('User not found')
        return self._documents(self.course_repo.list_by_ids(user.enrolled_courses))


class ProjectService:
    """Projects with owner/collaborator permissions, likes and comments."""
    def __init__(self, store: DocumentStore):
        self.store = store
        self.project_repo = ProjectRepository(store)
        self.user_repo = UserRepository(store)

    def _require(self, project_id: str) -> models.Project:
        project = self.project_repo.get(project_id)
        if not project:
            raise errors.NotFound('Project not found')
        return project

    @staticmethod
    def _comments(project: models.Project, people: Dict[str, dict]) -> List[dict]:
        return [
            {
                'id': c.get('id'),
                'user': people.get(c.get('user')),
                'text': c.get('text'),
                'created_at': c.get('created_at'),
            }
            for c in project.comments
        ]

    def _document(self, project: models.Project, people: Dict[str, dict], with_comment_authors: bool = False) -> dict:
        return {
            'id': project.id,
            'title': project.title,
            'description': project.description,
            'creator': people.get(project.creator),
            'difficulty': project.difficulty,
            'status': project.status,
            'technologies': list(project.technologies),
            'github_url': project.github_url,
            'demo_url': project.demo_url,
            'thumbnail': project.thumbnail,
            'collaborators': _members(project.collaborators, people),
            'resources': list(project.resources),
            'likes': list(project.likes),
            'comments': self._comments(project, people) if with_comment_authors else [dict(c) for c in project.comments],
            'created_at': iso(project.created_at),
            'updated_at': iso(project.updated_at),
        }

    def _documents(self, projects: List[models.Project]) -> List[dict]:
        ids = []
        for p in projects:
            ids.append(p.creator)
            ids.extend(p.collaborators)
        people = self.user_repo.summaries(ids)
        return [self._document(p, people) for p in projects]

    def list(self, difficulty: Optional[str] = None, status: Optional[str] = None, search: Optional[str] = None) -> List[dict]:
        flt = ProjectFilter(difficulty=difficulty, status=status, search=search)
        return self._documents(self.project_repo.find(build_project_query(flt)))

    def get(self, project_id: str) -> dict:
        project = self._require(project_id)
        people = self.user_repo.summaries(
            [project.creator, *project.collaborators, *(c.get('user') for c in project.comments)]
        )
        return self._document(project, people, with_comment_authors=True)

    def create(self, fields: Any, creator_id: str) -> dict:
        """Create a project owned by `creator_id` and record it on the creator."""
        data = validate_payload(ProjectIn, fields)
        creator = self.user_repo.get(creator_id)
        if not creator:
            raise errors.NotFound('User not found')
        project = models.Project(creator=creator_id, **data.model_dump())
        creator.projects = [*creator.projects, project.id]
        project, _ = self.store.save(project, creator)
        logger.info("project_created id=%s creator=%s", project.id, creator_id)
        return self._documents([project])[0]

    def update(self, project_id: str, fields: Any, requester_id: str) -> dict:
        """Merge changes; allowed for the creator and for collaborators."""
        project = self._require(project_id)
        if project.creator != requester_id and requester_id not in project.collaborators:
            raise errors.Forbidden('Not authorized to update this project')
        changes = _changes(validate_payload(ProjectUpdate, fields))
        if 'collaborators' in changes:
            changes['collaborators'] = list(dict.fromkeys(changes['collaborators']))
        for key, value in changes.items():
            setattr(project, key, value)
        return self._documents([self.project_repo.save(project)])[0]

    def delete(self, project_id: str, requester_id: str) -> None:
        """Remove a project. Only the creator may delete; collaborators may not."""
        project = self._require(project_id)
        if project.creator != requester_id:
            raise errors.Forbidden('Not authorized to delete this project')
        creator = self.user_repo.get(project.creator)
        if creator and project.id in creator.projects:
            creator.projects = [pid for pid in creator.projects if pid != project.id]
            self.store.delete(project, creator)
        else:
            self.store.delete(project)
        logger.info("project_deleted id=%s", project_id)

    def toggle_like(self, project_id: str, user_id: str) -> List[str]:
        """Remove the caller's like if present, otherwise add it; return the likes."""
        project = self._require(project_id)
        if user_id in project.likes:
            project.likes = [uid for uid in project.likes if uid != user_id]
        else:
            project.likes = [*project.likes, user_id]
        project = self.project_repo.save(project)
        logger.info("project_like_toggled id=%s user=%s liked=%s", project_id, user_id, user_id in project.likes)
        return list(project.likes)

    def comment(self, project_id: str, user_id: str, text: Any) -> List[dict]:
        """Append a comment and return every comment with its author summary."""
        project = self._require(project_id)
        data = validate_payload(CommentIn, {'text': text})
        project.comments = [
            *project.comments,
            {'id': models.new_id(), 'user': user_id, 'text': data.text, 'created_at': iso(utcnow())},
        ]
        self.project_repo.save(project)
        project = self._require(project_id)
        people = self.user_repo.summaries(c.get('user') for c in project.comments)
        return self._comments(project, people)

    def my_projects(self, user_id: str) -> List[dict]:
        return self._documents(self.project_repo.for_member(user_id))


class OpportunityService:
    """Job/internship postings and the application workflow."""
    def __init__(self, store: DocumentStore):
        self.store = store
        self.opportunity_repo = OpportunityRepository(store)
        self.user_repo = UserRepository(store)

    def _require(self, opportunity_id: str) -> models.Opportunity:
        opportunity = self.opportunity_repo.get(opportunity_id)
        if not opportunity:
            raise errors.NotFound('Opportunity not found')
        return opportunity

    def _document(self, opp: models.Opportunity, people: Dict[str, dict], with_applicants: bool = False) -> dict:
        applicants = [
            {
                'id': a.get('id'),
                'user': people.get(a.get('user')) if with_applicants else a.get('user'),
                'status': a.get('status'),
                'applied_at': a.get('applied_at'),
            }
            for a in opp.applicants
        ]
        return {
            'id': opp.id,
            'title': opp.title,
            'company': opp.company,
            'description': opp.description,
            'type': opp.type,
            'location': opp.location,
            'is_remote': opp.is_remote,
            'requirements': list(opp.requirements),
            'responsibilities': list(opp.responsibilities),
            'skills': list(opp.skills),
            'salary': dict(opp.salary) if opp.salary else None,
            'application_deadline': iso(opp.application_deadline),
            'posted_by': people.get(opp.posted_by),
            'applicants': applicants,
            'is_active': opp.is_active,
            'created_at': iso(opp.created_at),
            'updated_at': iso(opp.updated_at),
        }

    def _documents(self, opportunities: List[models.Opportunity]) -> List[dict]:
        people = self.user_repo.summaries(o.posted_by for o in opportunities)
        return [self._document(o, people) for o in opportunities]

    def list(self, type: Optional[str] = None, location: Optional[str] = None,
             is_remote: Optional[bool] = None, search: Optional[str] = None) -> List[dict]:
        """Active opportunities matching every given filter, newest first."""
        flt = OpportunityFilter(type=type, location=location, is_remote=is_remote, search=search)
        return self._documents(self.opportunity_repo.find(build_opportunity_query(flt)))

    def get(self, opportunity_id: str) -> dict:
        opp = self._require(opportunity_id)
        people = self.user_repo.summaries([opp.posted_by, *(a.get('user') for a in opp.applicants)])
        return self._document(opp, people, with_applicants=True)

    def create(self, fields: Any, poster_id: str) -> dict:
        """Post a new opportunity.

        The application deadline is stored as given; a deadline in the
        past is accepted.
        """
        data = validate_payload(OpportunityIn, fields)
        opp = models.Opportunity(posted_by=poster_id, **data.model_dump())
        opp = self.opportunity_repo.save(opp)
        logger.info("opportunity_created id=%s poster=%s", opp.id, poster_id)
        return self._documents([opp])[0]

    def update(self, opportunity_id: str, fields: Any) -> dict:
        opp = self._require(opportunity_id)
        for key, value in _changes(validate_payload(OpportunityUpdate, fields)).items():
            setattr(opp, key, value)
        return self._documents([self.opportunity_repo.save(opp)])[0]

    def delete(self, opportunity_id: str) -> None:
        opp = self._require(opportunity_id)
        self.opportunity_repo.delete(opp)
        logger.info("opportunity_deleted id=%s", opportunity_id)

    def apply(self, opportunity_id: str, user_id: str) -> dict:
        """Append a pending application for `user_id`; a second one is a `Conflict`."""
        opp = self._require(opportunity_id)
        if any(a.get('user') == user_id for a in opp.applicants):
            raise errors.Conflict('Already applied for this opportunity')
        entry = {'id': models.new_id(), 'user': user_id, 'status': 'pending', 'applied_at': iso(utcnow())}
        opp.applicants = [*opp.applicants, entry]
        self.opportunity_repo.save(opp)
        logger.info("opportunity_applied id=%s user=%s application=%s", opportunity_id, user_id, entry['id'])
        return dict(entry)

    def set_application_status(self, opportunity_id: str, application_id: str, status: Any) -> dict:
        """Overwrite one application's status.

        Any of the four statuses may follow any other; there is no
        terminal state. Values outside the allowed set are rejected.
        """
        opp = self._require(opportunity_id)
        applicants = [dict(a) for a in opp.applicants]
        match = next((a for a in applicants if a.get('id') == application_id), None)
        if match is None:
            raise errors.NotFound('Application not found')
        data = validate_payload(ApplicationStatusIn, {'status': status})
        match['status'] = data.status
        opp.applicants = applicants
        self.opportunity_repo.save(opp)
        logger.info("application_status_changed id=%s application=%s status=%s", opportunity_id, application_id, data.status)
        return dict(match)

    def my_applications(self, user_id: str) -> List[dict]:
        """Summaries of the caller's own applications across all opportunities."""
        out = []
        for opp in self.opportunity_repo.applied_by(user_id):
            mine = next(a for a in opp.applicants if a.get('user') == user_id)
            out.append({
                'opportunity': {'id': opp.id, 'title': opp.title, 'company': opp.company, 'type': opp.type},
                'application_id': mine.get('id'),
                'status': mine.get('status'),
                'applied_at': mine.get('applied_at'),
            })
        return out
