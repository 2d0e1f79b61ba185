"""Repository classes encapsulating document store access.

Each repository is small and focused on a single aggregate (users,
courses, projects, opportunities). Repositories return SQLModel objects
and hold no business rules; they only know the shape of their
collection.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlmodel import select

from . import models
from .queries import json_array_mentions
from .store import DocumentStore


class UserRepository:
    """Lookups and persistence for `User` documents."""
    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, user_id: str) -> Optional[models.User]:
        """Get a `User` by id."""
        return self.store.find_by_id(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        found = self.store.find_many(models.User, [models.User.email == email.lower()])
        return found[0] if found else None

    def list_all(self) -> List[models.User]:
        return self.store.find_many(models.User, order_by=models.User.created_at.desc())

    def summaries(self, user_ids: Iterable[str]) -> Dict[str, dict]:
        """Return `{id: {id, name, email}}` for every id that resolves.

        One query regardless of how many ids are requested.
        """
        wanted = {uid for uid in user_ids if uid}
        if not wanted:
            return {}
        stmt = select(models.User.id, models.User.name, models.User.email).where(models.User.id.in_(wanted))
        rows = self.store.session.exec(stmt).all()
        return {row[0]: {"id": row[0], "name": row[1], "email": row[2]} for row in rows}

    def save(self, user: models.User) -> models.User:
        return self.store.save(user)

    def delete(self, user: models.User) -> None:
        self.store.delete(user)


class CourseRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, course_id: str) -> Optional[models.Course]:
        return self.store.find_by_id(models.Course, course_id)

    def find(self, clauses: List) -> List[models.Course]:
        """Return courses matching `clauses`, newest first."""
        return self.store.find_many(models.Course, clauses, order_by=models.Course.created_at.desc())

    def list_by_ids(self, course_ids: List[str]) -> List[models.Course]:
        """Return courses for `course_ids` in the order given, skipping missing ids."""
        if not course_ids:
            return []
        found = self.store.find_many(models.Course, [models.Course.id.in_(set(course_ids))])
        by_id = {c.id: c for c in found}
        return [by_id[cid] for cid in course_ids if cid in by_id]

    def save(self, course: models.Course) -> models.Course:
        return self.store.save(course)

    def delete(self, course: models.Course) -> None:
        self.store.delete(course)


class ProjectRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, project_id: str) -> Optional[models.Project]:
        return self.store.find_by_id(models.Project, project_id)

    def find(self, clauses: List) -> List[models.Project]:
        """Return projects matching `clauses`, newest first."""
        return self.store.find_many(models.Project, clauses, order_by=models.Project.created_at.desc())

    def for_member(self, user_id: str) -> List[models.Project]:
        """Projects created by `user_id` or listing them as a collaborator, newest first."""
        candidates = self.find([or_(
            models.Project.creator == user_id,
            json_array_mentions(models.Project.collaborators, user_id),
        )])
        return [p for p in candidates if p.creator == user_id or user_id in p.collaborators]

    def save(self, project: models.Project) -> models.Project:
        return self.store.save(project)


class OpportunityRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, opportunity_id: str) -> Optional[models.Opportunity]:
        return self.store.find_by_id(models.Opportunity, opportunity_id)

    def find(self, clauses: List) -> List[models.Opportunity]:
        """Return opportunities matching `clauses`, newest first."""
        return self.store.find_many(models.Opportunity, clauses, order_by=models.Opportunity.created_at.desc())

    def applied_by(self, user_id: str) -> List[models.Opportunity]:
        """Opportunities holding an applicant entry for `user_id`, newest first."""
        candidates = self.find([json_array_mentions(models.Opportunity.applicants, user_id)])
        return [o for o in candidates if any(a.get("user") == user_id for a in o.applicants)]

    def save(self, opportunity: models.Opportunity) -> models.Opportunity:
        return self.store.save(opportunity)

    def delete(self, opportunity: models.Opportunity) -> None:
        self.store.delete(opportunity)
