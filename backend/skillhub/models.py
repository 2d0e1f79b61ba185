"""SQLModel document models.

Each class maps to one collection (table). References to other
documents are plain string ids; embedded sub-documents (enrollment
lists, ratings, comments, applicants) are stored in JSON columns so a
whole aggregate is read and written as one row.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field

from .store import utcnow


def new_id() -> str:
    return uuid4().hex


def _json_list():
    return Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login identity
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: `student` or `admin`
    - `enrolled_courses`: course ids in enrollment order
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str = "student"
    profile_photo: str = ""
    contact_number: str = ""
    enrolled_courses: List[str] = _json_list()
    completed_courses: List[str] = _json_list()
    projects: List[str] = _json_list()
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Course(SQLModel, table=True):
    """A course taught by an instructor.

    `ratings` holds at most one `{user, rating, review}` entry per user
    and `enrolled_students` holds each user id at most once.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: str
    instructor: str = Field(index=True)
    thumbnail: str = ""
    difficulty: str = Field(index=True)
    duration: float
    topics: List[str] = _json_list()
    content: List[Dict[str, Any]] = _json_list()
    enrolled_students: List[str] = _json_list()
    ratings: List[Dict[str, Any]] = _json_list()
    price: float
    is_published: bool = False
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class Project(SQLModel, table=True):
    """A student project with collaborators, likes and comments."""
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: str
    creator: str = Field(index=True)
    difficulty: str = Field(index=True)
    status: str = Field(default="planning", index=True)
    technologies: List[str] = _json_list()
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    thumbnail: Optional[str] = None
    collaborators: List[str] = _json_list()
    resources: List[Dict[str, Any]] = _json_list()
    likes: List[str] = _json_list()
    comments: List[Dict[str, Any]] = _json_list()
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class Opportunity(SQLModel, table=True):
    """A job, internship or project posting that users apply to.

    Every entry in `applicants` carries its own `id` so a single
    application can be addressed regardless of its position.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    company: str
    description: str
    type: str = Field(index=True)
    location: str
    is_remote: bool = False
    requirements: List[str] = _json_list()
    responsibilities: List[str] = _json_list()
    skills: List[str] = _json_list()
    salary: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    application_deadline: datetime
    posted_by: str = Field(index=True)
    applicants: List[Dict[str, Any]] = _json_list()
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
