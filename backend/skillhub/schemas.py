"""Pydantic request schemas and typed query filters.

Schemas keep API input shapes stable and provide validation for the
services. Services validate raw payload dicts against these models so
that the same rules apply whether a call comes from a route handler, a
script or a test.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

CourseDifficulty = Literal["beginner", "intermediate", "advanced"]
ProjectDifficulty = Literal["beginner", "intermediate", "expert"]
ProjectStatus = Literal["planning", "ongoing", "completed"]
OpportunityType = Literal["job", "internship", "project"]
ApplicationStatus = Literal["pending", "reviewed", "accepted", "rejected"]
Role = Literal["student", "admin"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# ---------- Users ----------

class RegisterIn(_Payload):
    """Payload for the registration endpoint."""
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginIn(_Payload):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(_Payload):
    """Fields a user may change on their own profile."""
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    profile_photo: Optional[str] = None
    contact_number: Optional[str] = None


class RoleIn(_Payload):
    role: Role


# ---------- Courses ----------

class Resource(_Payload):
    title: Optional[str] = None
    file_url: Optional[str] = None
    type: Optional[str] = None


class ContentModule(_Payload):
    """One ordered module of course content."""
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    resources: List[Resource] = Field(default_factory=list)


class CourseIn(_Payload):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    difficulty: CourseDifficulty
    duration: float = Field(..., gt=0, description="Length in hours")
    price: float = Field(..., ge=0)
    thumbnail: str = ""
    topics: List[str] = Field(default_factory=list)
    content: List[ContentModule] = Field(default_factory=list)
    is_published: bool = False


class CourseUpdate(_Payload):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    difficulty: Optional[CourseDifficulty] = None
    duration: Optional[float] = Field(None, gt=0)
    price: Optional[float] = Field(None, ge=0)
    thumbnail: Optional[str] = None
    topics: Optional[List[str]] = None
    content: Optional[List[ContentModule]] = None
    is_published: Optional[bool] = None


class RatingIn(_Payload):
    rating: float = Field(..., ge=1, le=5)
    review: str = ""


# ---------- Projects ----------

class ProjectIn(_Payload):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    difficulty: ProjectDifficulty
    technologies: List[str] = Field(default_factory=list)
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    thumbnail: Optional[str] = None
    resources: List[Resource] = Field(default_factory=list)


class ProjectUpdate(_Payload):
    """Mutable project fields. `creator` is deliberately absent."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    difficulty: Optional[ProjectDifficulty] = None
    status: Optional[ProjectStatus] = None
    technologies: Optional[List[str]] = None
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    thumbnail: Optional[str] = None
    collaborators: Optional[List[str]] = None
    resources: Optional[List[Resource]] = None


class CommentIn(_Payload):
    text: str = Field(..., min_length=1)


# ---------- Opportunities ----------

class Salary(_Payload):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)
    currency: str = "USD"


class OpportunityIn(_Payload):
    title: str = Field(..., min_length=1)
    company: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type: OpportunityType
    location: str = Field(..., min_length=1)
    application_deadline: datetime
    is_remote: bool = False
    requirements: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    salary: Optional[Salary] = None


class OpportunityUpdate(_Payload):
    title: Optional[str] = Field(None, min_length=1)
    company: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    type: Optional[OpportunityType] = None
    location: Optional[str] = Field(None, min_length=1)
    application_deadline: Optional[datetime] = None
    is_remote: Optional[bool] = None
    requirements: Optional[List[str]] = None
    responsibilities: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    salary: Optional[Salary] = None
    is_active: Optional[bool] = None


class ApplicationStatusIn(_Payload):
    status: ApplicationStatus


# ---------- Query filters ----------

class CourseFilter(BaseModel):
    """Optional course list filters; unset fields do not constrain."""
    difficulty: Optional[str] = None
    search: Optional[str] = None


class ProjectFilter(BaseModel):
    difficulty: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None


class OpportunityFilter(BaseModel):
    """Opportunity list filters. Inactive postings are always excluded."""
    type: Optional[str] = None
    location: Optional[str] = None
    is_remote: Optional[bool] = None
    search: Optional[str] = None
