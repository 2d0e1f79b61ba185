"""Translate typed list filters into SQLAlchemy predicates.

Each `build_*_query` function returns a list of clauses that are
AND-combined by `DocumentStore.find_many`. Text search is a
case-insensitive substring match; `%` and `_` in user input are matched
literally.
"""

from typing import List, Optional

from sqlalchemy import String, cast, or_

from .models import Course, Opportunity, Project
from .schemas import CourseFilter, OpportunityFilter, ProjectFilter

_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """Return an ILIKE pattern matching `text` anywhere in a value."""
    escaped = (
        text.replace(_ESCAPE, _ESCAPE * 2)
        .replace("%", _ESCAPE + "%")
        .replace("_", _ESCAPE + "_")
    )
    return f"%{escaped}%"


def _search(text: Optional[str], *columns):
    pattern = contains_pattern(text)
    return or_(*[col.ilike(pattern, escape=_ESCAPE) for col in columns])


def json_array_mentions(column, value: str):
    """Coarse predicate: JSON `column` contains the quoted string `value`.

    Used as a store-side pre-filter for membership lookups; callers that
    need exact semantics re-check the decoded list.
    """
    return cast(column, String).contains(f'"{value}"')


def build_course_query(flt: CourseFilter) -> List:
    clauses = []
    if flt.difficulty:
        clauses.append(Course.difficulty == flt.difficulty)
    if flt.search:
        clauses.append(_search(flt.search, Course.title, Course.description))
    return clauses


def build_project_query(flt: ProjectFilter) -> List:
    clauses = []
    if flt.difficulty:
        clauses.append(Project.difficulty == flt.difficulty)
    if flt.status:
        clauses.append(Project.status == flt.status)
    if flt.search:
        clauses.append(_search(flt.search, Project.title, Project.description))
    return clauses


def build_opportunity_query(flt: OpportunityFilter) -> List:
    clauses = [Opportunity.is_active == True]  # noqa: E712
    if flt.type:
        clauses.append(Opportunity.type == flt.type)
    if flt.location:
        clauses.append(Opportunity.location.ilike(contains_pattern(flt.location), escape=_ESCAPE))
    if flt.is_remote is not None:
        clauses.append(Opportunity.is_remote == flt.is_remote)
    if flt.search:
        clauses.append(_search(flt.search, Opportunity.title, Opportunity.description, Opportunity.company))
    return clauses


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Parse a query-string flag; `None` means the flag was not given."""
    if value is None:
        return None
    return value.strip().lower() in ("true", "1", "yes")
