"""Document store over a SQLModel session.

Each aggregate (user, course, project, opportunity) is one row whose
embedded arrays live in JSON columns. The store exposes the four
operations services rely on: lookup by id, predicate query with sort,
whole-document save and delete by id. A store wraps exactly one
session and is created per request; it is never shared between
requests.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Type, TypeVar

from sqlalchemy import JSON, inspect
from sqlalchemy.orm.attributes import flag_modified
from sqlmodel import Session, SQLModel, select

T = TypeVar("T", bound=SQLModel)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore:
    """Persistence handle injected into repositories and services."""
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, model: Type[T], doc_id: str) -> Optional[T]:
        """Return the document with primary key `doc_id` or `None`."""
        if not doc_id:
            return None
        return self.session.get(model, doc_id)

    def find_many(self, model: Type[T], where: Iterable = (), order_by=None) -> List[T]:
        """Return documents matching every clause in `where`.

        `order_by` is any SQLAlchemy ordering expression, e.g.
        `Course.created_at.desc()`.
        """
        stmt = select(model)
        clauses = list(where)
        if clauses:
            stmt = stmt.where(*clauses)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        return list(self.session.exec(stmt).all())

    def save(self, *docs: T):
        """Insert or update `docs` in a single transaction.

        Passing several documents (e.g. a course and the user enrolling in
        it) commits them together: either both writes land or neither
        does. Returns the saved document, or a list when several were
        given.
        """
        self._stage(docs)
        self._commit()
        for doc in docs:
            self.session.refresh(doc)
        return docs[0] if len(docs) == 1 else list(docs)

    def delete(self, doc: T, *also_save: T) -> None:
        """Delete `doc`, optionally saving related documents in the same commit."""
        self._stage(also_save)
        self.session.delete(doc)
        self._commit()

    def delete_by_id(self, model: Type[T], doc_id: str) -> bool:
        """Delete the document with id `doc_id`; return False if it did not exist."""
        doc = self.find_by_id(model, doc_id)
        if doc is None:
            return False
        self.delete(doc)
        return True

    def _stage(self, docs: Iterable[SQLModel]) -> None:
        now = utcnow()
        for doc in docs:
            if hasattr(doc, "updated_at"):
                doc.updated_at = now
            self._flag_json_columns(doc)
            self.session.add(doc)

    def _commit(self) -> None:
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    @staticmethod
    def _flag_json_columns(doc: SQLModel) -> None:
        # in-place edits of JSON lists are invisible to the unit of work
        state = inspect(doc)
        if not state.persistent:
            return
        for column in doc.__table__.columns:
            # expired attributes are reloaded on access and cannot hold edits
            if isinstance(column.type, JSON) and column.key in state.dict:
                flag_modified(doc, column.key)
