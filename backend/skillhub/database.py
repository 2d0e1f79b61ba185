"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
the FastAPI dependencies that hand each request its own session and
document store handle.
"""

from fastapi import Depends
from sqlmodel import SQLModel, create_engine, Session

from .config import settings
from .store import DocumentStore


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args(settings.DATABASE_URL))


def create_db_and_tables(bind=None):
    """Create the collection tables using SQLModel metadata.

    This function is intended for local development and tests; every
    aggregate is a single table whose embedded arrays live in JSON
    columns, so there are no join tables to migrate.
    """
    # models must be imported so their tables register on the metadata
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(bind if bind is not None else engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session


def get_store(session: Session = Depends(get_session)) -> DocumentStore:
    """Wrap the request session in a `DocumentStore` handle."""
    return DocumentStore(session)
