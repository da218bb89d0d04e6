"""
Database engine and session handling
"""

from typing import Iterator
from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine
from app.config import settings

connect_args = {}
if settings.database_url.startswith("sqlite"):
    # Background jobs run on other threads than the request that created the row
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, echo=False, connect_args=connect_args)


if settings.database_url.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_db():
    # Register the tables on SQLModel.metadata before creating them
    from app.models import db_models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine)


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session"""
    with Session(engine) as session:
        yield session
