"""
Database Session Management
============================

Handles database connections and session lifecycle.

There is no module-level engine: a ``Store`` owns one engine and is passed
explicitly to whatever needs the database. ``open_store()`` scopes a store
to a script run or CLI session and disposes the engine afterwards.
"""

import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from querylab.config import settings
from querylab.core.errors import translate_store_error
from querylab.core.logging import get_logger
from querylab.models.base import Base

logger = get_logger(__name__)


def _is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_db_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: SQLAlchemy URL; defaults to ``settings.database_url``
        echo: Log emitted SQL; defaults to ``settings.sql_echo``
    """
    database_url = database_url or settings.database_url
    echo = settings.sql_echo if echo is None else echo

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    in_memory = _is_memory_sqlite(database_url)
    if not in_memory:
        # Ensure data directory exists
        db_dir = os.path.dirname(make_url(database_url).database)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if in_memory else None,
        echo=echo,
    )

    # Foreign keys, case-sensitive LIKE, WAL, and pysqlite's
    # transaction handling switched off so SAVEPOINT works
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA case_sensitive_like=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


class Store:
    """
    Handle to the relational store.

    Owns the engine and the session factory. Every unit of work gets its
    own session; sessions are never shared between units.

    Example:
        store = Store.from_url("sqlite:///./data/querylab.db")
        with store.session() as db:
            QueryExecutor(db).find("User")
        store.dispose()
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.SessionLocal = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )

    @classmethod
    def from_url(cls, database_url: Optional[str] = None, echo: Optional[bool] = None) -> "Store":
        return cls(create_db_engine(database_url, echo))

    @property
    def url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)

    def new_session(self) -> Session:
        """A fresh, unmanaged session. The caller must close it."""
        return self.SessionLocal()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for one unit of work.

        Commits on success, rolls back on any exception, always closes.

        Usage:
            with store.session() as db:
                MutationExecutor(db).delete("User", ALL_RECORDS)
        """
        db = self.SessionLocal()
        try:
            yield db
            try:
                db.commit()
            except SQLAlchemyError as exc:
                raise translate_store_error(exc, operation="commit") from exc
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()

    def create_all_tables(self) -> None:
        """Create all tables in the database."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, operation="create tables") from exc

    def drop_all_tables(self) -> None:
        """Drop all tables in the database."""
        try:
            Base.metadata.drop_all(bind=self.engine)
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, operation="drop tables") from exc

    def dispose(self) -> None:
        """Release every pooled connection."""
        self.engine.dispose()
        logger.debug("Disposed engine for %s", self.url)


@contextmanager
def open_store(database_url: Optional[str] = None, create_tables: bool = True) -> Generator[Store, None, None]:
    """
    Scope a Store to a block (script run, CLI session).

    Args:
        database_url: Overrides ``settings.database_url``
        create_tables: Create missing tables on entry

    Usage:
        with open_store() as store:
            DataAccessService(store).find("User")
    """
    store = Store.from_url(database_url)
    logger.info("Opened store %s", store.url)
    try:
        if create_tables:
            store.create_all_tables()
        yield store
    finally:
        store.dispose()
