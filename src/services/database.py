"""Database engine, session and transaction helpers."""

from __future__ import annotations

import logging
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = Callable[[], Session]

_PG_FOREIGN_KEY_VIOLATION = "23503"
_PG_UNIQUE_VIOLATION = "23505"


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create an engine for the configured database URL."""
    url = database_url or settings.database.url
    if url.startswith("postgresql+asyncpg://"):
        url = url.replace("postgresql+asyncpg://", "postgresql://", 1)
    if url.startswith("sqlite"):
        return _create_sqlite_engine(url)
    return create_engine(url, pool_pre_ping=True)


def _create_sqlite_engine(url: str) -> Engine:
    """Create a SQLite engine with foreign keys and working SAVEPOINTs."""
    options: dict[str, object] = {"connect_args": {"check_same_thread": False}}
    if url in {"sqlite://", "sqlite:///:memory:"}:
        options["poolclass"] = StaticPool
    else:
        Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, **options)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:  # noqa: ANN001
        # Let SQLAlchemy emit BEGIN itself so SAVEPOINT behaves.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection) -> None:  # noqa: ANN001
        connection.exec_driver_sql("BEGIN")

    return engine


def create_session_factory(database_url: str | None = None) -> sessionmaker:
    """Create a session factory bound to a new engine."""
    engine = create_db_engine(database_url)
    return sessionmaker(bind=engine, expire_on_commit=False)


def dispose_session_factory(session_factory: sessionmaker) -> None:
    """Dispose of the engine behind a session factory."""
    bind = session_factory.kw.get("bind")
    if bind is not None:
        bind.dispose()


@contextmanager
def transaction(session_factory: SessionFactory) -> Iterator[Session]:
    """Yield a session whose work commits together or rolls back together."""
    with closing(session_factory()) as session:
        session.expire_on_commit = False
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


def run_in_transaction(
    session_factory: SessionFactory,
    handler: Callable[[Session], T],
) -> T:
    """Execute handler inside a single managed transaction."""
    with transaction(session_factory) as session:
        return handler(session)


def is_foreign_key_violation(error: BaseException) -> bool:
    """Return True when the error is a referential-integrity violation."""
    return _integrity_error_matches(
        error,
        sqlstate=_PG_FOREIGN_KEY_VIOLATION,
        sqlite_marker="FOREIGN KEY constraint failed",
    )


def is_unique_violation(error: BaseException) -> bool:
    """Return True when the error is a unique-constraint violation."""
    return _integrity_error_matches(
        error,
        sqlstate=_PG_UNIQUE_VIOLATION,
        sqlite_marker="UNIQUE constraint failed",
    )


def _integrity_error_matches(error: BaseException, *, sqlstate: str, sqlite_marker: str) -> bool:
    """Match an IntegrityError against a SQLSTATE or SQLite message."""
    if not isinstance(error, IntegrityError):
        return False
    original = error.orig
    code = getattr(original, "pgcode", None) or getattr(original, "sqlstate", None)
    if code is not None:
        return code == sqlstate
    return sqlite_marker in str(original)


def check_connection(session_factory: SessionFactory) -> bool:
    """Check if database connection is working."""
    try:
        with closing(session_factory()) as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database connection check failed: %s", e)
        return False


def run_migrations(database_url: str | None = None) -> None:
    """Apply Alembic migrations up to head."""
    alembic_ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url or settings.database.url)
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations applied")
