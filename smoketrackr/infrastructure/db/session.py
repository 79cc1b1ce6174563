"""
Database engine and session management (SQLAlchemy)

Production runs on PostgreSQL through psycopg 3 (postgresql+psycopg://).
SQLite URLs are accepted for local runs and tests; pysqlite's implicit
transactions are switched off for them so that Session.begin_nested()
emits a real SAVEPOINT (the import writes every row inside one).
"""
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from smoketrackr.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for the ledger tables"""
    pass


_engine: Engine | None = None
_session_factory: sessionmaker | None = None

_IN_MEMORY_SQLITE = ("sqlite://", "sqlite:///:memory:")


def _enable_sqlite_savepoints(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, echo: bool = False, connect_timeout: int = 3) -> Engine:
    """
    Создать engine по URL

    In-memory SQLite gets one shared connection, so every session and
    every worker thread of the TestClient sees the same database.

    Example:
        >>> engine = build_engine("sqlite://")
        >>> engine.dialect.name
        'sqlite'
    """
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            connect_args={"connect_timeout": connect_timeout},
        )

    options = {"connect_args": {"check_same_thread": False}}
    if url in _IN_MEMORY_SQLITE:
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)
    _enable_sqlite_savepoints(engine)
    return engine


def get_engine() -> Engine:
    """Engine приложения (создаётся при первом обращении)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.get_sqlalchemy_url(), echo=settings.DB_ECHO)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False)
    return _session_factory


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency: одна сессия на запрос

    Uncommitted changes are rolled back when the handler raises.
    """
    db = get_session_factory()()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection() -> None:
    """
    Readiness check: SELECT 1 через engine приложения

    Raises:
        sqlalchemy.exc.OperationalError: если БД недоступна
    """
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))
