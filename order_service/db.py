"""
db.py — Engine, Connection Pool and Session Factory

The engine is created lazily from DATABASE_URL and shared by all requests.
Each order placement checks out one connection from the pool through a
session and returns it on every exit path (the session context manager).

SQLite is supported for local development and tests. It has no row-level
locks, so every transaction is opened with `BEGIN IMMEDIATE`: writers are
serialized by the database itself and wait up to DB_BUSY_TIMEOUT seconds
for each other instead of failing.
"""

import logging

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from . import config
from .errors import ConfigurationError
from .tables import Base, OrderNumberCounter

log = logging.getLogger(__name__)

_engine = None
_session_factory = None


def _enable_sqlite_write_locks(engine: Engine):
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy control BEGIN instead of pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str, echo: bool = False, pool_size: int = config.DB_POOL_SIZE) -> Engine:
    """
    Creates a pooled engine for the given database URL.

    Args:
        url (str): SQLAlchemy database URL (postgresql+psycopg2://..., sqlite:///...).
        echo (bool): Log every SQL statement.
        pool_size (int): Number of pooled connections (ignored for SQLite).

    Returns:
        Engine: The configured engine.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": config.DB_BUSY_TIMEOUT},
        )
        _enable_sqlite_write_locks(engine)
        return engine

    return create_engine(url, echo=echo, pool_size=pool_size, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False: results are read after the transaction closed
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_engine() -> Engine:
    """Returns the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        if not config.DATABASE_URL:
            raise ConfigurationError("Server-Konfiguration fehlerhaft (DATABASE_URL fehlt).")
        _engine = create_db_engine(config.DATABASE_URL, echo=config.DB_ECHO)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


def init_db(engine: Engine):
    """
    Creates all tables (and the order number sequence where supported) and
    seeds the single counter row used by dialects without sequences.
    """
    Base.metadata.create_all(engine)
    with Session(engine) as session, session.begin():
        if session.scalar(select(OrderNumberCounter).where(OrderNumberCounter.id == 1)) is None:
            session.add(OrderNumberCounter(id=1, value=0))
    log.info(f"Datenbankschema initialisiert ({engine.dialect.name}).")


def dispose_engine():
    """Closes all pooled connections and forgets the engine."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
