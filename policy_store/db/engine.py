# (c) Copyright Datacraft, 2026
from sqlalchemy import create_engine, event, Engine
from sqlalchemy.orm import sessionmaker

from .base import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections get FK enforcement and a busy timeout."""
    connect_args = {}
    if db_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(db_url, echo=echo, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables known to the ORM metadata."""
    # registers the mapped classes on Base.metadata
    from policy_store.rules import models  # noqa: F401

    Base.metadata.create_all(engine)
