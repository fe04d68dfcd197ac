# giveaway/database.py
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from giveaway.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Postgres connection
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=5       : small fixed pool per worker process
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# SQLite (local dev / tests) needs none of that, but it does need the
# pysqlite transaction workaround so SAVEPOINTs behave. Serial and mug
# allocation rely on savepoints to survive unique-constraint conflicts.
# ---------------------------------------------------------


def enable_sqlite_savepoints(target: Engine) -> None:
    """
    Let SQLAlchemy (not pysqlite) emit BEGIN, so begin_nested() works.
    """

    @event.listens_for(target, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(db_url: str) -> Engine:
    if db_url.startswith("sqlite"):
        sqlite_engine = create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine

    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"

    return create_engine(
        db_url,
        echo=False,        # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=0,
    )


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
