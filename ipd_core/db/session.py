# ipd_core/db/session.py
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ipd_core.core.config import settings


def make_engine(db_uri: str, *, lock_timeout: int | None = None, echo: bool = False) -> Engine:
    """
    Build an engine whose connections give up waiting on a row lock after
    ``lock_timeout`` seconds, so a blocked bed lock surfaces as an error
    instead of hanging the request.
    """
    timeout = settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout

    if db_uri.startswith("sqlite"):
        eng = create_engine(
            db_uri,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": timeout,
            },
            future=True,
        )

        # pysqlite has no SELECT ... FOR UPDATE; take the database write lock
        # at BEGIN so transactions serialize the same way the bed row lock does.
        @event.listens_for(eng, "connect")
        def _sqlite_connect(dbapi_conn, connection_record):
            dbapi_conn.isolation_level = None
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        @event.listens_for(eng, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return eng

    eng = create_engine(
        db_uri,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        future=True,
    )

    if eng.dialect.name == "mysql":

        @event.listens_for(eng, "connect")
        def _mysql_connect(dbapi_conn, connection_record):
            cur = dbapi_conn.cursor()
            cur.execute(f"SET SESSION innodb_lock_wait_timeout = {int(timeout)}")
            cur.close()

    elif eng.dialect.name == "postgresql":

        @event.listens_for(eng, "connect")
        def _pg_connect(dbapi_conn, connection_record):
            cur = dbapi_conn.cursor()
            cur.execute(f"SET lock_timeout = '{int(timeout)}s'")
            cur.close()
            dbapi_conn.commit()

    return eng


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=eng,
        future=True,
    )


engine: Engine = make_engine(settings.SQLALCHEMY_DATABASE_URI, echo=settings.DB_ECHO)

SessionLocal = make_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
