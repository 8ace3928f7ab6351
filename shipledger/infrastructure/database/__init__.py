"""
Database initialization and session management.
"""

from collections.abc import Generator
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlmodel import SQLModel

from shipledger.core.config import Settings, get_engine_url, get_settings
from shipledger.infrastructure.database import models

DEFAULT_EXCHANGE_RATE = Decimal("5.00")


def build_engine(settings: Settings) -> Engine:
    """Create the engine; db_timeout_seconds bounds lock waits and statements."""
    url = get_engine_url(settings)
    if settings.database_type == "sqlite":
        connect_args = {"check_same_thread": False, "timeout": settings.db_timeout_seconds}
    else:
        timeout_ms = int(settings.db_timeout_seconds * 1000)
        connect_args = {
            "connect_timeout": max(1, int(settings.db_timeout_seconds)),
            "options": f"-c statement_timeout={timeout_ms}",
        }
    engine = create_engine(url, echo=settings.db_echo, connect_args=connect_args)
    if settings.database_type == "sqlite":
        begin_sqlite_transactions(engine)
    return engine


def begin_sqlite_transactions(engine: Engine) -> None:
    """
    Make pysqlite start its transaction at the first statement, reads included.
    By default it only emits BEGIN before a write, so SELECTs in one unit of
    work would each see the latest commit.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = build_engine(get_settings())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency - Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables and the settings row if missing."""
    if bind is None:
        settings = get_settings()
        if settings.database_type == "sqlite":
            Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        bind = engine
    SQLModel.metadata.create_all(bind=bind)

    with Session(bind) as db:
        if db.get(models.AppSettings, 1) is None:
            db.add(models.AppSettings(id=1, exchange_rate=DEFAULT_EXCHANGE_RATE))
            db.commit()


if __name__ == "__main__":
    init_db()
    print("Database initialized successfully!")
