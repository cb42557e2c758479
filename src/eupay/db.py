from pathlib import Path
from typing import Optional
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session
from eupay.config import settings
from eupay.logging import logger

DB_NAME = "eupay.db"

# Connection execution option asking for a transaction that holds the write lock
BEGIN_IMMEDIATE = "eupay_begin_immediate"


def default_db_url() -> str:
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return f"sqlite:///{Path(settings.DATA_DIR) / DB_NAME}"


def _sqlite_explicit_transactions(engine: Engine):
    # pysqlite defers BEGIN until the first write; emit it ourselves so a
    # transaction covers its reads too (SQLAlchemy's pysqlite recipe)
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        if conn.get_execution_options().get(BEGIN_IMMEDIATE):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_db_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """Build an engine; the caller owns it and passes it on."""
    url = url or default_db_url()
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, echo=echo)
    if engine.dialect.name == "sqlite":
        _sqlite_explicit_transactions(engine)
    return engine


def begin_write(session: Session):
    """
    Start the session's transaction as a writer.

    On SQLite engines from create_db_engine this is BEGIN IMMEDIATE: a second
    writer blocks (up to the driver's busy timeout) until this one commits.
    Must be called before the session has run anything.
    """
    session.connection(execution_options={BEGIN_IMMEDIATE: True})


def init_db(engine: Engine):
    # Import all models here so SQLModel knows about them
    # This is critical for create_all to work
    from eupay.models import staff, project, entry, rates, payment  # noqa: F401

    logger.info(f"Initializing database at {engine.url}")
    SQLModel.metadata.create_all(engine)
