"""
Database access - engine creation, schema setup and dialect helpers

SQLite is the default store; PostgreSQL (psycopg2 driver) is supported
through the same SQLAlchemy Core statements.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

from app.utils.logger import get_logger
from data_pipeline.errors import SchemaVersionError
from data_pipeline.storage.schema import (
    DATA_TABLES,
    SCHEMA_VERSION,
    metadata,
    schema_version,
    vehicles,
)


logger = get_logger(__name__)

SUPPORTED_DIALECTS = ("sqlite", "postgresql")


def normalize_database_url(value: str) -> str:
    """
    Accept either a SQLAlchemy URL or a plain SQLite file path.

    Examples:
        >>> normalize_database_url("./data/racing.db")
        'sqlite:///./data/racing.db'
        >>> normalize_database_url("postgresql+psycopg2://u:p@db/race")
        'postgresql+psycopg2://u:p@db/race'
    """
    if "://" in value:
        return value
    if value == ":memory:":
        return "sqlite://"
    return f"sqlite:///{value}"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for a database URL or SQLite path.

    SQLite file stores get their parent directory created; in-memory SQLite
    uses a single shared connection so every session sees the same data.
    Foreign keys are enforced on SQLite connections.

    Raises:
        ValueError: If the URL names an unsupported backend
    """
    url = normalize_database_url(url)
    parsed = sa.engine.make_url(url)
    backend = parsed.get_backend_name()
    if backend not in SUPPORTED_DIALECTS:
        raise ValueError(f"Unsupported database backend: {backend}")

    if backend == "sqlite":
        kwargs = {"connect_args": {"check_same_thread": False}}
        if not parsed.database or parsed.database == ":memory:":
            kwargs["poolclass"] = StaticPool
        else:
            Path(parsed.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

        engine = sa.create_engine(url, echo=echo, future=True, **kwargs)
        sa.event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = sa.create_engine(url, echo=echo, future=True, pool_pre_ping=True)

    logger.debug(
        "Created database engine",
        extra={"extra_data": {"backend": backend, "database": parsed.database}},
    )
    return engine


def init_database(engine: Engine) -> int:
    """
    Create missing tables and indexes and check the schema version.

    Returns:
        The schema version recorded in the store

    Raises:
        SchemaVersionError: If the store was written by a newer schema
    """
    metadata.create_all(engine)

    with engine.begin() as conn:
        current = conn.execute(sa.select(sa.func.max(schema_version.c.version))).scalar()
        if current is None:
            conn.execute(
                schema_version.insert().values(
                    version=SCHEMA_VERSION,
                    applied_at=datetime.now(timezone.utc).isoformat(),
                )
            )
            logger.info(f"Initialized database schema v{SCHEMA_VERSION}")
            return SCHEMA_VERSION

    if current > SCHEMA_VERSION:
        raise SchemaVersionError(
            f"Database schema v{current} is newer than supported v{SCHEMA_VERSION}",
            details={"found": current, "supported": SCHEMA_VERSION},
        )
    return current


def insert_ignore(conn: Connection, table: sa.Table):
    """Insert statement that skips rows whose key already exists."""
    if conn.dialect.name == "postgresql":
        return postgresql.insert(table).on_conflict_do_nothing()
    return sqlite.insert(table).on_conflict_do_nothing()


def count_rows(conn: Connection, table: sa.Table) -> int:
    return conn.execute(sa.select(sa.func.count()).select_from(table)).scalar_one()


def table_counts(conn: Connection) -> Dict[str, int]:
    """Row count of every data table."""
    return {table.name: count_rows(conn, table) for table in DATA_TABLES}


def has_data(conn: Connection) -> bool:
    """Whether the store already holds imported vehicles."""
    return conn.execute(sa.select(vehicles.c.vehicle_id).limit(1)).first() is not None
