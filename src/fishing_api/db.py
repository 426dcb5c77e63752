import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.extras
from psycopg2 import sql
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT, make_dsn, parse_dsn
from psycopg2.pool import ThreadedConnectionPool

from fishing_api.config import required_env

logger = logging.getLogger(__name__)


def _build_dsn() -> str:
    """
    Build DSN from the standardized database env vars.

    Uses:
      - POSTGRES_URL (optional full DSN; if provided, it wins)
      - POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_DB, POSTGRES_PORT, POSTGRES_HOST
    """
    url = os.getenv("POSTGRES_URL")
    if url:
        return url

    user = required_env("POSTGRES_USER")
    password = required_env("POSTGRES_PASSWORD")
    db = required_env("POSTGRES_DB")
    port = required_env("POSTGRES_PORT")
    host = os.getenv("POSTGRES_HOST", "localhost")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


_POOL: Optional[ThreadedConnectionPool] = None


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username VARCHAR(50) UNIQUE NOT NULL,
        password VARCHAR(255) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS game_data (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        money INTEGER NOT NULL DEFAULT 0 CHECK (money >= 0),
        fishing_rod VARCHAR(50) NOT NULL DEFAULT 'normal',
        owned_rods TEXT[] NOT NULL DEFAULT ARRAY['normal']::TEXT[],
        last_saved TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inventory (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        fish_name VARCHAR(100) NOT NULL,
        rarity VARCHAR(50) NOT NULL,
        weight NUMERIC(4,1) NOT NULL,
        price INTEGER NOT NULL CHECK (price >= 0),
        colour VARCHAR(20) NOT NULL,
        favourite BOOLEAN NOT NULL DEFAULT FALSE,
        caught_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS inventory_user_caught_idx ON inventory (user_id, caught_at DESC)",
)


# PUBLIC_INTERFACE
def init_db_pool() -> None:
    """Initialize the global PostgreSQL connection pool."""
    global _POOL
    if _POOL is not None:
        return

    _POOL = ThreadedConnectionPool(
        minconn=int(os.getenv("DB_POOL_MIN", "1")),
        maxconn=int(os.getenv("DB_POOL_MAX", "10")),
        dsn=_build_dsn(),
    )


# PUBLIC_INTERFACE
def close_db_pool() -> None:
    """Close every pooled connection and forget the pool."""
    global _POOL
    if _POOL is None:
        return
    _POOL.closeall()
    _POOL = None


# PUBLIC_INTERFACE
def ensure_database() -> bool:
    """
    Create the target database when it does not exist yet.

    Connects to the maintenance database (POSTGRES_MAINTENANCE_DB, default
    "postgres") because CREATE DATABASE cannot run inside the target itself.
    Returns True when the database was created.
    """
    dsn = _build_dsn()
    name = parse_dsn(dsn).get("dbname")
    if not name:
        raise RuntimeError("Database name missing from the configured DSN.")

    maintenance_dsn = make_dsn(dsn, dbname=os.getenv("POSTGRES_MAINTENANCE_DB", "postgres"))
    conn = psycopg2.connect(maintenance_dsn)
    try:
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        with conn.cursor() as cur:
            cur.execute("SELECT 1 FROM pg_database WHERE datname=%s", [name])
            if cur.fetchone():
                return False
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name)))
    finally:
        conn.close()

    logger.info("Created database %s", name)
    return True


# PUBLIC_INTERFACE
def init_schema() -> None:
    """Create the users, game_data and inventory tables if missing."""
    with transaction() as cur:
        for statement in SCHEMA_STATEMENTS:
            cur.execute(statement)


# PUBLIC_INTERFACE
def init_database() -> None:
    """Provision database, pool and tables. Any failure propagates to the caller."""
    ensure_database()
    init_db_pool()
    init_schema()
    logger.info("Database initialized successfully")


@contextmanager
def _get_conn():
    if _POOL is None:
        init_db_pool()
    assert _POOL is not None
    conn = _POOL.getconn()
    try:
        yield conn
    finally:
        _POOL.putconn(conn)


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# PUBLIC_INTERFACE
@contextmanager
def transaction() -> Iterator[Any]:
    """
    Run several statements as one unit of work.

    Yields a dict cursor; commits when the block exits normally and rolls
    back (re-raising) when it raises.
    """
    with _get_conn() as conn:
        try:
            with _dict_cursor(conn) as cur:
                yield cur
            conn.commit()
        except BaseException:
            conn.rollback()
            raise


# PUBLIC_INTERFACE
def fetch_one(query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dict, or None."""
    with _get_conn() as conn:
        try:
            with _dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                row = cur.fetchone()
        finally:
            conn.rollback()
        return dict(row) if row else None


# PUBLIC_INTERFACE
def fetch_all(query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    """Fetch all rows as dicts."""
    with _get_conn() as conn:
        try:
            with _dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                rows = cur.fetchall()
        finally:
            conn.rollback()
        return [dict(r) for r in rows]


# PUBLIC_INTERFACE
def execute(query: str, params: Optional[Sequence[Any]] = None) -> int:
    """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
    with transaction() as cur:
        cur.execute(query, params or [])
        return cur.rowcount


# PUBLIC_INTERFACE
def execute_returning_one(query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
    """Execute a statement with RETURNING and return the first row as dict."""
    with transaction() as cur:
        cur.execute(query, params or [])
        row = cur.fetchone()
        if not row:
            raise RuntimeError("Expected one row returned, got none.")
        return dict(row)
