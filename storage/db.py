"""PostgreSQL access for the job and image record repositories.

One ``ThreadedConnectionPool`` per process, created on first use and
sized from DB_POOL_MIN_CONNECTIONS / DB_POOL_MAX_CONNECTIONS. Crawl jobs
started in the background each borrow their own connection per statement
batch, so the pool is created under a lock.
"""

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager

import psycopg2
from psycopg2.extensions import connection
from psycopg2.extensions import cursor as psycopg_cursor
from psycopg2.pool import ThreadedConnectionPool

from env_config import get_database_url, get_db_pool_size

logger = logging.getLogger(__name__)

# Tables created by the alembic migration; the repositories need both
REQUIRED_TABLES = ("crawl_jobs", "crawled_images")

_connection_pool: ThreadedConnectionPool | None = None
_pool_lock = threading.Lock()


def init_connection_pool() -> ThreadedConnectionPool:
    """Return the process-wide pool, creating it on first call.

    Raises:
        psycopg2.Error: If connection to database fails.
    """
    global _connection_pool

    with _pool_lock:
        if _connection_pool is None:
            min_connections, max_connections = get_db_pool_size()
            _connection_pool = ThreadedConnectionPool(
                minconn=min_connections,
                maxconn=max_connections,
                dsn=get_database_url(),
            )
            logger.debug(
                f"Opened PostgreSQL pool ({min_connections}-{max_connections} connections)"
            )
        return _connection_pool


@contextmanager
def get_connection() -> Generator[connection, None, None]:
    """Borrow a connection, returned to the pool on exit."""
    pool = init_connection_pool()
    conn = pool.getconn()
    try:
        yield conn
    finally:
        pool.putconn(conn)


@contextmanager
def get_cursor() -> Generator[psycopg_cursor, None, None]:
    """Get a cursor that commits on success and rolls back on error.

    Example:
        >>> with get_cursor() as cur:
        ...     cur.execute("SELECT COUNT(*) FROM crawled_images WHERE job_id = %s", (job_id,))
        ...     count = cur.fetchone()[0]
    """
    with get_connection() as conn:
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()


def missing_tables(cur: psycopg_cursor) -> list[str]:
    """Return the required crawl tables that do not exist yet."""
    missing = []
    for table in REQUIRED_TABLES:
        cur.execute("SELECT to_regclass(%s)", (table,))
        if cur.fetchone()[0] is None:
            missing.append(table)
    return missing


def check_connection() -> bool:
    """Check that the database is reachable and migrated.

    Returns:
        True if the server answers and both crawl tables exist.
    """
    try:
        with get_cursor() as cur:
            cur.execute("SELECT version()")
            version = cur.fetchone()[0]
            missing = missing_tables(cur)
    except psycopg2.Error as e:
        logger.error(f"Database connection failed: {e}")
        return False

    if missing:
        logger.error(
            f"Database schema is missing tables {', '.join(missing)}; "
            "run 'alembic upgrade head'"
        )
        return False

    logger.info(f"Database connected: {version}")
    return True


def close_all_connections() -> None:
    """Close every pooled connection and forget the pool."""
    global _connection_pool
    with _pool_lock:
        if _connection_pool is not None:
            _connection_pool.closeall()
            _connection_pool = None
