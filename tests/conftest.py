"""Pytest configuration and fixtures for the site image crawler tests.

Provides in-memory stores for engine tests and database fixtures for
PostgreSQL integration tests.
"""

import logging
import os

import pytest

from crawler.progress import ProgressHub
from processor.retry import RetryPolicy
from storage.memory import MemoryImageRecordStore, MemoryJobStore

# Skip DB tests if no database URL configured
SKIP_DB_TESTS = not os.getenv("DATABASE_URL")


# Module-level connection pool shared across all tests
_pool = None


def _get_test_pool():
    """Get or create the test connection pool."""
    global _pool
    if _pool is None:
        from storage.db import init_connection_pool

        _pool = init_connection_pool()
    return _pool


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo root logger changes made by setup_logging during a test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def job_store() -> MemoryJobStore:
    return MemoryJobStore()


@pytest.fixture
def image_store() -> MemoryImageRecordStore:
    return MemoryImageRecordStore()


@pytest.fixture
def hub() -> ProgressHub:
    return ProgressHub()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by retry policies built with ``no_wait_policy``."""
    return []


@pytest.fixture
def no_wait_policy(sleeps: list[float]) -> RetryPolicy:
    """Retry policy with the default schedule that records delays instead of sleeping."""
    return RetryPolicy(max_retries=2, base_delay=1.0, timeout_base_delay=2.0, sleep=sleeps.append)


@pytest.fixture
def db_cursor():
    """Provide a database cursor for integration tests.

    Truncates the crawl tables so every test starts clean. Data written
    through the repositories is committed on their own connections.

    Yields:
        Database cursor object
    """
    if SKIP_DB_TESTS:
        pytest.skip("DATABASE_URL not set, skipping DB test")

    pool = _get_test_pool()
    conn = pool.getconn()
    cursor = None
    try:
        conn.autocommit = False
        cursor = conn.cursor()
        cursor.execute("TRUNCATE TABLE crawl_jobs CASCADE")
        conn.commit()

        yield cursor

        conn.rollback()
    finally:
        if cursor:
            cursor.close()
        if conn:
            conn.autocommit = True
            pool.putconn(conn)
