"""Tests for the PostgreSQL pool helpers, with psycopg2 mocked out."""

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from storage import db


@pytest.fixture
def pool(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Install a mocked pool whose connection yields a mocked cursor."""
    cursor = MagicMock()
    conn = MagicMock()
    conn.cursor.return_value = cursor
    fake_pool = MagicMock()
    fake_pool.getconn.return_value = conn
    monkeypatch.setattr(db, "_connection_pool", fake_pool)
    return fake_pool


def _cursor(pool: MagicMock) -> MagicMock:
    return pool.getconn.return_value.cursor.return_value


class TestConnectionPool:
    """Test cases for pool creation and shutdown."""

    def test_pool_sized_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(db, "_connection_pool", None)
        monkeypatch.setenv("DB_POOL_MIN_CONNECTIONS", "2")
        monkeypatch.setenv("DB_POOL_MAX_CONNECTIONS", "4")
        monkeypatch.setenv("DATABASE_URL", "postgresql://db.test/crawl")

        with patch("storage.db.ThreadedConnectionPool") as pool_class:
            first = db.init_connection_pool()
            second = db.init_connection_pool()

        assert first is second
        pool_class.assert_called_once_with(
            minconn=2, maxconn=4, dsn="postgresql://db.test/crawl"
        )

    def test_close_all_connections(self, pool: MagicMock) -> None:
        db.close_all_connections()

        pool.closeall.assert_called_once()
        assert db._connection_pool is None

    def test_cursor_rolls_back_on_error(self, pool: MagicMock) -> None:
        conn = pool.getconn.return_value

        with pytest.raises(RuntimeError), db.get_cursor():
            raise RuntimeError("boom")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn)


class TestCheckConnection:
    """Test cases for check_connection."""

    def test_migrated_database(self, pool: MagicMock) -> None:
        _cursor(pool).fetchone.side_effect = [
            ("PostgreSQL 16.2",),
            ("crawl_jobs",),
            ("crawled_images",),
        ]
        assert db.check_connection() is True

    def test_missing_tables(self, pool: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
        _cursor(pool).fetchone.side_effect = [("PostgreSQL 16.2",), ("crawl_jobs",), (None,)]

        assert db.check_connection() is False
        assert "crawled_images" in caplog.text
        assert "alembic upgrade head" in caplog.text

    def test_unreachable_database(self, pool: MagicMock) -> None:
        pool.getconn.side_effect = psycopg2.OperationalError("connection refused")
        assert db.check_connection() is False
