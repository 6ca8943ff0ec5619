"""Crawl job repository backed by PostgreSQL.

Stores jobs in the ``crawl_jobs`` table created by the alembic migrations.
"""

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from crawler.models import CrawlJob, CrawlRequest, JobStatus
from storage.base import JOB_UPDATABLE_FIELDS, JobStore, check_fields
from storage.db import get_cursor

logger = logging.getLogger(__name__)

JOB_COLUMNS = (
    "id",
    "target_url",
    "max_pages",
    "timeout_ms",
    "include_css_backgrounds",
    "status",
    "progress",
    "pages_processed",
    "total_pages_found",
    "images_found",
    "current_page",
    "error",
    "created_at",
    "completed_at",
)
_SELECT_COLUMNS = ", ".join(JOB_COLUMNS)


def row_to_job(row: Sequence[Any]) -> CrawlJob:
    """Build a CrawlJob from a row selected in JOB_COLUMNS order."""
    data = dict(zip(JOB_COLUMNS, row))
    data["id"] = str(data["id"])
    data["status"] = JobStatus(data["status"])
    return CrawlJob(**data)


class PostgresJobStore(JobStore):
    """Job store using the pooled psycopg2 connections from storage.db."""

    def create(self, request: CrawlRequest) -> CrawlJob:
        job_id = uuid.uuid4().hex
        with get_cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO crawl_jobs (id, target_url, max_pages, timeout_ms,
                                        include_css_backgrounds, status)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {_SELECT_COLUMNS}
                """,
                (
                    job_id,
                    request.target_url,
                    request.max_pages,
                    request.timeout_ms,
                    request.include_css_backgrounds,
                    JobStatus.PENDING.value,
                ),
            )
            job = row_to_job(cur.fetchone())
        logger.debug(f"Created crawl job {job.id} for {job.target_url}")
        return job

    def get(self, job_id: str) -> CrawlJob | None:
        with get_cursor() as cur:
            cur.execute(f"SELECT {_SELECT_COLUMNS} FROM crawl_jobs WHERE id = %s", (job_id,))
            row = cur.fetchone()
        return row_to_job(row) if row else None

    def update(self, job_id: str, **fields: Any) -> CrawlJob | None:
        check_fields(fields, JOB_UPDATABLE_FIELDS)
        if not fields:
            return self.get(job_id)

        assignments = []
        params: list[Any] = []
        for name, value in fields.items():
            assignments.append(f"{name} = %s")
            params.append(value.value if isinstance(value, JobStatus) else value)
        params.append(job_id)

        with get_cursor() as cur:
            cur.execute(
                f"""
                UPDATE crawl_jobs
                SET {", ".join(assignments)}
                WHERE id = %s
                RETURNING {_SELECT_COLUMNS}
                """,
                params,
            )
            row = cur.fetchone()
        return row_to_job(row) if row else None

    def list_jobs(self) -> list[CrawlJob]:
        with get_cursor() as cur:
            cur.execute(f"SELECT {_SELECT_COLUMNS} FROM crawl_jobs ORDER BY created_at")
            rows = cur.fetchall()
        return [row_to_job(row) for row in rows]
