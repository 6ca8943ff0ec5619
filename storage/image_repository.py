"""Crawled image repository backed by PostgreSQL.

Stores one row per image occurrence in ``crawled_images``.
"""

import logging
from collections.abc import Sequence
from typing import Any

from crawler.models import CrawledImageRecord
from storage.base import IMAGE_UPDATABLE_FIELDS, ImageRecordStore, check_fields
from storage.db import get_cursor

logger = logging.getLogger(__name__)

IMAGE_COLUMNS = (
    "id",
    "job_id",
    "page_url",
    "image_url",
    "alt_text",
    "raw_markup",
    "image_type",
    "filename",
    "dimensions",
    "created_at",
)
_SELECT_COLUMNS = ", ".join(IMAGE_COLUMNS)


def row_to_record(row: Sequence[Any]) -> CrawledImageRecord:
    """Build a CrawledImageRecord from a row selected in IMAGE_COLUMNS order."""
    data = dict(zip(IMAGE_COLUMNS, row))
    data["id"] = str(data["id"])
    data["job_id"] = str(data["job_id"])
    return CrawledImageRecord(**data)


class PostgresImageRecordStore(ImageRecordStore):
    """Image record store using the pooled psycopg2 connections."""

    def create(self, record: CrawledImageRecord) -> CrawledImageRecord:
        with get_cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO crawled_images (id, job_id, page_url, image_url, alt_text,
                                            raw_markup, image_type, filename, dimensions)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {_SELECT_COLUMNS}
                """,
                (
                    record.id,
                    record.job_id,
                    record.page_url,
                    record.image_url,
                    record.alt_text,
                    record.raw_markup,
                    record.image_type,
                    record.filename,
                    record.dimensions,
                ),
            )
            return row_to_record(cur.fetchone())

    def update(self, record_id: str, **fields: Any) -> CrawledImageRecord | None:
        check_fields(fields, IMAGE_UPDATABLE_FIELDS)
        if not fields:
            return None

        assignments = [f"{name} = %s" for name in fields]
        params = [*fields.values(), record_id]
        with get_cursor() as cur:
            cur.execute(
                f"""
                UPDATE crawled_images
                SET {", ".join(assignments)}
                WHERE id = %s
                RETURNING {_SELECT_COLUMNS}
                """,
                params,
            )
            row = cur.fetchone()
        return row_to_record(row) if row else None

    def list_by_job(self, job_id: str) -> list[CrawledImageRecord]:
        with get_cursor() as cur:
            cur.execute(
                f"""
                SELECT {_SELECT_COLUMNS} FROM crawled_images
                WHERE job_id = %s
                ORDER BY created_at, id
                """,
                (job_id,),
            )
            rows = cur.fetchall()
        return [row_to_record(row) for row in rows]

    def list_all(self) -> list[CrawledImageRecord]:
        with get_cursor() as cur:
            cur.execute(f"SELECT {_SELECT_COLUMNS} FROM crawled_images ORDER BY created_at, id")
            rows = cur.fetchall()
        return [row_to_record(row) for row in rows]

    def delete_by_job(self, job_id: str) -> None:
        with get_cursor() as cur:
            cur.execute("DELETE FROM crawled_images WHERE job_id = %s", (job_id,))
            deleted = cur.rowcount
        logger.info(f"Deleted {deleted} image records for job {job_id}")
