"""In-memory stores.

Thread-safe dict-backed implementations used by tests, local CLI runs,
and any deployment that does not need results to outlive the process.
"""

import threading
import uuid
from dataclasses import replace
from typing import Any

from crawler.models import CrawledImageRecord, CrawlJob, CrawlRequest
from storage.base import (
    IMAGE_UPDATABLE_FIELDS,
    JOB_UPDATABLE_FIELDS,
    ImageRecordStore,
    JobStore,
    check_fields,
)


class MemoryJobStore(JobStore):
    """Job store holding jobs in insertion order."""

    def __init__(self) -> None:
        self._jobs: dict[str, CrawlJob] = {}
        self._lock = threading.Lock()

    def create(self, request: CrawlRequest) -> CrawlJob:
        job = CrawlJob(
            id=uuid.uuid4().hex,
            target_url=request.target_url,
            max_pages=request.max_pages,
            timeout_ms=request.timeout_ms,
            include_css_backgrounds=request.include_css_backgrounds,
        )
        with self._lock:
            self._jobs[job.id] = job
        return replace(job)

    def get(self, job_id: str) -> CrawlJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def update(self, job_id: str, **fields: Any) -> CrawlJob | None:
        check_fields(fields, JOB_UPDATABLE_FIELDS)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = replace(job, **fields)
            self._jobs[job_id] = updated
            return replace(updated)

    def list_jobs(self) -> list[CrawlJob]:
        with self._lock:
            return [replace(job) for job in self._jobs.values()]


class MemoryImageRecordStore(ImageRecordStore):
    """Image record store holding records in insertion order."""

    def __init__(self) -> None:
        self._records: dict[str, CrawledImageRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: CrawledImageRecord) -> CrawledImageRecord:
        with self._lock:
            self._records[record.id] = replace(record)
        return record

    def update(self, record_id: str, **fields: Any) -> CrawledImageRecord | None:
        check_fields(fields, IMAGE_UPDATABLE_FIELDS)
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return None
            updated = replace(record, **fields)
            self._records[record_id] = updated
            return replace(updated)

    def list_by_job(self, job_id: str) -> list[CrawledImageRecord]:
        with self._lock:
            return [replace(r) for r in self._records.values() if r.job_id == job_id]

    def list_all(self) -> list[CrawledImageRecord]:
        with self._lock:
            return [replace(r) for r in self._records.values()]

    def delete_by_job(self, job_id: str) -> None:
        with self._lock:
            self._records = {
                record_id: record
                for record_id, record in self._records.items()
                if record.job_id != job_id
            }
