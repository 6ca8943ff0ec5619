"""Store interfaces consumed by the crawl engine.

The orchestrator is the single writer per job; stores are last-writer-wins
and need no optimistic concurrency control.
"""

from abc import ABC, abstractmethod
from typing import Any

from crawler.models import CrawledImageRecord, CrawlJob, CrawlRequest


class JobStore(ABC):
    """Persistence interface for crawl jobs."""

    @abstractmethod
    def create(self, request: CrawlRequest) -> CrawlJob:
        """Create a pending job from a validated request."""

    @abstractmethod
    def get(self, job_id: str) -> CrawlJob | None: ...

    @abstractmethod
    def update(self, job_id: str, **fields: Any) -> CrawlJob | None:
        """Apply a partial update; return the updated job or None if unknown."""

    @abstractmethod
    def list_jobs(self) -> list[CrawlJob]:
        """Return all jobs, oldest first."""


class ImageRecordStore(ABC):
    """Persistence interface for crawled image records."""

    @abstractmethod
    def create(self, record: CrawledImageRecord) -> CrawledImageRecord: ...

    @abstractmethod
    def update(self, record_id: str, **fields: Any) -> CrawledImageRecord | None:
        """Apply a partial update (used by fix-up and enrichment steps)."""

    @abstractmethod
    def list_by_job(self, job_id: str) -> list[CrawledImageRecord]: ...

    @abstractmethod
    def list_all(self) -> list[CrawledImageRecord]: ...

    @abstractmethod
    def delete_by_job(self, job_id: str) -> None: ...


JOB_UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "progress",
        "pages_processed",
        "total_pages_found",
        "images_found",
        "current_page",
        "error",
        "completed_at",
    }
)

IMAGE_UPDATABLE_FIELDS = frozenset({"image_url", "alt_text", "dimensions"})


def check_fields(fields: dict[str, Any], allowed: frozenset[str]) -> None:
    """Reject partial updates that touch unknown or immutable fields.

    Raises:
        ValueError: If a field is not in ``allowed``.
    """
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
