"""Data models shared by the crawl engine, stores, and CLI."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from crawler.exceptions import InvalidCrawlRequestError
from env_config import MAX_MAX_PAGES, MAX_TIMEOUT_MS, MIN_MAX_PAGES, MIN_TIMEOUT_MS


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class JobStatus(str, Enum):
    """Lifecycle states of a crawl job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Return True if moving from this status to ``target`` is allowed."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class CrawlRequest:
    """Caller-facing input describing one crawl.

    Attributes:
        target_url: Absolute http(s) seed URL.
        max_pages: Page budget (1..1000).
        timeout_ms: Per-request timeout in milliseconds (2000..60000).
        include_css_backgrounds: Whether to scan CSS background-image URLs.
    """

    target_url: str
    max_pages: int = 100
    timeout_ms: int = 60000
    include_css_backgrounds: bool = True

    def validate(self) -> "CrawlRequest":
        """Check field bounds and return self.

        Raises:
            InvalidCrawlRequestError: If any field is out of range.
        """
        errors: list[str] = []

        parsed = urlparse(self.target_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("target_url must be an absolute http(s) URL")

        if not _is_int(self.max_pages) or not (
            MIN_MAX_PAGES <= self.max_pages <= MAX_MAX_PAGES
        ):
            errors.append(f"max_pages must be an integer in {MIN_MAX_PAGES}..{MAX_MAX_PAGES}")

        if not _is_int(self.timeout_ms) or not (
            MIN_TIMEOUT_MS <= self.timeout_ms <= MAX_TIMEOUT_MS
        ):
            errors.append(f"timeout_ms must be an integer in {MIN_TIMEOUT_MS}..{MAX_TIMEOUT_MS}")

        if not isinstance(self.include_css_backgrounds, bool):
            errors.append("include_css_backgrounds must be a boolean")

        if errors:
            raise InvalidCrawlRequestError(errors)
        return self


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class CrawlJob:
    """State of one crawl invocation, as held by a job store."""

    id: str
    target_url: str
    max_pages: int
    timeout_ms: int
    include_css_backgrounds: bool
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    pages_processed: int = 0
    total_pages_found: int = 0
    images_found: int = 0
    current_page: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    def snapshot(self) -> "ProgressSnapshot":
        """Return the job's counters as a progress snapshot."""
        return ProgressSnapshot(
            status=self.status,
            progress=self.progress,
            pages_processed=self.pages_processed,
            total_pages_found=self.total_pages_found,
            images_found=self.images_found,
            current_page=self.current_page,
            error=self.error,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class CrawledImageRecord:
    """One image occurrence found on one page."""

    id: str
    job_id: str
    page_url: str
    image_url: str
    alt_text: str | None = None
    raw_markup: str | None = None
    image_type: str | None = None
    filename: str | None = None
    dimensions: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable point-in-time summary of a job's counters."""

    status: JobStatus
    progress: int
    pages_processed: int
    total_pages_found: int
    images_found: int
    current_page: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the field names used on the wire."""
        return {
            "status": self.status.value,
            "progress": self.progress,
            "pagesProcessed": self.pages_processed,
            "totalPagesFound": self.total_pages_found,
            "imagesFound": self.images_found,
            "currentPage": self.current_page,
            "error": self.error,
        }
