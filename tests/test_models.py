"""Tests for crawl data models."""

import pytest

from crawler.exceptions import InvalidCrawlRequestError
from crawler.models import CrawlJob, CrawlRequest, JobStatus


class TestJobStatus:
    """Test cases for JobStatus transitions."""

    def test_allowed_transitions(self) -> None:
        assert JobStatus.PENDING.can_transition_to(JobStatus.RUNNING)
        assert JobStatus.RUNNING.can_transition_to(JobStatus.COMPLETED)
        assert JobStatus.RUNNING.can_transition_to(JobStatus.FAILED)

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (JobStatus.PENDING, JobStatus.COMPLETED),
            (JobStatus.RUNNING, JobStatus.PENDING),
            (JobStatus.COMPLETED, JobStatus.FAILED),
            (JobStatus.FAILED, JobStatus.RUNNING),
            (JobStatus.COMPLETED, JobStatus.RUNNING),
        ],
    )
    def test_rejected_transitions(self, source: JobStatus, target: JobStatus) -> None:
        assert not source.can_transition_to(target)

    def test_terminal(self) -> None:
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert not JobStatus.RUNNING.is_terminal


class TestCrawlRequest:
    """Test cases for CrawlRequest.validate."""

    def test_valid_request(self) -> None:
        request = CrawlRequest(target_url="https://example.com", max_pages=1000, timeout_ms=2000)
        assert request.validate() is request

    @pytest.mark.parametrize(
        "fields",
        [
            {"target_url": "example.com"},
            {"target_url": "ftp://example.com/"},
            {"target_url": "https://example.com", "max_pages": 0},
            {"target_url": "https://example.com", "max_pages": 1001},
            {"target_url": "https://example.com", "max_pages": True},
            {"target_url": "https://example.com", "timeout_ms": 1999},
            {"target_url": "https://example.com", "timeout_ms": 60001},
            {"target_url": "https://example.com", "include_css_backgrounds": "yes"},
        ],
    )
    def test_invalid_requests(self, fields: dict) -> None:
        with pytest.raises(InvalidCrawlRequestError):
            CrawlRequest(**fields).validate()

    def test_collects_all_errors(self) -> None:
        with pytest.raises(InvalidCrawlRequestError) as exc_info:
            CrawlRequest(target_url="nope", max_pages=0, timeout_ms=1).validate()
        assert len(exc_info.value.errors) == 3


class TestCrawlJob:
    """Test cases for CrawlJob."""

    def test_snapshot_mirrors_counters(self) -> None:
        job = CrawlJob(
            id="job-1",
            target_url="https://example.com/",
            max_pages=10,
            timeout_ms=60000,
            include_css_backgrounds=True,
            status=JobStatus.RUNNING,
            progress=30,
            pages_processed=3,
            total_pages_found=7,
            images_found=12,
            current_page="https://example.com/c",
        )

        assert job.snapshot().to_dict() == {
            "status": "running",
            "progress": 30,
            "pagesProcessed": 3,
            "totalPagesFound": 7,
            "imagesFound": 12,
            "currentPage": "https://example.com/c",
            "error": None,
        }

    def test_to_dict_uses_status_value(self) -> None:
        job = CrawlJob("job-1", "https://example.com/", 10, 60000, False)
        data = job.to_dict()
        assert data["status"] == "pending"
        assert data["include_css_backgrounds"] is False
