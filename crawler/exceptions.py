"""Exception types raised by the crawler core.

Per-page fetch failures are not exceptions; they travel as
``FetchFailure`` values inside ``PageFetchResult`` (see processor.fetcher).
"""


class CrawlerError(Exception):
    """Base class for crawler errors."""


class InvalidUrlError(CrawlerError):
    """A URL could not be parsed or resolved to an absolute http(s) URL."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        message = f"Invalid URL: {url!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class JobNotFoundError(CrawlerError):
    """An operation referenced a crawl job id that does not exist."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidCrawlRequestError(CrawlerError):
    """A crawl request failed validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Invalid crawl request: " + "; ".join(errors))


class CrawlCancelledError(CrawlerError):
    """A running crawl was stopped by a cancellation request."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__("Crawl cancelled")
