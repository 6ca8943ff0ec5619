"""Page fetching module for the site image crawler.

Downloads HTML pages with a per-request timeout and the retry policy
from processor.retry. Failures are returned as typed values, never raised.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import requests

from env_config import get_crawler_user_agent
from processor.retry import RetryPolicy

logger = logging.getLogger(__name__)


class FetchFailure(str, Enum):
    """Why a page fetch failed."""

    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    NETWORK = "network_error"


@dataclass
class PageFetchResult:
    """Result of fetching a page.

    Attributes:
        success: Whether the page body was retrieved with a 2xx status.
        url: The URL that was requested.
        html: Decoded response body (if successful).
        status_code: HTTP status of the last response, if one was received.
        failure: Failure kind (if unsuccessful).
        error_message: Description of failure (if unsuccessful).
        attempts: Number of attempts made.
    """

    success: bool
    url: str
    html: str | None = None
    status_code: int | None = None
    failure: FetchFailure | None = None
    error_message: str | None = None
    attempts: int = 1

    @property
    def is_timeout(self) -> bool:
        return self.failure is FetchFailure.TIMEOUT


class PageFetcher:
    """Fetches HTML pages with timeout and retry handling.

    Attributes:
        retry_policy: Policy deciding how often and how long to retry.
        session: Reusable requests Session for connection pooling.
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        user_agent: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            retry_policy: Retry policy; defaults to RetryPolicy.from_env().
            user_agent: User-Agent header; defaults to CRAWLER_USER_AGENT.
            session: Optional pre-configured requests Session.
        """
        self.retry_policy = retry_policy or RetryPolicy.from_env()
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent or get_crawler_user_agent(),
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            }
        )

    def fetch(self, url: str, timeout_ms: int) -> PageFetchResult:
        """Fetch a page, retrying soft failures per the retry policy.

        Args:
            url: Absolute page URL.
            timeout_ms: Per-attempt timeout in milliseconds.

        Returns:
            PageFetchResult of the first successful attempt, or of the last
            failed one once retries are exhausted.
        """

        def attempt(number: int) -> PageFetchResult:
            result = self.fetch_once(url, timeout_ms)
            result.attempts = number
            if not result.success:
                logger.warning(
                    f"Failed to fetch {url} "
                    f"(attempt {number}/{self.retry_policy.max_attempts}): {result.error_message}"
                )
            return result

        return self.retry_policy.execute(attempt, label=url)

    def fetch_once(self, url: str, timeout_ms: int) -> PageFetchResult:
        """Make a single GET request without retrying.

        Args:
            url: Absolute page URL.
            timeout_ms: Timeout in milliseconds.

        Returns:
            PageFetchResult describing the outcome.
        """
        logger.debug(f"Fetching page: {url}")

        try:
            response = self.session.get(
                url,
                timeout=timeout_ms / 1000,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout:
            return PageFetchResult(
                success=False,
                url=url,
                failure=FetchFailure.TIMEOUT,
                error_message=f"Request timeout after {timeout_ms}ms",
            )
        except requests.exceptions.RequestException as e:
            return PageFetchResult(
                success=False,
                url=url,
                failure=FetchFailure.NETWORK,
                error_message=f"{type(e).__name__}: {e}",
            )

        if not 200 <= response.status_code < 300:
            return PageFetchResult(
                success=False,
                url=url,
                status_code=response.status_code,
                failure=FetchFailure.HTTP_STATUS,
                error_message=f"HTTP {response.status_code}",
            )

        html = response.text
        logger.debug(f"Fetched page: {url} ({len(html)} chars)")
        return PageFetchResult(
            success=True,
            url=url,
            html=html,
            status_code=response.status_code,
        )

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
