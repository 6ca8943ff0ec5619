"""Breadth-first traversal of one site.

``Frontier`` is the FIFO queue plus the visited and queued sets.
``TraversalController`` drives the fetch, extract, enqueue and persist
loop for a single job and reports every dequeued page to a callback.
"""

import logging
import threading
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from crawler.exceptions import CrawlCancelledError
from crawler.logging_config import CrawlStatistics
from crawler.models import CrawledImageRecord
from env_config import get_raw_markup_max_length
from processor.extractor import Extractor, ImageCandidate, collapse_markup
from processor.fetcher import PageFetcher
from processor.url_policy import filename_from_url, image_type_from_url
from storage.base import ImageRecordStore

logger = logging.getLogger(__name__)


class Frontier:
    """FIFO queue of URLs to visit with O(1) membership checks.

    A URL is added at most once over the life of the frontier: once it
    has been queued or visited, further ``push`` calls are ignored.
    """

    def __init__(self, seed_url: str) -> None:
        self._queue: deque[str] = deque([seed_url])
        self._queued: set[str] = {seed_url}
        self.visited: set[str] = set()

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def push(self, url: str) -> bool:
        """Queue ``url`` unless it was already visited or queued."""
        if url in self.visited or url in self._queued:
            return False
        self._queue.append(url)
        self._queued.add(url)
        return True

    def pop(self) -> str:
        url = self._queue.popleft()
        self._queued.discard(url)
        return url

    def mark_visited(self, url: str) -> None:
        self.visited.add(url)

    @property
    def total_found(self) -> int:
        """Pages visited so far plus pages still waiting."""
        return len(self.visited) + len(self._queue)


@dataclass
class PageOutcome:
    """What happened to one dequeued page.

    Attributes:
        url: Page URL.
        success: Whether the page was fetched and extracted.
        images: Image records persisted for the page.
        links_added: URLs this page added to the frontier.
        attempts: Fetch attempts used.
        error_message: Fetch failure description (if unsuccessful).
    """

    url: str
    success: bool
    images: list[CrawledImageRecord] = field(default_factory=list)
    links_added: int = 0
    attempts: int = 1
    error_message: str | None = None


@dataclass
class TraversalState:
    """Counters visible to the page callback."""

    pages_processed: int = 0
    images_found: int = 0
    total_pages_found: int = 1


PageCallback = Callable[[PageOutcome, TraversalState], None]


class TraversalController:
    """Runs the crawl loop for one job.

    Attributes:
        fetcher: Page fetcher (owns the retry policy).
        extractor: HTML extractor.
        image_store: Where image records are persisted.
        raw_markup_max_length: Truncation length for stored markup.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: Extractor,
        image_store: ImageRecordStore,
        raw_markup_max_length: int | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor
        self.image_store = image_store
        self.raw_markup_max_length = raw_markup_max_length or get_raw_markup_max_length()

    def run(
        self,
        job_id: str,
        seed_url: str,
        max_pages: int,
        timeout_ms: int,
        include_css_backgrounds: bool,
        on_page: PageCallback | None = None,
        on_page_start: Callable[[str, TraversalState], None] | None = None,
        cancel_event: threading.Event | None = None,
        stats: CrawlStatistics | None = None,
    ) -> TraversalState:
        """Crawl from ``seed_url`` until the frontier is empty or the budget is spent.

        Only successfully processed pages count against ``max_pages``.
        Image records for a page are persisted before ``on_page`` is called.

        Args:
            job_id: Job the image records belong to.
            seed_url: Normalized absolute seed URL; also defines the origin.
            max_pages: Page budget.
            timeout_ms: Per-request timeout.
            include_css_backgrounds: Scan CSS background-image URLs.
            on_page: Called after every dequeued page with its outcome.
            on_page_start: Called before each fetch with the page URL.
            cancel_event: When set, the loop stops before the next page.
            stats: Optional statistics collector.

        Returns:
            Final traversal counters.

        Raises:
            CrawlCancelledError: If ``cancel_event`` was set.
        """
        frontier = Frontier(seed_url)
        state = TraversalState(total_pages_found=frontier.total_found)

        while frontier and state.pages_processed < max_pages:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Job {job_id}: cancellation requested, stopping traversal")
                raise CrawlCancelledError(job_id)

            url = frontier.pop()
            if url in frontier.visited:
                continue
            frontier.mark_visited(url)

            if on_page_start:
                on_page_start(url, state)

            outcome = self._process_page(
                job_id, url, seed_url, timeout_ms, include_css_backgrounds, frontier
            )

            if outcome.success:
                state.pages_processed += 1
                state.images_found += len(outcome.images)
                if stats:
                    stats.record_page_processed(url, len(outcome.images), outcome.links_added)
            elif stats:
                stats.record_page_failed(url, outcome.error_message or "unknown error")
            if stats:
                stats.record_attempts(outcome.attempts)

            state.total_pages_found = frontier.total_found
            if on_page:
                on_page(outcome, state)

        logger.info(
            f"Job {job_id}: traversal finished with {state.pages_processed} pages, "
            f"{state.images_found} images, {len(frontier)} URLs left in queue"
        )
        return state

    def _process_page(
        self,
        job_id: str,
        url: str,
        origin_url: str,
        timeout_ms: int,
        include_css_backgrounds: bool,
        frontier: Frontier,
    ) -> PageOutcome:
        logger.info(f"Job {job_id}: crawling {url}")
        result = self.fetcher.fetch(url, timeout_ms)
        if not result.success:
            logger.warning(f"Job {job_id}: skipping {url}: {result.error_message}")
            return PageOutcome(
                url=url,
                success=False,
                attempts=result.attempts,
                error_message=result.error_message,
            )

        extraction = self.extractor.extract(
            result.html or "", url, include_css_backgrounds, origin_url=origin_url
        )

        links_added = sum(1 for link in extraction.links if frontier.push(link))
        images = [
            self.image_store.create(self._build_record(job_id, url, candidate))
            for candidate in extraction.images
        ]
        logger.debug(
            f"Job {job_id}: {url} yielded {len(images)} images and {links_added} new links"
        )
        return PageOutcome(
            url=url,
            success=True,
            images=images,
            links_added=links_added,
            attempts=result.attempts,
        )

    def _build_record(
        self, job_id: str, page_url: str, candidate: ImageCandidate
    ) -> CrawledImageRecord:
        return CrawledImageRecord(
            id=uuid.uuid4().hex,
            job_id=job_id,
            page_url=page_url,
            image_url=candidate.image_url,
            alt_text=candidate.alt_text,
            raw_markup=collapse_markup(candidate.raw_markup, self.raw_markup_max_length),
            image_type=image_type_from_url(candidate.image_url),
            filename=filename_from_url(candidate.image_url),
        )
