"""Crawl job orchestration.

Owns the job lifecycle (pending -> running -> completed | failed),
keeps the job store up to date, and emits progress snapshots through a
``ProgressHub``. Each job runs as one sequential traversal; separate
jobs may run at the same time on their own threads.
"""

import logging
import threading

from crawler.exceptions import CrawlCancelledError, InvalidUrlError, JobNotFoundError
from crawler.frontier import PageOutcome, TraversalController, TraversalState
from crawler.logging_config import CrawlStatistics
from crawler.models import CrawlJob, CrawlRequest, JobStatus, utc_now
from crawler.progress import ProgressCallback, ProgressHub, Subscription
from processor.extractor import Extractor
from processor.fetcher import PageFetcher
from processor.url_policy import normalize_url, strip_fragment
from storage.base import ImageRecordStore, JobStore

logger = logging.getLogger(__name__)


def compute_progress(pages_processed: int, max_pages: int) -> int:
    """Return the completion percentage, rounded half up and capped at 100."""
    if max_pages <= 0:
        return 100
    percent = (200 * pages_processed + max_pages) // (2 * max_pages)
    return min(percent, 100)


class CrawlOrchestrator:
    """Starts crawl jobs and tracks their state.

    Attributes:
        job_store: Store holding CrawlJob state.
        image_store: Store receiving image records.
        hub: Progress fan-out for subscribers.
        fetcher: Page fetcher injected by the caller and shared by every job
            started here, or None to give each job its own PageFetcher
            (and requests Session), closed when the job ends.
        extractor: HTML extractor shared by the jobs started here.
        announce_pages: Also emit a snapshot before each page is fetched.
    """

    def __init__(
        self,
        job_store: JobStore,
        image_store: ImageRecordStore,
        hub: ProgressHub | None = None,
        fetcher: PageFetcher | None = None,
        extractor: Extractor | None = None,
        announce_pages: bool = False,
        raw_markup_max_length: int | None = None,
    ) -> None:
        self.job_store = job_store
        self.image_store = image_store
        self.hub = hub or ProgressHub()
        self.fetcher = fetcher
        self.extractor = extractor or Extractor()
        self.announce_pages = announce_pages
        self.raw_markup_max_length = raw_markup_max_length
        self._active: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def submit(self, request: CrawlRequest) -> CrawlJob:
        """Validate a request and create a pending job for it.

        Raises:
            InvalidCrawlRequestError: If the request is out of bounds.
        """
        request.validate()
        job = self.job_store.create(request)
        logger.info(f"Created crawl job {job.id} for {job.target_url}")
        return job

    def subscribe(self, job_id: str, callback: ProgressCallback) -> Subscription:
        return self.hub.subscribe(job_id, callback)

    def is_running(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._active

    def cancel(self, job_id: str) -> bool:
        """Ask a running job to stop before its next page.

        Returns:
            True if the job was running and has been signalled.
        """
        with self._lock:
            event = self._active.get(job_id)
        if event is None:
            logger.info(f"Cancel ignored: job {job_id} is not running")
            return False
        event.set()
        logger.info(f"Cancellation requested for job {job_id}")
        return True

    def start(self, job_id: str) -> bool:
        """Run a pending job to completion on the calling thread.

        A start request for a job that is already running, or that has
        already left the pending state, is ignored.

        Returns:
            True if the job was run, False if the request was ignored.

        Raises:
            JobNotFoundError: If no job exists with ``job_id``.
        """
        cancel_event = self._claim(job_id)
        if cancel_event is None:
            logger.info(f"Job {job_id} is already running; ignoring duplicate start")
            return False

        try:
            job = self.job_store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if not job.status.can_transition_to(JobStatus.RUNNING):
                logger.info(f"Job {job_id} is {job.status.value}; ignoring start")
                return False
            self._run(job, cancel_event)
            return True
        finally:
            self._release(job_id)

    def start_in_background(self, job_id: str) -> threading.Thread:
        """Run ``start(job_id)`` on a new daemon thread and return it."""
        thread = threading.Thread(
            target=self._start_logged,
            args=(job_id,),
            name=f"crawl-{job_id}",
            daemon=True,
        )
        thread.start()
        return thread

    def _start_logged(self, job_id: str) -> None:
        try:
            self.start(job_id)
        except JobNotFoundError as e:
            logger.error(str(e))

    def _claim(self, job_id: str) -> threading.Event | None:
        with self._lock:
            if job_id in self._active:
                return None
            event = threading.Event()
            self._active[job_id] = event
            return event

    def _release(self, job_id: str) -> None:
        with self._lock:
            self._active.pop(job_id, None)

    def _run(self, job: CrawlJob, cancel_event: threading.Event) -> None:
        stats = CrawlStatistics(job.id)
        self._update_and_emit(
            job.id,
            status=JobStatus.RUNNING,
            progress=0,
            pages_processed=0,
            total_pages_found=1,
            images_found=0,
            current_page=job.target_url,
            error=None,
        )
        logger.info(f"Job {job.id}: started crawling {job.target_url} (max {job.max_pages} pages)")

        fetcher = self.fetcher or PageFetcher()
        traversal = TraversalController(
            fetcher,
            self.extractor,
            self.image_store,
            raw_markup_max_length=self.raw_markup_max_length,
        )

        try:
            seed_url = strip_fragment(normalize_url(job.target_url))
            final = traversal.run(
                job.id,
                seed_url,
                job.max_pages,
                job.timeout_ms,
                job.include_css_backgrounds,
                on_page=lambda outcome, state: self._on_page(job, outcome, state),
                on_page_start=self._on_page_start(job) if self.announce_pages else None,
                cancel_event=cancel_event,
                stats=stats,
            )
        except InvalidUrlError as e:
            logger.error(f"Job {job.id}: invalid seed URL: {e}")
            self._finish_failed(job.id, str(e))
        except CrawlCancelledError as e:
            self._finish_failed(job.id, str(e))
        except Exception as e:
            logger.exception(f"Job {job.id}: crawl aborted: {e}")
            self._finish_failed(job.id, str(e) or type(e).__name__)
        else:
            self._update_and_emit(
                job.id,
                status=JobStatus.COMPLETED,
                progress=100,
                pages_processed=final.pages_processed,
                total_pages_found=final.total_pages_found,
                images_found=final.images_found,
                current_page=None,
                completed_at=utc_now(),
            )
            logger.info(
                f"Job {job.id}: completed with {final.pages_processed} pages "
                f"and {final.images_found} images"
            )
        finally:
            if fetcher is not self.fetcher:
                fetcher.close()
            stats.log_summary(logger)

    def _on_page(self, job: CrawlJob, outcome: PageOutcome, state: TraversalState) -> None:
        self._update_and_emit(
            job.id,
            progress=compute_progress(state.pages_processed, job.max_pages),
            pages_processed=state.pages_processed,
            total_pages_found=state.total_pages_found,
            images_found=state.images_found,
            current_page=outcome.url,
        )

    def _on_page_start(self, job: CrawlJob):
        def announce(url: str, state: TraversalState) -> None:
            self._update_and_emit(job.id, current_page=url)

        return announce

    def _finish_failed(self, job_id: str, message: str) -> None:
        logger.warning(f"Job {job_id}: failed: {message}")
        self._update_and_emit(
            job_id,
            status=JobStatus.FAILED,
            error=message,
            completed_at=utc_now(),
        )

    def _update_and_emit(self, job_id: str, **fields) -> CrawlJob:
        status = fields.get("status")
        if status is not None:
            current = self.job_store.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            if not current.status.can_transition_to(status):
                raise ValueError(
                    f"Job {job_id}: cannot move from {current.status.value} to {status.value}"
                )

        job = self.job_store.update(job_id, **fields)
        if job is None:
            raise JobNotFoundError(job_id)
        self.hub.emit(job_id, job.snapshot())
        return job
