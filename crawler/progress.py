"""Per-job progress fan-out.

``ProgressHub`` keeps a list of subscribers per job id. Every snapshot
emitted for a job is delivered to each of them in subscription order.
Once a terminal snapshot (completed or failed) has been delivered, all
subscriptions for that job are closed.

Unsubscribing only stops delivery; it never halts the crawl itself.
Use ``CrawlOrchestrator.cancel`` for that.
"""

import json
import logging
import threading
from collections.abc import Callable

import redis

from crawler.models import ProgressSnapshot
from crawler.redis_keys import latest_progress_key, progress_channel

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, ProgressSnapshot], None]

LATEST_SNAPSHOT_TTL_SECONDS = 24 * 60 * 60


class Subscription:
    """Handle returned by ``ProgressHub.subscribe``."""

    def __init__(self, hub: "ProgressHub", job_id: str, callback: ProgressCallback) -> None:
        self.hub = hub
        self.job_id = job_id
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        """Stop receiving snapshots. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        self.hub._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ProgressHub:
    """Observer list of progress callbacks keyed by job id."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, job_id: str, callback: ProgressCallback) -> Subscription:
        """Register ``callback`` for snapshots of ``job_id``.

        Existing subscribers for the same job keep receiving snapshots.
        """
        subscription = Subscription(self, job_id, callback)
        with self._lock:
            self._subscriptions.setdefault(job_id, []).append(subscription)
        logger.debug(f"Subscribed to progress for job {job_id}")
        return subscription

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(job_id, []))

    def emit(self, job_id: str, snapshot: ProgressSnapshot) -> None:
        """Deliver a snapshot to every subscriber of ``job_id``.

        A subscriber that raises is logged and skipped so the others
        and the crawl keep going.
        """
        with self._lock:
            subscribers = list(self._subscriptions.get(job_id, []))

        for subscription in subscribers:
            if subscription.closed:
                continue
            try:
                subscription.callback(job_id, snapshot)
            except Exception as e:
                logger.error(
                    f"Progress subscriber for job {job_id} failed: {type(e).__name__}: {e}",
                    exc_info=True,
                )

        if snapshot.status.is_terminal:
            self.close_job(job_id)

    def close_job(self, job_id: str) -> None:
        """Close every subscription registered for ``job_id``."""
        with self._lock:
            subscribers = self._subscriptions.pop(job_id, [])
        for subscription in subscribers:
            subscription.closed = True
        if subscribers:
            logger.debug(f"Closed {len(subscribers)} progress subscriptions for job {job_id}")

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.job_id)
            if not subscribers:
                return
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                del self._subscriptions[subscription.job_id]


class RedisProgressPublisher:
    """Hub subscriber that republishes snapshots over Redis pub/sub.

    Each snapshot is published as JSON on ``progress:<job_id>`` and the
    latest one is cached under ``progress:<job_id>:latest`` so late
    listeners can catch up.
    """

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int = LATEST_SNAPSHOT_TTL_SECONDS):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisProgressPublisher":
        return cls(redis.Redis.from_url(redis_url))

    def __call__(self, job_id: str, snapshot: ProgressSnapshot) -> None:
        payload = json.dumps(snapshot.to_dict())
        try:
            self.redis_client.set(latest_progress_key(job_id), payload, ex=self.ttl_seconds)
            self.redis_client.publish(progress_channel(job_id), payload)
        except redis.RedisError as e:
            logger.warning(f"Failed to publish progress for job {job_id}: {e}")

    def attach(self, hub: ProgressHub, job_id: str) -> Subscription:
        """Subscribe this publisher to ``job_id`` on ``hub``."""
        return hub.subscribe(job_id, self)

    def latest(self, job_id: str) -> dict | None:
        """Return the cached latest snapshot for ``job_id``, if any."""
        raw = self.redis_client.get(latest_progress_key(job_id))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
