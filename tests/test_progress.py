"""Tests for progress fan-out."""

import json
from unittest.mock import MagicMock

import pytest
import redis

from crawler.models import JobStatus, ProgressSnapshot
from crawler.progress import ProgressHub, RedisProgressPublisher


def make_snapshot(status: JobStatus = JobStatus.RUNNING, pages: int = 0) -> ProgressSnapshot:
    return ProgressSnapshot(
        status=status,
        progress=pages * 10,
        pages_processed=pages,
        total_pages_found=pages + 1,
        images_found=0,
        current_page="https://site.test/",
    )


class TestProgressHub:
    """Test cases for ProgressHub."""

    def test_delivers_to_every_subscriber_in_order(self) -> None:
        hub = ProgressHub()
        calls = []
        hub.subscribe("job-1", lambda job_id, s: calls.append(("first", job_id, s.pages_processed)))
        hub.subscribe("job-1", lambda job_id, s: calls.append(("second", job_id, s.pages_processed)))

        hub.emit("job-1", make_snapshot(pages=1))

        assert calls == [("first", "job-1", 1), ("second", "job-1", 1)]

    def test_jobs_are_isolated(self) -> None:
        hub = ProgressHub()
        calls = []
        hub.subscribe("job-1", lambda job_id, s: calls.append(job_id))

        hub.emit("job-2", make_snapshot())

        assert calls == []

    def test_closed_subscription_stops_delivery(self) -> None:
        hub = ProgressHub()
        calls = []
        subscription = hub.subscribe("job-1", lambda job_id, s: calls.append(s))

        hub.emit("job-1", make_snapshot(pages=1))
        subscription.close()
        subscription.close()
        hub.emit("job-1", make_snapshot(pages=2))

        assert len(calls) == 1
        assert hub.subscriber_count("job-1") == 0

    def test_context_manager_closes(self) -> None:
        hub = ProgressHub()
        with hub.subscribe("job-1", lambda job_id, s: None) as subscription:
            assert hub.subscriber_count("job-1") == 1
        assert subscription.closed
        assert hub.subscriber_count("job-1") == 0

    @pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
    def test_terminal_snapshot_closes_subscriptions(self, status: JobStatus) -> None:
        hub = ProgressHub()
        calls = []
        subscription = hub.subscribe("job-1", lambda job_id, s: calls.append(s.status))

        hub.emit("job-1", make_snapshot(status=status))
        hub.emit("job-1", make_snapshot())

        assert calls == [status]
        assert subscription.closed
        assert hub.subscriber_count("job-1") == 0

    def test_failing_subscriber_is_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        hub = ProgressHub()
        calls = []

        def broken(job_id: str, snapshot: ProgressSnapshot) -> None:
            raise ValueError("boom")

        hub.subscribe("job-1", broken)
        hub.subscribe("job-1", lambda job_id, s: calls.append(s))

        hub.emit("job-1", make_snapshot())

        assert len(calls) == 1
        assert "boom" in caplog.text


class TestRedisProgressPublisher:
    """Test cases for RedisProgressPublisher."""

    def test_publishes_and_caches_snapshot(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("QUEUE_NAMESPACE", raising=False)
        client = MagicMock()
        publisher = RedisProgressPublisher(client, ttl_seconds=60)
        snapshot = make_snapshot(pages=2)

        publisher("job-1", snapshot)

        payload = json.dumps(snapshot.to_dict())
        client.set.assert_called_once_with("progress:job-1:latest", payload, ex=60)
        client.publish.assert_called_once_with("progress:job-1", payload)
        assert json.loads(payload)["pagesProcessed"] == 2

    def test_uses_namespace(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("QUEUE_NAMESPACE", "staging:")
        client = MagicMock()

        RedisProgressPublisher(client)("job-1", make_snapshot())

        channel = client.publish.call_args.args[0]
        assert channel == "staging:progress:job-1"

    def test_redis_errors_do_not_propagate(self) -> None:
        client = MagicMock()
        client.set.side_effect = redis.ConnectionError("down")

        RedisProgressPublisher(client)("job-1", make_snapshot())

        client.publish.assert_not_called()

    def test_attach_subscribes_to_hub(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("QUEUE_NAMESPACE", raising=False)
        hub = ProgressHub()
        client = MagicMock()
        publisher = RedisProgressPublisher(client)

        publisher.attach(hub, "job-1")
        hub.emit("job-1", make_snapshot(status=JobStatus.COMPLETED, pages=3))

        payload = json.loads(client.publish.call_args.args[1])
        assert payload["status"] == "completed"
        assert hub.subscriber_count("job-1") == 0

    def test_latest_decodes_cached_snapshot(self) -> None:
        client = MagicMock()
        client.get.return_value = json.dumps(make_snapshot(pages=4).to_dict()).encode("utf-8")

        latest = RedisProgressPublisher(client).latest("job-1")

        assert latest["pagesProcessed"] == 4

    def test_latest_missing(self) -> None:
        client = MagicMock()
        client.get.return_value = None
        assert RedisProgressPublisher(client).latest("job-1") is None
