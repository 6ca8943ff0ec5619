"""Redis key helpers with optional namespace support.

Centralizes key naming so the progress publisher and any external
listener (web push channel, CLI) stay aligned across deploys.
"""

from env_config import get_queue_namespace


def _with_namespace(key: str) -> str:
    """Prefix a key with QUEUE_NAMESPACE when configured."""
    namespace = get_queue_namespace()
    if not namespace:
        return key
    return f"{namespace}:{key}"


def progress_channel(job_id: str) -> str:
    """Return the pub/sub channel carrying a job's progress snapshots."""
    return _with_namespace(f"progress:{job_id}")


def latest_progress_key(job_id: str) -> str:
    """Return the key caching a job's most recent progress snapshot."""
    return _with_namespace(f"progress:{job_id}:latest")
