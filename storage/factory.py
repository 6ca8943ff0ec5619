"""Store construction from configuration."""

import logging

from env_config import get_store_backend
from storage.base import ImageRecordStore, JobStore

logger = logging.getLogger(__name__)


def build_stores(backend: str | None = None) -> tuple[JobStore, ImageRecordStore]:
    """Return a (job store, image record store) pair for a backend.

    Args:
        backend: ``"memory"`` or ``"postgres"``; defaults to STORE_BACKEND.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = backend or get_store_backend()

    if backend == "memory":
        from storage.memory import MemoryImageRecordStore, MemoryJobStore

        return MemoryJobStore(), MemoryImageRecordStore()

    if backend == "postgres":
        from storage.image_repository import PostgresImageRecordStore
        from storage.job_repository import PostgresJobStore

        logger.debug("Using PostgreSQL stores")
        return PostgresJobStore(), PostgresImageRecordStore()

    raise ValueError(f"Unknown store backend: {backend!r}")
