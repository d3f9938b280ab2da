"""Single-run guard for ticket sync."""

from __future__ import annotations

import logging
import threading

from redis.exceptions import LockError, RedisError

from ticketflow.core.config import settings
from ticketflow.core.redis_client import get_sync_redis_client

logger = logging.getLogger(__name__)


class SyncLock:
    """
    Non-blocking try-lock around a sync run.

    A second caller gets an immediate "busy" answer instead of waiting.
    Acquisition is a single atomic compare-and-set on a lock primitive, so
    there is no check-then-set window between concurrent callers.

    Only guards callers in this process; see RedisSyncLock for the shared form.
    """

    shared = False

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        """Release the lock. Safe to call when not held."""
        try:
            self._lock.release()
        except RuntimeError:
            pass

    def is_held(self) -> bool:
        return self._lock.locked()


class RedisSyncLock:
    """
    The same contract backed by a redis key (SET NX PX via redis-py's Lock),
    so the API, scheduler and CLI processes exclude each other.

    The key expires after `ttl_seconds`, which frees the lock if its holder
    dies mid-run. If redis cannot be reached the lock reports busy.
    """

    shared = True

    def __init__(self, client, *, key: str, ttl_seconds: int) -> None:
        self.key = key
        self._lock = client.lock(
            key,
            timeout=ttl_seconds,
            blocking=False,
            thread_local=False,
        )

    def try_acquire(self) -> bool:
        try:
            return bool(self._lock.acquire(blocking=False))
        except RedisError:
            logger.error("Sync lock unavailable key=%s; treating as busy", self.key, exc_info=True)
            return False

    def release(self) -> None:
        """Release the lock. Safe to call when not held or already expired."""
        try:
            self._lock.release()
        except LockError:
            pass
        except RedisError:
            logger.warning("Sync lock release failed key=%s; key will expire", self.key)

    def is_held(self) -> bool:
        try:
            return bool(self._lock.locked())
        except RedisError:
            return False


def build_sync_lock() -> SyncLock | RedisSyncLock:
    """Redis-backed lock when REDIS_URL is configured, else an in-process lock."""
    client = get_sync_redis_client()
    if client is None:
        return SyncLock()
    return RedisSyncLock(
        client,
        key=settings.SYNC_LOCK_KEY,
        ttl_seconds=settings.SYNC_LOCK_TTL_SECONDS,
    )
