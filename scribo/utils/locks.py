from __future__ import annotations

import logging
from contextlib import contextmanager

from redis.exceptions import LockError, RedisError

from scribo.core.config import settings
from scribo.core.errors import AppError
from scribo.core.redis import get_redis, redis_key

logger = logging.getLogger("scribo.locks")


class ExportInProgress(AppError):
    status_code = 409


def _key(campaign_id: int) -> str:
    return redis_key("export-lock", int(campaign_id))


@contextmanager
def campaign_export_lock(campaign_id: int):
    """Serialise exports of one campaign across workers.

    Without Redis the caller's SELECT ... FOR UPDATE on the campaign row is the
    only guard.
    """
    r = get_redis()
    if r is None:
        yield
        return

    lock = r.lock(
        _key(campaign_id),
        timeout=settings.EXPORT_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=settings.EXPORT_LOCK_WAIT_SECONDS,
    )
    try:
        acquired = lock.acquire()
    except RedisError as exc:
        logger.warning("Export lock unavailable for campaign %s: %s", campaign_id, exc)
        yield
        return
    if not acquired:
        raise ExportInProgress("Another export of this campaign is running, retry later")
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            logger.warning("Export lock for campaign %s expired before release", campaign_id)
