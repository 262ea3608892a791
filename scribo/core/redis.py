from __future__ import annotations

import logging
import time
from typing import Optional

import redis
from redis import Redis

from scribo.core.config import settings

logger = logging.getLogger("scribo.redis")

KEY_PREFIX = "scribo"
# after a failed ping, wait before trying to connect again
RETRY_AFTER_SECONDS = 30.0

_client: Optional[Redis] = None
_next_attempt = 0.0


def redis_key(*parts) -> str:
    return ":".join([KEY_PREFIX, *(str(p) for p in parts)])


def get_redis() -> Optional[Redis]:
    """Shared client, or None when REDIS_URL is empty or the server is down."""
    global _client, _next_attempt
    if _client is not None:
        return _client
    url = (settings.REDIS_URL or "").strip()
    if not url or time.monotonic() < _next_attempt:
        return None

    candidate = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=2)
    try:
        candidate.ping()
    except redis.RedisError as exc:
        logger.warning("Redis unavailable at %s: %s", url, exc)
        _next_attempt = time.monotonic() + RETRY_AFTER_SECONDS
        return None
    _client = candidate
    return _client


def reset_redis() -> None:
    global _client, _next_attempt
    if _client is not None:
        _client.close()
    _client = None
    _next_attempt = 0.0
