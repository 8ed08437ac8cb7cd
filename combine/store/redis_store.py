"""Redis-backed key-value store.

Keys are written as plain strings without TTL: layers are durable until
explicitly cleared. Redis errors propagate to the caller.
"""

from __future__ import annotations

import inspect

import redis
from loguru import logger


class RedisKeyValueStore:
    def __init__(self, redis_url: str | None = None, client: redis.Redis | None = None):
        if client is None:
            if redis_url is None:
                raise ValueError("RedisKeyValueStore needs a redis_url or a client")
            client = redis.from_url(redis_url, decode_responses=True)
        self._client = client

    def get(self, key: str) -> str | None:
        raw = self._client.get(key)
        # Sync client never returns an awaitable, but the type stubs allow it
        if inspect.isawaitable(raw) or raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        if not isinstance(raw, str):
            logger.bind(key=key, raw_type=type(raw).__name__).warning("Unexpected type from Redis get")
            return None
        return raw

    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    def delete(self, key: str) -> None:
        self._client.delete(key)
