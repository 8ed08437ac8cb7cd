from __future__ import annotations

from loguru import logger

from combine.config.settings import Settings, settings as default_settings
from combine.store.kv import KeyValueStore, MemoryStore
from combine.store.redis_store import RedisKeyValueStore
from combine.store.sql_store import SqlKeyValueStore


def create_store(config: Settings | None = None) -> KeyValueStore:
    """Build the configured key-value backend."""
    config = config or default_settings
    backend = config.store_backend
    logger.info(f"Using {backend} key-value store")
    if backend == "memory":
        return MemoryStore()
    if backend == "redis":
        return RedisKeyValueStore(redis_url=config.redis_url)
    return SqlKeyValueStore(database_url=config.database_url)
