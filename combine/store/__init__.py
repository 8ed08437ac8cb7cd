"""Persisted key-value backends and the typed layer adapter."""

from combine.store.factory import create_store
from combine.store.kv import KeyValueStore, MemoryStore
from combine.store.layers import LayerStore
from combine.store.redis_store import RedisKeyValueStore
from combine.store.sql_store import SqlKeyValueStore

__all__ = [
    "KeyValueStore",
    "LayerStore",
    "MemoryStore",
    "RedisKeyValueStore",
    "SqlKeyValueStore",
    "create_store",
]
