"""Durable storage for the key pool record."""

from websy.db.key_pool_store import (
    InMemoryKeyPoolStore,
    JsonFileKeyPoolStore,
    KeyPoolStore,
    SupabaseKeyPoolStore,
    build_key_pool_store,
)

__all__ = [
    "InMemoryKeyPoolStore",
    "JsonFileKeyPoolStore",
    "KeyPoolStore",
    "SupabaseKeyPoolStore",
    "build_key_pool_store",
]
