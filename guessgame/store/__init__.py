"""
Store Module - Realtime document store abstraction.

The game core only talks to DocumentStore. Two backends ship:
- InMemoryDocumentStore: single process, used by tests and development
- RedisDocumentStore: shared across server processes via Redis pub/sub
"""

from __future__ import annotations
from typing import TYPE_CHECKING

from .base import DocumentStore, StoreError, Subscription, join_path, split_path
from .memory import InMemoryDocumentStore

if TYPE_CHECKING:
    from ..config import Settings


def create_store(settings: Settings) -> DocumentStore:
    """Build the store backend named in settings."""
    if settings.store_backend == "redis":
        from .redis_store import RedisDocumentStore
        return RedisDocumentStore.from_url(settings.redis_url)
    if settings.store_backend == "memory":
        return InMemoryDocumentStore()
    raise ValueError(f"Unknown store backend: {settings.store_backend}")


__all__ = [
    "DocumentStore",
    "StoreError",
    "Subscription",
    "InMemoryDocumentStore",
    "create_store",
    "join_path",
    "split_path",
]
