"""
Redis-backed document store.

Each top-level document ("sessions/{code}", "users/{id}") is one JSON
string key. Child-path writes are read-modify-write inside a
WATCH/MULTI transaction, so concurrent writes to disjoint children of
the same document both land. Every committed write publishes on the
document's channel; subscribers re-read the document and deliver the
subtree they watch.
"""

from __future__ import annotations
from typing import Any
import asyncio
import json
import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from .base import (
    DocumentStore,
    SnapshotCallback,
    StoreError,
    Subscription,
    get_in,
    join_path,
    set_in,
    split_path,
)

log = logging.getLogger(__name__)

DOCUMENT_DEPTH = 2


def _split_document(path: str) -> tuple[str, list[str]]:
    """Split a path into (document id, parts inside the document)."""
    parts = split_path(path)
    if len(parts) < DOCUMENT_DEPTH:
        raise ValueError(f"Path {path!r} must address a document or a child of one")
    return "/".join(parts[:DOCUMENT_DEPTH]), parts[DOCUMENT_DEPTH:]


class RedisDocumentStore(DocumentStore):
    """Document store over a Redis server."""

    def __init__(self, client: Redis, prefix: str = "guessgame"):
        self._client = client
        self._prefix = prefix
        self._listeners: dict[Subscription, asyncio.Task] = {}

    @classmethod
    def from_url(cls, url: str, prefix: str = "guessgame") -> RedisDocumentStore:
        return cls(Redis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, document: str) -> str:
        return f"{self._prefix}:doc:{document}"

    def _channel(self, document: str) -> str:
        return f"{self._prefix}:changes:{document}"

    async def _read_document(self, document: str) -> Any:
        raw = await self._client.get(self._key(document))
        return json.loads(raw) if raw else None

    async def get(self, path: str) -> Any:
        document, inner = _split_document(path)
        try:
            tree = await self._read_document(document)
        except RedisError as e:
            raise StoreError(str(e)) from e
        return get_in(tree, inner) if inner else tree

    async def set(self, path: str, value: Any) -> None:
        document, inner = _split_document(path)
        await self._mutate(document, [(inner, value)])

    async def delete(self, path: str) -> None:
        document, inner = _split_document(path)
        await self._mutate(document, [(inner, None)])

    async def update(self, path: str, patch: dict[str, Any]) -> None:
        writes: dict[str, list[tuple[list[str], Any]]] = {}
        for rel, value in patch.items():
            document, inner = _split_document(join_path(path, rel))
            writes.setdefault(document, []).append((inner, value))
        if len(writes) > 1:
            raise ValueError("update() must stay within one document")
        for document, doc_writes in writes.items():
            await self._mutate(document, doc_writes)

    async def _mutate(self, document: str, writes: list[tuple[list[str], Any]]) -> None:
        key = self._key(document)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        tree = self._apply_writes(json.loads(raw) if raw else None, writes)
                        pipe.multi()
                        if tree is None:
                            pipe.delete(key)
                        else:
                            pipe.set(key, json.dumps(tree))
                        pipe.publish(self._channel(document), "changed")
                        await pipe.execute()
                        break
                    except WatchError:
                        log.debug("Concurrent write on %s, retrying", document)
                        continue
        except RedisError as e:
            raise StoreError(str(e)) from e
        log.debug("wrote %s %s", document, ["/".join(inner) for inner, _ in writes])

    @staticmethod
    def _apply_writes(tree: Any, writes: list[tuple[list[str], Any]]) -> Any:
        for inner, value in writes:
            if not inner:
                tree = value
                continue
            if not isinstance(tree, dict):
                tree = {}
            set_in(tree, inner, value)
        return tree if tree not in ({}, None) else None

    async def subscribe(self, path: str, callback: SnapshotCallback) -> Subscription:
        document, inner = _split_document(path)
        subscription = Subscription(path=path, callback=callback, _on_cancel=self._stop_listener)
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(self._channel(document))
            tree = await self._read_document(document)
        except RedisError as e:
            await pubsub.aclose()
            raise StoreError(str(e)) from e

        await subscription.deliver(get_in(tree, inner) if inner else tree)
        self._listeners[subscription] = asyncio.create_task(
            self._listen(subscription, pubsub, document, inner)
        )
        return subscription

    async def _listen(self, subscription: Subscription, pubsub, document: str, inner: list[str]) -> None:
        try:
            while subscription.active:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if not msg or msg["type"] != "message":
                    continue
                tree = await self._read_document(document)
                await subscription.deliver(get_in(tree, inner) if inner else tree)
        except RedisError:
            log.exception("Subscription to %s lost", subscription.path)
        finally:
            await pubsub.unsubscribe()
            await pubsub.aclose()

    async def _stop_listener(self, subscription: Subscription) -> None:
        task = self._listeners.pop(subscription, None)
        if task and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        for subscription in list(self._listeners):
            await subscription.cancel()
        await self._client.aclose()
