"""
In-memory document store.

A single-process stand-in for a realtime database. Used by tests and
by the development server. Subscribers are notified inline after
each write, in subscription order.
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any
import asyncio
import logging

from .base import (
    DocumentStore,
    SnapshotCallback,
    StoreError,
    Subscription,
    delete_in,
    get_in,
    join_path,
    paths_overlap,
    set_in,
    split_path,
)

log = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    Set online=False to simulate lost connectivity: every read and
    write then raises StoreError.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._root: dict[str, Any] = deepcopy(initial) if initial else {}
        self._subscriptions: list[Subscription] = []
        self._lock = asyncio.Lock()
        self.online = True
        # (operation, path) for every write, oldest first
        self.write_log: list[tuple[str, str]] = []

    def _check_online(self) -> None:
        if not self.online:
            raise StoreError("Store is offline")

    async def get(self, path: str) -> Any:
        self._check_online()
        return deepcopy(get_in(self._root, split_path(path)))

    async def set(self, path: str, value: Any) -> None:
        await self._write([(path, value)], op="set" if value is not None else "delete")

    async def delete(self, path: str) -> None:
        await self._write([(path, None)], op="delete")

    async def update(self, path: str, patch: dict[str, Any]) -> None:
        writes = [(join_path(path, rel), value) for rel, value in patch.items()]
        await self._write(writes, op="update")

    async def subscribe(self, path: str, callback: SnapshotCallback) -> Subscription:
        self._check_online()
        split_path(path)
        subscription = Subscription(path=path, callback=callback, _on_cancel=self._remove)
        self._subscriptions.append(subscription)
        log.debug("Subscribed to %s", path)
        await subscription.deliver(deepcopy(get_in(self._root, split_path(path))))
        return subscription

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.cancel()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def snapshot(self) -> dict[str, Any]:
        """Copy of the whole tree, for inspection in tests."""
        return deepcopy(self._root)

    async def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            log.debug("Unsubscribed from %s", subscription.path)

    async def _write(self, writes: list[tuple[str, Any]], op: str) -> None:
        self._check_online()
        async with self._lock:
            for path, value in writes:
                set_in(self._root, split_path(path), value)
                self.write_log.append((op, path))

        log.debug("%s %s", op, [path for path, _ in writes])
        touched = [
            sub for sub in list(self._subscriptions)
            if any(paths_overlap(sub.path, path) for path, _ in writes)
        ]
        for subscription in touched:
            await subscription.deliver(deepcopy(get_in(self._root, split_path(subscription.path))))
