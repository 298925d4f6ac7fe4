"""
Document Store - Abstract realtime key-path store.

Paths are slash separated ("sessions/ABC123/players/u1"). Values are
plain JSON-compatible trees (dict, list, str, int, float, bool).

Semantics every implementation provides:
- Last writer wins per path; no cross-writer ordering
- Writes to disjoint child paths do not disturb each other
- update() applies a multi-path patch atomically
- Subscribers get the current value of their path on subscribe and
  after every write that touches the path, its ancestors or its
  descendants; None means the path is absent
- Delivery is at-least-once: an unchanged value may be redelivered
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
import logging

log = logging.getLogger(__name__)

SnapshotCallback = Callable[[Any], Awaitable[None]]


class StoreError(Exception):
    """Raised by a store when a read or write cannot be performed."""


def split_path(path: str) -> list[str]:
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts:
        raise ValueError("Empty store path")
    return parts


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def paths_overlap(a: str, b: str) -> bool:
    """True when one path is the other or an ancestor of it."""
    pa, pb = split_path(a), split_path(b)
    n = min(len(pa), len(pb))
    return pa[:n] == pb[:n]


def get_in(tree: Any, parts: list[str]) -> Any:
    node = tree
    for part in parts:
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def set_in(tree: dict, parts: list[str], value: Any) -> None:
    """Set a value, creating intermediate nodes. A None value deletes."""
    if value is None:
        delete_in(tree, parts)
        return
    node = tree
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = deepcopy(value)


def delete_in(tree: dict, parts: list[str]) -> None:
    """Delete a node, pruning parents left empty."""
    trail = [tree]
    node = tree
    for part in parts[:-1]:
        node = node.get(part) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            return
        trail.append(node)
    node.pop(parts[-1], None)

    for depth in range(len(parts) - 1, 0, -1):
        if trail[depth]:
            break
        trail[depth - 1].pop(parts[depth - 1], None)


@dataclass(eq=False)
class Subscription:
    """
    Handle for a live subscription.

    cancel() is idempotent; a cancelled subscription receives nothing.
    """
    path: str
    callback: SnapshotCallback
    _on_cancel: Callable[[Subscription], Awaitable[None]] | None = field(default=None, repr=False)
    active: bool = True

    async def deliver(self, value: Any) -> None:
        if not self.active:
            return
        try:
            await self.callback(value)
        except Exception:
            # Subscriber errors never reach the writer.
            log.exception("Subscriber for %s raised", self.path)

    async def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_cancel:
            await self._on_cancel(self)


class DocumentStore(ABC):
    """Abstract realtime document store."""

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Read the value at path, or None when absent."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the subtree at path. Setting None deletes."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the subtree at path."""

    @abstractmethod
    async def update(self, path: str, patch: dict[str, Any]) -> None:
        """
        Atomically apply a multi-path patch under path.

        Keys are child paths relative to path; None values delete.
        """

    @abstractmethod
    async def subscribe(self, path: str, callback: SnapshotCallback) -> Subscription:
        """Watch a subtree. The current value is delivered immediately."""

    async def exists(self, path: str) -> bool:
        return await self.get(path) is not None

    async def close(self) -> None:
        """Release connections and cancel subscriptions."""
