"""Resource feed protocol and an in-memory implementation.

A feed combines an initial full listing with an unbounded stream of
incremental transitions, both filtered by a label selector. Cluster API
adapters implement ``ResourceFeed``; ``InMemoryFeed`` is a self-contained
feed for scenarios driven entirely in-process.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from typing import Protocol, runtime_checkable

from restartwatch.core.logging import get_logger
from restartwatch.tracking.entity import Added, Deleted, TrackedEntity, Transition, Updated

_logger = get_logger("tracking.feed")

Selector = Mapping[str, str]


@runtime_checkable
class ResourceFeed(Protocol):
    """List + watch access to entities matching a label selector."""

    async def list(self, selector: Selector) -> list[TrackedEntity]:
        """Full snapshot of matching entities."""
        ...

    def watch(self, selector: Selector) -> AsyncIterator[Transition]:
        """Transitions of matching entities, delivered in order until closed."""
        ...


class _Closed:
    def __init__(self, error: BaseException | None) -> None:
        self.error = error


class FeedWatch:
    """One subscriber's transition stream on an ``InMemoryFeed``.

    Registered on creation, so transitions published after ``watch()``
    returns are never missed even if iteration starts later.
    """

    def __init__(self, feed: InMemoryFeed, selector: Selector) -> None:
        self._feed = feed
        self.selector = dict(selector)
        self._queue: asyncio.Queue[Transition | _Closed] = asyncio.Queue()
        self._done = False

    def push(self, item: Transition | _Closed) -> None:
        self._queue.put_nowait(item)

    def __aiter__(self) -> FeedWatch:
        return self

    async def __anext__(self) -> Transition:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _Closed):
            self._done = True
            self._feed._unregister(self)
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        self._done = True
        self._feed._unregister(self)


class InMemoryFeed:
    """In-process ``ResourceFeed`` with label-selector semantics.

    An update that moves an entity into or out of a watcher's selector is
    delivered to that watcher as ``Added`` or ``Deleted``.
    """

    def __init__(self, entities: list[TrackedEntity] | None = None) -> None:
        self._entities: dict[str, TrackedEntity] = {}
        self._watches: list[FeedWatch] = []
        for entity in entities or []:
            self._entities[entity.key] = entity

    async def list(self, selector: Selector) -> list[TrackedEntity]:
        return [e for e in self._entities.values() if e.matches(selector)]

    def watch(self, selector: Selector) -> FeedWatch:
        stream = FeedWatch(self, selector)
        self._watches.append(stream)
        _logger.debug("feed.watch_opened", selector=dict(selector))
        return stream

    @property
    def watcher_count(self) -> int:
        return len(self._watches)

    def get(self, key: str) -> TrackedEntity | None:
        return self._entities.get(key)

    def add(self, entity: TrackedEntity) -> None:
        """Create or replace an entity, notifying watchers."""
        old = self._entities.get(entity.key)
        if old is not None:
            self.update(entity)
            return
        self._entities[entity.key] = entity
        for stream in list(self._watches):
            if entity.matches(stream.selector):
                stream.push(Added(entity))

    def update(self, entity: TrackedEntity) -> None:
        """Replace an existing entity's snapshot, notifying watchers."""
        old = self._entities.get(entity.key)
        if old is None:
            self.add(entity)
            return
        self._entities[entity.key] = entity
        for stream in list(self._watches):
            was = old.matches(stream.selector)
            now = entity.matches(stream.selector)
            if was and now:
                stream.push(Updated(old, entity))
            elif now:
                stream.push(Added(entity))
            elif was:
                stream.push(Deleted(old))

    def delete(self, key: str) -> TrackedEntity | None:
        """Remove an entity, notifying watchers. Unknown keys are ignored."""
        old = self._entities.pop(key, None)
        if old is None:
            return None
        for stream in list(self._watches):
            if old.matches(stream.selector):
                stream.push(Deleted(old))
        return old

    def close(self, error: BaseException | None = None) -> None:
        """End every open watch, optionally raising ``error`` to its reader."""
        for stream in list(self._watches):
            stream.push(_Closed(error))

    def _unregister(self, stream: FeedWatch) -> None:
        if stream in self._watches:
            self._watches.remove(stream)


__all__ = ["FeedWatch", "InMemoryFeed", "ResourceFeed", "Selector"]
