"""Local mirror of a filtered resource feed.

``ResourceMirror`` subscribes to a ``ResourceFeed`` in a background task,
keeps a key -> entity store current and records each delivered transition
in an ``EventTracker``. Transitions are applied strictly in delivery order.

Lifecycle:
    mirror = ResourceMirror(feed, tracker, selector={"name": "web"})
    await mirror.start()
    # ... restart daemons ...
    keys = mirror.keys()
    await mirror.stop()

If the feed ends or fails without ``stop()`` having been requested, the
mirror would go silently stale; instead it records a ``FeedInterruptedError``
that ``keys()``, ``entities()`` and ``stop()`` raise.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Iterable
from types import TracebackType

from restartwatch.core.errors import FeedInterruptedError
from restartwatch.core.logging import get_logger
from restartwatch.tracking.entity import Added, Deleted, TrackedEntity, Transition, Updated
from restartwatch.tracking.feed import ResourceFeed, Selector
from restartwatch.tracking.tracker import EventTracker

_logger = get_logger("tracking.mirror")


class ResourceMirror:
    """Background subscription feeding a local store and an event tracker."""

    def __init__(
        self,
        feed: ResourceFeed,
        tracker: EventTracker,
        selector: Selector | None = None,
    ) -> None:
        self._feed = feed
        self._tracker = tracker
        self._selector: dict[str, str] = dict(selector or {})
        self._store: dict[str, TrackedEntity] = {}
        self._lock = threading.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._interrupted: FeedInterruptedError | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tracker(self) -> EventTracker:
        return self._tracker

    async def start(self) -> None:
        """List the initial snapshot, then watch for changes in the background.

        Raises:
            FeedInterruptedError: The initial listing or opening the watch failed.
        """
        if self._task is not None:
            return
        self._stop_event.clear()
        self._interrupted = None

        try:
            initial = await self._feed.list(self._selector)
            stream = self._feed.watch(self._selector)
        except Exception as e:
            raise FeedInterruptedError(self._selector, e) from e
        for entity in initial:
            self.handle(Added(entity))

        self._task = asyncio.create_task(self._run(stream), name="resource-mirror")
        self._task.add_done_callback(self._on_task_done)
        _logger.info("mirror.started", selector=self._selector, initial=len(initial))

    async def stop(self) -> None:
        """Stop the background task and wait for it to finish.

        No transition is applied once this is called.

        Raises:
            FeedInterruptedError: The feed had ended on its own before stop.
        """
        self._stop_event.set()
        task = self._task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            self._task = None
            _logger.info("mirror.stopped", selector=self._selector)
        self.raise_if_interrupted()

    def handle(self, transition: Transition) -> None:
        """Apply one transition to the local store and record it."""
        if isinstance(transition, Added | Updated):
            entity = transition.entity
            with self._lock:
                self._store[entity.key] = entity
        elif isinstance(transition, Deleted):
            with self._lock:
                self._store.pop(transition.entity.key, None)
        else:
            raise TypeError(f"Unknown transition: {transition!r}")
        self._tracker.remember(transition.entity, transition.kind)

    def replace_with(self, entities: Iterable[TrackedEntity]) -> None:
        """Replace the whole local store. Records nothing in the tracker."""
        fresh = {e.key: e for e in entities}
        with self._lock:
            self._store = fresh

    def keys(self) -> frozenset[str]:
        """Keys of the entities currently mirrored."""
        self.raise_if_interrupted()
        with self._lock:
            return frozenset(self._store)

    def entities(self) -> list[TrackedEntity]:
        """Snapshots of the entities currently mirrored."""
        self.raise_if_interrupted()
        with self._lock:
            return list(self._store.values())

    def raise_if_interrupted(self) -> None:
        if self._interrupted is not None:
            raise self._interrupted

    async def __aenter__(self) -> ResourceMirror:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            await self.stop()
            return
        # Keep the original exception; still reap the task.
        try:
            await self.stop()
        except FeedInterruptedError:
            _logger.warning("mirror.interrupted_during_error", selector=self._selector)

    # ─── Internal ─────────────────────────────────────────────────────

    async def _run(self, stream: AsyncIterator[Transition]) -> None:
        try:
            async for transition in stream:
                if self._stop_event.is_set():
                    return
                self.handle(transition)
        except Exception as e:
            if not self._stop_event.is_set():
                self._interrupted = FeedInterruptedError(self._selector, e)
                _logger.error("mirror.feed_failed", selector=self._selector, error=str(e))
            return
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        if not self._stop_event.is_set():
            self._interrupted = FeedInterruptedError(self._selector)
            _logger.error("mirror.feed_closed", selector=self._selector)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        # _run absorbs feed errors; anything reaching here escaped it.
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("mirror.task_died", error=str(exc), task_name=task.get_name())


__all__ = ["ResourceMirror"]
