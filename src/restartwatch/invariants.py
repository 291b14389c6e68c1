"""Post-restart invariants.

Two properties are checked after a restart window:

- **Identity preservation**: the set of tracked entity keys is unchanged.
  Entities may be replaced in place (same key), but the controlling
  authority must not have created or removed any.
- **Restart-count stability**: per-host container restart counters are
  unchanged.

The ``no_*`` methods are pure predicates. The ``require_*`` variants raise
``InvariantViolationError`` with the tracker render attached.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field

from restartwatch.core.errors import InvariantViolationError
from restartwatch.core.logging import get_logger
from restartwatch.tracking.entity import TrackedEntity
from restartwatch.tracking.tracker import EventTracker

_logger = get_logger("invariants")


@dataclass(frozen=True)
class RestartCounts:
    """Container restarts summed over entities, attributed per host."""

    total: int = 0
    per_host: dict[str, int] = field(default_factory=dict)

    @property
    def hosts(self) -> list[str]:
        """Hosts with at least one restart, sorted."""
        return sorted(h for h, n in self.per_host.items() if n > 0)


def count_container_restarts(entities: Iterable[TrackedEntity]) -> RestartCounts:
    """Sum container restarts per host across ``entities``."""
    per_host: dict[str, int] = {}
    total = 0
    for entity in entities:
        restarts = entity.restart_count
        total += restarts
        per_host[entity.host] = per_host.get(entity.host, 0) + restarts
    return RestartCounts(total=total, per_host=per_host)


class InvariantChecker:
    """Compares before/after observations of one restart window."""

    def __init__(self, tracker: EventTracker | None = None) -> None:
        self._tracker = tracker

    def _render(self) -> str:
        return self._tracker.render() if self._tracker is not None else ""

    @staticmethod
    def no_replicas_changed(before: Collection[str], after: Collection[str]) -> bool:
        """True iff ``after`` is a superset of ``before`` of equal cardinality."""
        if len(after) != len(before):
            return False
        return set(after).issuperset(before)

    def require_no_replicas_changed(
        self,
        before: Collection[str],
        after: Collection[str],
    ) -> None:
        """Raise ``InvariantViolationError`` if entities were created or removed."""
        if self.no_replicas_changed(before, after):
            return
        missing = sorted(set(before) - set(after))
        unexpected = sorted(set(after) - set(before))
        _logger.error(
            "invariants.replicas_changed",
            before=len(before),
            after=len(after),
            missing=missing,
            unexpected=unexpected,
        )
        raise InvariantViolationError(
            f"Replicas were created/deleted across restart: {len(before)} -> {len(after)} "
            f"(missing {missing}, unexpected {unexpected})",
            before=before,
            after=after,
            render=self._render(),
        )

    @staticmethod
    def offending_hosts(before: Mapping[str, int], after: Mapping[str, int]) -> list[str]:
        """Hosts whose restart counter changed, sorted. Missing hosts count as 0."""
        hosts = set(before) | set(after)
        return sorted(h for h in hosts if after.get(h, 0) != before.get(h, 0))

    @classmethod
    def no_unexpected_restarts(cls, before: Mapping[str, int], after: Mapping[str, int]) -> bool:
        """True iff every host's restart counter is unchanged."""
        return not cls.offending_hosts(before, after)

    def require_no_unexpected_restarts(
        self,
        before: Mapping[str, int],
        after: Mapping[str, int],
    ) -> None:
        """Raise ``InvariantViolationError`` naming each host whose counter moved."""
        offending = self.offending_hosts(before, after)
        if not offending:
            return
        before_total = sum(before.values())
        after_total = sum(after.values())
        deltas = {h: after.get(h, 0) - before.get(h, 0) for h in offending}
        _logger.error(
            "invariants.unexpected_restarts",
            before_total=before_total,
            after_total=after_total,
            deltas=deltas,
        )
        raise InvariantViolationError(
            f"Net container restart count went from {before_total} -> {after_total} "
            f"after restart on nodes {offending} (deltas {deltas})",
            render=self._render(),
        )


__all__ = ["InvariantChecker", "RestartCounts", "count_container_restarts"]
