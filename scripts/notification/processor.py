"""
Notification Processor - turns a batch of notifications into a result.

``NotificationProcessor`` runs one batch through three steps:

1. Order and deduplicate the content items, then dispatch each one to the
   subprocessor registered for its kind (mutating the caches).
2. Flush every registered cache into one collection of events.
3. Hand the events to ``reduce_events``, implemented by the subclass, to
   build the caller's result type.

Caches are emptied before and after every ``process`` call, so nothing
leaks between batches.  The registry must be set up before the first
``process`` call; changing it while a batch is running is an error.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Tuple, TypeVar

from exceptions import NotificationProcessingError
from schemas.notifications import NotificationContentItem, NotificationKind

from .caches import PolicyViolationCache, VulnerabilityCache
from .dispatcher import NotificationDispatcher
from .protocol import EventAggregationCache, EventCategory, NotificationEvent, SubProcessor
from .subprocessors import (
    PolicyClearedSubProcessor,
    PolicyOverrideSubProcessor,
    PolicyViolationSubProcessor,
    VulnerabilitySubProcessor,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def order_notifications(
    notifications: Iterable[NotificationContentItem],
) -> List[NotificationContentItem]:
    """Deduplicate and sort content items by ``sort_key``."""
    return sorted(set(notifications), key=lambda item: item.sort_key())


class NotificationProcessor(ABC, Generic[T]):
    """Dispatch -> collect -> reduce pipeline over notification content items.

    Subclasses register their subprocessors and caches (usually in
    ``__init__``) and implement ``reduce_events``.

    Example
    -------
    ::

        class CountingProcessor(NotificationProcessor[int]):
            def __init__(self):
                super().__init__()
                cache = VulnerabilityCache()
                self.register_cache(cache)
                self.register_subprocessor(
                    NotificationKind.VULNERABILITY, VulnerabilitySubProcessor(cache)
                )

            def reduce_events(self, events):
                return len(events)
    """

    def __init__(self):
        self._dispatcher = NotificationDispatcher()
        self._caches: List[EventAggregationCache] = []
        self._processing = False

    def _check_not_processing(self) -> None:
        if self._processing:
            raise NotificationProcessingError(
                "The processor registry cannot change while a batch is being processed"
            )

    def register_subprocessor(self, kind: NotificationKind, subprocessor: SubProcessor) -> None:
        self._check_not_processing()
        self._dispatcher.register(kind, subprocessor)

    def register_cache(self, cache: EventAggregationCache) -> None:
        self._check_not_processing()
        if not isinstance(cache, EventAggregationCache):
            raise NotificationProcessingError(
                f"{type(cache).__name__} does not implement reset() and get_events()"
            )
        self._caches.append(cache)

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    @property
    def caches(self) -> Tuple[EventAggregationCache, ...]:
        return tuple(self._caches)

    def process(self, notifications: Iterable[NotificationContentItem]) -> T:
        """Run one batch of notifications through the pipeline."""
        self._check_not_processing()
        ordered = order_notifications(notifications)

        self._processing = True
        try:
            self._reset_caches()
            dispatched = self._create_events(ordered)
            events = self._collect_events()
        finally:
            self._reset_caches()
            self._processing = False

        logger.info(
            "Processed %d notification(s) (%d skipped) into %d event(s)",
            len(ordered),
            len(ordered) - dispatched,
            len(events),
        )
        return self.reduce_events(events)

    def _reset_caches(self) -> None:
        for cache in self._caches:
            cache.reset()

    def _create_events(self, ordered: List[NotificationContentItem]) -> int:
        dispatched = 0
        for item in ordered:
            if self._dispatcher.dispatch(item):
                dispatched += 1
        return dispatched

    def _collect_events(self) -> List[NotificationEvent]:
        events: List[NotificationEvent] = []
        for cache in self._caches:
            events.extend(cache.get_events())
        return events

    @abstractmethod
    def reduce_events(self, events: List[NotificationEvent]) -> T:
        """Build the result from the collected events.

        The events carry no particular order; sort them here if the result
        needs one.
        """
        ...


# ============================================================================
# Standard processor: every known kind, reduced to a digest
# ============================================================================


@dataclass(frozen=True)
class NotificationDigest:
    """Events of one batch, sorted by category and key."""

    events: Tuple[NotificationEvent, ...] = ()

    @property
    def counts(self) -> Dict[str, int]:
        return dict(Counter(e.category.value for e in self.events))

    def by_category(self, category: EventCategory) -> List[NotificationEvent]:
        return [e for e in self.events if e.category is category]

    def for_project_version(self, project_name: str, version_name: str) -> List[NotificationEvent]:
        return [
            e
            for e in self.events
            if e.project_name == project_name and e.project_version_name == version_name
        ]

    def __len__(self) -> int:
        return len(self.events)


def _event_sort_key(event: NotificationEvent):
    return (event.category.value, tuple(str(part) for part in event.key))


class NotificationDigestProcessor(NotificationProcessor[NotificationDigest]):
    """Handles policy and vulnerability notifications into a ``NotificationDigest``."""

    def __init__(self):
        super().__init__()
        self.policy_cache = PolicyViolationCache()
        self.vulnerability_cache = VulnerabilityCache()
        self.register_cache(self.policy_cache)
        self.register_cache(self.vulnerability_cache)

        for subprocessor in (
            PolicyViolationSubProcessor(self.policy_cache),
            PolicyClearedSubProcessor(self.policy_cache),
            PolicyOverrideSubProcessor(self.policy_cache),
            VulnerabilitySubProcessor(self.vulnerability_cache),
        ):
            self.register_subprocessor(subprocessor.kind, subprocessor)

    def reduce_events(self, events: List[NotificationEvent]) -> NotificationDigest:
        return NotificationDigest(events=tuple(sorted(events, key=_event_sort_key)))
