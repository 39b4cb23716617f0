"""
Event Aggregation Caches - keyed accumulation of notification facts.

``MapProcessorCache`` keeps one mutable state object per aggregation key.
Entries are created on first touch and flushed into ``NotificationEvent``
values when the pipeline collects events.  Repeated facts about the same
key merge into one event instead of producing duplicates.

Accumulation is order dependent: a policy violation followed by its
clearing cancels out, while a clearing with no prior violation in the same
run is reported on its own.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, List, Tuple, TypeVar

from schemas.notifications import (
    NotificationContentItem,
    PolicyContentItem,
    PolicyOverrideContentItem,
    PolicyRule,
    VulnerabilityContentItem,
    VulnerabilitySource,
)

from .protocol import EventCategory, NotificationEvent

logger = logging.getLogger(__name__)

K = TypeVar("K")
S = TypeVar("S")


class MapProcessorCache(ABC, Generic[K, S]):
    """Abstract keyed cache satisfying ``EventAggregationCache``.

    Subclasses must implement ``_flush(key, state)``, turning one entry into
    its events, and expose their own ``record_*`` methods built on
    ``_touch`` / ``_discard``.
    """

    def __init__(self):
        self._entries: Dict[K, S] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> List[K]:
        return list(self._entries)

    def reset(self) -> None:
        self._entries.clear()

    def _touch(self, key: K, factory: Callable[[], S]) -> S:
        state = self._entries.get(key)
        if state is None:
            state = factory()
            self._entries[key] = state
        return state

    def _discard(self, key: K) -> None:
        self._entries.pop(key, None)

    @abstractmethod
    def _flush(self, key: K, state: S) -> Iterable[NotificationEvent]:
        ...

    def get_events(self) -> List[NotificationEvent]:
        events: List[NotificationEvent] = []
        for key, state in self._entries.items():
            events.extend(self._flush(key, state))
        return events


# ============================================================================
# Policy violations
# ============================================================================

PolicyKey = Tuple[str, str, str, str, str]


@dataclass
class _PolicyState:
    category: EventCategory
    rule: PolicyRule
    items: List[NotificationContentItem] = field(default_factory=list)


def policy_key(item: NotificationContentItem, rule: PolicyRule) -> PolicyKey:
    return (
        item.project_version.project_name,
        item.project_version.project_version_name,
        item.component_name,
        item.component_version,
        rule.name,
    )


class PolicyViolationCache(MapProcessorCache[PolicyKey, _PolicyState]):
    """Tracks the net policy state per (project version, component, rule)."""

    def record_violation(self, item: PolicyContentItem, rule: PolicyRule) -> None:
        state = self._touch(
            policy_key(item, rule),
            lambda: _PolicyState(EventCategory.POLICY_VIOLATION, rule),
        )
        state.category = EventCategory.POLICY_VIOLATION
        state.items.append(item)

    def record_resolution(
        self, item: PolicyContentItem, rule: PolicyRule, category: EventCategory
    ) -> None:
        """Record a clearing or override of *rule*.

        A resolution of a violation seen earlier in the same run cancels it
        and the key is dropped.
        """
        key = policy_key(item, rule)
        current = self._entries.get(key)
        if current is not None and current.category is EventCategory.POLICY_VIOLATION:
            logger.debug("Violation of %s cancelled by %s", key, category.value)
            self._discard(key)
            return
        state = self._touch(key, lambda: _PolicyState(category, rule))
        state.category = category
        state.items.append(item)

    def _flush(self, key: PolicyKey, state: _PolicyState) -> Iterable[NotificationEvent]:
        first = state.items[0]
        payload = {
            "policy_rule": state.rule.name,
            "policy_rule_url": state.rule.url,
        }
        if state.category is EventCategory.POLICY_VIOLATION_OVERRIDE:
            overrides = [i for i in state.items if isinstance(i, PolicyOverrideContentItem)]
            if overrides:
                last = overrides[-1]
                payload["overridden_by"] = f"{last.first_name} {last.last_name}".strip()
        yield NotificationEvent(
            category=state.category,
            key=key,
            project_name=first.project_version.project_name,
            project_version_name=first.project_version.project_version_name,
            component_name=first.component_name,
            component_version=first.component_version,
            payload=payload,
            content_items=tuple(state.items),
        )


# ============================================================================
# Vulnerabilities
# ============================================================================

ComponentKey = Tuple[str, str, str, str]


@dataclass
class _VulnerabilityState:
    # dicts used as insertion-ordered sets
    added: Dict[VulnerabilitySource, None] = field(default_factory=dict)
    updated: Dict[VulnerabilitySource, None] = field(default_factory=dict)
    deleted: Dict[VulnerabilitySource, None] = field(default_factory=dict)
    items: List[NotificationContentItem] = field(default_factory=list)


def component_key(item: NotificationContentItem) -> ComponentKey:
    return (
        item.project_version.project_name,
        item.project_version.project_version_name,
        item.component_name,
        item.component_version,
    )


def _sorted_ids(ids: Iterable[VulnerabilitySource]) -> List[str]:
    return sorted(f"{v.source}:{v.vulnerability_id}" for v in ids)


class VulnerabilityCache(MapProcessorCache[ComponentKey, _VulnerabilityState]):
    """Merges vulnerability changes per (project version, component version).

    Changes are applied in input order: an id added and then deleted in the
    same run disappears, an update to an id added in the same run stays an
    addition.
    """

    def record(self, item: VulnerabilityContentItem) -> None:
        state = self._touch(component_key(item), _VulnerabilityState)
        state.items.append(item)

        for vuln in item.added_vulnerabilities:
            state.deleted.pop(vuln, None)
            state.added[vuln] = None
        for vuln in item.updated_vulnerabilities:
            if vuln not in state.added:
                state.updated[vuln] = None
        for vuln in item.deleted_vulnerabilities:
            state.updated.pop(vuln, None)
            if vuln in state.added:
                del state.added[vuln]
            else:
                state.deleted[vuln] = None

    def _flush(
        self, key: ComponentKey, state: _VulnerabilityState
    ) -> Iterable[NotificationEvent]:
        if not (state.added or state.updated or state.deleted):
            return
        first = state.items[0]
        yield NotificationEvent(
            category=EventCategory.VULNERABILITY,
            key=key,
            project_name=first.project_version.project_name,
            project_version_name=first.project_version.project_version_name,
            component_name=first.component_name,
            component_version=first.component_version,
            payload={
                "added": _sorted_ids(state.added),
                "updated": _sorted_ids(state.updated),
                "deleted": _sorted_ids(state.deleted),
            },
            content_items=tuple(state.items),
        )
