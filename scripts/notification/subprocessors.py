"""
Notification SubProcessors - per-kind fact extraction.

Each subprocessor handles one ``NotificationKind`` and deposits what it
learns into the cache(s) it was built with.  Subprocessors hold no state
of their own; all accumulation lives in the caches.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from schemas.notifications import (
    NotificationContentItem,
    NotificationKind,
    PolicyContentItem,
    VulnerabilityContentItem,
)

from .caches import PolicyViolationCache, VulnerabilityCache
from .protocol import EventCategory

logger = logging.getLogger(__name__)


class NotificationSubProcessor(ABC):
    """Abstract base class that satisfies the ``SubProcessor`` protocol.

    Subclasses set ``kind`` and implement ``process(item)``.
    """

    kind: NotificationKind

    @abstractmethod
    def process(self, item: NotificationContentItem) -> None:
        ...


class PolicyViolationSubProcessor(NotificationSubProcessor):
    """Records one violation per policy rule listed on the item."""

    kind = NotificationKind.POLICY_VIOLATION

    def __init__(self, cache: PolicyViolationCache):
        self.cache = cache

    def process(self, item: PolicyContentItem) -> None:
        for rule in item.policy_rules:
            self.cache.record_violation(item, rule)


class _PolicyResolutionSubProcessor(NotificationSubProcessor):
    category: EventCategory

    def __init__(self, cache: PolicyViolationCache):
        self.cache = cache

    def process(self, item: PolicyContentItem) -> None:
        for rule in item.policy_rules:
            self.cache.record_resolution(item, rule, self.category)


class PolicyClearedSubProcessor(_PolicyResolutionSubProcessor):
    kind = NotificationKind.POLICY_VIOLATION_CLEARED
    category = EventCategory.POLICY_VIOLATION_CLEARED


class PolicyOverrideSubProcessor(_PolicyResolutionSubProcessor):
    kind = NotificationKind.POLICY_OVERRIDE
    category = EventCategory.POLICY_VIOLATION_OVERRIDE


class VulnerabilitySubProcessor(NotificationSubProcessor):
    kind = NotificationKind.VULNERABILITY

    def __init__(self, cache: VulnerabilityCache):
        self.cache = cache

    def process(self, item: VulnerabilityContentItem) -> None:
        if not (
            item.added_vulnerabilities
            or item.updated_vulnerabilities
            or item.deleted_vulnerabilities
        ):
            logger.debug(
                "Vulnerability notification for %s %s carries no ids",
                item.component_name,
                item.component_version,
            )
        self.cache.record(item)
