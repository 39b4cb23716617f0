"""
Notification Protocol - event type and the interfaces of the pipeline parts.

Notification content items are dispatched to ``SubProcessor`` objects,
which deposit facts into ``EventAggregationCache`` objects.  Once every
item has been dispatched, each cache is flushed into ``NotificationEvent``
values.

The use of ``Protocol`` (structural subtyping) means subprocessors and
caches do not need to inherit from the base classes in this package; any
object with the right methods can be registered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, List, Mapping, Protocol, Tuple, runtime_checkable

from schemas.notifications import NotificationContentItem


class EventCategory(Enum):
    POLICY_VIOLATION = "policy_violation"
    POLICY_VIOLATION_CLEARED = "policy_violation_cleared"
    POLICY_VIOLATION_OVERRIDE = "policy_violation_override"
    VULNERABILITY = "vulnerability"


@dataclass(frozen=True)
class NotificationEvent:
    """A fact derived from one or more notification content items.

    Attributes
    ----------
    category : EventCategory
        What happened.
    key : tuple
        Aggregation key the contributing items were grouped under.
    project_name, project_version_name : str
        Project version the event applies to.
    component_name, component_version : str
        Component (version) the event applies to.
    payload : Mapping
        Category-specific details (rule, vulnerability ids, ...).  Stored
        read-only.
    content_items : tuple
        Every content item merged into this event, in input order.
    """

    category: EventCategory
    key: Tuple[Any, ...]
    project_name: str
    project_version_name: str
    component_name: str
    component_version: str = ""
    payload: Mapping[str, Any] = field(default_factory=dict, hash=False)
    content_items: Tuple[NotificationContentItem, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    @property
    def event_key(self) -> str:
        """Stable string id: category plus aggregation key."""
        return "|".join([self.category.value, *(str(part) for part in self.key)])


@runtime_checkable
class SubProcessor(Protocol):
    """Handles the content items of one notification kind."""

    def process(self, item: NotificationContentItem) -> None:
        """Extract facts from *item* into the subprocessor's cache(s)."""
        ...


@runtime_checkable
class EventAggregationCache(Protocol):
    """Accumulates facts per key and turns them into events."""

    def reset(self) -> None:
        """Drop all accumulated state."""
        ...

    def get_events(self) -> List[NotificationEvent]:
        """Convert the accumulated state into events, one or more per key."""
        ...
