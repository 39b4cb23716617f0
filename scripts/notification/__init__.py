"""
Notification event aggregation for Hub notifications.

Key components:
- ``NotificationEvent`` -- typed fact produced by the pipeline
- ``SubProcessor`` / ``EventAggregationCache`` -- protocols of the parts
- ``NotificationDispatcher`` -- routes items to subprocessors by kind
- ``MapProcessorCache`` -- keyed accumulation base class
- ``NotificationProcessor`` -- dispatch, collect and reduce one batch
- ``NotificationDigestProcessor`` -- ready-made processor for all known kinds
"""

from .protocol import EventAggregationCache, EventCategory, NotificationEvent, SubProcessor
from .dispatcher import NotificationDispatcher
from .caches import MapProcessorCache, PolicyViolationCache, VulnerabilityCache
from .subprocessors import (
    NotificationSubProcessor,
    PolicyClearedSubProcessor,
    PolicyOverrideSubProcessor,
    PolicyViolationSubProcessor,
    VulnerabilitySubProcessor,
)
from .processor import (
    NotificationDigest,
    NotificationDigestProcessor,
    NotificationProcessor,
    order_notifications,
)

__all__ = [
    # Core protocol
    "EventAggregationCache",
    "EventCategory",
    "NotificationEvent",
    "SubProcessor",
    # Dispatch
    "NotificationDispatcher",
    # Caches
    "MapProcessorCache",
    "PolicyViolationCache",
    "VulnerabilityCache",
    # Subprocessors
    "NotificationSubProcessor",
    "PolicyClearedSubProcessor",
    "PolicyOverrideSubProcessor",
    "PolicyViolationSubProcessor",
    "VulnerabilitySubProcessor",
    # Pipeline
    "NotificationDigest",
    "NotificationDigestProcessor",
    "NotificationProcessor",
    "order_notifications",
]
