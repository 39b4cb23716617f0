"""
Pydantic schemas for Hub resources and notifications

This package contains the Pydantic models for the JSON exchanged with the
Hub.  Models check structure only; anything the client does not read is
kept via ``extra = "allow"``.
"""

from .hub_items import (
    CodeLocation,
    ReportMetadata,
    ResourceMeta,
    ScanHistoryItem,
    ScanStatusToPoll,
    StatusRecord,
    as_utc,
)
from .notifications import (
    NotificationContentItem,
    NotificationKind,
    PolicyContentItem,
    PolicyOverrideContentItem,
    PolicyRule,
    PolicyViolationClearedContentItem,
    PolicyViolationContentItem,
    ProjectVersion,
    VulnerabilityContentItem,
    VulnerabilitySource,
    parse_notification_items,
)

__all__ = [
    # Hub resources
    "CodeLocation",
    "ReportMetadata",
    "ResourceMeta",
    "ScanHistoryItem",
    "ScanStatusToPoll",
    "StatusRecord",
    "as_utc",
    # Notifications
    "NotificationContentItem",
    "NotificationKind",
    "PolicyContentItem",
    "PolicyOverrideContentItem",
    "PolicyRule",
    "PolicyViolationClearedContentItem",
    "PolicyViolationContentItem",
    "ProjectVersion",
    "VulnerabilityContentItem",
    "VulnerabilitySource",
    "parse_notification_items",
]
