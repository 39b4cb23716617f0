"""
Notification Schemas - Typed content items for Hub notifications.

Every notification the Hub emits is converted into one or more immutable
``NotificationContentItem`` values.  Items are hashable (so duplicates
collapse in a set) and totally ordered by ``sort_key`` (creation time
first), which is the order the notification pipeline consumes them in.

Kinds:
    POLICY_VIOLATION          - a component version violates policy rules
    POLICY_VIOLATION_CLEARED  - a previously reported violation went away
    POLICY_OVERRIDE           - a user overrode a violation
    VULNERABILITY             - vulnerabilities added/updated/deleted

Server notification types this client does not know about are skipped by
``parse_notification_items`` so that older clients keep working when the
Hub grows new notification types.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from exceptions import NotificationProcessingError

from .hub_items import as_utc

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """Notification types, valued by the Hub's ``type`` field."""

    POLICY_VIOLATION = "RULE_VIOLATION"
    POLICY_VIOLATION_CLEARED = "RULE_VIOLATION_CLEARED"
    POLICY_OVERRIDE = "POLICY_OVERRIDE"
    VULNERABILITY = "VULNERABILITY"


class ProjectVersion(BaseModel):
    project_name: str
    project_version_name: str
    url: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class PolicyRule(BaseModel):
    name: str
    url: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class VulnerabilitySource(BaseModel):
    source: str
    vulnerability_id: str

    model_config = ConfigDict(frozen=True)


class NotificationContentItem(BaseModel):
    """Common shape of every notification content item."""

    kind: NotificationKind
    created_at: datetime
    project_version: ProjectVersion
    component_name: str
    component_version: str = ""
    component_version_url: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def sort_key(self) -> Tuple[Any, ...]:
        """Total order: creation time, then kind, then where it applies.

        The trailing JSON dump breaks ties between distinct items that
        share everything else, so ordering never depends on set iteration.
        """
        return (
            as_utc(self.created_at),
            self.kind.value,
            self.project_version.project_name,
            self.project_version.project_version_name,
            self.component_name,
            self.component_version,
            self.model_dump_json(),
        )


class PolicyViolationContentItem(NotificationContentItem):
    kind: Literal[NotificationKind.POLICY_VIOLATION] = NotificationKind.POLICY_VIOLATION
    policy_rules: Tuple[PolicyRule, ...] = ()


class PolicyViolationClearedContentItem(NotificationContentItem):
    kind: Literal[NotificationKind.POLICY_VIOLATION_CLEARED] = (
        NotificationKind.POLICY_VIOLATION_CLEARED
    )
    policy_rules: Tuple[PolicyRule, ...] = ()


class PolicyOverrideContentItem(NotificationContentItem):
    kind: Literal[NotificationKind.POLICY_OVERRIDE] = NotificationKind.POLICY_OVERRIDE
    policy_rules: Tuple[PolicyRule, ...] = ()
    first_name: str = ""
    last_name: str = ""


class VulnerabilityContentItem(NotificationContentItem):
    kind: Literal[NotificationKind.VULNERABILITY] = NotificationKind.VULNERABILITY
    added_vulnerabilities: Tuple[VulnerabilitySource, ...] = ()
    updated_vulnerabilities: Tuple[VulnerabilitySource, ...] = ()
    deleted_vulnerabilities: Tuple[VulnerabilitySource, ...] = ()


PolicyContentItem = Union[
    PolicyViolationContentItem,
    PolicyViolationClearedContentItem,
    PolicyOverrideContentItem,
]


# ---------------------------------------------------------------------------
# Parsing raw Hub notifications
# ---------------------------------------------------------------------------

_POLICY_ITEM_TYPES = {
    NotificationKind.POLICY_VIOLATION.value: PolicyViolationContentItem,
    NotificationKind.POLICY_VIOLATION_CLEARED.value: PolicyViolationClearedContentItem,
    NotificationKind.POLICY_OVERRIDE.value: PolicyOverrideContentItem,
}


def _project_version(content: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "project_name": content.get("projectName"),
        "project_version_name": content.get("projectVersionName"),
        "url": content.get("projectVersionLink"),
    }


def _vulnerability_ids(content: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    return [
        {"source": v.get("source", ""), "vulnerability_id": v.get("vulnerabilityId")}
        for v in content.get(key) or []
    ]


def parse_notification_items(raw: Dict[str, Any]) -> List[NotificationContentItem]:
    """Convert one raw Hub notification into content items.

    Policy notifications yield a single item.  Vulnerability notifications
    yield one item per affected project version.  Unknown notification
    types yield an empty list.

    Raises
    ------
    NotificationProcessingError
        If a known notification type is missing required fields.
    """
    notification_type = raw.get("type")
    content = raw.get("content") or {}
    created_at = raw.get("createdAt")

    try:
        if notification_type in _POLICY_ITEM_TYPES:
            item_cls = _POLICY_ITEM_TYPES[notification_type]
            fields: Dict[str, Any] = {
                "created_at": created_at,
                "project_version": _project_version(content),
                "component_name": content.get("componentName"),
                "component_version": content.get("componentVersionName") or "",
                "component_version_url": content.get("componentVersionLink"),
                "policy_rules": [
                    {"name": rule.get("name"), "url": rule.get("href")}
                    for rule in content.get("policyRules") or []
                ],
            }
            if item_cls is PolicyOverrideContentItem:
                fields["first_name"] = content.get("firstName") or ""
                fields["last_name"] = content.get("lastName") or ""
            return [item_cls.model_validate(fields)]

        if notification_type == NotificationKind.VULNERABILITY.value:
            affected = content.get("affectedProjectVersions") or []
            added = _vulnerability_ids(content, "newVulnerabilityIds")
            updated = _vulnerability_ids(content, "updatedVulnerabilityIds")
            deleted = _vulnerability_ids(content, "deletedVulnerabilityIds")
            return [
                VulnerabilityContentItem.model_validate({
                    "created_at": created_at,
                    "project_version": _project_version(project),
                    "component_name": content.get("componentName"),
                    "component_version": content.get("versionName") or "",
                    "component_version_url": content.get("componentVersionLink"),
                    "added_vulnerabilities": added,
                    "updated_vulnerabilities": updated,
                    "deleted_vulnerabilities": deleted,
                })
                for project in affected
            ]
    except ValidationError as exc:
        raise NotificationProcessingError(
            f"Malformed {notification_type} notification: {exc}"
        ) from exc

    logger.debug("Skipping notification of unsupported type %r", notification_type)
    return []
