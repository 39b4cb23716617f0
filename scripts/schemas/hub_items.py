"""
Hub Item Schemas - Typed models for the JSON the Hub returns.

These models replace the raw dicts coming back from the REST API with
structurally validated objects.  Only the fields the polling layer reads
are declared; ``extra = "allow"`` keeps everything else so that newer
server versions do not break validation.

Hierarchy:
    ResourceMeta          - the ``_meta`` block every Hub resource carries
    StatusRecord          - immutable snapshot of one status at one poll
    ScanStatusToPoll      - persisted per-scan status written by the scanner
    ScanHistoryItem       - one entry of a code location's scan list
    CodeLocation          - a scan target registered on the Hub
    ReportMetadata        - report resource, finished once ``finishedAt`` is set
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ResourceMeta(BaseModel):
    """The ``_meta`` block attached to Hub resources."""

    href: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class StatusRecord(BaseModel):
    """Server-reported state of one tracked unit at one poll.

    ``identifier`` is the code location path for history entries, or the
    status URL for persisted scan pointers.  ``href`` is the link used to
    re-query the record, when the server provided one.
    """

    identifier: str
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    href: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ScanStatusToPoll(BaseModel):
    """Per-scan status pointer persisted by the scanner CLI.

    A well-formed file has both a ``_meta`` link and a ``status`` label;
    ``StatusFileStore`` rejects anything else.
    """

    meta: Optional[ResourceMeta] = Field(default=None, alias="_meta")
    status: Optional[str] = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def href(self) -> Optional[str]:
        return self.meta.href if self.meta is not None else None

    def is_well_formed(self) -> bool:
        return bool(self.href) and self.status is not None

    def to_status_record(self, fallback_href: Optional[str] = None) -> StatusRecord:
        href = self.href or fallback_href
        return StatusRecord(
            identifier=href or "",
            status=self.status,
            href=href,
        )


class ScanHistoryItem(BaseModel):
    """One scan recorded against a code location."""

    status: Optional[str] = None
    created_on: Optional[datetime] = Field(default=None, alias="createdOn")
    last_modified_on: Optional[datetime] = Field(default=None, alias="lastModifiedOn")
    scanner_version: Optional[str] = Field(default=None, alias="scannerVersion")
    meta: Optional[ResourceMeta] = Field(default=None, alias="_meta")

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class CodeLocation(BaseModel):
    """A scan target (host + path) the Hub tracks."""

    host: Optional[str] = None
    path: str = ""
    scan_list: List[ScanHistoryItem] = Field(default_factory=list, alias="scanList")
    meta: Optional[ResourceMeta] = Field(default=None, alias="_meta")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_status_records(self) -> List[StatusRecord]:
        """Flatten the scan history into one ``StatusRecord`` per scan."""
        return [
            StatusRecord(
                identifier=self.path,
                status=scan.status,
                created_at=scan.created_on,
                href=scan.meta.href if scan.meta is not None else None,
            )
            for scan in self.scan_list
        ]


class ReportMetadata(BaseModel):
    """Metadata of a generated report.

    The Hub sets ``finishedAt`` once generation is done; there is no error
    state for reports.
    """

    report_format: Optional[str] = Field(default=None, alias="reportFormat")
    locale: Optional[str] = None
    file_name: Optional[str] = Field(default=None, alias="fileName")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    finished_at: Optional[datetime] = Field(default=None, alias="finishedAt")
    meta: Optional[ResourceMeta] = Field(default=None, alias="_meta")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None
