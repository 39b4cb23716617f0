#!/usr/bin/env python3
"""
Hub Event Polling - the public "wait for the Hub" entry point.

Bundles the BOM and report pollers behind one object configured from the
unified config dict (see ``config_loader``).  Waits passed explicitly are
in seconds; the configured defaults are in minutes.

Usage:
    from config_loader import build_unified_config
    from hub_event_polling import HubEventPolling

    polling = HubEventPolling.from_config(build_unified_config())
    polling.is_bom_up_to_date_from_files()
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import requests

from bom_poller import BomUpdatePoller
from completion_poller import CompletionPoller
from config_loader import get_default_config, validate_config
from exceptions import ConfigurationError
from remote_status import HubStatusClient, RemoteStatusService
from report_poller import ReportCompletionPoller
from status_store import StatusFileStore

logger = logging.getLogger(__name__)


class HubEventPolling:
    """Answers "is the Hub done yet?" for scans and reports."""

    def __init__(
        self,
        service: RemoteStatusService,
        config: Optional[Dict[str, Any]] = None,
        poller: Optional[CompletionPoller] = None,
        store: Optional[StatusFileStore] = None,
    ):
        self.service = service
        self.config = {**get_default_config(), **(config or {})}
        self.poller = poller or CompletionPoller()
        self.bom = BomUpdatePoller(service, store=store, poller=self.poller)
        self.reports = ReportCompletionPoller(service, poller=self.poller)

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        session: Optional[requests.Session] = None,
    ) -> "HubEventPolling":
        """Build an instance talking to ``config["hub_url"]``.

        Raises
        ------
        ConfigurationError
            If ``validate_config`` reports any ERROR.
        """
        issues = validate_config(config)
        for issue in issues:
            if issue.startswith("WARNING"):
                logger.warning(issue)
        errors = [i for i in issues if i.startswith("ERROR")]
        if errors:
            raise ConfigurationError("; ".join(errors))

        service = HubStatusClient(
            config["hub_url"],
            session=session,
            timeout=config["request_timeout"],
            verify_ssl=config["verify_ssl"],
        )
        return cls(service, config=config)

    def _bom_wait(self, max_wait: Optional[float]) -> float:
        if max_wait is not None:
            return max_wait
        return float(self.config["bom_max_wait_minutes"]) * 60

    def is_bom_up_to_date(
        self,
        time_before_scan: datetime,
        time_after_scan: datetime,
        hostname: str,
        scan_targets: Sequence[str],
        max_wait: Optional[float] = None,
    ) -> bool:
        """Time-window variant; see ``BomUpdatePoller.is_bom_up_to_date_in_window``."""
        return self.bom.is_bom_up_to_date_in_window(
            time_before_scan,
            time_after_scan,
            hostname,
            scan_targets,
            self._bom_wait(max_wait),
        )

    def is_bom_up_to_date_from_files(
        self,
        expected_num_scans: Optional[int] = None,
        scan_status_directory: Optional[Union[str, Path]] = None,
        max_wait: Optional[float] = None,
    ) -> bool:
        """Persisted-pointer variant; defaults come from the config."""
        if expected_num_scans is None:
            expected_num_scans = self.config["expected_scan_count"]
        if scan_status_directory is None:
            scan_status_directory = self.config["scan_status_directory"]
        return self.bom.is_bom_up_to_date_from_files(
            expected_num_scans,
            scan_status_directory,
            self._bom_wait(max_wait),
        )

    def is_report_finished_generating(
        self, report_url: str, max_wait: Optional[float] = None
    ) -> bool:
        if max_wait is None:
            max_wait = float(self.config["report_max_wait_minutes"]) * 60
        return self.reports.is_report_finished_generating(report_url, max_wait)


__all__ = ["HubEventPolling"]
