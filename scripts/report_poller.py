#!/usr/bin/env python3
"""
Report Completion Poller - waits for a Hub report to finish generating.

A report has no status label.  It is finished as soon as its metadata
carries a ``finishedAt`` timestamp, and it never finishes "in error", so
the only failure is running out of time.  Polls every 5 seconds for up to
30 minutes unless told otherwise.
"""

import logging
from typing import Optional

from completion_poller import (
    DEFAULT_REPORT_MAX_WAIT_SECONDS,
    REPORT_POLL_INTERVAL_SECONDS,
    CompletionPoller,
    PollOutcome,
    format_wait,
)
from exceptions import PollTimeoutError
from remote_status import RemoteStatusService
from scan_status import Classification
from schemas.hub_items import ReportMetadata

logger = logging.getLogger(__name__)


def classify_report(report: ReportMetadata) -> Classification:
    if report.is_finished:
        return Classification.FINISHED_OK
    return Classification.PENDING


class ReportCompletionPoller:
    """Polls one report URL until its metadata shows a finish time."""

    def __init__(
        self,
        service: RemoteStatusService,
        poller: Optional[CompletionPoller] = None,
        interval: float = REPORT_POLL_INTERVAL_SECONDS,
    ):
        self.service = service
        self.poller = poller or CompletionPoller()
        self.interval = interval

    def is_report_finished_generating(
        self, report_url: str, max_wait: Optional[float] = None
    ) -> bool:
        """Return ``True`` once the report at *report_url* is generated.

        Raises ``PollTimeoutError`` after *max_wait* seconds (default 30
        minutes).
        """
        if max_wait is None:
            max_wait = DEFAULT_REPORT_MAX_WAIT_SECONDS

        logger.info("Waiting up to %s for report %s", format_wait(max_wait), report_url)
        result = self.poller.poll(
            fetch=lambda: [self.service.fetch_report_metadata(report_url)],
            classify=classify_report,
            max_wait=max_wait,
            interval=self.interval,
            describe=lambda report: None,
        )
        if result.outcome is PollOutcome.COMPLETED:
            return True
        raise PollTimeoutError(
            f"The Report has not finished generating in : {format_wait(max_wait)}",
            max_wait_seconds=max_wait,
        )


__all__ = ["ReportCompletionPoller", "classify_report"]
