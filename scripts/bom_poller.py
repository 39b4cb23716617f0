#!/usr/bin/env python3
"""
BOM Update Poller - waits until the bill of materials absorbed a scan.

Two ways of answering "is the BOM up to date with this scan?":

* **Time window**: look at the live scan history of the scanned code
  locations and track every history entry created between the moments
  just before and just after the scan.
* **Persisted pointers**: start from the status files the scanner left
  behind and re-query only the scans that are still pending.

Both run on ``CompletionPoller`` with a fixed 10 second interval.  Any
scan in an error state fails the whole wait.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from completion_poller import (
    BOM_POLL_INTERVAL_SECONDS,
    CompletionPoller,
    PollOutcome,
    PollResult,
    format_wait,
)
from exceptions import PollTimeoutError, ScanFailedError
from remote_status import RemoteStatusService, paths_match
from scan_status import DEFAULT_CLASSIFIER, Classification, StatusClassifier
from schemas.hub_items import ScanStatusToPoll, StatusRecord, as_utc
from status_store import StatusFileStore

logger = logging.getLogger(__name__)


def in_scan_window(start: datetime, end: datetime) -> Callable[[StatusRecord], bool]:
    """Relevance filter: created strictly between *start* and *end*."""
    window_start = as_utc(start)
    window_end = as_utc(end)

    def _predicate(record: StatusRecord) -> bool:
        created = as_utc(record.created_at)
        return created is not None and window_start < created < window_end

    return _predicate


def covers_locations(
    target_paths: Sequence[str], is_relevant: Callable[[StatusRecord], bool]
) -> Callable[[Sequence[StatusRecord]], bool]:
    """Coverage check over all fetched records.

    Every code location seen in the history, and every requested target,
    needs at least one relevant record.  A target can match several code
    locations, so matching the targets alone is not enough.
    """

    def _predicate(records: Sequence[StatusRecord]) -> bool:
        relevant = [record for record in records if is_relevant(record)]
        covered_locations = {record.identifier for record in relevant}
        if any(record.identifier not in covered_locations for record in records):
            return False
        return all(
            any(paths_match(target, record.identifier) for record in relevant)
            for target in target_paths
        )

    return _predicate


class BomUpdatePoller:
    """Waits for scan results to be merged into the Hub's BOM.

    Parameters
    ----------
    service : RemoteStatusService
        Source of live code location and scan status data.
    store : StatusFileStore
        Reader for persisted status directories.
    poller : CompletionPoller
        Loop implementation; inject one with a fake clock in tests.
    classifier : StatusClassifier
        Label vocabulary, fixed for the lifetime of this poller.
    interval : float
        Seconds between polls.
    """

    def __init__(
        self,
        service: RemoteStatusService,
        store: Optional[StatusFileStore] = None,
        poller: Optional[CompletionPoller] = None,
        classifier: StatusClassifier = DEFAULT_CLASSIFIER,
        interval: float = BOM_POLL_INTERVAL_SECONDS,
    ):
        self.service = service
        self.store = store or StatusFileStore()
        self.poller = poller or CompletionPoller()
        self.classifier = classifier
        self.interval = interval

    def _classify(self, record: StatusRecord) -> Classification:
        return self.classifier.classify(record.status)

    # ------------------------------------------------------------------
    # Time-window variant
    # ------------------------------------------------------------------

    def is_bom_up_to_date_in_window(
        self,
        time_before_scan: datetime,
        time_after_scan: datetime,
        hostname: str,
        scan_targets: Sequence[str],
        max_wait: float,
    ) -> bool:
        """Wait until every scanned code location finished its in-window scan.

        Returns ``True`` once every matched code location (and so every
        target) has at least one history entry created inside the window
        and all such entries are ``COMPLETE``.

        Raises
        ------
        ScanFailedError
            If any in-window entry finished in an error state.
        PollTimeoutError
            If *max_wait* seconds elapse first.
        LocationMismatchError
            Propagated from the service when a target matches nothing.
        """
        targets = list(scan_targets)
        logger.info(
            "Waiting up to %s for %d code location(s) on %s",
            format_wait(max_wait),
            len(targets),
            hostname,
        )
        in_window = in_scan_window(time_before_scan, time_after_scan)
        result = self.poller.poll(
            fetch=lambda: self.service.fetch_code_location_status(hostname, targets),
            classify=self._classify,
            max_wait=max_wait,
            interval=self.interval,
            is_relevant=in_window,
            is_covered=covers_locations(targets, in_window),
        )
        return self._conclude(result, max_wait, "code locations")

    # ------------------------------------------------------------------
    # Persisted-pointer variant
    # ------------------------------------------------------------------

    def is_bom_up_to_date_from_files(
        self,
        expected_num_scans: int,
        scan_status_directory: Union[str, Path],
        max_wait: float,
    ) -> bool:
        """Load the status files, remove them, then poll the scans they point to.

        Raises
        ------
        ConfigurationError
            Bad directory or file count.  Nothing is polled.
        MalformedStatusError
            A status file is unusable.  Nothing is deleted or polled.
        ScanFailedError, PollTimeoutError
            As for ``poll_scan_statuses``.
        """
        statuses = self.store.load_batch(scan_status_directory, expected_num_scans)
        return self.poll_scan_statuses(statuses, max_wait)

    def _requery(self, previous: Tuple[StatusRecord, ...]) -> Tuple[StatusRecord, ...]:
        """Next working set: fresh snapshots of the records still pending."""
        next_set: List[StatusRecord] = []
        for record in previous:
            if self._classify(record) is Classification.PENDING:
                fresh = self.service.fetch_status_by_link(record.href)
                if fresh.href is None:
                    fresh = fresh.model_copy(update={"href": record.href})
                next_set.append(fresh)
        return tuple(next_set)

    def poll_scan_statuses(
        self, statuses: Sequence[ScanStatusToPoll], max_wait: float
    ) -> bool:
        """Poll a fixed set of scan status pointers until they all complete.

        The first iteration classifies the persisted snapshots as they are.
        Later iterations only re-query records whose previous snapshot was
        pending; a finished record is never fetched again.
        """
        working: Tuple[StatusRecord, ...] = tuple(s.to_status_record() for s in statuses)
        first = True

        def fetch() -> Tuple[StatusRecord, ...]:
            nonlocal working, first
            if first:
                first = False
            else:
                working = self._requery(working)
            return working

        logger.info(
            "Waiting up to %s for %d scan(s) to finish", format_wait(max_wait), len(working)
        )
        result = self.poller.poll(
            fetch=fetch,
            classify=self._classify,
            max_wait=max_wait,
            interval=self.interval,
        )
        return self._conclude(result, max_wait, "scans")

    # ------------------------------------------------------------------

    @staticmethod
    def _conclude(result: PollResult, max_wait: float, subject: str) -> bool:
        if result.outcome is PollOutcome.COMPLETED:
            return True
        if result.outcome is PollOutcome.FAILED:
            identifier = result.record.identifier if result.record is not None else None
            raise ScanFailedError(
                f"There was a problem with one of the {subject}. "
                f"Error Status : {result.reason} ({identifier})",
                status=result.reason,
                identifier=identifier,
            )
        raise PollTimeoutError(
            "The Bom has not finished updating from the scan within the specified "
            f"wait time : {format_wait(max_wait)}",
            max_wait_seconds=max_wait,
        )


__all__ = ["BomUpdatePoller", "covers_locations", "in_scan_window"]
