#!/usr/bin/env python3
"""
Scan Status Classification for Hub code locations.

Maps the raw status labels the Hub reports for scans and code locations
onto three classifications:
- PENDING: the server is still working (scanning, matching, building BOM)
- FINISHED_OK: the scan made it into the bill of materials
- FINISHED_ERROR: the server gave up (cancelled or one of the error states)

Labels outside the known vocabulary raise ``UnrecognizedStatusError``
rather than being treated as pending, so a label this client cannot
interpret fails fast instead of waiting out the full timeout.

Usage:
    from scan_status import DEFAULT_CLASSIFIER, Classification

    if DEFAULT_CLASSIFIER.classify("COMPLETE") is Classification.FINISHED_OK:
        ...
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import FrozenSet, Iterable

from exceptions import UnrecognizedStatusError

logger = logging.getLogger(__name__)


class Classification(Enum):
    """Outcome class of a single status label"""

    PENDING = "pending"
    FINISHED_OK = "finished_ok"
    FINISHED_ERROR = "finished_error"


class ScanStatus(Enum):
    """Status labels reported by the Hub for scan history entries"""

    UNSTARTED = "UNSTARTED"
    SCANNING = "SCANNING"
    SAVING_SCAN_DATA = "SAVING_SCAN_DATA"
    SCAN_DATA_SAVE_COMPLETE = "SCAN_DATA_SAVE_COMPLETE"
    REQUESTED_MATCH_JOB = "REQUESTED_MATCH_JOB"
    MATCHING = "MATCHING"
    BOM_VERSION_CHECK = "BOM_VERSION_CHECK"
    BUILDING_BOM = "BUILDING_BOM"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"
    ERROR_SCANNING = "ERROR_SCANNING"
    ERROR_SAVING_SCAN_DATA = "ERROR_SAVING_SCAN_DATA"
    ERROR_MATCHING = "ERROR_MATCHING"
    ERROR_BUILDING_BOM = "ERROR_BUILDING_BOM"
    ERROR = "ERROR"


PENDING_STATUSES: FrozenSet[str] = frozenset({
    ScanStatus.UNSTARTED.value,
    ScanStatus.SCANNING.value,
    ScanStatus.SAVING_SCAN_DATA.value,
    ScanStatus.SCAN_DATA_SAVE_COMPLETE.value,
    ScanStatus.REQUESTED_MATCH_JOB.value,
    ScanStatus.MATCHING.value,
    ScanStatus.BOM_VERSION_CHECK.value,
    ScanStatus.BUILDING_BOM.value,
})

SUCCESS_STATUSES: FrozenSet[str] = frozenset({
    ScanStatus.COMPLETE.value,
})

ERROR_STATUSES: FrozenSet[str] = frozenset({
    ScanStatus.CANCELLED.value,
    ScanStatus.ERROR_SCANNING.value,
    ScanStatus.ERROR_SAVING_SCAN_DATA.value,
    ScanStatus.ERROR_MATCHING.value,
    ScanStatus.ERROR_BUILDING_BOM.value,
    ScanStatus.ERROR.value,
})


class StatusClassifier:
    """Fixed lookup from raw status label to ``Classification``.

    The label sets are frozen when the classifier is built.  Pollers keep
    a reference to the classifier they were constructed with, so one
    polling run always sees the same vocabulary.
    """

    def __init__(
        self,
        pending: Iterable[str] = PENDING_STATUSES,
        success: Iterable[str] = SUCCESS_STATUSES,
        error: Iterable[str] = ERROR_STATUSES,
    ):
        self._pending = frozenset(pending)
        self._success = frozenset(success)
        self._error = frozenset(error)

        overlap = (
            (self._pending & self._success)
            | (self._pending & self._error)
            | (self._success & self._error)
        )
        if overlap:
            raise ValueError(
                f"Status labels cannot belong to more than one class: {sorted(overlap)}"
            )

    @staticmethod
    def _label(status: object) -> object:
        if isinstance(status, ScanStatus):
            return status.value
        return status

    def classify(self, status: object) -> Classification:
        """Classify a raw status label.

        Raises
        ------
        UnrecognizedStatusError
            If the label is not part of the known vocabulary.
        """
        label = self._label(status)
        if label in self._success:
            return Classification.FINISHED_OK
        if label in self._error:
            return Classification.FINISHED_ERROR
        if label in self._pending:
            return Classification.PENDING
        logger.error("Hub reported an unrecognized status: %r", label)
        raise UnrecognizedStatusError(label)

    def is_finished(self, status: object) -> bool:
        return self.classify(status) is not Classification.PENDING

    def is_error(self, status: object) -> bool:
        return self.classify(status) is Classification.FINISHED_ERROR


DEFAULT_CLASSIFIER = StatusClassifier()


def classify(status: object) -> Classification:
    """Classify *status* with the default Hub vocabulary."""
    return DEFAULT_CLASSIFIER.classify(status)


def is_finished_status(status: object) -> bool:
    return DEFAULT_CLASSIFIER.is_finished(status)


def is_error_status(status: object) -> bool:
    return DEFAULT_CLASSIFIER.is_error(status)


__all__ = [
    "Classification",
    "ScanStatus",
    "StatusClassifier",
    "DEFAULT_CLASSIFIER",
    "PENDING_STATUSES",
    "SUCCESS_STATUSES",
    "ERROR_STATUSES",
    "classify",
    "is_finished_status",
    "is_error_status",
]
