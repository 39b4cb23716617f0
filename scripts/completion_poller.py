#!/usr/bin/env python3
"""
Completion Poller - bounded-duration status polling.

One loop shared by every "wait until the Hub is done" question:

1. Ask a status source for the current records (``fetch``).
2. Keep only the records that belong to this run (``is_relevant``).
3. Classify each one.  A single ``FINISHED_ERROR`` aborts the whole wait.
4. If everything relevant is ``FINISHED_OK`` (and the run is covered),
   the wait is over.
5. Otherwise sleep a fixed interval and try again, until ``max_wait``.

Status is re-derived from scratch on every iteration; nothing is diffed
between polls.  The interval is fixed (no backoff), so ``max_wait /
interval`` bounds the number of fetches.

Usage:
    from completion_poller import CompletionPoller, PollOutcome

    poller = CompletionPoller()
    result = poller.poll(fetch=service_call, classify=classifier.classify,
                         max_wait=300, interval=10)
    if result.outcome is PollOutcome.COMPLETED:
        ...
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Iterable, List, Optional, Sequence, TypeVar

from scan_status import Classification

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Polling cadence
# ---------------------------------------------------------------------------

BOM_POLL_INTERVAL_SECONDS = 10.0
REPORT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_REPORT_MAX_WAIT_SECONDS = 30 * 60.0


class PollOutcome(Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResult(Generic[T]):
    """Terminal result of one ``CompletionPoller.poll`` run.

    Attributes:
        outcome:  COMPLETED, TIMED_OUT or FAILED.
        reason:   The failing status label when FAILED, else ``None``.
        record:   The record that caused a FAILED outcome.
        fetches:  Number of times ``fetch`` was called.
        sleeps:   Number of interval sleeps performed.
        elapsed:  Seconds elapsed according to the poller's clock.
    """

    outcome: PollOutcome
    reason: Optional[str] = None
    record: Optional[T] = None
    fetches: int = 0
    sleeps: int = 0
    elapsed: float = 0.0

    @property
    def completed(self) -> bool:
        return self.outcome is PollOutcome.COMPLETED


def _always_relevant(record: Any) -> bool:
    return True


def _status_label(record: Any) -> Optional[str]:
    return getattr(record, "status", None)


class CompletionPoller:
    """Generic fetch / filter / classify / sleep loop.

    Parameters
    ----------
    clock : callable
        Monotonic time source in seconds.  Defaults to ``time.monotonic``.
    sleep : callable
        Blocking sleep in seconds.  Defaults to ``time.sleep``.  Whatever
        it raises (``KeyboardInterrupt`` included) propagates out of
        ``poll`` untouched.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._clock = clock
        self._sleep = sleep

    def poll(
        self,
        fetch: Callable[[], Iterable[T]],
        classify: Callable[[T], Classification],
        max_wait: float,
        interval: float,
        is_relevant: Callable[[T], bool] = _always_relevant,
        is_covered: Optional[Callable[[Sequence[T]], bool]] = None,
        describe: Callable[[T], Optional[str]] = _status_label,
    ) -> PollResult[T]:
        """Poll until every relevant record finished, one failed, or time ran out.

        Parameters
        ----------
        fetch:
            Returns the current records.  Exceptions propagate unchanged.
        classify:
            Maps a record to its ``Classification``.
        max_wait:
            Seconds after which the run times out.
        interval:
            Seconds to sleep between fetches.
        is_relevant:
            Filters the fetched records down to the ones this run tracks.
        is_covered:
            Optional extra completion condition over every fetched record,
            relevant or not, e.g. "every code location has an in-window
            record".  An uncovered run is treated as pending.
        describe:
            Produces the ``reason`` reported for a failing record.
        """
        start = self._clock()
        elapsed = 0.0
        fetches = 0
        sleeps = 0

        while elapsed < max_wait:
            records: List[T] = list(fetch())
            fetches += 1
            relevant = [r for r in records if is_relevant(r)]

            pending = 0
            for record in relevant:
                classification = classify(record)
                if classification is Classification.FINISHED_ERROR:
                    reason = describe(record)
                    logger.error(
                        "Polling aborted after %d fetch(es): record finished with %s",
                        fetches,
                        reason,
                    )
                    return PollResult(
                        outcome=PollOutcome.FAILED,
                        reason=reason,
                        record=record,
                        fetches=fetches,
                        sleeps=sleeps,
                        elapsed=elapsed,
                    )
                if classification is Classification.PENDING:
                    pending += 1

            covered = is_covered is None or is_covered(records)
            if pending == 0 and covered:
                logger.info(
                    "Polling completed after %d fetch(es), %d relevant record(s)",
                    fetches,
                    len(relevant),
                )
                return PollResult(
                    outcome=PollOutcome.COMPLETED,
                    fetches=fetches,
                    sleeps=sleeps,
                    elapsed=elapsed,
                )

            logger.debug(
                "%d of %d relevant record(s) pending (covered=%s); sleeping %.1fs",
                pending,
                len(relevant),
                covered,
                interval,
            )
            self._sleep(interval)
            sleeps += 1
            elapsed = self._clock() - start

        logger.error(
            "Polling timed out after %.1fs (%d fetch(es))", elapsed, fetches
        )
        return PollResult(
            outcome=PollOutcome.TIMED_OUT,
            fetches=fetches,
            sleeps=sleeps,
            elapsed=elapsed,
        )


def format_wait(max_wait_seconds: float) -> str:
    """Render a wait in whole minutes, e.g. ``"5 minutes"``."""
    return f"{int(max_wait_seconds // 60)} minutes"


__all__ = [
    "BOM_POLL_INTERVAL_SECONDS",
    "REPORT_POLL_INTERVAL_SECONDS",
    "DEFAULT_REPORT_MAX_WAIT_SECONDS",
    "CompletionPoller",
    "PollOutcome",
    "PollResult",
    "format_wait",
]
