#!/usr/bin/env python3
"""
Tests for the generic CompletionPoller loop.

A fake clock advanced only by the fake sleep makes every run
deterministic: elapsed time is exactly the sum of the sleeps.
"""

import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "scripts"))

from completion_poller import (
    BOM_POLL_INTERVAL_SECONDS,
    DEFAULT_REPORT_MAX_WAIT_SECONDS,
    REPORT_POLL_INTERVAL_SECONDS,
    CompletionPoller,
    PollOutcome,
    PollResult,
    format_wait,
)
from exceptions import LocationMismatchError, UnrecognizedStatusError
from scan_status import DEFAULT_CLASSIFIER, Classification
from schemas.hub_items import StatusRecord


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def record(identifier, status):
    return StatusRecord(identifier=identifier, status=status)


def classify(r):
    return DEFAULT_CLASSIFIER.classify(r.status)


def scripted(*snapshots):
    """fetch() returning the given snapshots in order (last one repeats)."""
    calls = {"n": 0}

    def fetch():
        index = min(calls["n"], len(snapshots) - 1)
        calls["n"] += 1
        return snapshots[index]

    fetch.calls = calls
    return fetch


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def poller(clock):
    return CompletionPoller(clock=clock, sleep=clock.sleep)


class TestConstants:
    def test_intervals(self):
        assert BOM_POLL_INTERVAL_SECONDS == 10.0
        assert REPORT_POLL_INTERVAL_SECONDS == 5.0
        assert DEFAULT_REPORT_MAX_WAIT_SECONDS == 1800.0

    def test_format_wait(self):
        assert format_wait(300) == "5 minutes"
        assert format_wait(1800) == "30 minutes"
        assert format_wait(59) == "0 minutes"


class TestCompleted:
    def test_all_ok_on_first_fetch_never_sleeps(self, poller, clock):
        fetch = scripted([record("a", "COMPLETE"), record("b", "COMPLETE")])
        result = poller.poll(fetch, classify, max_wait=300, interval=10)
        assert result.outcome is PollOutcome.COMPLETED
        assert result.completed
        assert result.fetches == 1
        assert result.sleeps == 0
        assert clock.sleeps == []

    def test_stops_in_iteration_last_record_turns_ok(self, poller, clock):
        fetch = scripted(
            [record("a", "COMPLETE"), record("b", "MATCHING")],
            [record("a", "COMPLETE"), record("b", "BUILDING_BOM")],
            [record("a", "COMPLETE"), record("b", "COMPLETE")],
            [record("a", "COMPLETE"), record("b", "ERROR")],
        )
        result = poller.poll(fetch, classify, max_wait=300, interval=10)
        assert result.outcome is PollOutcome.COMPLETED
        assert result.fetches == 3
        assert clock.sleeps == [10, 10]

    def test_no_relevant_records_counts_as_complete(self, poller):
        fetch = scripted([record("a", "MATCHING")])
        result = poller.poll(
            fetch, classify, max_wait=300, interval=10, is_relevant=lambda r: False
        )
        assert result.outcome is PollOutcome.COMPLETED

    def test_irrelevant_records_are_not_classified(self, poller):
        fetch = scripted([record("mine", "COMPLETE"), record("other", "NOT_A_LABEL")])
        result = poller.poll(
            fetch,
            classify,
            max_wait=300,
            interval=10,
            is_relevant=lambda r: r.identifier == "mine",
        )
        assert result.completed

    def test_uncovered_run_keeps_waiting(self, poller, clock):
        fetch = scripted(
            [record("a", "COMPLETE")],
            [record("a", "COMPLETE"), record("b", "COMPLETE")],
        )

        def covered(records):
            return {r.identifier for r in records} >= {"a", "b"}

        result = poller.poll(fetch, classify, max_wait=300, interval=10, is_covered=covered)
        assert result.completed
        assert result.fetches == 2
        assert clock.sleeps == [10]

    def test_coverage_sees_irrelevant_records(self, poller):
        seen = []

        def covered(records):
            seen.append([r.identifier for r in records])
            return True

        fetch = scripted([record("mine", "COMPLETE"), record("stale", "COMPLETE")])
        result = poller.poll(
            fetch,
            classify,
            max_wait=300,
            interval=10,
            is_relevant=lambda r: r.identifier == "mine",
            is_covered=covered,
        )
        assert result.completed
        assert seen == [["mine", "stale"]]


class TestFailed:
    def test_single_error_fails_whole_batch(self, poller, clock):
        bad = record("b", "CANCELLED")
        fetch = scripted([record("a", "MATCHING"), bad, record("c", "COMPLETE")])
        result = poller.poll(fetch, classify, max_wait=300, interval=10)
        assert result.outcome is PollOutcome.FAILED
        assert result.reason == "CANCELLED"
        assert result.record == bad
        assert result.fetches == 1
        assert clock.sleeps == []

    def test_fails_in_iteration_error_appears(self, poller, clock):
        fetch = scripted(
            [record("a", "MATCHING")],
            [record("a", "SCANNING")],
            [record("a", "ERROR_BUILDING_BOM")],
        )
        result = poller.poll(fetch, classify, max_wait=300, interval=10)
        assert result.outcome is PollOutcome.FAILED
        assert result.reason == "ERROR_BUILDING_BOM"
        assert fetch.calls["n"] == 3

    def test_custom_describe(self, poller):
        fetch = scripted([record("loc", "ERROR")])
        result = poller.poll(
            fetch, classify, max_wait=300, interval=10,
            describe=lambda r: f"{r.status}@{r.identifier}",
        )
        assert result.reason == "ERROR@loc"


class TestTimedOut:
    def test_max_wait_below_interval_fetches_once(self, poller, clock):
        fetch = scripted([record("a", "MATCHING")])
        result = poller.poll(fetch, classify, max_wait=5, interval=10)
        assert result.outcome is PollOutcome.TIMED_OUT
        assert result.fetches == 1
        assert fetch.calls["n"] == 1

    def test_fetch_count_bounded_by_wait_over_interval(self, poller, clock):
        fetch = scripted([record("a", "MATCHING")])
        result = poller.poll(fetch, classify, max_wait=25, interval=10)
        assert result.outcome is PollOutcome.TIMED_OUT
        assert result.fetches == 3
        assert result.elapsed == 30

    def test_exact_multiple(self, poller):
        fetch = scripted([record("a", "MATCHING")])
        result = poller.poll(fetch, classify, max_wait=20, interval=10)
        assert result.fetches == 2

    def test_timeout_logged_as_error(self, poller, caplog):
        fetch = scripted([record("a", "MATCHING")])
        with caplog.at_level(logging.DEBUG, logger="completion_poller"):
            poller.poll(fetch, classify, max_wait=10, interval=10)
        timeouts = [r for r in caplog.records if "timed out" in r.getMessage()]
        assert [r.levelno for r in timeouts] == [logging.ERROR]

    def test_zero_wait_never_fetches(self, poller):
        fetch = MagicMock(return_value=[])
        result = poller.poll(fetch, classify, max_wait=0, interval=10)
        assert result.outcome is PollOutcome.TIMED_OUT
        fetch.assert_not_called()


class TestPropagation:
    def test_fetch_errors_propagate(self, poller):
        fetch = MagicMock(side_effect=LocationMismatchError("no match", target_path="/x"))
        with pytest.raises(LocationMismatchError):
            poller.poll(fetch, classify, max_wait=300, interval=10)
        assert fetch.call_count == 1

    def test_unrecognized_status_propagates(self, poller):
        fetch = scripted([record("a", "WEIRD")])
        with pytest.raises(UnrecognizedStatusError):
            poller.poll(fetch, classify, max_wait=300, interval=10)

    def test_interrupt_during_sleep_unwinds(self, clock):
        def interrupted_sleep(seconds):
            raise KeyboardInterrupt

        poller = CompletionPoller(clock=clock, sleep=interrupted_sleep)
        fetch = scripted([record("a", "MATCHING")])
        with pytest.raises(KeyboardInterrupt):
            poller.poll(fetch, classify, max_wait=300, interval=10)
        assert fetch.calls["n"] == 1


class TestGenericRecords:
    def test_any_record_type(self, poller):
        fetch = scripted([{"done": False}], [{"done": True}])
        result = poller.poll(
            fetch,
            lambda d: Classification.FINISHED_OK if d["done"] else Classification.PENDING,
            max_wait=60,
            interval=5,
        )
        assert result.completed
        assert result.fetches == 2

    def test_poll_result_defaults(self):
        result = PollResult(outcome=PollOutcome.TIMED_OUT)
        assert result.reason is None
        assert result.record is None
        assert not result.completed
