#!/usr/bin/env python3
"""
End-to-end tests for Hub polling.
Runs HubEventPolling against HubStatusClient over a scripted HTTP session,
so request building, JSON parsing, matching, classification and the poll
loop are all exercised together.
"""

import json
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "scripts"))

from completion_poller import CompletionPoller
from config_loader import build_unified_config
from exceptions import LocationMismatchError, PollTimeoutError, ScanFailedError
from hub_event_polling import HubEventPolling
from remote_status import SCAN_LOCATIONS_PATH

HUB = "https://hub.example.com"
BEFORE = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
AFTER = BEFORE + timedelta(minutes=15)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


class ScriptedSession:
    """Minimal stand-in for requests.Session.

    Each route (URL, or URL + path param for code locations) serves its
    scripted payloads in order and repeats the last one.
    """

    def __init__(self):
        self.routes: Dict[str, List[Any]] = {}
        self.calls: Dict[str, int] = defaultdict(int)

    def route(self, key: str, *payloads: Any) -> None:
        self.routes[key] = list(payloads)

    def get(self, url, params=None, timeout=None, verify=True):
        key = url if not params else f"{url}?path={params['path']}"
        payloads = self.routes.get(key)
        if payloads is None:
            return FakeResponse({"errorMessage": "not found"}, status_code=404)
        index = min(self.calls[key], len(payloads) - 1)
        self.calls[key] += 1
        return FakeResponse(payloads[index])


def locations_key(path: str) -> str:
    return f"{HUB}{SCAN_LOCATIONS_PATH}?path={path}"


def code_location(path: str, *statuses: str, created: datetime = BEFORE + timedelta(minutes=5)):
    return {
        "items": [
            {
                "host": "build-01",
                "path": path,
                "scanList": [
                    {"status": s, "createdOn": created.isoformat()} for s in statuses
                ],
            }
        ]
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return ScriptedSession()


@pytest.fixture
def polling(session, clock, tmp_path):
    config = build_unified_config(
        str(tmp_path),
        overrides={"hub_url": HUB, "bom_max_wait_minutes": 5},
    )
    hub = HubEventPolling.from_config(config, session=session)
    poller = CompletionPoller(clock=clock, sleep=clock.sleep)
    hub.bom.poller = poller
    hub.reports.poller = poller
    return hub


class TestBomTimeWindowE2E:
    def test_three_locations_complete_first_poll(self, polling, session, clock):
        for path in ("/a", "/b", "/c"):
            session.route(locations_key(path), code_location(path, "COMPLETE"))

        assert polling.is_bom_up_to_date(BEFORE, AFTER, "build-01", ["/a", "/b", "/c"])
        assert clock.sleeps == []
        assert all(session.calls[locations_key(p)] == 1 for p in ("/a", "/b", "/c"))

    def test_cancelled_location_fails_immediately(self, polling, session, clock):
        session.route(locations_key("/a"), code_location("/a", "COMPLETE"))
        session.route(locations_key("/b"), code_location("/b", "CANCELLED"))
        session.route(locations_key("/c"), code_location("/c", "MATCHING"))

        with pytest.raises(ScanFailedError) as exc_info:
            polling.is_bom_up_to_date(BEFORE, AFTER, "build-01", ["/a", "/b", "/c"])
        assert "CANCELLED" in str(exc_info.value)
        assert exc_info.value.identifier == "/b"
        assert session.calls[locations_key("/a")] == 1
        assert clock.sleeps == []

    def test_scan_progresses_to_complete(self, polling, session, clock):
        session.route(
            locations_key("/a"),
            code_location("/a", "SCANNING"),
            code_location("/a", "MATCHING"),
            code_location("/a", "BUILDING_BOM"),
            code_location("/a", "COMPLETE"),
        )
        assert polling.is_bom_up_to_date(BEFORE, AFTER, "build-01", ["/a"])
        assert session.calls[locations_key("/a")] == 4
        assert clock.sleeps == [10.0, 10.0, 10.0]

    def test_stale_history_times_out(self, polling, session):
        session.route(
            locations_key("/a"),
            code_location("/a", "COMPLETE", created=BEFORE - timedelta(days=2)),
        )
        with pytest.raises(PollTimeoutError, match="5 minutes"):
            polling.is_bom_up_to_date(BEFORE, AFTER, "build-01", ["/a"])
        assert session.calls[locations_key("/a")] == 30

    def test_unknown_target(self, polling, session):
        session.route(locations_key("/a"), {"items": [{"host": "build-01", "path": "/zzz"}]})
        with pytest.raises(LocationMismatchError):
            polling.is_bom_up_to_date(BEFORE, AFTER, "build-01", ["/a"])


class TestBomPersistedE2E:
    def test_status_files_requeried_until_complete(self, polling, session, clock, tmp_path):
        status_dir = tmp_path / "scan_status"
        status_dir.mkdir()
        for i, status in enumerate(("COMPLETE", "MATCHING")):
            (status_dir / f"scan_{i}.json").write_text(
                json.dumps({"_meta": {"href": f"{HUB}/api/scans/{i}"}, "status": status})
            )
        session.route(
            f"{HUB}/api/scans/1",
            {"_meta": {"href": f"{HUB}/api/scans/1"}, "status": "BUILDING_BOM"},
            {"_meta": {"href": f"{HUB}/api/scans/1"}, "status": "COMPLETE"},
        )

        assert polling.is_bom_up_to_date_from_files(2, status_dir)
        assert session.calls[f"{HUB}/api/scans/0"] == 0
        assert session.calls[f"{HUB}/api/scans/1"] == 2
        assert clock.sleeps == [10.0, 10.0]
        assert not status_dir.exists()


class TestReportE2E:
    def test_report_finishes_on_third_poll(self, polling, session, clock):
        url = f"{HUB}/api/versions/7/reports/3"
        session.route(
            url,
            {"reportFormat": "CSV", "finishedAt": None},
            {"reportFormat": "CSV", "finishedAt": None},
            {"reportFormat": "CSV", "finishedAt": "2024-03-01T12:20:00Z"},
        )
        assert polling.is_report_finished_generating(url)
        assert session.calls[url] == 3
        assert clock.sleeps == [5.0, 5.0]
