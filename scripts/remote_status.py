#!/usr/bin/env python3
"""
Remote Status Service - reads scan and report state from the Hub.

The pollers only depend on the ``RemoteStatusService`` protocol.
``HubStatusClient`` is the ``requests`` implementation used in practice:
a thin wrapper over a pre-authenticated ``requests.Session`` (logging in
and cookie handling are the caller's concern).  Individual calls are not
retried; the poller's own cadence is the only retry.

Code location matching is fuzzy: a location returned by the Hub matches a
requested scan target when the normalized paths are equal or one is a
parent directory of the other.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import requests

from exceptions import HubRequestError, LocationMismatchError
from schemas.hub_items import CodeLocation, ReportMetadata, ScanStatusToPoll, StatusRecord

logger = logging.getLogger(__name__)

SCAN_LOCATIONS_PATH = "/api/v1/scanlocations"


@runtime_checkable
class RemoteStatusService(Protocol):
    """What the pollers need from the Hub."""

    def fetch_code_location_status(
        self, host: str, target_paths: Sequence[str]
    ) -> List[StatusRecord]:
        """Return one record per scan in the history of every matched location.

        Raises ``LocationMismatchError`` when a target matches nothing.
        """
        ...

    def fetch_report_metadata(self, url: str) -> ReportMetadata:
        ...

    def fetch_status_by_link(self, href: str) -> StatusRecord:
        ...


# ---------------------------------------------------------------------------
# Path matching
# ---------------------------------------------------------------------------


def normalize_path(path: str) -> str:
    """Case-fold and unify separators so Windows and POSIX paths compare."""
    normalized = path.replace("\\", "/").strip()
    while len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized.casefold()


def paths_match(requested: str, location_path: str) -> bool:
    """True when *location_path* is, contains, or lies under *requested*."""
    a = normalize_path(requested)
    b = normalize_path(location_path)
    if a == b:
        return True
    return b.startswith(a.rstrip("/") + "/") or a.startswith(b.rstrip("/") + "/")


# ---------------------------------------------------------------------------
# requests implementation
# ---------------------------------------------------------------------------


class HubStatusClient:
    """``RemoteStatusService`` backed by the Hub REST API.

    Args:
        base_url: Hub root URL, e.g. ``https://hub.example.com``.
        session: Authenticated session.  A fresh one is created if omitted.
        timeout: Per-request timeout in seconds.
        verify_ssl: Passed to ``requests`` as ``verify``.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ):
        if not base_url:
            raise ValueError("base_url must be a non empty value")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug("GET %s params=%s", url, params)
        try:
            resp = self.session.get(
                url, params=params, timeout=self.timeout, verify=self.verify_ssl
            )
        except requests.RequestException as exc:
            raise HubRequestError(f"Request to {url} failed: {exc}", url=url) from exc

        if not 200 <= resp.status_code < 300:
            raise HubRequestError(
                f"Hub returned HTTP {resp.status_code} for {url}",
                status_code=resp.status_code,
                url=url,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise HubRequestError(
                f"Hub returned a non-JSON body for {url}",
                status_code=resp.status_code,
                url=url,
            ) from exc

    def get_scan_locations(self, host: str, target_paths: Sequence[str]) -> List[CodeLocation]:
        """Resolve every target path to the code locations that match it."""
        matched: List[CodeLocation] = []
        seen: set = set()
        for target in target_paths:
            body = self._get_json(
                self.base_url + SCAN_LOCATIONS_PATH,
                params={"host": host, "path": target},
            )
            candidates = [CodeLocation.model_validate(item) for item in body.get("items") or []]
            hits = [loc for loc in candidates if paths_match(target, loc.path)]
            if not hits:
                raise LocationMismatchError(
                    f"No code location on host {host} matches the scan target : {target}",
                    target_path=target,
                )
            for loc in hits:
                key = (loc.host, normalize_path(loc.path))
                if key not in seen:
                    seen.add(key)
                    matched.append(loc)
        logger.debug(
            "Resolved %d target(s) on %s to %d code location(s)",
            len(target_paths),
            host,
            len(matched),
        )
        return matched

    def fetch_code_location_status(
        self, host: str, target_paths: Sequence[str]
    ) -> List[StatusRecord]:
        records: List[StatusRecord] = []
        for location in self.get_scan_locations(host, target_paths):
            records.extend(location.to_status_records())
        return records

    def fetch_report_metadata(self, url: str) -> ReportMetadata:
        return ReportMetadata.model_validate(self._get_json(url))

    def fetch_status_by_link(self, href: str) -> StatusRecord:
        status = ScanStatusToPoll.model_validate(self._get_json(href))
        return status.to_status_record(fallback_href=href)


__all__ = [
    "RemoteStatusService",
    "HubStatusClient",
    "SCAN_LOCATIONS_PATH",
    "normalize_path",
    "paths_match",
]
