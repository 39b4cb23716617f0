#!/usr/bin/env python3
"""
Status File Store - per-scan status pointers persisted by the scanner.

Each scan leaves a JSON file in a status directory holding the link to
re-query its status and the status label at the time of writing.  The
store reads such a directory as one batch:

1. Validate the directory and the number of files (nothing read yet).
2. Parse every file into memory (nothing deleted yet).
3. Delete the files and the directory, best effort.

A bad file therefore leaves the whole directory in place for inspection.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from exceptions import ConfigurationError, MalformedStatusError
from schemas.hub_items import ScanStatusToPoll

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class StatusFileStore:
    """Reads, parses and cleans up scan status directories."""

    def list_status_files(self, directory: Optional[PathLike]) -> List[Path]:
        """Return every entry in *directory*, sorted by name.

        Subdirectories count as entries, so a stray one fails the file
        count check instead of being skipped.

        Raises
        ------
        ConfigurationError
            If the directory is blank, missing, not a directory, or empty.
        """
        if directory is None or not str(directory).strip():
            raise ConfigurationError("The scan status directory must be a non empty value.")
        status_dir = Path(directory)
        if not status_dir.exists():
            raise ConfigurationError("The scan status directory does not exist.")
        if not status_dir.is_dir():
            raise ConfigurationError("The scan status directory provided is not a directory.")

        files = sorted(status_dir.iterdir())
        if not files:
            raise ConfigurationError("Can not find the scan status files in the directory provided.")
        return files

    def read_and_parse(self, path: PathLike) -> ScanStatusToPoll:
        """Parse one status file.

        Raises
        ------
        MalformedStatusError
            If the entry cannot be read as JSON or lacks the ``_meta`` link
            or ``status``.
        """
        status_path = Path(path)
        message = f"The scan status file : {status_path} does not contain valid scan status json."
        try:
            with open(status_path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
            status = ScanStatusToPoll.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            raise MalformedStatusError(message, path=str(status_path)) from exc

        if not status.is_well_formed():
            raise MalformedStatusError(message, path=str(status_path))
        return status

    def delete(self, path: PathLike) -> bool:
        """Remove a file or empty directory; failures are logged, not raised."""
        target = Path(path)
        try:
            if target.is_dir():
                target.rmdir()
            else:
                target.unlink()
            return True
        except OSError as exc:
            logger.warning("Could not remove %s: %s", target, exc)
            return False

    def load_batch(self, directory: PathLike, expected_count: int) -> List[ScanStatusToPoll]:
        """Read every status file in *directory*, then clean the directory up.

        Raises
        ------
        ConfigurationError
            On a bad directory or when the file count differs from
            *expected_count*.  Raised before any file is read.
        MalformedStatusError
            On the first bad file.  No file is deleted in that case.
        """
        files = self.list_status_files(directory)
        if len(files) != expected_count:
            raise ConfigurationError(
                f"There were {expected_count} scans configured and we found "
                f"{len(files)} status files."
            )

        logger.info("Checking the directory : %s for the scan status's.", directory)
        statuses = [self.read_and_parse(f) for f in files]

        logger.debug("Cleaning up the scan status files at : %s", directory)
        for f in files:
            self.delete(f)
        self.delete(directory)
        return statuses


__all__ = ["StatusFileStore"]
