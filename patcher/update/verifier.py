"""Classify required client files as present, missing or modified."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from patcher.update.events import (
    EventSink,
    NullEventSink,
    VerificationCompleted,
    VerificationProgress,
    VerificationStarted,
)
from patcher.update.hashing import calculate_md5, hashes_match
from patcher.update.models import FileRecord, ManifestError, VerificationResult


_LOGGER = logging.getLogger(__name__)


def client_path(client_root: Path, destination_path: str) -> Path:
    """Map a manifest destination onto ``client_root``; paths escaping it are rejected."""

    root = Path(client_root)
    parts = [part for part in destination_path.replace("\\", "/").split("/") if part and part != "."]
    if not parts or ".." in parts:
        raise ManifestError(f"Destination path {destination_path!r} is outside the client directory")
    candidate = root.joinpath(*parts)
    if not candidate.is_relative_to(root):
        raise ManifestError(f"Destination path {destination_path!r} is outside the client directory")
    return candidate


class FileVerifier:
    """Compare required file records against the installation on disk."""

    def __init__(self, client_root: Path, events: EventSink | None = None) -> None:
        self._client_root = Path(client_root)
        self._events = events or NullEventSink()

    def verify(self, required_files: Iterable[FileRecord]) -> VerificationResult:
        records = list(required_files)
        total = len(records)
        missing: list[FileRecord] = []
        modified: list[FileRecord] = []

        _LOGGER.info("Verifying %s client files", total)
        self._events.publish(VerificationStarted(total_files=total))

        for index, record in enumerate(records, start=1):
            _LOGGER.debug("Checking (%s / %s): %s", index, total, record.destination_path)
            self._events.publish(
                VerificationProgress(current=index, total=total, file_path=record.destination_path)
            )

            try:
                local_file = client_path(self._client_root, record.destination_path)
            except ManifestError as exc:
                _LOGGER.error("Skipping file %s: %s", record.id, exc)
                continue
            if not local_file.exists():
                missing.append(record)
                continue

            try:
                local_hash = calculate_md5(local_file)
            except OSError as exc:
                _LOGGER.error("Error checking file %s: %s", record.destination_path, exc)
                modified.append(record)
                continue

            if not hashes_match(record.hash, local_hash):
                modified.append(record)

        if missing:
            _LOGGER.info("Missing files detected: %s", len(missing))
        if modified:
            _LOGGER.info("Modified files detected: %s", len(modified))

        self._events.publish(
            VerificationCompleted(missing_count=len(missing), modified_count=len(modified))
        )
        return VerificationResult(missing=tuple(missing), modified=tuple(modified))


__all__ = ["FileVerifier", "client_path"]
