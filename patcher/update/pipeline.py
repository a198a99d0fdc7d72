"""Download, extract and verify planned patch files one at a time."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Sequence

from patcher.update.codec import Codec
from patcher.update.constants import DEFAULT_PROGRESS_INTERVAL
from patcher.update.events import (
    DownloadCompleted,
    DownloadProgress,
    DownloadStarted,
    EventSink,
    ExtractCompleted,
    ExtractProgress,
    ExtractStarted,
    NullEventSink,
    UpdateFailed,
)
from patcher.update.hashing import calculate_md5, hashes_match
from patcher.update.models import (
    CodecError,
    FileRecord,
    IntegrityError,
    ManifestError,
    RemoteUnavailableError,
    TransferTask,
    UpdateSummary,
)
from patcher.update.resolver import patch_url
from patcher.update.transport import PatchServerClient
from patcher.update.verifier import client_path
from patcher.update.workspace import TempWorkspace


_LOGGER = logging.getLogger(__name__)


class _DownloadMeter:
    """Accumulate bytes across the download phase and throttle progress events."""

    def __init__(
        self,
        events: EventSink,
        total_bytes: int,
        interval: float,
        clock: Callable[[], float],
    ) -> None:
        self._events = events
        self._interval = interval
        self._clock = clock
        self.total_bytes = total_bytes
        self.downloaded_bytes = 0
        self._started = clock()
        self._last_emitted = self._started
        self.file_path = ""

    def add(self, count: int) -> None:
        self.downloaded_bytes += count
        now = self._clock()
        if now - self._last_emitted <= self._interval:
            return
        elapsed = now - self._started
        speed = self.downloaded_bytes / elapsed if elapsed > 0 else 0.0
        percent = round(self.downloaded_bytes / self.total_bytes * 100) if self.total_bytes > 0 else 0
        self._events.publish(
            DownloadProgress(
                percent=percent,
                downloaded_bytes=self.downloaded_bytes,
                total_bytes=self.total_bytes,
                speed=speed,
                file_path=self.file_path,
            )
        )
        self._last_emitted = now


class TransferPipeline:
    """Move planned files from the patch server into the client directory."""

    def __init__(
        self,
        client: PatchServerClient,
        codec: Codec,
        workspace: TempWorkspace,
        client_root: Path,
        events: EventSink | None = None,
        *,
        progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._codec = codec
        self._workspace = workspace
        self._client_root = Path(client_root)
        self._events = events or NullEventSink()
        self._progress_interval = progress_interval
        self._clock = clock

    def probe_total_size(self, files: Sequence[FileRecord]) -> int:
        """Sum the advertised sizes of ``files``; unknown sizes count as zero."""

        total = 0
        for record in files:
            url = patch_url(self._client, record)
            try:
                total += self._client.probe_size(url)
            except RemoteUnavailableError as exc:
                _LOGGER.error("Error getting size for %s: %s", url, exc)
        return total

    def download_all(self, files: Sequence[FileRecord], total_bytes: int) -> list[TransferTask]:
        """Download every file into the workspace, failing fast on the first error."""

        total_files = len(files)
        self._events.publish(DownloadStarted(total_files=total_files))
        meter = _DownloadMeter(self._events, total_bytes, self._progress_interval, self._clock)

        tasks: list[TransferTask] = []
        for index, record in enumerate(files, start=1):
            try:
                destination = client_path(self._client_root, record.destination_path)
            except ManifestError as exc:
                _LOGGER.error("Skipping download of file %s: %s", record.id, exc)
                self._events.publish(UpdateFailed(stage="download", error=exc))
                continue
            url = patch_url(self._client, record)
            temp_path = self._workspace.path_for(url.rsplit("/", 1)[-1])
            _LOGGER.info("Downloading (%s / %s): %s", index, total_files, record.destination_path)
            meter.file_path = record.destination_path
            self._client.download(url, temp_path, meter.add)
            tasks.append(TransferTask(record=record, temp_path=temp_path, destination=destination))

        self._events.publish(DownloadCompleted())
        return tasks

    def extract_all(self, tasks: Sequence[TransferTask]) -> int:
        """Unpack each download to its destination; failures are logged, not raised."""

        total = len(tasks)
        extracted = 0
        _LOGGER.info("Extracting all files (%s total)", total)
        self._events.publish(ExtractStarted(total_files=total))

        for index, task in enumerate(tasks, start=1):
            display_path = task.record.destination_path
            try:
                task.destination.parent.mkdir(parents=True, exist_ok=True)
                _LOGGER.debug("Extracting (%s / %s): %s", index, total, display_path)
                self._codec.decompress(task.temp_path, output_file=task.destination, overwrite=True)
            except (CodecError, OSError) as exc:
                _LOGGER.error("Error extracting file %s: %s", display_path, exc)
                self._events.publish(UpdateFailed(stage="extract", error=exc))
                continue
            extracted += 1
            self._events.publish(ExtractProgress(current=index, total=total, file_path=display_path))

        self._events.publish(ExtractCompleted())
        return extracted

    def verify_all(self, tasks: Sequence[TransferTask]) -> UpdateSummary:
        """Check each destination against its expected hash and drop the temp download."""

        total = len(tasks)
        success_count = 0
        failures: list[IntegrityError] = []
        _LOGGER.info("Verifying all files (%s total)", total)

        for index, task in enumerate(tasks, start=1):
            display_path = task.record.destination_path
            try:
                if not task.destination.exists():
                    failure = IntegrityError(task.destination, task.expected_hash, None)
                    _LOGGER.error("FAIL (%s / %s) File missing: %s", index, total, display_path)
                    failures.append(failure)
                    continue
                local_hash = calculate_md5(task.destination)
                if hashes_match(task.expected_hash, local_hash):
                    _LOGGER.info("OK (%s / %s) Verification successful for %s", index, total, display_path)
                    success_count += 1
                else:
                    _LOGGER.error("FAIL (%s / %s) Hash mismatch for %s", index, total, display_path)
                    failures.append(IntegrityError(task.destination, task.expected_hash, local_hash))
            except OSError as exc:
                _LOGGER.error("Error verifying file %s: %s", display_path, exc)
                failures.append(IntegrityError(task.destination, task.expected_hash, "unreadable"))
                self._events.publish(UpdateFailed(stage="verify", error=exc))
            finally:
                self._workspace.discard(task.temp_path)

        return UpdateSummary(
            total_files=total,
            success_count=success_count,
            fail_count=len(failures),
            failures=tuple(failures),
        )


__all__ = ["TransferPipeline"]
