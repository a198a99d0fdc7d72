"""Typed progress events published by the update engine.

Every event is a small frozen dataclass whose ``name`` class attribute matches
the wire name used by launcher front-ends (``download-progress``,
``update-summary`` and so on).  Events are delivered to an :class:`EventSink`
handed to the engine at construction time; there is no global emitter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, Iterable, Protocol, Union


_LOGGER = logging.getLogger(__name__)


def _percent(current: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(current / total * 100)


@dataclass(frozen=True)
class VerificationStarted:
    name: ClassVar[str] = "verification-start"

    total_files: int


@dataclass(frozen=True)
class VerificationProgress:
    name: ClassVar[str] = "verification-progress"

    current: int
    total: int
    file_path: str

    @property
    def percent(self) -> int:
        return _percent(self.current, self.total)


@dataclass(frozen=True)
class VerificationCompleted:
    name: ClassVar[str] = "verification-complete"

    missing_count: int
    modified_count: int


@dataclass(frozen=True)
class DownloadStarted:
    name: ClassVar[str] = "download-start"

    total_files: int


@dataclass(frozen=True)
class DownloadProgress:
    name: ClassVar[str] = "download-progress"

    percent: int
    downloaded_bytes: int
    total_bytes: int
    speed: float
    file_path: str

    @property
    def speed_mb(self) -> float:
        """Throughput in MiB per second, rounded for display."""

        return round(self.speed / (1024 * 1024), 2)


@dataclass(frozen=True)
class DownloadCompleted:
    name: ClassVar[str] = "download-complete"


@dataclass(frozen=True)
class ExtractStarted:
    name: ClassVar[str] = "extract-start"

    total_files: int


@dataclass(frozen=True)
class ExtractProgress:
    name: ClassVar[str] = "extract-progress"

    current: int
    total: int
    file_path: str

    @property
    def percent(self) -> int:
        return _percent(self.current, self.total)


@dataclass(frozen=True)
class ExtractCompleted:
    name: ClassVar[str] = "extract-complete"


@dataclass(frozen=True)
class VersionChecked:
    name: ClassVar[str] = "version-check"

    local_version: int
    remote_version: int


@dataclass(frozen=True)
class VersionUpdated:
    name: ClassVar[str] = "version-update"

    new_version: int
    product_version: str | None


@dataclass(frozen=True)
class UpdateSummarised:
    name: ClassVar[str] = "update-summary"

    total_files: int
    success_count: int
    fail_count: int


@dataclass(frozen=True)
class UpdateFailed:
    name: ClassVar[str] = "error"

    stage: str
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error)


PatchEvent = Union[
    VerificationStarted,
    VerificationProgress,
    VerificationCompleted,
    DownloadStarted,
    DownloadProgress,
    DownloadCompleted,
    ExtractStarted,
    ExtractProgress,
    ExtractCompleted,
    VersionChecked,
    VersionUpdated,
    UpdateSummarised,
    UpdateFailed,
]


class EventSink(Protocol):
    """Protocol describing receivers of engine progress events."""

    def publish(self, event: PatchEvent) -> None:
        """Deliver ``event`` to the observer."""


class NullEventSink:
    """Discard every event."""

    def publish(self, event: PatchEvent) -> None:
        return None


class CallbackEventSink:
    """Forward events to a plain callable."""

    def __init__(self, callback: Callable[[PatchEvent], None]) -> None:
        self._callback = callback

    def publish(self, event: PatchEvent) -> None:
        self._callback(event)


class CompositeEventSink:
    """Fan events out to several sinks in registration order."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self._sinks = list(sinks)

    def publish(self, event: PatchEvent) -> None:
        for sink in self._sinks:
            sink.publish(event)


class LoggingEventSink:
    """Render events as log lines; used by the command line front-end."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _LOGGER

    def publish(self, event: PatchEvent) -> None:
        log = self._logger
        if isinstance(event, VersionChecked):
            log.info("Client version %s, server version %s", event.local_version, event.remote_version)
        elif isinstance(event, VerificationStarted):
            log.info("Verifying %s client files", event.total_files)
        elif isinstance(event, VerificationProgress):
            log.debug("Checked (%s / %s) %s", event.current, event.total, event.file_path)
        elif isinstance(event, VerificationCompleted):
            log.info(
                "Verification finished: %s missing, %s modified",
                event.missing_count,
                event.modified_count,
            )
        elif isinstance(event, DownloadStarted):
            log.info("Downloading %s files", event.total_files)
        elif isinstance(event, DownloadProgress):
            log.info(
                "Downloaded %s%% (%s / %s bytes, %.2f MB/s) %s",
                event.percent,
                event.downloaded_bytes,
                event.total_bytes,
                event.speed_mb,
                event.file_path,
            )
        elif isinstance(event, ExtractStarted):
            log.info("Extracting %s files", event.total_files)
        elif isinstance(event, ExtractProgress):
            log.debug("Extracted (%s / %s) %s", event.current, event.total, event.file_path)
        elif isinstance(event, VersionUpdated):
            log.info("Client updated to version %s (%s)", event.new_version, event.product_version)
        elif isinstance(event, UpdateSummarised):
            log.info(
                "Update summary: %s processed, %s succeeded, %s failed",
                event.total_files,
                event.success_count,
                event.fail_count,
            )
        elif isinstance(event, UpdateFailed):
            log.error("Update stage %s failed: %s", event.stage, event.message)
        else:
            log.debug("Event %s", event.name)


__all__ = [
    "CallbackEventSink",
    "CompositeEventSink",
    "DownloadCompleted",
    "DownloadProgress",
    "DownloadStarted",
    "EventSink",
    "ExtractCompleted",
    "ExtractProgress",
    "ExtractStarted",
    "LoggingEventSink",
    "NullEventSink",
    "PatchEvent",
    "UpdateFailed",
    "UpdateSummarised",
    "VerificationCompleted",
    "VerificationProgress",
    "VerificationStarted",
    "VersionChecked",
    "VersionUpdated",
]
