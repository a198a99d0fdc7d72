"""Data models used by the patcher update engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Tuple


class UpdateError(RuntimeError):
    """Base class for failures raised while checking or applying updates."""


class NotFoundError(UpdateError):
    """Raised when the local version document cannot be located."""


class RemoteUnavailableError(UpdateError):
    """Raised when the patch server returns an error or cannot be reached."""

    def __init__(self, message: str, *, url: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status

    @property
    def is_transient(self) -> bool:
        """Connection failures and server-side errors are worth retrying."""

        return self.status is None or self.status >= 500


class ManifestError(UpdateError):
    """Raised when a manifest snapshot cannot be downloaded, unpacked or queried."""


class CodecError(UpdateError):
    """Raised when the compression codec fails to process a file."""


class IntegrityError(UpdateError):
    """Describes a file whose content hash does not match the manifest."""

    def __init__(self, path: Path, expected: str, actual: str | None) -> None:
        if actual is None:
            message = f"File missing after extraction: {path}"
        else:
            message = f"Hash mismatch for {path}: expected {expected} but found {actual}"
        super().__init__(message)
        self.path = path
        self.expected = expected
        self.actual = actual


@dataclass(frozen=True)
class FileRecord:
    """One logical client file at the generation where its hash became current."""

    id: int
    destination_path: str
    version: int
    hash: str


RequiredFileSet = Dict[int, FileRecord]
DeltaFileSet = Dict[int, FileRecord]


@dataclass(frozen=True)
class RemoteVersionInfo:
    version: int
    db_file: str | None = None


@dataclass(frozen=True)
class LocalVersionInfo:
    """Human readable version details for display purposes."""

    product_version: str
    download_version: str


@dataclass(frozen=True)
class VerificationResult:
    missing: Tuple[FileRecord, ...] = ()
    modified: Tuple[FileRecord, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not self.missing and not self.modified


@dataclass(frozen=True)
class UpdatePlan:
    """Outcome of an update check and the input to :meth:`UpdateEngine.apply_updates`."""

    update_available: bool
    current_version: int
    new_version: int | None = None
    files_to_update: Tuple[FileRecord, ...] = ()
    db_file: str | None = None
    is_repair: bool = False

    @property
    def target_version(self) -> int:
        return self.current_version if self.new_version is None else self.new_version


@dataclass(frozen=True)
class TransferTask:
    """A downloaded payload waiting to be extracted and verified."""

    record: FileRecord
    temp_path: Path
    destination: Path

    @property
    def expected_hash(self) -> str:
        return self.record.hash


@dataclass(frozen=True)
class UpdateSummary:
    total_files: int
    success_count: int
    fail_count: int
    failures: Tuple[IntegrityError, ...] = field(default=(), compare=False)


class EngineState(str, Enum):
    """Lifecycle states of a single check or apply run."""

    IDLE = "idle"
    CHECKING_VERSION = "checking_version"
    BUILDING_MANIFEST = "building_manifest"
    VERIFYING = "verifying"
    PLAN_READY = "plan_ready"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    VERIFYING_RESULT = "verifying_result"
    COMMITTING = "committing"
    DONE = "done"
    ERROR_ABORTED = "error_aborted"
