"""Public API for the patcher update package."""

from __future__ import annotations

from patcher.update.codec import Codec, ElzmaCodec, LzmaCodec
from patcher.update.constants import (
    DEFAULT_PATCH_SERVER_URL,
    PATCH_REMOTE_TEMPLATE,
    SNAPSHOT_REMOTE_TEMPLATE,
    VERSION_DOCUMENT_NAME,
)
from patcher.update.engine import UpdateEngine
from patcher.update.events import (
    CallbackEventSink,
    CompositeEventSink,
    EventSink,
    LoggingEventSink,
    NullEventSink,
    PatchEvent,
)
from patcher.update.manifest_db import ManifestRepository, ManifestSnapshot, write_snapshot
from patcher.update.models import (
    CodecError,
    EngineState,
    FileRecord,
    IntegrityError,
    LocalVersionInfo,
    ManifestError,
    NotFoundError,
    RemoteUnavailableError,
    UpdateError,
    UpdatePlan,
    UpdateSummary,
    VerificationResult,
)
from patcher.update.planner import build_update_plan, merge_update_files
from patcher.update.resolver import RemoteManifestResolver
from patcher.update.transport import PatchServerClient
from patcher.update.verifier import FileVerifier
from patcher.update.version_store import LocalVersionStore

__all__ = [
    "DEFAULT_PATCH_SERVER_URL",
    "PATCH_REMOTE_TEMPLATE",
    "SNAPSHOT_REMOTE_TEMPLATE",
    "VERSION_DOCUMENT_NAME",
    "CallbackEventSink",
    "Codec",
    "CodecError",
    "CompositeEventSink",
    "ElzmaCodec",
    "EngineState",
    "EventSink",
    "FileRecord",
    "FileVerifier",
    "IntegrityError",
    "LocalVersionInfo",
    "LocalVersionStore",
    "LoggingEventSink",
    "LzmaCodec",
    "ManifestError",
    "ManifestRepository",
    "ManifestSnapshot",
    "NotFoundError",
    "NullEventSink",
    "PatchEvent",
    "PatchServerClient",
    "RemoteManifestResolver",
    "RemoteUnavailableError",
    "UpdateEngine",
    "UpdateError",
    "UpdatePlan",
    "UpdateSummary",
    "VerificationResult",
    "build_update_plan",
    "merge_update_files",
    "write_snapshot",
]
