"""Orchestrates the check, plan and apply phases of a client update."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from patcher.update.codec import Codec
from patcher.update.constants import (
    COMMIT_SNAPSHOT_NAME,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_SETTLE_DELAY,
    VERSION_DOCUMENT_NAME,
)
from patcher.update.events import (
    EventSink,
    NullEventSink,
    UpdateFailed,
    UpdateSummarised,
    VersionChecked,
    VersionUpdated,
)
from patcher.update.models import (
    EngineState,
    RemoteVersionInfo,
    UpdatePlan,
    UpdateSummary,
)
from patcher.update.pipeline import TransferPipeline
from patcher.update.planner import build_update_plan
from patcher.update.resolver import RemoteManifestResolver
from patcher.update.transport import PatchServerClient
from patcher.update.verifier import FileVerifier
from patcher.update.version_store import LocalVersionStore, parse_version_document
from patcher.update.workspace import TempWorkspace


_LOGGER = logging.getLogger(__name__)


class UpdateEngine:
    """Coordinate version discovery, file verification and patch application.

    A single engine instance must not run overlapping checks or applies; the
    temp workspace is shared between phases without locking.
    """

    def __init__(
        self,
        client: PatchServerClient,
        codec: Codec,
        version_store: LocalVersionStore,
        *,
        client_directory: Path,
        temp_directory: Path,
        events: EventSink | None = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._codec = codec
        self._version_store = version_store
        self._client_directory = Path(client_directory)
        self._events = events or NullEventSink()
        self._settle_delay = settle_delay
        self._sleep = sleep
        self._workspace = TempWorkspace(Path(temp_directory))
        self._resolver = RemoteManifestResolver(client, codec, self._workspace)
        self._verifier = FileVerifier(self._client_directory, self._events)
        self._pipeline = TransferPipeline(
            client,
            codec,
            self._workspace,
            self._client_directory,
            self._events,
            progress_interval=progress_interval,
            clock=clock,
        )
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def workspace(self) -> TempWorkspace:
        return self._workspace

    @property
    def version_store(self) -> LocalVersionStore:
        return self._version_store

    def get_remote_version_info(self) -> RemoteVersionInfo:
        url = self._client.url_for(VERSION_DOCUMENT_NAME)
        _LOGGER.debug("Downloading %s from server: %s", VERSION_DOCUMENT_NAME, url)
        info = parse_version_document(self._client.fetch_text(url))
        _LOGGER.debug("Server version document: version=%s db_file=%s", info.version, info.db_file)
        return info

    def check_for_updates(self, full_check: bool = False) -> UpdatePlan:
        """Determine whether the client needs new or repaired files.

        ``full_check`` forces the settle delay even when the versions match, as
        used by the launcher's manual "verify files" action.
        """

        try:
            self._state = EngineState.CHECKING_VERSION
            local_version = self._version_store.get_local_version()
            _LOGGER.info("Client version: %s", local_version)
            remote = self.get_remote_version_info()
            _LOGGER.info("Server version: %s", remote.version)
            self._events.publish(VersionChecked(local_version=local_version, remote_version=remote.version))

            self._state = EngineState.BUILDING_MANIFEST
            required_files = self._resolver.resolve_required_files(remote.version)

            if remote.version > local_version or full_check:
                _LOGGER.info(
                    "Waiting %.1f seconds before proceeding with file verification", self._settle_delay
                )
                self._sleep(self._settle_delay)

            self._state = EngineState.VERIFYING
            verification = self._verifier.verify(required_files.values())

            delta_files = None
            if remote.version > local_version:
                delta_files = self._resolver.resolve_delta_files(local_version, remote.version)

            plan = build_update_plan(
                local_version,
                remote.version,
                verification,
                delta_files=delta_files,
                db_file=remote.db_file,
            )
        except Exception as exc:
            self._state = EngineState.ERROR_ABORTED
            self._workspace.clean()
            _LOGGER.error("Error checking for updates: %s", exc)
            self._events.publish(UpdateFailed(stage="check", error=exc))
            raise

        self._state = EngineState.PLAN_READY
        if plan.update_available:
            _LOGGER.info(
                "Update available: %s files (version %s -> %s, repair=%s)",
                len(plan.files_to_update),
                plan.current_version,
                plan.new_version,
                plan.is_repair,
            )
            return plan

        _LOGGER.info("Client is up to date. No update needed.")
        self._workspace.clean()
        self._events.publish(UpdateSummarised(total_files=0, success_count=0, fail_count=0))
        self._state = EngineState.DONE
        return plan

    def apply_updates(self, plan: UpdatePlan) -> UpdateSummary | None:
        """Download, extract and verify ``plan`` and record the new version.

        Per-file extraction or verification failures are reported in the
        returned summary; only transport and commit failures raise.
        """

        if not plan.update_available:
            _LOGGER.info("No updates to apply.")
            return None

        files = plan.files_to_update
        try:
            if plan.is_repair:
                _LOGGER.info("Starting client repair for version %s", plan.current_version)
            else:
                _LOGGER.info("Starting update to version %s", plan.new_version)
            _LOGGER.info("Found %s files to process", len(files))

            self._state = EngineState.DOWNLOADING
            total_bytes = self._pipeline.probe_total_size(files)
            tasks = self._pipeline.download_all(files, total_bytes)

            self._state = EngineState.EXTRACTING
            self._pipeline.extract_all(tasks)

            self._state = EngineState.VERIFYING_RESULT
            summary = self._pipeline.verify_all(tasks)

            product_version: str | None = None
            if not plan.is_repair and plan.db_file and plan.new_version is not None:
                self._state = EngineState.COMMITTING
                self._fetch_commit_snapshot(plan.db_file)
                product_version = self._version_store.update_local_version(plan.new_version)

            _LOGGER.info(
                "Update summary: %s processed, %s updated, %s failed",
                summary.total_files,
                summary.success_count,
                summary.fail_count,
            )
            self._events.publish(
                UpdateSummarised(
                    total_files=summary.total_files,
                    success_count=summary.success_count,
                    fail_count=summary.fail_count,
                )
            )

            if plan.is_repair:
                _LOGGER.info("Client repair completed")
                if summary.fail_count:
                    _LOGGER.warning(
                        "Some files could not be repaired. You may need to reinstall the client."
                    )
            else:
                _LOGGER.info("Client updated to version %s", plan.new_version)
                self._events.publish(
                    VersionUpdated(new_version=plan.new_version, product_version=product_version)
                )
            self._state = EngineState.DONE
            return summary
        except Exception as exc:
            self._state = EngineState.ERROR_ABORTED
            _LOGGER.error("Error during update: %s", exc)
            self._events.publish(UpdateFailed(stage="update", error=exc))
            raise
        finally:
            self._workspace.clean()

    def run_update(self, full_check: bool = False) -> UpdateSummary | None:
        """Check for updates and apply them when available."""

        plan = self.check_for_updates(full_check)
        if not plan.update_available:
            return None
        return self.apply_updates(plan)

    def _fetch_commit_snapshot(self, db_file: str) -> None:
        compressed_path = self._workspace.path_for(Path(db_file).name)
        snapshot_path = self._workspace.path_for(COMMIT_SNAPSHOT_NAME)
        try:
            self._client.download(self._client.url_for(db_file), compressed_path)
            self._codec.decompress(compressed_path, output_file=snapshot_path)
        finally:
            self._workspace.discard(snapshot_path, compressed_path)


__all__ = ["UpdateEngine"]
