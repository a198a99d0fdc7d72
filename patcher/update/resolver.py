"""Resolve the files required at a server version from manifest snapshots."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from patcher.update.codec import Codec
from patcher.update.constants import (
    COMPRESSED_SUFFIX,
    PATCH_REMOTE_TEMPLATE,
    SNAPSHOT_NAME_TEMPLATE,
    SNAPSHOT_REMOTE_TEMPLATE,
)
from patcher.update.manifest_db import ManifestSnapshot
from patcher.update.models import (
    DeltaFileSet,
    FileRecord,
    ManifestError,
    RequiredFileSet,
    UpdateError,
)
from patcher.update.transport import PatchServerClient
from patcher.update.workspace import TempWorkspace


_LOGGER = logging.getLogger(__name__)


def patch_url(client: PatchServerClient, record: FileRecord) -> str:
    return client.url_for(PATCH_REMOTE_TEMPLATE.format(file_id=record.id, version=record.version))


def merge_latest(target: RequiredFileSet, records: Iterable[FileRecord]) -> RequiredFileSet:
    """Fold ``records`` into ``target`` keeping the highest version per file id."""

    for record in records:
        existing = target.get(record.id)
        if existing is None or existing.version < record.version:
            target[record.id] = record
    return target


class RemoteManifestResolver:
    """Download per-version snapshots and derive required and changed file sets."""

    def __init__(self, client: PatchServerClient, codec: Codec, workspace: TempWorkspace) -> None:
        self._client = client
        self._codec = codec
        self._workspace = workspace

    def resolve_required_files(self, target_version: int) -> RequiredFileSet:
        """Scan snapshots ``1..target_version`` and merge them into one required set.

        Snapshots that cannot be downloaded, unpacked or queried are skipped so
        the result reflects every generation that is still reachable.
        """

        required: RequiredFileSet = {}
        for version in range(1, target_version + 1):
            try:
                records = self._query_snapshot(
                    version, lambda snapshot, v=version: snapshot.current_records_up_to(v)
                )
            except UpdateError as exc:
                _LOGGER.warning("Skipping manifest snapshot %s: %s", version, exc)
                continue
            merge_latest(required, records)

        _LOGGER.info(
            "Resolved %s required files for version %s", len(required), target_version
        )
        return required

    def resolve_delta_files(self, from_version: int, to_version: int) -> DeltaFileSet:
        """Return files changed after ``from_version`` according to snapshot ``to_version``."""

        try:
            records = self._query_snapshot(
                to_version, lambda snapshot: snapshot.records_newer_than(from_version)
            )
        except ManifestError:
            raise
        except UpdateError as exc:
            raise ManifestError(f"Failed to load manifest snapshot {to_version}: {exc}") from exc

        delta: DeltaFileSet = {}
        merge_latest(delta, records)
        _LOGGER.info(
            "Found %s files changed between versions %s and %s",
            len(delta),
            from_version,
            to_version,
        )
        return delta

    def _query_snapshot(
        self, version: int, query: Callable[[ManifestSnapshot], list[FileRecord]]
    ) -> list[FileRecord]:
        snapshot_path = self._workspace.path_for(SNAPSHOT_NAME_TEMPLATE.format(version=version))
        compressed_path = snapshot_path.with_name(f"{snapshot_path.name}{COMPRESSED_SUFFIX}")
        try:
            _LOGGER.debug("Downloading manifest snapshot %s", version)
            self._client.download(
                self._client.url_for(SNAPSHOT_REMOTE_TEMPLATE.format(version=version)),
                compressed_path,
            )
            _LOGGER.debug("Extracting manifest snapshot %s", version)
            self._codec.decompress(compressed_path, output_file=snapshot_path)
            with ManifestSnapshot(snapshot_path) as snapshot:
                return query(snapshot)
        finally:
            self._workspace.discard(snapshot_path, compressed_path)


__all__ = ["RemoteManifestResolver", "merge_latest", "patch_url"]
