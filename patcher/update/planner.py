"""Combine version deltas and verification findings into an update plan."""

from __future__ import annotations

from typing import Iterable, Mapping

from patcher.update.models import FileRecord, UpdatePlan, VerificationResult


def merge_update_files(
    delta_files: Mapping[int, FileRecord] | None,
    verification: VerificationResult,
) -> tuple[FileRecord, ...]:
    """Deduplicate by file id across delta, missing and modified records.

    Records are folded in that order.  A later record replaces an earlier one
    for the same id unless the earlier one carries a strictly newer version,
    so a stale entry never downgrades a file the delta already advanced.
    """

    merged: dict[int, FileRecord] = {}
    sources: list[Iterable[FileRecord]] = [
        (delta_files or {}).values(),
        verification.missing,
        verification.modified,
    ]
    for source in sources:
        for record in source:
            existing = merged.get(record.id)
            if existing is not None and existing.version > record.version:
                continue
            merged[record.id] = record
    return tuple(merged.values())


def build_update_plan(
    local_version: int,
    remote_version: int,
    verification: VerificationResult,
    delta_files: Mapping[int, FileRecord] | None = None,
    db_file: str | None = None,
) -> UpdatePlan:
    files = merge_update_files(delta_files if remote_version > local_version else None, verification)
    if remote_version > local_version or files:
        return UpdatePlan(
            update_available=True,
            current_version=local_version,
            new_version=remote_version,
            files_to_update=files,
            db_file=db_file,
            is_repair=remote_version == local_version,
        )
    return UpdatePlan(update_available=False, current_version=local_version)


__all__ = ["build_update_plan", "merge_update_files"]
