from __future__ import annotations

from patcher.update import FileRecord, VerificationResult, build_update_plan, merge_update_files


def _record(file_id: int, version: int, path: str | None = None) -> FileRecord:
    return FileRecord(file_id, path or f"data/{file_id}.dat", version, f"hash-{file_id}-{version}")


def test_delta_version_wins_over_stale_missing_entry() -> None:
    delta = {7: _record(7, 5)}
    verification = VerificationResult(missing=(_record(7, 3),))

    merged = merge_update_files(delta, verification)

    assert merged == (_record(7, 5),)


def test_each_file_id_appears_once() -> None:
    delta = {1: _record(1, 12), 2: _record(2, 11)}
    verification = VerificationResult(missing=(_record(3, 4),), modified=(_record(1, 12), _record(3, 4)))

    merged = merge_update_files(delta, verification)

    assert sorted(record.id for record in merged) == [1, 2, 3]


def test_newer_remote_merges_delta_and_damaged_files() -> None:
    verification = VerificationResult(modified=(_record(4, 2),))

    plan = build_update_plan(10, 12, verification, delta_files={1: _record(1, 12)}, db_file="db/server.db.12.cab")

    assert plan.update_available
    assert not plan.is_repair
    assert plan.current_version == 10
    assert plan.new_version == 12
    assert plan.target_version == 12
    assert plan.db_file == "db/server.db.12.cab"
    assert {record.id for record in plan.files_to_update} == {1, 4}


def test_same_version_with_damage_is_repair() -> None:
    damaged = _record(9, 8)

    plan = build_update_plan(10, 10, VerificationResult(modified=(damaged,)))

    assert plan.update_available
    assert plan.is_repair
    assert plan.files_to_update == (damaged,)


def test_clean_client_at_remote_version_needs_nothing() -> None:
    plan = build_update_plan(10, 10, VerificationResult())

    assert not plan.update_available
    assert plan.files_to_update == ()
    assert plan.new_version is None
    assert plan.target_version == 10


def test_newer_remote_with_empty_delta_still_updates_version() -> None:
    plan = build_update_plan(10, 11, VerificationResult(), delta_files={})

    assert plan.update_available
    assert plan.files_to_update == ()
    assert plan.new_version == 11


def test_remote_behind_local_ignores_delta() -> None:
    plan = build_update_plan(12, 10, VerificationResult(), delta_files={1: _record(1, 10)})

    assert not plan.update_available
    assert not plan.is_repair
