from __future__ import annotations

from pathlib import Path

import pytest

from patcher.update import EngineState, NotFoundError, RemoteUnavailableError
from tests.unit.patcher_test_utils import (
    FakePatchServer,
    build_engine,
    compress_bytes,
    install_client_files,
    publish_release_history,
    temp_entries,
    write_version_document,
)

HISTORY = {
    1: {1: ("bin/client.exe", b"client build 1"), 2: ("data/a.dat", b"a first")},
    5: {3: ("data/b.dat", b"b first")},
    10: {2: ("data/a.dat", b"a second")},
    11: {4: ("data/local/c.dat", b"c first")},
    12: {1: ("bin/client.exe", b"client build 12")},
}

HISTORY_AT_10 = {version: files for version, files in HISTORY.items() if version <= 10}


def _client_at_version_10(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, history=HISTORY):
    server = FakePatchServer().install(monkeypatch)
    publish_release_history(server, tmp_path / "server", history)
    harness = build_engine(tmp_path, server)
    install_client_files(harness.client_root, history, 10)
    write_version_document(harness.client_root, 10)
    return harness


def _summary(harness) -> tuple[int, int, int]:
    event = harness.events.of("update-summary")[-1]
    return event.total_files, event.success_count, event.fail_count


def test_update_to_newer_version_installs_changed_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch)

    plan = harness.engine.check_for_updates()

    assert plan.update_available
    assert not plan.is_repair
    assert (plan.current_version, plan.new_version) == (10, 12)
    assert plan.db_file == "db/server.db.12.cab"
    assert sorted(record.id for record in plan.files_to_update) == [1, 4]
    assert harness.sleeps == [3.0]

    summary = harness.engine.apply_updates(plan)

    assert summary is not None
    assert (summary.total_files, summary.success_count, summary.fail_count) == (2, 2, 0)
    assert (harness.client_root / "bin" / "client.exe").read_bytes() == b"client build 12"
    assert (harness.client_root / "data" / "local" / "c.dat").read_bytes() == b"c first"
    assert harness.engine.version_store.get_local_version() == 12
    contents = harness.version_file.read_text(encoding="utf-8")
    assert "ProductVersion=1.0.72.180 v 12" in contents
    assert "DB file=db/server.db.12.cab" in contents
    assert temp_entries(harness.temp_root) == []
    assert harness.engine.state is EngineState.DONE

    names = harness.events.names()
    assert names[0] == "version-check"
    assert names[-2:] == ["update-summary", "version-update"]
    assert _summary(harness) == (2, 2, 0)
    updated = harness.events.of("version-update")[0]
    assert (updated.new_version, updated.product_version) == (12, "1.0.72.180 v 12")


def test_second_check_after_update_finds_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch)
    harness.engine.run_update()
    harness.events.events.clear()

    plan = harness.engine.check_for_updates()

    assert not plan.update_available
    assert plan.files_to_update == ()
    assert _summary(harness) == (0, 0, 0)
    assert harness.engine.apply_updates(plan) is None
    assert temp_entries(harness.temp_root) == []


def test_up_to_date_client_skips_settle_delay_unless_full_check(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch, HISTORY_AT_10)

    assert harness.engine.run_update() is None
    assert harness.sleeps == []

    plan = harness.engine.check_for_updates(full_check=True)

    assert not plan.update_available
    assert harness.sleeps == [3.0]


def test_repair_reinstalls_damaged_file_without_touching_version_document(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch, HISTORY_AT_10)
    (harness.client_root / "data" / "b.dat").write_bytes(b"b damaged")
    before = harness.version_file.read_bytes()

    plan = harness.engine.check_for_updates()

    assert plan.update_available
    assert plan.is_repair
    assert [(record.id, record.version) for record in plan.files_to_update] == [(3, 5)]

    summary = harness.engine.apply_updates(plan)

    assert summary is not None
    assert (summary.success_count, summary.fail_count) == (1, 0)
    assert (harness.client_root / "data" / "b.dat").read_bytes() == b"b first"
    assert harness.version_file.read_bytes() == before
    assert "version-update" not in harness.events.names()
    assert _summary(harness) == (1, 1, 0)


def test_unreachable_intermediate_snapshot_does_not_fail_check(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch)
    harness.server.fail("db/server.db.11.cab", 404)

    plan = harness.engine.check_for_updates()

    assert plan.update_available
    assert sorted(record.id for record in plan.files_to_update) == [1, 4]
    assert harness.events.of("verification-start")[0].total_files == 4
    assert "error" not in harness.events.names()


def test_missing_patch_aborts_apply_and_cleans_workspace(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch)
    plan = harness.engine.check_for_updates()
    harness.server.fail("patch/4-11.cab", 404)
    before = harness.version_file.read_bytes()

    with pytest.raises(RemoteUnavailableError) as excinfo:
        harness.engine.apply_updates(plan)

    assert excinfo.value.status == 404
    assert temp_entries(harness.temp_root) == []
    assert "update-summary" not in harness.events.names()
    failure = harness.events.of("error")[-1]
    assert failure.stage == "update"
    assert harness.version_file.read_bytes() == before
    assert harness.engine.state is EngineState.ERROR_ABORTED


def test_single_verification_failure_still_commits_version(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    history = {
        1: {1: ("bin/client.exe", b"client")},
        11: {file_id: (f"data/file{file_id}.dat", f"content {file_id}".encode()) for file_id in range(2, 7)},
    }
    harness = _client_at_version_10(tmp_path, monkeypatch, history)
    harness.server.publish("patch/6-11.cab", compress_bytes(tmp_path, "6-11-tampered", b"tampered"))

    plan = harness.engine.check_for_updates()
    summary = harness.engine.apply_updates(plan)

    assert len(plan.files_to_update) == 5
    assert summary is not None
    assert (summary.total_files, summary.success_count, summary.fail_count) == (5, 4, 1)
    assert _summary(harness) == (5, 4, 1)
    assert harness.engine.version_store.get_local_version() == 11
    assert temp_entries(harness.temp_root) == []


def test_unavailable_commit_snapshot_leaves_version_unchanged(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch)
    harness.server.publish("Version.ini", b"[Download]\nVersion=12\nDB file=db/unpublished.db.cab\n")
    before = harness.version_file.read_bytes()

    plan = harness.engine.check_for_updates()
    with pytest.raises(RemoteUnavailableError):
        harness.engine.apply_updates(plan)

    assert (harness.client_root / "bin" / "client.exe").read_bytes() == b"client build 12"
    assert harness.version_file.read_bytes() == before
    assert temp_entries(harness.temp_root) == []


def test_missing_local_version_document_fails_check(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    server = FakePatchServer().install(monkeypatch)
    publish_release_history(server, tmp_path / "server", HISTORY_AT_10)
    harness = build_engine(tmp_path, server)

    with pytest.raises(NotFoundError):
        harness.engine.check_for_updates()

    failure = harness.events.of("error")[0]
    assert failure.stage == "check"
    assert harness.engine.state is EngineState.ERROR_ABORTED
    assert server.requests == []


def test_unreachable_server_fails_check(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    server = FakePatchServer().install(monkeypatch)
    server.fail("Version.ini", 503)
    harness = build_engine(tmp_path, server)
    write_version_document(harness.client_root, 10)

    with pytest.raises(RemoteUnavailableError):
        harness.engine.check_for_updates()

    assert harness.events.of("error")[0].stage == "check"
    assert temp_entries(harness.temp_root) == []


def test_remote_version_behind_local_is_not_an_update(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    harness = _client_at_version_10(tmp_path, monkeypatch, HISTORY_AT_10)
    write_version_document(harness.client_root, 14)

    plan = harness.engine.check_for_updates()

    assert not plan.update_available
    assert not plan.is_repair
    version_check = harness.events.of("version-check")[0]
    assert (version_check.local_version, version_check.remote_version) == (14, 10)
