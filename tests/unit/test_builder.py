from __future__ import annotations

import threading
from pathlib import Path

from patcher.builder import build_update_engine, schedule_update_check
from patcher.config import load_patcher_config
from patcher.update import ElzmaCodec, LzmaCodec, UpdateEngine, UpdateSummary
from patcher.update.models import RemoteUnavailableError
from tests.unit.patcher_test_utils import RecordingEventSink


def test_build_update_engine_wires_config(tmp_path: Path) -> None:
    config = load_patcher_config(tmp_path / "absent.json").with_overrides(
        client_directory=tmp_path / "client",
        temp_directory=tmp_path / "scratch",
    )

    engine = build_update_engine(config, events=RecordingEventSink(), codec=LzmaCodec())

    assert isinstance(engine, UpdateEngine)
    assert engine.workspace.root == tmp_path / "scratch"
    assert engine.version_store.version_file == tmp_path / "client" / "bin" / "Version.ini"


def test_build_update_engine_defaults_to_external_codec(tmp_path: Path, monkeypatch) -> None:
    created: list[str] = []

    class RecordingElzma(ElzmaCodec):
        def __init__(self, binary: str = "elzma", **kwargs) -> None:
            created.append(binary)
            super().__init__(binary, **kwargs)

    monkeypatch.setattr("patcher.builder.ElzmaCodec", RecordingElzma)
    config = load_patcher_config(tmp_path / "absent.json").with_overrides(
        client_directory=tmp_path, codec_binary="bin/elzma.exe"
    )

    build_update_engine(config)

    assert created == ["bin/elzma.exe"]


class _StubEngine:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[bool] = []

    def run_update(self, full_check: bool = False):
        self.calls.append(full_check)
        if self.error is not None:
            raise self.error
        return self.result


def test_schedule_update_check_reports_summary() -> None:
    summary = UpdateSummary(total_files=2, success_count=2, fail_count=0)
    engine = _StubEngine(result=summary)
    done = threading.Event()
    received: list[UpdateSummary | None] = []

    def on_complete(result: UpdateSummary | None) -> None:
        received.append(result)
        done.set()

    thread = schedule_update_check(engine, full_check=True, on_complete=on_complete)  # type: ignore[arg-type]
    thread.join(timeout=5)

    assert done.is_set()
    assert thread.daemon
    assert thread.name == "client-patcher-update"
    assert engine.calls == [True]
    assert received == [summary]


def test_schedule_update_check_reports_errors() -> None:
    failure = RemoteUnavailableError("Request failed (Status: 500)", status=500)
    engine = _StubEngine(error=failure)
    errors: list[Exception] = []
    completed: list[object] = []

    thread = schedule_update_check(
        engine,  # type: ignore[arg-type]
        on_complete=completed.append,
        on_error=errors.append,
    )
    thread.join(timeout=5)

    assert errors == [failure]
    assert completed == []
