from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    """Guarantee the repository root is discoverable for absolute imports."""

    root = Path(__file__).resolve().parent.parent
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_project_root_on_path()


@pytest.fixture(autouse=True)
def _patcher_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Keep tests away from the developer's environment and log directory."""

    for name in (
        "PATCHER_SERVER_URL",
        "PATCHER_CLIENT_DIR",
        "PATCHER_VERSION_FILE",
        "PATCHER_TEMP_DIR",
        "PATCHER_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path_factory.mktemp("logs")))
    yield
