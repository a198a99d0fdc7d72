"""Patcher configuration loaded from JSON resources and the environment."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

from patcher.update.constants import (
    CLIENT_DIR_ENV,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CODEC_BINARY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PATCH_SERVER_URL,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_DELAY,
    DEFAULT_SETTLE_DELAY,
    SERVER_URL_ENV,
    TEMP_DIR_ENV,
    VERSION_DOCUMENT_NAME,
    VERSION_FILE_ENV,
)

_CONFIG_RESOURCE = "patcher.json"


@dataclass(frozen=True)
class PatcherConfig:
    """Structured settings for one patcher installation."""

    patch_server_url: str
    client_directory: Path
    version_file: Path
    temp_directory: Path
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    settle_delay: float = DEFAULT_SETTLE_DELAY
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    codec_binary: str = DEFAULT_CODEC_BINARY

    def with_overrides(self, **overrides: Any) -> "PatcherConfig":
        """Return a copy with every non-``None`` override applied."""

        changes = {key: value for key, value in overrides.items() if value is not None}
        if "client_directory" in changes:
            client = Path(changes["client_directory"])
            changes["client_directory"] = client
            changes.setdefault("version_file", client / "bin" / VERSION_DOCUMENT_NAME)
            changes.setdefault("temp_directory", client / "temp")
        for key in ("version_file", "temp_directory"):
            if key in changes:
                changes[key] = Path(changes[key])
        return replace(self, **changes)


def load_patcher_config(path: str | Path | None = None) -> PatcherConfig:
    """Load configuration from ``path`` or the bundled JSON resource.

    Environment variables take precedence over file values; invalid values
    fall back to defaults.
    """

    data = _read_config_data(path)

    client_directory = _coerce_path(
        os.environ.get(CLIENT_DIR_ENV) or data.get("client_directory"), default=Path.cwd()
    )
    version_file = _coerce_path(
        os.environ.get(VERSION_FILE_ENV) or data.get("version_file"),
        default=client_directory / "bin" / VERSION_DOCUMENT_NAME,
        base=client_directory,
    )
    temp_directory = _coerce_path(
        os.environ.get(TEMP_DIR_ENV) or data.get("temp_directory"),
        default=client_directory / "temp",
        base=client_directory,
    )
    server_url = os.environ.get(SERVER_URL_ENV) or data.get("patch_server_url")
    if not isinstance(server_url, str) or not server_url.strip():
        server_url = DEFAULT_PATCH_SERVER_URL

    codec_binary = data.get("codec_binary")
    if not isinstance(codec_binary, str) or not codec_binary.strip():
        codec_binary = DEFAULT_CODEC_BINARY

    return PatcherConfig(
        patch_server_url=server_url.strip(),
        client_directory=client_directory,
        version_file=version_file,
        temp_directory=temp_directory,
        max_retries=_coerce_non_negative_int(data.get("max_retries"), default=DEFAULT_MAX_RETRIES),
        retry_delay=_coerce_non_negative_float(data.get("retry_delay"), default=DEFAULT_RETRY_DELAY),
        settle_delay=_coerce_non_negative_float(data.get("settle_delay"), default=DEFAULT_SETTLE_DELAY),
        progress_interval=_coerce_non_negative_float(
            data.get("progress_interval"), default=DEFAULT_PROGRESS_INTERVAL
        ),
        request_timeout=_coerce_non_negative_float(
            data.get("request_timeout"), default=DEFAULT_REQUEST_TIMEOUT
        ),
        chunk_size=_coerce_non_negative_int(data.get("chunk_size"), default=DEFAULT_CHUNK_SIZE) or DEFAULT_CHUNK_SIZE,
        codec_binary=codec_binary.strip(),
    )


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _coerce_path(value: Any, *, default: Path, base: Path | None = None) -> Path:
    if not isinstance(value, str) or not value.strip():
        return default
    path = Path(value.strip()).expanduser()
    if base is not None and not path.is_absolute():
        return base / path
    return path


def _coerce_non_negative_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = int(value)
    elif isinstance(value, str):
        try:
            candidate = int(float(value))
        except ValueError:
            return default
    else:
        return default
    if candidate < 0:
        return default
    return candidate


def _coerce_non_negative_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if not isfinite(candidate) or candidate < 0:
        return default
    return candidate


__all__ = ["PatcherConfig", "load_patcher_config"]
