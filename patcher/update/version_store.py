"""Persistence of the installed client version (``Version.ini``)."""

from __future__ import annotations

import configparser
import logging
import os
import tempfile
from pathlib import Path
from typing import Sequence

from patcher.update.constants import (
    DB_FILE_KEY,
    DOWNLOAD_SECTION,
    DOWNLOAD_VERSION_KEY,
    PRODUCT_VERSION_KEY,
    PRODUCT_VERSION_SEPARATOR,
    SNAPSHOT_REMOTE_TEMPLATE,
    UNKNOWN_VERSION_TEXT,
    VERSION_DOCUMENT_NAME,
    VERSION_SECTION,
)
from patcher.update.models import LocalVersionInfo, NotFoundError, RemoteVersionInfo, UpdateError


_LOGGER = logging.getLogger(__name__)


def new_version_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def parse_version_number(raw: object) -> int:
    """Return ``raw`` as a version integer, treating anything unparsable as ``0``."""

    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(0, raw)
    if isinstance(raw, str):
        text = raw.strip()
        digits = ""
        for character in text:
            if not character.isdigit():
                break
            digits += character
        if digits:
            return int(digits)
    return 0


def parse_version_document(text: str) -> RemoteVersionInfo:
    """Extract the download version and DB file reference from an INI document."""

    parser = new_version_parser()
    try:
        parser.read_string(text)
    except configparser.Error as exc:
        raise UpdateError(f"Version document is malformed: {exc}") from exc
    version = parse_version_number(parser.get(DOWNLOAD_SECTION, DOWNLOAD_VERSION_KEY, fallback=None))
    db_file = parser.get(DOWNLOAD_SECTION, DB_FILE_KEY, fallback=None)
    return RemoteVersionInfo(version=version, db_file=(db_file.strip() or None) if db_file else None)


def bump_product_version(product_version: str, new_version: int) -> str:
    prefix = product_version.split(PRODUCT_VERSION_SEPARATOR, 1)[0]
    return f"{prefix}{PRODUCT_VERSION_SEPARATOR}{new_version}"


def snapshot_reference(version: int) -> str:
    return SNAPSHOT_REMOTE_TEMPLATE.format(version=version)


class LocalVersionStore:
    """Read and rewrite the installation's version document."""

    def __init__(self, version_file: Path, fallback_paths: Sequence[Path] = ()) -> None:
        self._version_file = Path(version_file)
        self._fallback_paths = [Path(path) for path in fallback_paths]

    @classmethod
    def for_client(cls, client_directory: Path, version_file: Path | None = None) -> "LocalVersionStore":
        client_directory = Path(client_directory)
        primary = Path(version_file) if version_file is not None else client_directory / "bin" / VERSION_DOCUMENT_NAME
        fallbacks = [
            client_directory / "bin" / VERSION_DOCUMENT_NAME,
            client_directory / "BIN" / VERSION_DOCUMENT_NAME,
            client_directory / VERSION_DOCUMENT_NAME,
        ]
        return cls(primary, fallbacks)

    @property
    def version_file(self) -> Path:
        return self._version_file

    def candidate_paths(self) -> list[Path]:
        candidates: list[Path] = []
        for path in (self._version_file, *self._fallback_paths):
            if path not in candidates:
                candidates.append(path)
        return candidates

    def locate(self) -> Path:
        """Return the first existing version document and remember it for writes."""

        candidates = self.candidate_paths()
        for path in candidates:
            _LOGGER.debug("Looking for version document at %s", path)
            if path.is_file():
                self._version_file = path
                return path
        _LOGGER.error(
            "Version document not found at any of: %s", ", ".join(str(path) for path in candidates)
        )
        raise NotFoundError(f"{VERSION_DOCUMENT_NAME} not found in client directory")

    def get_local_version(self) -> int:
        path = self.locate()
        parser = self._read(path)
        version = parse_version_number(parser.get(DOWNLOAD_SECTION, DOWNLOAD_VERSION_KEY, fallback=None))
        _LOGGER.info("Local client version %s read from %s", version, path)
        return version

    def read_version_info(self) -> LocalVersionInfo:
        """Return display strings for the installed version, never raising."""

        try:
            parser = self._read(self.locate())
        except UpdateError as exc:
            _LOGGER.warning("Failed to load initial version: %s", exc)
            return LocalVersionInfo(UNKNOWN_VERSION_TEXT, UNKNOWN_VERSION_TEXT)

        product = parser.get(VERSION_SECTION, PRODUCT_VERSION_KEY, fallback="") or UNKNOWN_VERSION_TEXT
        download = parser.get(DOWNLOAD_SECTION, DOWNLOAD_VERSION_KEY, fallback="") or UNKNOWN_VERSION_TEXT
        return LocalVersionInfo(product_version=product, download_version=download)

    def update_local_version(self, new_version: int) -> str | None:
        """Record ``new_version`` and return the resulting product version string."""

        path = self._version_file
        parser = self._read(path)

        product_version: str | None = None
        if parser.has_option(VERSION_SECTION, PRODUCT_VERSION_KEY):
            current = parser.get(VERSION_SECTION, PRODUCT_VERSION_KEY)
            product_version = bump_product_version(current, new_version)
            parser.set(VERSION_SECTION, PRODUCT_VERSION_KEY, product_version)

        if not parser.has_section(DOWNLOAD_SECTION):
            parser.add_section(DOWNLOAD_SECTION)
        parser.set(DOWNLOAD_SECTION, DOWNLOAD_VERSION_KEY, str(new_version))
        parser.set(DOWNLOAD_SECTION, DB_FILE_KEY, snapshot_reference(new_version))

        self._write_atomically(path, parser)
        _LOGGER.info(
            "Version document updated: ProductVersion=%s, Download Version=%s",
            product_version or "N/A",
            new_version,
        )
        return product_version

    def _read(self, path: Path) -> configparser.ConfigParser:
        parser = new_version_parser()
        try:
            text = path.read_text(encoding="utf-8-sig")
        except FileNotFoundError as exc:
            raise NotFoundError(f"{VERSION_DOCUMENT_NAME} not found at {path}") from exc
        except OSError as exc:
            raise UpdateError(f"Failed to read {path}: {exc}") from exc
        try:
            parser.read_string(text, source=str(path))
        except configparser.Error as exc:
            raise UpdateError(f"Version document {path} is malformed: {exc}") from exc
        return parser

    def _write_atomically(self, path: Path, parser: configparser.ConfigParser) -> None:
        handle, side_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        side_path = Path(side_name)
        try:
            with os.fdopen(handle, "w", encoding="utf-8", newline="") as target:
                parser.write(target, space_around_delimiters=False)
            os.replace(side_path, path)
        except BaseException:
            try:
                side_path.unlink()
            except FileNotFoundError:
                pass
            raise


__all__ = [
    "LocalVersionStore",
    "bump_product_version",
    "parse_version_document",
    "parse_version_number",
    "snapshot_reference",
]
