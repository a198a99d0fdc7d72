"""Read-only access to a per-version manifest snapshot database."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from types import TracebackType
from typing import Iterable, Protocol

from patcher.update.models import FileRecord, ManifestError


_LOGGER = logging.getLogger(__name__)

_CURRENT_RECORDS_QUERY = """
    SELECT fi.id, fi.path, fv.version, fv.hash
    FROM file_info fi
    JOIN file_version fv ON fi.id = fv.id
    WHERE fv.version <= ?
    AND fv.version = (
        SELECT MAX(version)
        FROM file_version
        WHERE id = fi.id AND version <= ?
    )
    ORDER BY fi.id
"""

_NEWER_RECORDS_QUERY = """
    SELECT fi.id, fi.path, fv.version, fv.hash
    FROM file_info fi
    JOIN file_version fv ON fi.id = fv.id
    WHERE fv.version > ?
    ORDER BY fi.id, fv.version
"""

SCHEMA = """
    CREATE TABLE IF NOT EXISTS file_info (
        id INTEGER PRIMARY KEY,
        path TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS file_version (
        id INTEGER NOT NULL REFERENCES file_info(id),
        version INTEGER NOT NULL,
        hash TEXT NOT NULL,
        PRIMARY KEY (id, version)
    );
"""


class ManifestRepository(Protocol):
    """Narrow query surface over one snapshot, independent of its storage."""

    def current_records_up_to(self, version: int) -> list[FileRecord]:
        """Return the current record per file id at or below ``version``."""

    def records_newer_than(self, version: int) -> list[FileRecord]:
        """Return every record whose version is strictly greater than ``version``."""


class ManifestSnapshot:
    """SQLite-backed :class:`ManifestRepository` opened read-only."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._connection: sqlite3.Connection | None = None

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> "ManifestSnapshot":
        if self._connection is not None:
            return self
        if not self._path.is_file():
            raise ManifestError(f"Manifest snapshot {self._path} does not exist")
        try:
            self._connection = sqlite3.connect(f"{self._path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as exc:
            raise ManifestError(f"Failed to open manifest snapshot {self._path}: {exc}") from exc
        return self

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "ManifestSnapshot":
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def current_records_up_to(self, version: int) -> list[FileRecord]:
        return self._query(_CURRENT_RECORDS_QUERY, (version, version))

    def records_newer_than(self, version: int) -> list[FileRecord]:
        return self._query(_NEWER_RECORDS_QUERY, (version,))

    def _query(self, sql: str, parameters: tuple[int, ...]) -> list[FileRecord]:
        connection = self.open()._connection
        assert connection is not None
        try:
            rows = connection.execute(sql, parameters).fetchall()
        except sqlite3.Error as exc:
            raise ManifestError(f"Failed to query manifest snapshot {self._path}: {exc}") from exc
        _LOGGER.debug("Snapshot %s returned %s rows", self._path.name, len(rows))
        return [
            FileRecord(id=int(row[0]), destination_path=str(row[1]), version=int(row[2]), hash=str(row[3]))
            for row in rows
        ]


def write_snapshot(
    path: Path,
    files: Iterable[tuple[int, str]],
    versions: Iterable[tuple[int, int, str]],
) -> Path:
    """Create a snapshot database at ``path`` from file and version rows.

    Used by publishing tooling and tests to produce databases in the layout
    the patch server ships.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path)
    try:
        with connection:
            connection.executescript(SCHEMA)
            connection.executemany("INSERT INTO file_info (id, path) VALUES (?, ?)", list(files))
            connection.executemany(
                "INSERT INTO file_version (id, version, hash) VALUES (?, ?, ?)", list(versions)
            )
    finally:
        connection.close()
    return path


__all__ = ["ManifestRepository", "ManifestSnapshot", "SCHEMA", "write_snapshot"]
