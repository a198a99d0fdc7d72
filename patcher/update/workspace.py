"""Temporary download workspace shared by every phase of an update run."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path


_LOGGER = logging.getLogger(__name__)


class TempWorkspace:
    """Directory holding compressed downloads and unpacked snapshots.

    The engine assumes it is the sole writer; callers must not run two update
    cycles against the same workspace at once.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def ensure(self) -> Path:
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    def path_for(self, name: str) -> Path:
        return self.ensure() / name

    def discard(self, *paths: Path) -> None:
        """Remove ``paths`` if they exist, logging rather than raising on failure."""

        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                _LOGGER.warning("Could not delete temp file %s: %s", path, exc)

    def entries(self) -> list[Path]:
        if not self._root.exists():
            return []
        return sorted(self._root.iterdir())

    def clean(self) -> None:
        """Delete everything in the workspace and remove the directory when empty."""

        if not self._root.exists():
            return

        for entry in self.entries():
            try:
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
            except OSError as exc:
                _LOGGER.warning("Could not delete temp file %s: %s", entry.name, exc)

        try:
            self._root.rmdir()
        except OSError as exc:
            _LOGGER.debug("Temp directory %s left in place: %s", self._root, exc)
        else:
            _LOGGER.debug("Temp directory %s cleaned", self._root)


__all__ = ["TempWorkspace"]
