"""Compression codecs used for patch payloads and manifest snapshots."""

from __future__ import annotations

import logging
import lzma
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Protocol

from patcher.update.constants import COMPRESSED_SUFFIX, DEFAULT_CODEC_BINARY
from patcher.update.models import CodecError


_LOGGER = logging.getLogger(__name__)


class Codec(Protocol):
    """Protocol describing a file-to-file compression codec."""

    def compress(
        self,
        path: Path,
        *,
        delete_file: bool = False,
        overwrite: bool = True,
        output_file: Path | None = None,
        output_directory: Path | None = None,
    ) -> Path:
        """Compress ``path`` and return the location of the packed file."""

    def decompress(
        self,
        path: Path,
        *,
        delete_file: bool = False,
        overwrite: bool = True,
        output_file: Path | None = None,
        output_directory: Path | None = None,
    ) -> Path:
        """Decompress ``path`` and return the location of the unpacked file."""


def resolve_output_path(
    input_path: Path,
    default_name: str,
    output_file: Path | None,
    output_directory: Path | None,
) -> Path:
    if output_file is not None:
        return Path(output_file).resolve()
    if output_directory is not None:
        return Path(output_directory).resolve() / default_name
    return input_path.parent / default_name


def _strip_suffix(name: str) -> str:
    if name.endswith(COMPRESSED_SUFFIX):
        return name[: -len(COMPRESSED_SUFFIX)]
    return name


class _FileCodec:
    """Shared option handling for codecs that map one file to another."""

    def compress(
        self,
        path: Path,
        *,
        delete_file: bool = False,
        overwrite: bool = True,
        output_file: Path | None = None,
        output_directory: Path | None = None,
    ) -> Path:
        input_path = Path(path).resolve()
        output_path = resolve_output_path(
            input_path, f"{input_path.name}{COMPRESSED_SUFFIX}", output_file, output_directory
        )
        return self._process("compress", input_path, output_path, delete_file, overwrite)

    def decompress(
        self,
        path: Path,
        *,
        delete_file: bool = False,
        overwrite: bool = True,
        output_file: Path | None = None,
        output_directory: Path | None = None,
    ) -> Path:
        input_path = Path(path).resolve()
        output_path = resolve_output_path(
            input_path, _strip_suffix(input_path.name), output_file, output_directory
        )
        return self._process("decompress", input_path, output_path, delete_file, overwrite)

    def _process(
        self,
        mode: str,
        input_path: Path,
        output_path: Path,
        delete_file: bool,
        overwrite: bool,
    ) -> Path:
        if not input_path.exists():
            raise CodecError(f'Input file "{input_path}" does not exist')

        if overwrite or not output_path.exists():
            self._run(mode, input_path, output_path)
        else:
            _LOGGER.debug("Keeping existing %s output %s", mode, output_path)

        if delete_file:
            input_path.unlink()
        return output_path

    def _run(self, mode: str, input_path: Path, output_path: Path) -> None:
        raise NotImplementedError


class ElzmaCodec(_FileCodec):
    """Shell out to the ``elzma`` binary shipped alongside the launcher."""

    def __init__(self, binary: str | Path = DEFAULT_CODEC_BINARY, *, max_workers: int = 1) -> None:
        self._binary = str(binary)
        self._slots = threading.BoundedSemaphore(max(1, max_workers))

    @property
    def binary(self) -> str:
        return self._binary

    def build_command(self, mode: str, input_path: Path, output_path: Path) -> list[str]:
        if mode == "compress":
            flags = ["--compress", "-9", "-s", "26"]
        else:
            flags = ["--decompress"]
        return [self._binary, *flags, "-f", "-k", "--lzma", str(input_path), str(output_path)]

    def _run(self, mode: str, input_path: Path, output_path: Path) -> None:
        command = self.build_command(mode, input_path, output_path)
        _LOGGER.debug("Running codec command: %s", command)
        with self._slots:
            try:
                completed = subprocess.run(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    check=False,
                )
            except OSError as exc:
                raise CodecError(f"Codec process error: {exc}") from exc

        if completed.returncode != 0:
            raise CodecError(f"Codec process exited with code {completed.returncode}")
        stderr = completed.stderr.decode("utf-8", errors="replace").strip()
        if stderr and stderr != "null":
            raise CodecError(f"Error in {mode}: {stderr}")


class LzmaCodec(_FileCodec):
    """In-process codec producing the same ``.lzma`` container as ``elzma --lzma``."""

    def __init__(self, *, preset: int = 9) -> None:
        self._preset = preset

    def _run(self, mode: str, input_path: Path, output_path: Path) -> None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            if mode == "compress":
                with input_path.open("rb") as source, lzma.open(
                    output_path, "wb", format=lzma.FORMAT_ALONE, preset=self._preset
                ) as target:
                    shutil.copyfileobj(source, target)
            else:
                with lzma.open(input_path, "rb", format=lzma.FORMAT_ALONE) as source, output_path.open(
                    "wb"
                ) as target:
                    shutil.copyfileobj(source, target)
        except (OSError, EOFError, lzma.LZMAError) as exc:
            raise CodecError(f"Error in {mode}: {exc}") from exc


__all__ = ["Codec", "ElzmaCodec", "LzmaCodec", "resolve_output_path"]
