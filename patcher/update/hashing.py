"""Hashing helpers for client file verification."""

from __future__ import annotations

import hashlib
from pathlib import Path


def calculate_md5(path: Path) -> str:
    digest = hashlib.md5(usedforsecurity=False)
    with path.open("rb") as source:
        for chunk in iter(lambda: source.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hashes_match(expected: str, actual: str) -> bool:
    return expected.strip().lower() == actual.strip().lower()
