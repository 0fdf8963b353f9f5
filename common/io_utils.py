"""File I/O helpers.

Readers return raw bytes and leave decoding to
``common.csv_codec.decode_bytes``; writers create parent directories as
needed. ``OSError`` always propagates to the caller.
"""

from __future__ import annotations

from pathlib import Path


def read_bytes(path: Path | str) -> bytes:
    """Read a whole file."""
    return Path(path).read_bytes()


def write_bytes(path: Path, data: bytes) -> None:
    """Write raw bytes to disk, ensuring parent directories exist.

    Exports are produced as bytes (the same payload a download button
    serves), so saving them goes through here.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def unique_path(directory: Path, filename: str) -> Path:
    """Return ``directory/filename``, suffixed ``_1``, ``_2``... if taken."""
    candidate = directory / filename
    if not candidate.exists():
        return candidate
    stem, suffix = candidate.stem, candidate.suffix
    n = 1
    while True:
        candidate = directory / f"{stem}_{n}{suffix}"
        if not candidate.exists():
            return candidate
        n += 1


__all__ = [
    "read_bytes",
    "write_bytes",
    "unique_path",
]
