"""Filesystem implementations for Inkwell.

Two implementations of the Filesystem protocol:

- RealFilesystem: reads and writes a directory tree on disk.
- MemoryFilesystem: an in-memory tree used by tests and dry runs.

The module also provides small helpers built on top of the protocol
(read_text, write_text, copy_file, is_dir) so callers never need to know
which implementation they hold.
"""

from __future__ import annotations

import errno
import io
import os
import posixpath
import shutil
import stat as stat_module
from pathlib import Path
from typing import BinaryIO

from .protocols import FileInfo, Filesystem


def normalize_path(path: str) -> str:
    """Normalize a filesystem path to a relative POSIX form.

    Args:
        path: Path such as "./src/posts/" or "/src/posts".

    Returns:
        Normalized path ("src/posts"); the root is the empty string.
    """
    normalized = posixpath.normpath(str(path)).lstrip("/")
    return "" if normalized == "." else normalized


class RealFilesystem:
    """Filesystem backed by a directory on disk.

    Attributes:
        root: Directory all relative paths are resolved against.
    """

    def __init__(self, root: Path | str = "."):
        self.root = Path(root)

    def real_path(self, path: str) -> Path:
        """Return the on-disk location of a filesystem path."""
        return self.root / path if path else self.root

    def open(self, path: str) -> BinaryIO:
        return self.real_path(path).open("rb")

    def create(self, path: str) -> BinaryIO:
        return self.real_path(path).open("wb")

    def stat(self, path: str) -> FileInfo:
        target = self.real_path(path)
        result = target.stat()
        return FileInfo(
            name=target.name,
            is_dir=stat_module.S_ISDIR(result.st_mode),
            size=result.st_size,
        )

    def read_dir(self, path: str) -> list[str]:
        return sorted(os.listdir(self.real_path(path)))

    def mkdir(self, path: str) -> None:
        self.real_path(path).mkdir()

    def makedirs(self, path: str) -> None:
        self.real_path(path).mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"RealFilesystem({str(self.root)!r})"


class _MemoryFile(io.BytesIO):
    """Writable buffer that stores its contents in a MemoryFilesystem on close."""

    def __init__(self, fs: MemoryFilesystem, path: str):
        super().__init__()
        self._fs = fs
        self._path = path

    def close(self) -> None:
        if not self.closed:
            self._fs._files[self._path] = self.getvalue()
        super().close()


class MemoryFilesystem:
    """In-memory filesystem tree.

    Directories and files live in plain containers keyed by normalized
    path. The root directory always exists.
    """

    def __init__(self) -> None:
        self._dirs: set[str] = {""}
        self._files: dict[str, bytes] = {}

    def _missing(self, path: str) -> FileNotFoundError:
        return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent not in self._dirs:
            raise self._missing(parent)

    def open(self, path: str) -> BinaryIO:
        key = normalize_path(path)
        if key in self._dirs:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        if key not in self._files:
            raise self._missing(path)
        return io.BytesIO(self._files[key])

    def create(self, path: str) -> BinaryIO:
        key = normalize_path(path)
        if key in self._dirs:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        self._require_parent(key)
        self._files[key] = b""
        return _MemoryFile(self, key)

    def stat(self, path: str) -> FileInfo:
        key = normalize_path(path)
        name = posixpath.basename(key)
        if key in self._dirs:
            return FileInfo(name=name, is_dir=True)
        if key in self._files:
            return FileInfo(name=name, is_dir=False, size=len(self._files[key]))
        raise self._missing(path)

    def read_dir(self, path: str) -> list[str]:
        key = normalize_path(path)
        if key in self._files:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)
        if key not in self._dirs:
            raise self._missing(path)
        names = {
            posixpath.basename(entry)
            for entry in (*self._dirs, *self._files)
            if entry and posixpath.dirname(entry) == key
        }
        return sorted(names)

    def mkdir(self, path: str) -> None:
        key = normalize_path(path)
        if key in self._dirs or key in self._files:
            raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), path)
        self._require_parent(key)
        self._dirs.add(key)

    def makedirs(self, path: str) -> None:
        key = normalize_path(path)
        if not key:
            return
        current = ""
        for part in key.split("/"):
            current = posixpath.join(current, part) if current else part
            if current in self._files:
                raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), current)
            self._dirs.add(current)

    def write(self, path: str, data: str | bytes) -> None:
        """Write a file, creating parent directories as needed."""
        key = normalize_path(path)
        self.makedirs(posixpath.dirname(key))
        self._files[key] = data.encode("utf-8") if isinstance(data, str) else data

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"MemoryFilesystem({len(self._files)} files, {len(self._dirs)} dirs)"


def read_bytes(fs: Filesystem, path: str) -> bytes:
    """Read a whole file as bytes."""
    with fs.open(path) as f:
        return f.read()


def read_text(fs: Filesystem, path: str) -> str:
    """Read a whole file as UTF-8 text."""
    return read_bytes(fs, path).decode("utf-8")


def write_text(fs: Filesystem, path: str, text: str) -> None:
    """Create or truncate a file and write UTF-8 text into it."""
    with fs.create(path) as f:
        f.write(text.encode("utf-8"))


def copy_file(fs: Filesystem, src: str, dst: str) -> None:
    """Copy a file's bytes from src to dst."""
    with fs.open(src) as fsrc, fs.create(dst) as fdst:
        shutil.copyfileobj(fsrc, fdst)


def is_dir(fs: Filesystem, path: str) -> bool:
    """Return True if path exists and is a directory."""
    try:
        return fs.stat(path).is_dir
    except OSError:
        return False
