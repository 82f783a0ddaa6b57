"""Protocol definitions for Inkwell.

The build pipeline never touches the disk directly. Every read, write and
directory listing goes through a Filesystem, so the same pipeline runs
against a real directory tree or an in-memory one in tests.

Paths handed to a Filesystem are POSIX-style strings relative to the
filesystem's root.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Protocol, runtime_checkable


@dataclass(frozen=True)
class FileInfo:
    """Result of a stat call.

    Attributes:
        name: Final path component.
        is_dir: Whether the path is a directory.
        size: Size in bytes (0 for directories).
    """

    name: str
    is_dir: bool
    size: int = 0


@runtime_checkable
class Filesystem(Protocol):
    """Narrow filesystem capability used by the build pipeline.

    Implementations raise FileNotFoundError for missing paths,
    NotADirectoryError when listing a file, and FileExistsError when
    mkdir targets an existing path.
    """

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Open an existing file for binary reading.

        Args:
            path: File path.

        Returns:
            A readable binary file object.
        """
        ...

    @abstractmethod
    def create(self, path: str) -> BinaryIO:
        """Create or truncate a file for binary writing.

        The parent directory must already exist.

        Args:
            path: File path.

        Returns:
            A writable binary file object. Data is committed on close.
        """
        ...

    @abstractmethod
    def stat(self, path: str) -> FileInfo:
        """Describe a file or directory.

        Args:
            path: Path to inspect.

        Returns:
            FileInfo for the path.
        """
        ...

    @abstractmethod
    def read_dir(self, path: str) -> list[str]:
        """List the entry names of a directory, sorted.

        Args:
            path: Directory path.

        Returns:
            Sorted list of names (not paths).
        """
        ...

    @abstractmethod
    def mkdir(self, path: str) -> None:
        """Create a single directory; its parent must exist."""
        ...

    @abstractmethod
    def makedirs(self, path: str) -> None:
        """Create a directory and any missing parents; no-op if it exists."""
        ...
