"""Abstract adapter contract and the value types shared by every backend."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import IO, BinaryIO, TextIO, Union

Contents = Union[str, bytes]


class Visibility(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass
class Metadata:
    """Describes one stored object. Directories are never returned.

    ``parent_dir`` is the slash-delimited prefix before the name, and is the
    empty string (not ``"."``) for objects at the top of the bucket.
    """

    path: str
    name: str
    ext: str
    parent_dir: str
    size: int
    timestamp: datetime | None
    mimetype: str
    visibility: Visibility
    is_file: bool = True
    is_dir: bool = False


@dataclass
class File:
    metadata: Metadata
    contents: Contents


@dataclass
class StreamFile:
    """Metadata plus a live, undrained content stream.

    The caller owns ``stream``; closing it (or leaving the ``with`` block)
    releases the underlying remote read channel.
    """

    metadata: Metadata
    stream: IO

    def __enter__(self) -> "StreamFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def close(self) -> None:
        self.stream.close()


@dataclass(frozen=True)
class WriteOptions:
    # None defers to the adapter default for each field
    visibility: Visibility | None = None
    encoding: str | None = None


@dataclass(frozen=True)
class ReadOptions:
    # None returns raw bytes
    encoding: str | None = None


class FilesystemAdapter(ABC):
    """Capability set every storage backend exposes to the rest of the system."""

    adapter_name: str
    target_version: str

    @abstractmethod
    async def write(
        self, path: str, contents: Contents, options: WriteOptions | None = None
    ) -> Metadata:
        """Create or replace the object at ``path``."""

    @abstractmethod
    async def write_stream(
        self, path: str, stream: BinaryIO | TextIO, options: WriteOptions | None = None
    ) -> Metadata:
        """Create or replace the object at ``path`` from a readable stream."""

    @abstractmethod
    async def move(self, old_path: str, new_path: str) -> Metadata:
        """Relocate an object and return the metadata at its new path."""

    @abstractmethod
    async def copy(self, old_path: str, new_path: str) -> Metadata:
        """Duplicate an object and return the metadata of the copy."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete a single object."""

    @abstractmethod
    async def delete_dir(self, path: str) -> bool:
        """Delete every object below ``path``."""

    @abstractmethod
    async def create_dir(self, path: str) -> Metadata | None:
        """Create a directory, where the backend supports one."""

    @abstractmethod
    async def set_visibility(self, path: str, visibility: Visibility) -> Metadata:
        """Make an object public or private."""

    @abstractmethod
    async def get_visibility(self, path: str) -> Visibility:
        """Return the current visibility of an object."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Return True if an object exists."""

    @abstractmethod
    async def read(self, path: str, options: ReadOptions | None = None) -> File:
        """Return an object's metadata and fully buffered contents."""

    @abstractmethod
    async def read_stream(self, path: str, options: ReadOptions | None = None) -> StreamFile:
        """Return an object's metadata and an open content stream."""

    @abstractmethod
    async def get_metadata(self, path: str) -> Metadata:
        """Return the metadata of an object."""
