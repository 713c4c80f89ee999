"""Narrow view of the google-cloud-storage client surface used by the adapter.

Only the calls the adapter actually makes are listed, so tests can substitute
small in-memory doubles for the real ``google.cloud.storage`` objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import IO, Any, ContextManager, Dict, Iterable, Iterator, Protocol


class ObjectAclPort(Protocol):
    def reload(self) -> None:
        ...

    def __iter__(self) -> Iterator[Dict[str, str]]:
        ...


class BlobPort(Protocol):
    name: str
    size: Any
    time_created: datetime | None
    acl: ObjectAclPort

    def upload_from_string(
        self, data: bytes, content_type: str | None = None, predefined_acl: str | None = None
    ) -> None:
        ...

    def open(self, mode: str = "r", **kwargs: Any) -> IO[bytes]:
        ...

    def reload(self) -> None:
        ...

    def exists(self) -> bool:
        ...

    def delete(self) -> None:
        ...

    def make_public(self) -> None:
        ...

    def make_private(self) -> None:
        ...


class BatchingClientPort(Protocol):
    def batch(self) -> ContextManager[Any]:
        ...


class BucketPort(Protocol):
    name: str
    client: BatchingClientPort

    def blob(self, blob_name: str) -> BlobPort:
        ...

    def exists(self) -> bool:
        ...

    def create(self) -> None:
        ...

    def list_blobs(self, prefix: str | None = None) -> Iterable[BlobPort]:
        ...

    def delete_blobs(self, blobs: Iterable[BlobPort]) -> None:
        ...

    def rename_blob(self, blob: BlobPort, new_name: str) -> BlobPort:
        ...

    def copy_blob(self, blob: BlobPort, destination_bucket: "BucketPort", new_name: str) -> BlobPort:
        ...


class StorageClientPort(BatchingClientPort, Protocol):
    def bucket(self, bucket_name: str) -> BucketPort:
        ...
