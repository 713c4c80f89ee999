"""Google Cloud Storage backed filesystem adapter.

Every operation is a coroutine. The google-cloud-storage client is blocking, so
each remote call is pushed to a worker thread with ``asyncio.to_thread``; calls
that do not depend on each other (object properties and ACL, content and
metadata) are awaited together with ``asyncio.gather``.

Nothing is cached: each call is a fresh round trip, and not-found or transport
errors raised by the client reach the caller unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import posixpath
from typing import IO, Dict, Iterable

from google.auth import api_key
from google.cloud import storage
from google.oauth2 import service_account

from bucketfs.config import (
    ApiKey,
    GcsConfig,
    InlineCredentials,
    KeyFile,
    Settings,
    get_settings,
)
from bucketfs.hooks import hooks
from bucketfs.storage.base import (
    Contents,
    File,
    FilesystemAdapter,
    Metadata,
    ReadOptions,
    StreamFile,
    Visibility,
    WriteOptions,
)
from bucketfs.storage.errors import ConfigurationError, UnsupportedVisibilityError
from bucketfs.storage.ports import BlobPort, BucketPort, StorageClientPort
from bucketfs.storage.transcode import (
    check_encoding,
    decode_contents,
    decoding_reader,
    encode_contents,
    iter_encoded_chunks,
)

logger = logging.getLogger(__name__)

ALL_USERS = "allUsers"
READER_ROLE = "READER"
DEFAULT_MIMETYPE = "application/octet-stream"
DEFAULT_ENCODING = "utf-8"
DEFAULT_STREAM_CHUNK_SIZE = 256 * 1024
# GCS rejects batches with more than 1000 calls
MAX_BATCH_SIZE = 1000

_PREDEFINED_ACL = {
    Visibility.PUBLIC: "publicRead",
    Visibility.PRIVATE: "private",
}

_CREDENTIAL_FIELDS = ("key_filename", "credentials", "api_key")


def as_visibility(value: object) -> Visibility:
    try:
        return Visibility(value)
    except ValueError as exc:
        raise UnsupportedVisibilityError(value) from exc


def predefined_acl(visibility: object) -> str:
    """Map a visibility onto the GCS predefined ACL used at upload time."""
    return _PREDEFINED_ACL[as_visibility(visibility)]


def visibility_from_acl(entries: Iterable[Dict[str, str]]) -> Visibility:
    for entry in entries:
        if entry.get("entity") == ALL_USERS and entry.get("role") == READER_ROLE:
            return Visibility.PUBLIC
    return Visibility.PRIVATE


def guess_mimetype(path: str) -> str:
    mimetype, _ = mimetypes.guess_type(path)
    return mimetype or DEFAULT_MIMETYPE


def validate_config(config: GcsConfig) -> None:
    """Fail fast, before any client exists, on a missing or conflicting field."""
    if not (config.bucket or "").strip():
        raise ConfigurationError(
            "bucket", "You must provide a 'bucket' to the GcsAdapter constructor"
        )
    if not (config.project_id or "").strip():
        raise ConfigurationError(
            "project_id", "You must provide a 'project_id' to the GcsAdapter constructor"
        )
    supplied = config.supplied_credentials()
    if not supplied:
        raise ConfigurationError(
            "/".join(_CREDENTIAL_FIELDS),
            "You must provide a 'key_filename', 'credentials' or 'api_key' "
            "to the GcsAdapter constructor",
        )
    if len(supplied) > 1:
        names = ", ".join(f"'{name}'" for name in supplied)
        raise ConfigurationError(
            "/".join(supplied),
            f"Only one of 'key_filename', 'credentials' or 'api_key' may be provided, got {names}",
        )


def build_client(config: GcsConfig) -> storage.Client:
    """Create a storage client for the configured credential. No network I/O."""
    source = config.credential_source()
    if isinstance(source, KeyFile):
        credentials = service_account.Credentials.from_service_account_file(source.path)
    elif isinstance(source, InlineCredentials):
        credentials = service_account.Credentials.from_service_account_info(dict(source.info))
    elif isinstance(source, ApiKey):
        credentials = api_key.Credentials(source.key)
    else:  # pragma: no cover - credential_source() only returns the variants above
        raise TypeError(f"Unknown credential source: {source!r}")
    return storage.Client(project=config.project_id, credentials=credentials)


class GcsAdapter(FilesystemAdapter):
    """Expose a single GCS bucket through the generic filesystem adapter contract."""

    adapter_name = "gcs"
    target_version = "1.0"

    def __init__(
        self,
        config: GcsConfig,
        client: StorageClientPort | None = None,
        *,
        stream_chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE,
        default_visibility: Visibility = Visibility.PRIVATE,
    ) -> None:
        validate_config(config)
        self._config = config
        self._client = client if client is not None else build_client(config)
        self._bucket: BucketPort = self._client.bucket(config.bucket)
        self._stream_chunk_size = stream_chunk_size
        self._default_visibility = as_visibility(default_visibility)

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, client: StorageClientPort | None = None
    ) -> "GcsAdapter":
        settings = settings or get_settings()
        return cls(
            settings.to_adapter_config(),
            client=client,
            stream_chunk_size=settings.stream_chunk_size,
            default_visibility=as_visibility(settings.default_visibility),
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket

    async def ensure_bucket(self) -> bool:
        """Create the bucket if it is missing. Returns True when it was created.

        Not called by any other operation; the owning application runs it once at
        startup when it wants the bucket provisioned.
        """
        if await asyncio.to_thread(self._bucket.exists):
            logger.debug(f"Bucket {self.bucket_name} already exists")
            return False
        await asyncio.to_thread(self._bucket.create)
        logger.info(f"Created bucket {self.bucket_name}")
        hooks.emit("storage:ensure_bucket", bucket=self.bucket_name)
        return True

    async def write(
        self, path: str, contents: Contents, options: WriteOptions | None = None
    ) -> Metadata:
        visibility, encoding = self._resolve_write_options(options)
        acl = predefined_acl(visibility)
        data = encode_contents(contents, encoding)

        blob = self._blob(path)
        await asyncio.to_thread(blob.upload_from_string, data, predefined_acl=acl)
        logger.info(f"Wrote {len(data)} bytes to gs://{self.bucket_name}/{path} ({acl})")
        hooks.emit("storage:write", path=path, size=len(data), visibility=visibility)

        return await self.get_metadata(path)

    async def write_stream(
        self, path: str, stream: IO, options: WriteOptions | None = None
    ) -> Metadata:
        visibility, encoding = self._resolve_write_options(options)
        acl = predefined_acl(visibility)

        try:
            written = await asyncio.to_thread(
                self._upload_stream, self._blob(path), stream, encoding, acl
            )
        except Exception as exc:
            logger.error(f"Streaming upload to gs://{self.bucket_name}/{path} failed: {exc}")
            raise
        logger.info(f"Streamed {written} bytes to gs://{self.bucket_name}/{path} ({acl})")
        hooks.emit("storage:write_stream", path=path, size=written, visibility=visibility)

        return await self.get_metadata(path)

    def _resolve_write_options(self, options: WriteOptions | None) -> tuple[Visibility, str]:
        """Fill unset option fields from the adapter defaults and check the codec."""
        options = options or WriteOptions()
        visibility = as_visibility(
            options.visibility if options.visibility is not None else self._default_visibility
        )
        encoding = check_encoding(options.encoding or DEFAULT_ENCODING)
        return visibility, encoding

    def _upload_stream(self, blob: BlobPort, stream: IO, encoding: str, acl: str) -> int:
        # Leaving the block with an exception abandons the resumable upload
        # instead of finalising a partial object.
        written = 0
        with blob.open("wb", predefined_acl=acl) as writer:
            for chunk in iter_encoded_chunks(stream, encoding, self._stream_chunk_size):
                writer.write(chunk)
                written += len(chunk)
        return written

    async def move(self, old_path: str, new_path: str) -> Metadata:
        await asyncio.to_thread(self._bucket.rename_blob, self._blob(old_path), new_path)
        logger.info(f"Moved gs://{self.bucket_name}/{old_path} to {new_path}")
        hooks.emit("storage:move", old_path=old_path, new_path=new_path)

        return await self.get_metadata(new_path)

    async def copy(self, old_path: str, new_path: str) -> Metadata:
        await asyncio.to_thread(
            self._bucket.copy_blob, self._blob(old_path), self._bucket, new_path
        )
        logger.info(f"Copied gs://{self.bucket_name}/{old_path} to {new_path}")
        hooks.emit("storage:copy", old_path=old_path, new_path=new_path)

        return await self.get_metadata(new_path)

    async def delete(self, path: str) -> bool:
        await asyncio.to_thread(self._blob(path).delete)
        logger.info(f"Deleted gs://{self.bucket_name}/{path}")
        hooks.emit("storage:delete", path=path)
        return True

    async def delete_dir(self, path: str) -> bool:
        deleted = await asyncio.to_thread(self._delete_prefix, path)
        logger.info(f"Deleted {deleted} objects under gs://{self.bucket_name}/{path}")
        hooks.emit("storage:delete_dir", path=path, deleted=deleted)
        return True

    def _delete_prefix(self, prefix: str) -> int:
        blobs = list(self._bucket.list_blobs(prefix=prefix))
        for start in range(0, len(blobs), MAX_BATCH_SIZE):
            with self._client.batch():
                self._bucket.delete_blobs(blobs[start : start + MAX_BATCH_SIZE])
        return len(blobs)

    # GCS has no notion of an (empty) directory
    async def create_dir(self, path: str) -> Metadata | None:
        return None

    async def set_visibility(self, path: str, visibility: Visibility) -> Metadata:
        visibility = as_visibility(visibility)
        blob = self._blob(path)
        if visibility is Visibility.PUBLIC:
            await asyncio.to_thread(blob.make_public)
        else:
            await asyncio.to_thread(blob.make_private)
        logger.info(f"Set gs://{self.bucket_name}/{path} to {visibility.value}")
        hooks.emit("storage:set_visibility", path=path, visibility=visibility)

        return await self.get_metadata(path)

    async def get_visibility(self, path: str) -> Visibility:
        return (await self.get_metadata(path)).visibility

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._blob(path).exists)

    async def read(self, path: str, options: ReadOptions | None = None) -> File:
        options = options or ReadOptions()
        if options.encoding is not None:
            check_encoding(options.encoding)

        data, metadata = await asyncio.gather(
            asyncio.to_thread(self._download, self._blob(path)),
            self.get_metadata(path),
        )
        logger.debug(f"Read {len(data)} bytes from gs://{self.bucket_name}/{path}")
        hooks.emit("storage:read", path=path, size=len(data))

        return File(metadata=metadata, contents=decode_contents(data, options.encoding))

    @staticmethod
    def _download(blob: BlobPort) -> bytes:
        with blob.open("rb") as reader:
            return reader.read()

    async def read_stream(self, path: str, options: ReadOptions | None = None) -> StreamFile:
        options = options or ReadOptions()
        if options.encoding is not None:
            check_encoding(options.encoding)

        raw, metadata = await asyncio.gather(
            asyncio.to_thread(self._blob(path).open, "rb"),
            self.get_metadata(path),
            return_exceptions=True,
        )
        if isinstance(metadata, BaseException):
            if not isinstance(raw, BaseException):
                raw.close()
            raise metadata
        if isinstance(raw, BaseException):
            raise raw

        hooks.emit("storage:read_stream", path=path)
        return StreamFile(metadata=metadata, stream=decoding_reader(raw, options.encoding))

    async def get_metadata(self, path: str) -> Metadata:
        blob = self._blob(path)
        _, acl = await asyncio.gather(
            asyncio.to_thread(blob.reload),
            asyncio.to_thread(self._fetch_acl, blob),
        )
        return self._metadata_from_blob(blob, acl)

    @staticmethod
    def _fetch_acl(blob: BlobPort) -> list[Dict[str, str]]:
        blob.acl.reload()
        return list(blob.acl)

    @staticmethod
    def _metadata_from_blob(blob: BlobPort, acl: Iterable[Dict[str, str]]) -> Metadata:
        name = posixpath.basename(blob.name)
        return Metadata(
            path=blob.name,
            name=name,
            ext=posixpath.splitext(name)[1],
            parent_dir=posixpath.dirname(blob.name),
            size=int(blob.size or 0),
            timestamp=blob.time_created,
            mimetype=guess_mimetype(blob.name),
            visibility=visibility_from_acl(acl),
        )

    def _blob(self, path: str) -> BlobPort:
        return self._bucket.blob(path)
