"""In-memory stand-ins for the google-cloud-storage client used by the adapter tests."""

from __future__ import annotations

import io
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest
from google.api_core.exceptions import NotFound

from bucketfs.config import GcsConfig
from bucketfs.storage.gcs import GcsAdapter

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class DummyStore:
    """Flat object namespace shared by every handle of one dummy client."""

    def __init__(self):
        self.objects: dict[str, dict] = {}
        self.bucket_exists = True
        self.mutations: list[tuple[str, str]] = []
        self.batches = 0

    def put(self, name: str, data: bytes, public: bool = False) -> None:
        self.objects[name] = {"data": bytes(data), "public": public, "time_created": CREATED_AT}

    def require(self, name: str) -> dict:
        try:
            return self.objects[name]
        except KeyError:
            raise NotFound(f"No such object: {name}") from None


class DummyAcl:
    def __init__(self, blob: "DummyBlob"):
        self._blob = blob
        self._entries: list[dict[str, str]] | None = None

    def reload(self) -> None:
        obj = self._blob._store.require(self._blob.name)
        entries = [{"entity": "project-owners-123", "role": "OWNER"}]
        if obj["public"]:
            entries.append({"entity": "allUsers", "role": "READER"})
        self._entries = entries

    def __iter__(self):
        if self._entries is None:
            self.reload()
        return iter(self._entries)


class DummyWriter(io.BytesIO):
    """Commits on a clean exit, drops everything when the block raises."""

    def __init__(self, store: DummyStore, name: str, public: bool):
        super().__init__()
        self._store = store
        self._name = name
        self._public = public

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self._store.put(self._name, self.getvalue(), public=self._public)
            self._store.mutations.append(("write_stream", self._name))
        self.close()
        return False


class DummyBlob:
    def __init__(self, store: DummyStore, name: str):
        self._store = store
        self.name = name
        self.size = None
        self.time_created = None
        self.acl = DummyAcl(self)

    def upload_from_string(self, data, content_type=None, predefined_acl=None):
        self._store.put(self.name, data, public=predefined_acl == "publicRead")
        self._store.mutations.append(("upload", self.name))

    def open(self, mode="r", **kwargs):
        if mode == "rb":
            return io.BytesIO(self._store.require(self.name)["data"])
        if mode == "wb":
            return DummyWriter(self._store, self.name, kwargs.get("predefined_acl") == "publicRead")
        raise ValueError(f"unsupported mode {mode}")

    def reload(self) -> None:
        obj = self._store.require(self.name)
        # The JSON API reports sizes as strings
        self.size = str(len(obj["data"]))
        self.time_created = obj["time_created"]

    def exists(self) -> bool:
        return self.name in self._store.objects

    def delete(self) -> None:
        self._store.require(self.name)
        del self._store.objects[self.name]
        self._store.mutations.append(("delete", self.name))

    def make_public(self) -> None:
        self._store.require(self.name)["public"] = True
        self._store.mutations.append(("make_public", self.name))

    def make_private(self) -> None:
        self._store.require(self.name)["public"] = False
        self._store.mutations.append(("make_private", self.name))


class DummyBucket:
    def __init__(self, store: DummyStore, client: "DummyClient", name: str):
        self._store = store
        self.client = client
        self.name = name

    def blob(self, blob_name: str) -> DummyBlob:
        return DummyBlob(self._store, blob_name)

    def exists(self) -> bool:
        return self._store.bucket_exists

    def create(self) -> None:
        self._store.bucket_exists = True
        self._store.mutations.append(("create_bucket", self.name))

    def list_blobs(self, prefix=None):
        names = sorted(name for name in self._store.objects if name.startswith(prefix or ""))
        return iter([DummyBlob(self._store, name) for name in names])

    def delete_blobs(self, blobs):
        for blob in blobs:
            blob.delete()

    def rename_blob(self, blob, new_name):
        obj = self._store.require(blob.name)
        self._store.objects[new_name] = dict(obj)
        del self._store.objects[blob.name]
        self._store.mutations.append(("rename", blob.name))
        return DummyBlob(self._store, new_name)

    def copy_blob(self, blob, destination_bucket, new_name):
        obj = self._store.require(blob.name)
        self._store.objects[new_name] = dict(obj)
        self._store.mutations.append(("copy", blob.name))
        return DummyBlob(self._store, new_name)


class DummyClient:
    def __init__(self, store: DummyStore | None = None):
        self.store = store or DummyStore()
        self.buckets_requested: list[str] = []

    def bucket(self, bucket_name: str) -> DummyBucket:
        self.buckets_requested.append(bucket_name)
        return DummyBucket(self.store, self, bucket_name)

    @contextmanager
    def batch(self):
        self.store.batches += 1
        yield self


@pytest.fixture
def config():
    return GcsConfig(project_id="demo-project", bucket="demo-bucket", api_key="test-key")


@pytest.fixture
def client():
    return DummyClient()


@pytest.fixture
def store(client):
    return client.store


@pytest.fixture
def adapter(config, client):
    return GcsAdapter(config, client=client)


@pytest.fixture
def captured_events():
    from bucketfs.hooks import hooks

    events = []

    def handler(event, payload):
        events.append((event, payload))

    hooks.subscribe_all(handler)
    yield events
    hooks.unsubscribe(handler)


@pytest.fixture
def created_at():
    return CREATED_AT


@pytest.fixture
def failing_remote_writes(monkeypatch):
    """Make the remote write channel reject every chunk."""

    def write(self, chunk):
        raise OSError("remote write failed")

    monkeypatch.setattr(DummyWriter, "write", write)
