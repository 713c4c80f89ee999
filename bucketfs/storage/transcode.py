"""Byte/text transcoding stages, selected by codec name."""

from __future__ import annotations

import codecs
import io
from typing import IO, Iterator

from bucketfs.storage.base import Contents


def check_encoding(encoding: str) -> str:
    """Return the canonical codec name, raising LookupError if it is unknown."""
    return codecs.lookup(encoding).name


def encode_contents(contents: Contents, encoding: str) -> bytes:
    if isinstance(contents, str):
        return contents.encode(encoding)
    return bytes(contents)


def decode_contents(data: bytes, encoding: str | None) -> Contents:
    if encoding is None:
        return data
    return data.decode(encoding)


def iter_encoded_chunks(stream: IO, encoding: str, chunk_size: int) -> Iterator[bytes]:
    """Yield the stream's content as bytes, one chunk at a time.

    Text chunks go through an incremental encoder; byte chunks are passed on
    untouched.
    """
    encoder = codecs.getincrementalencoder(encoding)()
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        if isinstance(chunk, str):
            encoded = encoder.encode(chunk)
            if encoded:
                yield encoded
        else:
            yield bytes(chunk)
    tail = encoder.encode("", final=True)
    if tail:
        yield tail


def decoding_reader(raw: IO[bytes], encoding: str | None) -> IO:
    """Wrap a binary reader in a text decoder, or hand it back unchanged."""
    if encoding is None:
        return raw
    return io.TextIOWrapper(raw, encoding=encoding)
