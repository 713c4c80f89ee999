import io

import pytest

from bucketfs.storage import transcode


def test_encode_contents_passes_bytes_through():
    assert transcode.encode_contents(b"\xff\x00", "utf-8") == b"\xff\x00"


def test_decode_contents_without_encoding_returns_bytes():
    assert transcode.decode_contents(b"abc", None) == b"abc"


def test_iter_encoded_chunks_handles_multibyte_split_across_reads():
    chunks = list(transcode.iter_encoded_chunks(io.StringIO("ab€cd"), "utf-8", chunk_size=2))

    assert b"".join(chunks) == "ab€cd".encode("utf-8")


def test_iter_encoded_chunks_emits_single_bom_for_utf16():
    chunks = list(transcode.iter_encoded_chunks(io.StringIO("abcdef"), "utf-16", chunk_size=2))

    assert b"".join(chunks) == "abcdef".encode("utf-16")


def test_decoding_reader_wraps_only_when_encoding_given():
    raw = io.BytesIO("héllo".encode("latin-1"))
    assert transcode.decoding_reader(raw, None) is raw

    text = transcode.decoding_reader(io.BytesIO("héllo".encode("latin-1")), "latin-1")
    assert text.read() == "héllo"


def test_check_encoding_normalizes_and_rejects_unknown():
    assert transcode.check_encoding("UTF8") == "utf-8"
    with pytest.raises(LookupError):
        transcode.check_encoding("klingon")
